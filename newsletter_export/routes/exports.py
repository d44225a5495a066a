"""
Export routes: run an export job.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from ..config import get_fetcher
from ..exceptions import (
    AllPostsFailedError,
    AssemblyError,
    ConfigurationError,
    TransportError,
)
from ..exporter import run_export_job
from ..fetcher import Fetcher
from ..schemas import ExportJobRequest, ExportJobResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exports", tags=["exports"])


@router.post("")
async def create_export(
    request: ExportJobRequest,
    fetcher: Annotated[Fetcher, Depends(get_fetcher)],
) -> ExportJobResult:
    """Run an export job and report per-post outcomes and written files."""
    try:
        return await run_export_job(request, fetcher)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AllPostsFailedError as e:
        raise HTTPException(
            status_code=422,
            detail={
                "message": str(e),
                "failures": [failure.model_dump() for failure in e.failures],
            },
        )
    except TransportError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except AssemblyError as e:
        logger.error(f"Export assembly failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
