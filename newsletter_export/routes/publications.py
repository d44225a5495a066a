"""
Publication routes: discover a publication's identity and posts.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from ..config import get_fetcher
from ..discovery import load_publication
from ..exceptions import ConfigurationError, DiscoveryError, TransportError
from ..fetcher import Fetcher
from ..schemas import PublicationRequest, PublicationResponse

router = APIRouter(prefix="/publications", tags=["publications"])


@router.post("")
async def discover_publication(
    request: PublicationRequest,
    fetcher: Annotated[Fetcher, Depends(get_fetcher)],
) -> PublicationResponse:
    """Load a publication's identity and post list (feed first, then archive)."""
    try:
        return await load_publication(fetcher, request.url)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (DiscoveryError, TransportError) as e:
        raise HTTPException(status_code=502, detail=str(e))
