"""
API route modules.
"""

from .exports import router as exports_router
from .misc import router as misc_router
from .publications import router as publications_router

__all__ = [
    "exports_router",
    "misc_router",
    "publications_router",
]
