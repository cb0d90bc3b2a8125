"""
Book metadata lookup across Turkish retail sites and public book APIs.
"""

from .models import BindingType, BookLookupResult, BookSource
from .service import BookLookupService, UnknownSourceError, create_lookup_service

__all__ = [
    "BindingType",
    "BookLookupResult",
    "BookLookupService",
    "BookSource",
    "UnknownSourceError",
    "create_lookup_service",
]
