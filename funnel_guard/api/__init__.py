"""
API package for Funnel Guard.

Router modules:
- diagnosis: stateless and stored-data diagnosis runs
- records: ingestion of events and changes into storage
"""

from fastapi import APIRouter

from funnel_guard.api.diagnosis import router as diagnosis_router
from funnel_guard.api.records import router as records_router

# Create main API router
api_router = APIRouter()

api_router.include_router(diagnosis_router, prefix="/diagnosis", tags=["diagnosis"])
api_router.include_router(records_router, tags=["records"])

__all__ = [
    "api_router",
    "diagnosis_router",
    "records_router",
]
