"""Video ingestion module.

Stages uploaded videos, packages them as HLS with FFmpeg, and publishes the
playlist and segments to object storage.
"""

from app.modules.ingest.router import router as ingest_router
from app.modules.ingest.service import IngestionOrchestrator, create_ingestion_orchestrator

__all__ = [
    "ingest_router",
    "IngestionOrchestrator",
    "create_ingestion_orchestrator",
]
