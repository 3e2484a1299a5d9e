"""Community Market Backend Application.

Modules:
    - core: Configuration, logging, tracing, metrics, storage, Celery setup
    - modules.ingest: Video upload and HLS packaging
"""

__version__ = "0.1.0"
