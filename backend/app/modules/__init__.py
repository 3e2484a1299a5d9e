"""Application modules.

- ingest: Video upload, HLS packaging with FFmpeg, publishing to object storage
"""
