"""
Tubely Backend Application Package

This package contains the Tubely FastAPI application: a video ingestion
backend that accepts uploads for existing video records, classifies their
aspect ratio, remuxes them for fast start, stores them in S3 and serves
short-lived presigned URLs.

Package Structure:
- api/: REST API endpoints organized by version (v1)
- core/: Core infrastructure (database, auth, error taxonomy)
- models/: Pydantic data models for video records and probe output
- services/: Ingestion pipeline, media tools, storage and persistence
- utils/: Content-type parsing, asset naming and logging helpers
"""

__version__ = "1.0.0"
__app_name__ = "tubely"
