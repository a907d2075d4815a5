"""
Tubely API Package.

Package Structure:
    - dependencies.py: FastAPI dependency providers for services and path ids
    - v1/: Version 1 API endpoints
        - videos.py: Video record endpoints (create, list, get)
        - upload.py: Video and thumbnail upload endpoints

All endpoints are served under the /api/v1 URL prefix.
"""
