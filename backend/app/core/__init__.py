"""
Core infrastructure for the Tubely backend.

- auth: Bearer token issuing and validation (local HS256 JWT)
- database: MongoDB async client with Motor driver and connection pooling
- exceptions: The TubelyError taxonomy rendered by the API error handler
"""
