"""
Services module for the Tubely backend application.

- ingestion_service: The video upload pipeline (validate, stage, inspect,
  remux, store, record, sign)
- media_processing: ffprobe/ffmpeg wrappers and aspect ratio classification
- storage_service: S3 uploads, storage references and presigned URLs
- thumbnail_service: Thumbnail uploads into the local assets directory
- video_store: MongoDB persistence for video records

Services receive Settings and their collaborators through their
constructors and are wired by FastAPI dependencies in app.api.dependencies.
"""
