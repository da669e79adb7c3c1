"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: S3-compatible object storage (MinIO, R2, S3)
- converter: HTTP client for the AVIF converter service
- metadata: EXIF extraction (Pillow) and the folder metadata sidecar

These wrappers translate between external formats and our domain models.
"""
