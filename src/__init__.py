"""
PhotoVault - photo and video library on S3-compatible object storage.

This package contains the complete application:
- core: Folder emulation and the upload pipeline, framework-agnostic
- infrastructure: Object store, AVIF converter and metadata adapters
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "1.0.0"
