"""
Image metadata: EXIF extraction and the per-folder JSON sidecar.
"""

from .exif import PillowMetadataExtractor
from .sidecar import DEFAULT_SIDECAR_NAME, ObjectStoreMetadataSidecar, sidecar_key

__all__ = [
    "DEFAULT_SIDECAR_NAME",
    "ObjectStoreMetadataSidecar",
    "PillowMetadataExtractor",
    "sidecar_key",
]
