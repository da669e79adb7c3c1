"""
Image conversion microservice integration.

Sends raw JPEG/HEIC bytes to the AVIF converter and decodes the variants
it returns.
"""

from .client import (
    ConverterConfig,
    HttpImageConverter,
    MockImageConverter,
    avif_filename,
    create_image_converter,
)

__all__ = [
    "ConverterConfig",
    "HttpImageConverter",
    "MockImageConverter",
    "avif_filename",
    "create_image_converter",
]
