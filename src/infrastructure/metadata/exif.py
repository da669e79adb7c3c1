"""
EXIF extraction with Pillow.

Pulls the handful of capture fields the folder sidecar keeps: capture
time, camera make/model, orientation, pixel dimensions and GPS position.
Callers treat every exception from here as "no metadata".
"""

import io
import logging
from datetime import datetime
from typing import Any, Optional

from PIL import ExifTags, Image

logger = logging.getLogger(__name__)

_EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"


def _to_iso(value: Any) -> Optional[str]:
    if not value:
        return None
    text = str(value).strip("\x00 ")
    try:
        return datetime.strptime(text, _EXIF_DATE_FORMAT).isoformat()
    except ValueError:
        return text


def _to_degrees(dms: Any, ref: Any) -> Optional[float]:
    """Convert an EXIF (degrees, minutes, seconds) triple to decimal degrees."""
    try:
        degrees, minutes, seconds = (float(part) for part in dms)
    except (TypeError, ValueError, ZeroDivisionError):
        return None

    value = degrees + minutes / 60 + seconds / 3600
    if str(ref).upper() in ("S", "W"):
        value = -value
    return round(value, 6)


class PillowMetadataExtractor:
    """MetadataExtractor backed by Pillow."""

    def extract(self, data: bytes, filename: str) -> Optional[dict[str, Any]]:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
            exif = image.getexif()

            if not exif:
                logger.debug("No EXIF block", extra={"file_name": filename})
                return None

            exif_ifd = exif.get_ifd(ExifTags.IFD.Exif)
            gps_ifd = exif.get_ifd(ExifTags.IFD.GPSInfo)

            metadata: dict[str, Any] = {
                "dateTaken": _to_iso(
                    exif_ifd.get(ExifTags.Base.DateTimeOriginal)
                    or exif.get(ExifTags.Base.DateTime)
                ),
                "camera": {
                    "make": (exif.get(ExifTags.Base.Make) or "").strip("\x00 ") or None,
                    "model": (exif.get(ExifTags.Base.Model) or "").strip("\x00 ") or None,
                },
                "orientation": exif.get(ExifTags.Base.Orientation),
                "dimensions": {"width": width, "height": height},
                "gps": None,
            }

            if gps_ifd:
                latitude = _to_degrees(
                    gps_ifd.get(ExifTags.GPS.GPSLatitude),
                    gps_ifd.get(ExifTags.GPS.GPSLatitudeRef),
                )
                longitude = _to_degrees(
                    gps_ifd.get(ExifTags.GPS.GPSLongitude),
                    gps_ifd.get(ExifTags.GPS.GPSLongitudeRef),
                )
                if latitude is not None and longitude is not None:
                    metadata["gps"] = {"latitude": latitude, "longitude": longitude}

        logger.debug(
            "Extracted EXIF metadata",
            extra={"file_name": filename, "date_taken": metadata["dateTaken"]}
        )
        return metadata
