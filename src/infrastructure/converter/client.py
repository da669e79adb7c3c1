"""
Client for the AVIF converter microservice.

The converter accepts a multipart upload (`image` file plus `mimeType`)
on POST /convert and answers with JSON:

    {"success": true, "data": {"fullSize": {"content": "<base64>", "size": 1234}}}

A `data.variants` list of {filename, content, size, mimetype, variant}
objects is accepted as well. Anything short of a well-formed success
response is a hard failure: the response is never partially trusted.
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ...core.media.errors import ConversionFailed
from ...core.media.interfaces import ConverterHealth, ImageConverter
from ...core.media.models import ConvertedVariant

logger = logging.getLogger(__name__)

AVIF_MIME_TYPE = "image/avif"
FULL_SIZE_VARIANT = "full"

_CONVERTIBLE_SUFFIX = re.compile(r"\.(jpe?g|heic|heif)$", re.IGNORECASE)


def avif_filename(original_name: str) -> str:
    """photo.HEIC -> photo.avif"""
    return _CONVERTIBLE_SUFFIX.sub("", original_name) + ".avif"


@dataclass
class ConverterConfig:
    """Connection settings for the converter service."""
    base_url: str
    timeout_seconds: float = 300.0
    health_timeout_seconds: float = 60.0

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("Converter URL is required")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.base_url = self.base_url.rstrip("/")


class HttpImageConverter:
    """
    httpx implementation of ImageConverter.

    A transport can be injected (httpx.MockTransport in tests). Each call
    opens its own AsyncClient; conversions are long and infrequent enough
    that connection reuse buys nothing.
    """

    def __init__(
        self,
        config: ConverterConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport

        logger.info(
            "Initialized converter client",
            extra={"converter_url": config.base_url, "timeout": config.timeout_seconds}
        )

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=timeout,
            transport=self._transport,
        )

    async def health_check(self) -> ConverterHealth:
        """Never raises: failures are reported through `ok=False`."""
        try:
            async with self._client(self._config.health_timeout_seconds) as client:
                response = await client.get("/health")
                response.raise_for_status()
                detail = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Converter health check failed", extra={"error": str(e)})
            return ConverterHealth(ok=False, detail=str(e))

        return ConverterHealth(ok=True, detail=detail)

    async def convert(
        self,
        data: bytes,
        original_name: str,
        content_type: str,
    ) -> list[ConvertedVariant]:
        logger.debug(
            "Requesting conversion",
            extra={"file_name": original_name, "content_type": content_type, "size_bytes": len(data)}
        )

        try:
            async with self._client(self._config.timeout_seconds) as client:
                response = await client.post(
                    "/convert",
                    files={"image": (original_name, data, content_type)},
                    data={"mimeType": content_type},
                )
        except httpx.TimeoutException as e:
            raise ConversionFailed(
                f"Conversion failed: timed out after {self._config.timeout_seconds}s"
            ) from e
        except httpx.HTTPError as e:
            raise ConversionFailed(f"Conversion failed: {e}") from e

        if response.is_error:
            logger.error(
                "Converter returned an error status",
                extra={"status": response.status_code, "body": response.text[:500]}
            )
            raise ConversionFailed(
                f"Conversion failed: {response.status_code} {response.reason_phrase} - {response.text[:200]}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ConversionFailed("Conversion failed: response is not JSON") from e

        variants = parse_conversion_response(payload, original_name)

        logger.info(
            "Conversion succeeded",
            extra={"file_name": original_name, "variants": [v.filename for v in variants]}
        )
        return variants


def parse_conversion_response(payload: Any, original_name: str) -> list[ConvertedVariant]:
    """Validate a converter response and decode its variants."""
    if not isinstance(payload, dict):
        raise ConversionFailed("Conversion failed: malformed response")

    if not payload.get("success"):
        raise ConversionFailed(f"Conversion failed: {payload.get('error') or 'Unknown error'}")

    data = payload.get("data")
    if not isinstance(data, dict):
        raise ConversionFailed("Conversion failed: Missing data in response")

    raw_variants = data.get("variants")
    if raw_variants is None:
        full_size = data.get("fullSize")
        if not isinstance(full_size, dict):
            raise ConversionFailed("Conversion failed: Missing fullSize in response data")
        raw_variants = [{
            "filename": avif_filename(original_name),
            "content": full_size.get("content"),
            "size": full_size.get("size"),
            "mimetype": AVIF_MIME_TYPE,
            "variant": FULL_SIZE_VARIANT,
        }]

    if not isinstance(raw_variants, list) or not raw_variants:
        raise ConversionFailed("Conversion failed: no variants in response")

    return [_decode_variant(raw, original_name) for raw in raw_variants]


def _decode_variant(raw: Any, original_name: str) -> ConvertedVariant:
    if not isinstance(raw, dict):
        raise ConversionFailed("Conversion failed: malformed variant")

    encoded = raw.get("content")
    if not encoded or not isinstance(encoded, str):
        raise ConversionFailed("Conversion failed: variant has no content")

    try:
        content = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConversionFailed("Conversion failed: variant content is not valid base64") from e

    if not content:
        raise ConversionFailed("Conversion failed: variant content is empty")

    reported_size = raw.get("size")
    if reported_size is not None:
        try:
            reported_size = int(reported_size)
        except (TypeError, ValueError) as e:
            raise ConversionFailed("Conversion failed: variant size is not a number") from e
    if reported_size is not None and reported_size != len(content):
        raise ConversionFailed(
            f"Conversion failed: size mismatch (reported {reported_size}, got {len(content)})"
        )

    return ConvertedVariant(
        filename=raw.get("filename") or avif_filename(original_name),
        data=content,
        content_type=raw.get("mimetype") or AVIF_MIME_TYPE,
        variant=raw.get("variant") or FULL_SIZE_VARIANT,
    )


# ---------------------------------------------------------------------------
# Mock Converter for Local Development
# ---------------------------------------------------------------------------

# ftyp box of an AVIF file; enough for anything that sniffs the header
_FAKE_AVIF_HEADER = b"\x00\x00\x00\x1cftypavif\x00\x00\x00\x00avifmif1miaf"


class MockImageConverter:
    """
    Converter stand-in that never leaves the process.

    Produces a fake AVIF payload derived from the input so tests can tell
    converted output apart from original bytes.
    """

    def __init__(self, fail: bool = False) -> None:
        self._fail = fail
        self.calls: list[str] = []
        logger.info("Initialized mock image converter")

    async def health_check(self) -> ConverterHealth:
        return ConverterHealth(ok=not self._fail, detail={"mode": "mock"})

    async def convert(
        self,
        data: bytes,
        original_name: str,
        content_type: str,
    ) -> list[ConvertedVariant]:
        self.calls.append(original_name)
        if self._fail:
            raise ConversionFailed("Conversion failed: mock converter configured to fail")

        return [ConvertedVariant(
            filename=avif_filename(original_name),
            data=_FAKE_AVIF_HEADER + data[:64],
            content_type=AVIF_MIME_TYPE,
            variant=FULL_SIZE_VARIANT,
        )]


def create_image_converter(
    config: Optional[ConverterConfig] = None,
    mock_mode: bool = False,
) -> ImageConverter:
    """Return the HTTP converter, or the mock in mock mode."""
    if mock_mode:
        return MockImageConverter()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return HttpImageConverter(config)
