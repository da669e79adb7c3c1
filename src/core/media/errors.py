"""
Error taxonomy for media library operations.

Infrastructure adapters translate library exceptions (botocore, httpx,
Pillow) into these types so the core and the API layer only ever deal
with one family of errors.
"""


class MediaError(Exception):
    """Base class for all media library errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(MediaError):
    """Bucket, folder or object does not exist."""
    pass


class AlreadyExists(MediaError):
    """Bucket or folder already exists."""
    pass


class InvalidInput(MediaError):
    """Malformed request arguments."""
    pass


class InvalidPath(InvalidInput):
    """Folder path normalizes to nothing or contains illegal segments."""
    pass


class ConversionFailed(MediaError):
    """The converter reported failure or returned an unusable response."""
    pass


class PayloadTooLarge(MediaError):
    """File exceeds the configured size ceiling."""
    pass


class StoreWriteFailed(MediaError):
    """The object store rejected a write or delete."""
    pass


class SidecarUpdateFailed(MediaError):
    """
    Folder metadata sidecar could not be updated.

    Never surfaced to upload callers; only logged.
    """
    pass
