"""
Tests for EXIF extraction and the folder metadata sidecar.

Test images are generated with Pillow in memory.
"""

import asyncio
import io
import json

import pytest
from PIL import ExifTags, Image, UnidentifiedImageError
from PIL.TiffImagePlugin import IFDRational

from src.core.media.errors import SidecarUpdateFailed
from src.core.media.models import FileKind, UploadResult
from src.infrastructure.metadata.exif import PillowMetadataExtractor
from src.infrastructure.metadata.sidecar import ObjectStoreMetadataSidecar, sidecar_key
from src.infrastructure.storage.client import MockObjectStore


def make_jpeg(exif: Image.Exif = None, size=(32, 24)) -> bytes:
    buffer = io.BytesIO()
    image = Image.new("RGB", size, color=(200, 120, 40))
    if exif is None:
        image.save(buffer, format="JPEG")
    else:
        image.save(buffer, format="JPEG", exif=exif)
    return buffer.getvalue()


def camera_exif(with_gps: bool = True) -> Image.Exif:
    exif = Image.Exif()
    exif[ExifTags.Base.Make] = "Apple"
    exif[ExifTags.Base.Model] = "iPhone 15"
    exif[ExifTags.Base.Orientation] = 6
    exif[ExifTags.IFD.Exif] = {ExifTags.Base.DateTimeOriginal: "2024:07:14 09:30:00"}
    if with_gps:
        exif[ExifTags.IFD.GPSInfo] = {
            ExifTags.GPS.GPSLatitudeRef: "S",
            ExifTags.GPS.GPSLatitude: (IFDRational(33), IFDRational(51), IFDRational(36)),
            ExifTags.GPS.GPSLongitudeRef: "E",
            ExifTags.GPS.GPSLongitude: (IFDRational(151), IFDRational(12), IFDRational(36)),
        }
    return exif


def make_result(object_name: str = "trip/IMG_1.avif") -> UploadResult:
    return UploadResult(
        original_name="IMG_1.jpg",
        object_name=object_name,
        size=123,
        content_type="image/avif",
        etag="etag-1",
        variant="full",
        file_type=FileKind.IMAGE,
    )


class TestPillowMetadataExtractor:

    def test_reads_camera_fields(self):
        metadata = PillowMetadataExtractor().extract(make_jpeg(camera_exif()), "IMG_1.jpg")

        assert metadata["camera"] == {"make": "Apple", "model": "iPhone 15"}
        assert metadata["orientation"] == 6
        assert metadata["dateTaken"] == "2024-07-14T09:30:00"
        assert metadata["dimensions"] == {"width": 32, "height": 24}

    def test_gps_in_decimal_degrees(self):
        metadata = PillowMetadataExtractor().extract(make_jpeg(camera_exif()), "IMG_1.jpg")

        assert metadata["gps"]["latitude"] == pytest.approx(-33.86)
        assert metadata["gps"]["longitude"] == pytest.approx(151.21)

    def test_without_gps(self):
        metadata = PillowMetadataExtractor().extract(
            make_jpeg(camera_exif(with_gps=False)), "IMG_1.jpg"
        )
        assert metadata["gps"] is None

    def test_no_exif_returns_none(self):
        assert PillowMetadataExtractor().extract(make_jpeg(), "plain.jpg") is None

    def test_unreadable_data_raises(self):
        """The orchestrator records this as absent metadata."""
        with pytest.raises(UnidentifiedImageError):
            PillowMetadataExtractor().extract(b"not an image", "IMG_2.heic")


class TestSidecarKey:

    def test_nested_folder(self):
        assert sidecar_key("trip/day1/a.avif") == "trip/day1/metadata.json"

    def test_root_folder(self):
        assert sidecar_key("a.avif") == "metadata.json"

    def test_custom_name(self):
        assert sidecar_key("trip/a.avif", "_meta.json") == "trip/_meta.json"


class TestObjectStoreMetadataSidecar:

    @pytest.fixture
    async def store(self) -> MockObjectStore:
        store = MockObjectStore()
        await store.make_bucket("photos")
        return store

    async def read_document(self, store, key="trip/metadata.json") -> dict:
        stored = await store.get_object("photos", key)
        return json.loads(stored.data)

    @pytest.mark.asyncio
    async def test_creates_document(self, store):
        sidecar = ObjectStoreMetadataSidecar(store)

        await sidecar.update_folder_metadata(
            "photos", "trip/IMG_1.avif", {"orientation": 1}, make_result()
        )

        document = await self.read_document(store)
        entry = document["images"]["IMG_1.avif"]
        assert document["folder"] == "trip"
        assert "updated" in document
        assert entry["originalName"] == "IMG_1.jpg"
        assert entry["size"] == 123
        assert entry["etag"] == "etag-1"
        assert entry["mimetype"] == "image/avif"
        assert entry["exif"] == {"orientation": 1}

    @pytest.mark.asyncio
    async def test_merges_with_existing_entries(self, store):
        sidecar = ObjectStoreMetadataSidecar(store)

        await sidecar.update_folder_metadata(
            "photos", "trip/IMG_1.avif", {"orientation": 1}, make_result()
        )
        await sidecar.update_folder_metadata(
            "photos", "trip/IMG_2.avif", {"orientation": 3}, make_result("trip/IMG_2.avif")
        )

        document = await self.read_document(store)
        assert sorted(document["images"]) == ["IMG_1.avif", "IMG_2.avif"]

    @pytest.mark.asyncio
    async def test_corrupt_document_fails(self, store):
        await store.put_object("photos", "trip/metadata.json", b"[1, 2]", 6)
        sidecar = ObjectStoreMetadataSidecar(store)

        with pytest.raises(SidecarUpdateFailed):
            await sidecar.update_folder_metadata(
                "photos", "trip/IMG_1.avif", {}, make_result()
            )

    @pytest.mark.asyncio
    async def test_store_errors_are_wrapped(self):
        sidecar = ObjectStoreMetadataSidecar(MockObjectStore())

        with pytest.raises(SidecarUpdateFailed, match="trip/IMG_1.avif"):
            await sidecar.update_folder_metadata(
                "missing-bucket", "trip/IMG_1.avif", {}, make_result()
            )

    @pytest.mark.asyncio
    async def test_concurrent_updates_keep_every_entry(self):
        """Two uploads into one folder racing on the same sidecar."""

        class YieldingStore(MockObjectStore):
            async def get_object(self, bucket, key):
                try:
                    return await super().get_object(bucket, key)
                finally:
                    await asyncio.sleep(0)

        racing = YieldingStore()
        await racing.make_bucket("photos")
        sidecar = ObjectStoreMetadataSidecar(racing)

        await asyncio.gather(
            sidecar.update_folder_metadata(
                "photos", "trip/IMG_1.avif", {"orientation": 1}, make_result()
            ),
            sidecar.update_folder_metadata(
                "photos", "trip/IMG_2.avif", {"orientation": 3}, make_result("trip/IMG_2.avif")
            ),
        )

        document = await self.read_document(racing)
        assert sorted(document["images"]) == ["IMG_1.avif", "IMG_2.avif"]
