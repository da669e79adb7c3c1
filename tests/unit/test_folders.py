"""
Unit tests for folder emulation.

Run against the in-memory object store; the S3 gateway has its own tests.
"""

import json

import pytest

from src.core.media.errors import AlreadyExists, InvalidPath, NotFound
from src.core.media.folders import (
    FolderService,
    folder_prefix,
    join_key,
    normalize_folder_path,
    normalize_upload_folder,
)
from src.core.media.models import PLACEHOLDER_NAME
from src.infrastructure.storage.client import MockObjectStore


@pytest.fixture
async def store() -> MockObjectStore:
    store = MockObjectStore()
    await store.make_bucket("photos")
    return store


@pytest.fixture
def service(store) -> FolderService:
    return FolderService(store)


async def put(store: MockObjectStore, key: str, data: bytes = b"x") -> None:
    await store.put_object("photos", key, data, len(data))


# ---------------------------------------------------------------------------
# Path normalization
# ---------------------------------------------------------------------------

class TestNormalizeFolderPath:

    @pytest.mark.parametrize("raw, expected", [
        ("albums/2024", "albums/2024"),
        ("/albums/2024/", "albums/2024"),
        ("//albums///2024//", "albums/2024"),
        ("  albums  ", "albums"),
    ])
    def test_canonical_form(self, raw, expected):
        assert normalize_folder_path(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", "/", "///"])
    def test_empty_paths_are_rejected(self, raw):
        with pytest.raises(InvalidPath):
            normalize_folder_path(raw)

    @pytest.mark.parametrize("raw", ["../etc", "albums/../secret", "albums/./2024"])
    def test_dot_segments_are_rejected(self, raw):
        with pytest.raises(InvalidPath):
            normalize_folder_path(raw)

    def test_prefix_has_single_trailing_slash(self):
        assert folder_prefix("albums/2024//") == "albums/2024/"

    def test_join_key(self):
        assert join_key("", "a.avif") == "a.avif"
        assert join_key("albums/", "a.avif") == "albums/a.avif"
        assert join_key("albums", "a.avif") == "albums/a.avif"


class TestNormalizeUploadFolder:

    @pytest.mark.parametrize("raw", ["", "   ", "/", "///"])
    def test_empty_means_bucket_root(self, raw):
        assert normalize_upload_folder(raw) == ""

    @pytest.mark.parametrize("raw, expected", [
        ("albums", "albums"),
        ("/albums/", "albums"),
        ("/albums//2024/", "albums/2024"),
    ])
    def test_matches_folder_canonical_form(self, raw, expected):
        assert normalize_upload_folder(raw) == expected
        assert normalize_upload_folder(raw) == normalize_folder_path(raw)

    @pytest.mark.parametrize("raw", ["../x", "albums/./2024"])
    def test_dot_segments_are_rejected(self, raw):
        with pytest.raises(InvalidPath):
            normalize_upload_folder(raw)


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

class TestCreateFolder:

    @pytest.mark.asyncio
    async def test_writes_placeholder(self, service, store):
        created = await service.create_folder("photos", "/albums//2024/")

        assert created.folder_path == "albums/2024/"
        assert created.folder_name == "albums/2024"
        assert store.object_keys("photos") == [f"albums/2024/{PLACEHOLDER_NAME}"]

    @pytest.mark.asyncio
    async def test_placeholder_content(self, service, store):
        await service.create_folder("photos", "albums")

        stored = await store.get_object("photos", f"albums/{PLACEHOLDER_NAME}")
        body = json.loads(stored.data)

        assert body["type"] == "folder_placeholder"
        assert body["folderName"] == "albums"
        assert stored.stat.content_type == "application/json"

    @pytest.mark.asyncio
    async def test_existing_placeholder_conflicts(self, service):
        await service.create_folder("photos", "albums")

        with pytest.raises(AlreadyExists):
            await service.create_folder("photos", "albums/")

    @pytest.mark.asyncio
    async def test_folder_with_files_conflicts(self, service, store):
        """A folder exists as soon as any key starts with its prefix."""
        await put(store, "albums/2024/a.avif")

        with pytest.raises(AlreadyExists):
            await service.create_folder("photos", "albums")

    @pytest.mark.asyncio
    async def test_sibling_with_shared_name_prefix_does_not_conflict(self, service, store):
        await put(store, "albums-old/a.avif")

        created = await service.create_folder("photos", "albums")

        assert created.folder_path == "albums/"

    @pytest.mark.asyncio
    async def test_missing_bucket(self, service):
        with pytest.raises(NotFound, match="Bucket not found"):
            await service.create_folder("nope", "albums")

    @pytest.mark.asyncio
    async def test_invalid_path_writes_nothing(self, service, store):
        with pytest.raises(InvalidPath):
            await service.create_folder("photos", "//")
        assert store.put_count == 0


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

class TestDeleteFolder:

    @pytest.mark.asyncio
    async def test_deletes_everything_under_prefix(self, service, store):
        await service.create_folder("photos", "albums")
        await put(store, "albums/a.avif")
        await put(store, "albums/2024/b.avif")
        await put(store, "albums-old/c.avif")

        deleted = await service.delete_folder("photos", "albums/")

        assert deleted.folder_path == "albums/"
        assert deleted.deleted_objects == 3
        assert store.object_keys("photos") == ["albums-old/c.avif"]

    @pytest.mark.asyncio
    async def test_empty_folder_is_not_found(self, service):
        with pytest.raises(NotFound, match="Folder not found"):
            await service.delete_folder("photos", "albums")

    @pytest.mark.asyncio
    async def test_created_then_deleted_folder_can_be_recreated(self, service):
        await service.create_folder("photos", "albums")
        await service.delete_folder("photos", "albums")

        created = await service.create_folder("photos", "albums")
        assert created.folder_name == "albums"

    @pytest.mark.asyncio
    async def test_missing_bucket(self, service):
        with pytest.raises(NotFound, match="Bucket not found"):
            await service.delete_folder("nope", "albums")


# ---------------------------------------------------------------------------
# List
# ---------------------------------------------------------------------------

class TestListChildren:

    @pytest.mark.asyncio
    async def test_one_level_listing(self, service, store):
        await service.create_folder("photos", "albums")
        await put(store, "albums/2024/a.avif")
        await put(store, "albums/b.avif")
        await put(store, "c.avif")

        listing = await service.list_children("photos", "albums/")

        assert [f.name for f in listing.folders] == ["albums/2024/"]
        assert [o.name for o in listing.objects] == ["albums/b.avif"]

    @pytest.mark.asyncio
    async def test_placeholder_is_hidden(self, service):
        await service.create_folder("photos", "albums")

        listing = await service.list_children("photos", "albums/")

        assert listing.folders == []
        assert listing.objects == []

    @pytest.mark.asyncio
    async def test_empty_folder_shows_up_in_parent(self, service):
        await service.create_folder("photos", "albums")

        listing = await service.list_children("photos", "")

        assert [f.name for f in listing.folders] == ["albums/"]

    @pytest.mark.asyncio
    async def test_recursive_listing_is_flat(self, service, store):
        await service.create_folder("photos", "albums/2024")
        await put(store, "albums/2024/a.avif")
        await put(store, "albums/b.avif")

        listing = await service.list_children("photos", "albums/", recursive=True)

        assert listing.folders == []
        assert [o.name for o in listing.objects] == ["albums/2024/a.avif", "albums/b.avif"]

    @pytest.mark.asyncio
    async def test_missing_bucket(self, service):
        with pytest.raises(NotFound):
            await service.list_children("nope")
