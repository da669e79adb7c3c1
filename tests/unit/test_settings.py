"""
Tests for environment-driven configuration.
"""

import pytest

from src.config.settings import Settings, get_settings


@pytest.fixture(autouse=True)
def clean_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.max_video_size_mb == 2000
        assert settings.converter_timeout_seconds == 300
        assert settings.metadata_sidecar_name == "metadata.json"
        assert settings.convertible_image_types_list == ["image/jpeg", "image/heic", "image/heif"]

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("S3_ENDPOINT_URL", "http://minio:9000")
        monkeypatch.setenv("MAX_VIDEO_SIZE_MB", "100")
        monkeypatch.setenv("CONVERTIBLE_IMAGE_TYPES", "image/jpeg, IMAGE/PNG")

        settings = Settings(_env_file=None)

        assert settings.s3_endpoint_url == "http://minio:9000"
        assert settings.max_video_size_mb == 100
        assert settings.convertible_image_types_list == ["image/jpeg", "image/png"]

    def test_admin_keys_can_upload(self, monkeypatch):
        monkeypatch.setenv("API_KEYS", "user-1, user-2")
        monkeypatch.setenv("ADMIN_API_KEYS", "admin-1")

        settings = Settings(_env_file=None)

        assert settings.api_keys_list == ["user-1", "user-2", "admin-1"]
        assert settings.admin_api_keys_list == ["admin-1"]

    def test_cors_origins(self, monkeypatch):
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
        assert Settings(_env_file=None).cors_origins_list == [
            "https://a.example", "https://b.example"
        ]


class TestValidateRequiredFields:

    def test_mock_modes_need_nothing(self, monkeypatch):
        monkeypatch.setenv("S3_MOCK_MODE", "true")
        monkeypatch.setenv("CONVERTER_MOCK_MODE", "true")

        assert Settings(_env_file=None).validate_required_fields() == []

    def test_real_mode_lists_missing(self, monkeypatch):
        for name in ("S3_MOCK_MODE", "CONVERTER_MOCK_MODE", "S3_ACCESS_KEY_ID",
                     "S3_SECRET_ACCESS_KEY", "CONVERTER_URL"):
            monkeypatch.delenv(name, raising=False)

        missing = Settings(_env_file=None).validate_required_fields()

        assert missing == ["S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "CONVERTER_URL"]


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
