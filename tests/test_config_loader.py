"""
Tests for settings loading.
"""

import json
import logging
from pathlib import Path

import pytest

from attachment_pipeline.config.loader import MASTER_CONFIG_VAR, PipelineSettings, load_settings
from attachment_pipeline.validation import ConfigurationError


class TestLoadSettings:

    def test_defaults(self):
        settings = load_settings({})

        assert settings.cloudconvert_api_key is None
        assert settings.conversion_timeout_seconds == 60.0
        assert settings.conversion_poll_initial_seconds == 1.0
        assert settings.conversion_poll_max_seconds == 5.0
        assert settings.image_max_width == 1920
        assert settings.thumbnail_size == 400
        assert settings.blob_store == "local"
        assert settings.max_upload_bytes == 10 * 1024 * 1024
        assert not settings.has_conversion()
        assert not settings.has_auth()

    def test_individual_vars(self):
        settings = load_settings({
            "CLOUDCONVERT_API_KEY": "cc-key",
            "CONVERSION_TIMEOUT_SECONDS": "90",
            "IMAGE_MAX_WIDTH": "1280",
            "UPLOAD_API_TOKEN": "tok",
        })

        assert settings.has_conversion()
        assert settings.conversion_timeout_seconds == 90.0
        assert settings.image_max_width == 1280
        assert settings.has_auth()

    def test_master_config(self):
        settings = load_settings({
            MASTER_CONFIG_VAR: json.dumps({"blob_store": "vercel", "THUMBNAIL_SIZE": 256}),
        })
        assert settings.blob_store == "vercel"
        assert settings.thumbnail_size == 256

    def test_individual_overrides_master(self):
        settings = load_settings({
            MASTER_CONFIG_VAR: json.dumps({"image_max_height": 1000}),
            "IMAGE_MAX_HEIGHT": "1500",
        })
        assert settings.image_max_height == 1500

    def test_unknown_master_keys_ignored(self):
        settings = load_settings({MASTER_CONFIG_VAR: json.dumps({"colour": "blue"})})
        assert settings == PipelineSettings()

    def test_invalid_master_json_logged(self, caplog):
        with caplog.at_level(logging.ERROR):
            settings = load_settings({MASTER_CONFIG_VAR: "{nope"})
        assert settings == PipelineSettings()
        assert "Invalid" in caplog.text

    def test_empty_value_ignored(self):
        assert load_settings({"THUMBNAIL_SIZE": ""}).thumbnail_size == 400

    def test_bad_number(self):
        with pytest.raises(ConfigurationError, match="THUMBNAIL_SIZE"):
            load_settings({"THUMBNAIL_SIZE": "big"})

    def test_bad_blob_store(self):
        with pytest.raises(ConfigurationError, match="BLOB_STORE"):
            load_settings({"BLOB_STORE": "s3"})


class TestPipelineSettings:

    def test_resolve_relative_path(self):
        settings = PipelineSettings()
        assert settings.resolve_path("data/blobs", Path("/srv/app")) == Path("/srv/app/data/blobs")

    def test_resolve_absolute_path(self):
        settings = PipelineSettings()
        assert settings.resolve_path("/var/blobs", Path("/srv/app")) == Path("/var/blobs")

    def test_status_dict_hides_secrets(self):
        settings = PipelineSettings(cloudconvert_api_key="secret", upload_api_token="tok")
        status = settings.to_status_dict()

        assert status["conversion_configured"] is True
        assert status["auth_required"] is True
        assert "secret" not in json.dumps(status)
        assert "tok" not in json.dumps(status)
