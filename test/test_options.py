import io

import pytest
from pydantic import ValidationError

from bucketfs.storage.cloud_storage import AdapterOptions, Visibility
from bucketfs.storage.options import (
    Config,
    UploadOptions,
    acl_to_visibility,
    as_config,
    build_upload_options,
    visibility_to_acl,
)


class TestConfig:
    """Test suite for the options container."""

    def test_has_and_get(self) -> None:
        config = Config({"visibility": "public"})

        assert config.has("visibility")
        assert config.get("visibility") == "public"
        assert not config.has("mimetype")
        assert config.get("mimetype", "text/plain") == "text/plain"

    def test_fallback_lookup(self) -> None:
        defaults = Config({"visibility": "private", "CacheControl": "max-age=60"})
        config = Config({"visibility": "public"}).with_fallback(defaults)

        assert config.get("visibility") == "public"
        assert config.get("CacheControl") == "max-age=60"
        assert config.has("CacheControl")

    def test_as_config_accepts_mappings(self) -> None:
        assert as_config({"mimetype": "text/csv"}).get("mimetype") == "text/csv"
        assert not as_config(None).has("mimetype")


class TestVisibilityMapping:
    """Test suite for visibility and ACL conversion."""

    def test_visibility_to_acl(self) -> None:
        assert visibility_to_acl("public") == "public-read"
        assert visibility_to_acl("private") == "private"
        assert visibility_to_acl("anything-else") == "private"

    @pytest.mark.parametrize(
        "acl, expected",
        [
            ("public-read", "public"),
            ("private", "private"),
            ("public-read-write", "public-read-write"),
            ("authenticated-read", "authenticated-read"),
            ("default", "default"),
        ],
    )
    def test_acl_to_visibility_passes_unknown_values_through(self, acl: str, expected: str) -> None:
        assert acl_to_visibility(acl) == expected


class TestBuildUploadOptions:
    """Test suite for upload option derivation."""

    def test_guesses_mimetype_and_length(self) -> None:
        options = build_upload_options(AdapterOptions(), None, "docs/readme.md", "héllo")

        assert options.content_type == "text/markdown"
        assert options.content_length == 6
        assert options.mimetype == "text/markdown"

    def test_unknown_extension_text_and_binary(self) -> None:
        text = build_upload_options(AdapterOptions(), None, "notes", b"plain words")
        binary = build_upload_options(AdapterOptions(), None, "blob", b"\xff\xfe\x00\x81")

        assert text.content_type == "text/plain"
        assert binary.content_type == "application/octet-stream"

    def test_visibility_sets_acl(self) -> None:
        options = build_upload_options(AdapterOptions(), {"visibility": "public"}, "a.txt", b"x")

        assert options.visibility == "public"
        assert options.acl == "public-read"

    def test_default_visibility(self) -> None:
        options = build_upload_options(AdapterOptions(default_visibility=Visibility.PRIVATE), None, "a.txt", b"x")

        assert options.visibility == "private"
        assert options.acl == "private"

    def test_explicit_mimetype_wins(self) -> None:
        options = build_upload_options(AdapterOptions(), {"mimetype": "application/json"}, "a.txt", b"{}")

        assert options.content_type == "application/json"

    def test_header_options_are_copied(self) -> None:
        config = Config(
            {
                "CacheControl": "max-age=3600",
                "ContentDisposition": "attachment",
                "ServerSideEncryption": "AES256",
                "Metadata": {"owner": "ops"},
                "Unrelated": "ignored",
            }
        )

        args = build_upload_options(AdapterOptions(), config, "a.txt", b"x").to_request_args()

        assert args == {
            "ContentType": "text/plain",
            "ContentLength": 1,
            "CacheControl": "max-age=3600",
            "ContentDisposition": "attachment",
            "ServerSideEncryption": "AES256",
            "Metadata": {"owner": "ops"},
        }

    def test_adapter_defaults_apply_before_call_options(self) -> None:
        defaults = AdapterOptions(upload_defaults={"CacheControl": "no-cache", "ContentEncoding": "identity"})

        options = build_upload_options(defaults, {"CacheControl": "max-age=10"}, "a.txt", b"x")

        assert options.cache_control == "max-age=10"
        assert options.content_encoding == "identity"

    def test_stream_length_and_type(self) -> None:
        stream = io.BytesIO(b"0123456789")
        stream.seek(4)

        options = build_upload_options(AdapterOptions(), None, "image.png", stream)

        assert options.content_length == 6
        assert options.content_type == "image/png"
        assert stream.tell() == 4

    def test_no_body_leaves_length_unset(self) -> None:
        options = build_upload_options(AdapterOptions(), None, "photos")

        assert options.content_length is None
        assert options.to_request_args() == {}

    def test_to_response_keeps_visibility(self) -> None:
        options = build_upload_options(AdapterOptions(), {"visibility": "public"}, "a.txt", b"x")

        assert options.to_response()["visibility"] == "public"
        assert "visibility" not in options.to_request_args()

    def test_upload_options_are_immutable(self) -> None:
        options = UploadOptions(ContentType="text/plain")

        with pytest.raises(ValidationError):
            options.content_type = "image/png"
