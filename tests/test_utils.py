import struct

import pytest

from clipai.utils import (
    compute_hash,
    detect_content_kind,
    file_url_to_path,
    get_image_dimensions,
    is_proxy_path,
    png_to_data_url,
    truncate_text,
)


class TestComputeHash:
    def test_string_input(self):
        h = compute_hash("hello")
        assert isinstance(h, str)
        assert len(h) == 64  # SHA-256 hex digest

    def test_same_content_same_hash(self):
        assert compute_hash("test") == compute_hash("test")

    def test_string_and_bytes_same_hash(self):
        assert compute_hash("hello") == compute_hash(b"hello")


class TestTruncateText:
    def test_short_text_unchanged(self):
        assert truncate_text("hello", 60) == "hello"

    def test_long_text_truncated(self):
        result = truncate_text("a" * 100, 60)
        assert len(result) == 60
        assert result.endswith("...")

    def test_multiline_collapsed(self):
        assert truncate_text("hello\nworld\nfoo", 60) == "hello world foo"


class TestGetImageDimensions:
    def test_valid_png(self):
        header = b"\x89PNG\r\n\x1a\n"
        ihdr_type = b"\x00\x00\x00\rIHDR"
        png_bytes = header + ihdr_type + struct.pack(">I", 1920) + struct.pack(">I", 1080) + b"\x00" * 100
        assert get_image_dimensions(png_bytes) == (1920, 1080)

    def test_not_png(self):
        assert get_image_dimensions(b"GIF89a" + b"\x00" * 30) == (0, 0)

    def test_too_short(self):
        assert get_image_dimensions(b"\x89PNG") == (0, 0)


class TestPngToDataUrl:
    def test_prefix_and_payload(self):
        assert png_to_data_url(b"\x89PNG") == "data:image/png;base64,iVBORw=="


class TestFileUrlToPath:
    def test_file_url(self):
        assert file_url_to_path("file:///Users/test/a.txt") == "/Users/test/a.txt"

    def test_percent_encoding(self):
        assert file_url_to_path("file:///Users/test/My%20File.txt") == "/Users/test/My%20File.txt".replace("%20", " ")

    def test_localhost_host(self):
        assert file_url_to_path("file://localhost/tmp/x") == "/tmp/x"

    def test_trailing_slash_stripped(self):
        assert file_url_to_path("file:///Users/test/folder/") == "/Users/test/folder"

    def test_plain_path_passthrough(self):
        assert file_url_to_path("/tmp/x") == "/tmp/x"

    @pytest.mark.parametrize("url", [None, "", "https://example.com/a", "file://"])
    def test_not_a_file(self, url):
        assert file_url_to_path(url) is None


class TestIsProxyPath:
    def test_proxy(self):
        assert is_proxy_path("/.file/id=6571367.2773272")

    def test_real_path(self):
        assert not is_proxy_path("/Users/test/a.txt")
        assert not is_proxy_path(None)


class TestDetectContentKind:
    @pytest.mark.parametrize(
        "text,kind",
        [
            ('{"a": 1}', "json"),
            ("[1, 2, 3]", "json"),
            ("https://example.com/path?q=1", "url"),
            ("someone@example.com", "email"),
            ("#ff8800", "color"),
            ("rgb(10, 20, 30)", "color"),
            ("rgba(10, 20, 30, 0.5)", "color"),
            ("U29tZSBsb25nZXIgYmFzZTY0IHRleHQ=", "base64"),
            ("just some words", "text"),
            ("{not json", "text"),
        ],
    )
    def test_kinds(self, text, kind):
        assert detect_content_kind(text) == kind

    def test_surrounding_whitespace_ignored(self):
        assert detect_content_kind("  https://example.com  ") == "url"
