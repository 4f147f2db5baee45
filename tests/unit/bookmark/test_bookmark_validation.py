"""Tests for bookmark input validation and URL helpers."""

import pytest

from smartmarks.core.modules.bookmark.service import MAX_TITLE_LENGTH, validate_bookmark
from smartmarks.errors import ValidationError
from smartmarks.utils import encode_uri_component, is_http_url, safe_next_path


class TestValidateBookmark:
    def test_values_are_stripped(self):
        assert validate_bookmark("  Blog  ", " https://example.com/blog ") == ("Blog", "https://example.com/blog")

    @pytest.mark.parametrize("title", ["", "   "])
    def test_title_is_required(self, title):
        with pytest.raises(ValidationError, match="Title is required"):
            validate_bookmark(title, "https://example.com")

    def test_title_length_is_limited(self):
        with pytest.raises(ValidationError, match="at most"):
            validate_bookmark("x" * (MAX_TITLE_LENGTH + 1), "https://example.com")

    @pytest.mark.parametrize("url", ["", "example.com", "javascript:alert(1)", "ftp://example.com/file", "https://"])
    def test_url_must_be_http(self, url):
        with pytest.raises(ValidationError, match="URL"):
            validate_bookmark("Title", url)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("http://example.com", True),
        ("https://example.com/path?q=1", True),
        ("mailto:owner@example.com", False),
        ("/relative", False),
    ],
)
def test_is_http_url(value, expected):
    assert is_http_url(value) is expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, "/"),
        ("", "/"),
        ("/", "/"),
        ("/settings?tab=1", "/settings?tab=1"),
        ("//evil.example", "/"),
        ("/\\evil.example", "/"),
        ("https://evil.example", "/"),
        ("relative", "/"),
    ],
)
def test_safe_next_path(value, expected):
    assert safe_next_path(value) == expected


def test_encode_uri_component():
    assert encode_uri_component("Email link is invalid/expired") == "Email%20link%20is%20invalid%2Fexpired"
    assert encode_uri_component("a&b=c") == "a%26b%3Dc"
    assert encode_uri_component("keep-_.!~*'()") == "keep-_.!~*'()"
