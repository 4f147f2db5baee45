from datetime import UTC, datetime
from urllib.parse import quote, urlparse


def now() -> datetime:
    return datetime.now(UTC)


def encode_uri_component(value: str) -> str:
    """Percent-encode a query value the way browsers' encodeURIComponent does."""
    return quote(value, safe="!~*'()")


def is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def safe_next_path(value: str | None, default: str = "/") -> str:
    """Return value if it is a same-site absolute path, otherwise default."""
    if not value or not value.startswith("/") or value.startswith("//") or "\\" in value:
        return default
    return value
