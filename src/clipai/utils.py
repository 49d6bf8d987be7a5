import base64
import hashlib
import json
import re
import struct
from urllib.parse import unquote, urlparse

from clipai.config import DATA_DIR

# macOS hands out file-reference URLs that resolve to this placeholder tree
PROXY_PATH_PREFIX = "/.file/id="

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_HEX_COLOR_RE = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3}|[A-Fa-f0-9]{8})$")
_RGB_RE = re.compile(r"^rgba?\(\s*\d{1,3}\s*,\s*\d{1,3}\s*,\s*\d{1,3}\s*(,\s*[\d.]+\s*)?\)$")
_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")


def compute_hash(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def truncate_text(text: str, max_len: int) -> str:
    single_line = " ".join(text.split())
    if len(single_line) <= max_len:
        return single_line
    return single_line[: max_len - 3] + "..."


def ensure_dirs() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)


def get_image_dimensions(png_bytes: bytes) -> tuple[int, int]:
    if len(png_bytes) < 24 or png_bytes[:8] != b"\x89PNG\r\n\x1a\n":
        return (0, 0)
    width = struct.unpack(">I", png_bytes[16:20])[0]
    height = struct.unpack(">I", png_bytes[20:24])[0]
    return (width, height)


def png_to_data_url(png_bytes: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")


def file_url_to_path(url: str | None) -> str | None:
    """Convert a ``file://`` URL to a filesystem path.

    Plain absolute paths are passed through unchanged. Anything else,
    including URLs with another scheme, yields None.
    """
    if not url:
        return None
    url = url.strip()
    if url.startswith("/"):
        return url
    parsed = urlparse(url)
    if parsed.scheme != "file" or not parsed.path:
        return None
    path = unquote(parsed.path)
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def is_proxy_path(path: str | None) -> bool:
    return bool(path) and path.startswith(PROXY_PATH_PREFIX)


def detect_content_kind(text: str) -> str:
    """Classify text as json, url, email, color, base64 or plain text."""
    trimmed = text.strip()

    if trimmed[:1] in ("{", "["):
        try:
            json.loads(trimmed)
            return "json"
        except ValueError:
            pass

    parsed = urlparse(trimmed)
    if parsed.scheme and (parsed.netloc or parsed.scheme in ("mailto", "file")) and " " not in trimmed:
        return "url"

    if _EMAIL_RE.match(trimmed):
        return "email"

    if _HEX_COLOR_RE.match(trimmed) or _RGB_RE.match(trimmed):
        return "color"

    if len(trimmed) >= 20 and len(trimmed) % 4 == 0 and _BASE64_RE.match(trimmed):
        return "base64"

    return "text"
