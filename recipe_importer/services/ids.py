# recipe_importer/services/ids.py
import re
from typing import Optional
from urllib.parse import urlparse

from recipe_importer.app.domain.models import SourceKind

_PLATFORM_HOSTS = (
    (("youtube.com", "youtu.be"), SourceKind.VIDEO_YOUTUBE),
    (("instagram.com",), SourceKind.VIDEO_INSTAGRAM),
    (("tiktok.com",), SourceKind.VIDEO_TIKTOK),
)

_YT_PATTERNS = (
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/shorts/)([^&\n?#/]+)"),
    re.compile(r"youtube\.com/embed/([^&\n?#/]+)"),
    re.compile(r"youtube\.com/watch\?(?:[^#\s]*&)?v=([^&\n?#/]+)"),
)

_IG_RE = re.compile(r"instagram\.com/reels?/([^/?#\s]+)")

_TT_RE = re.compile(r"tiktok\.com/@[^/]+/video/(\d+)")


def _is_http_url(url: str) -> bool:
    parsed = urlparse(url.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def classify(url: str) -> Optional[SourceKind]:
    """Returns the source kind of a URL, or None if it is not an http(s) URL."""
    if not url:
        return None
    lowered = url.lower()
    for hosts, kind in _PLATFORM_HOSTS:
        if any(host in lowered for host in hosts):
            return kind
    if _is_http_url(url):
        return SourceKind.WEB
    return None


def _first_match(patterns, url: str) -> Optional[str]:
    for pattern in patterns:
        m = pattern.search(url)
        if m and m.group(1):
            return m.group(1)
    return None


def extract_content_id(url: str, kind: SourceKind) -> Optional[str]:
    """Extracts the canonical content id for the classified platform."""
    if kind is SourceKind.VIDEO_YOUTUBE:
        return _first_match(_YT_PATTERNS, url)
    if kind is SourceKind.VIDEO_INSTAGRAM:
        return _first_match((_IG_RE,), url)
    if kind is SourceKind.VIDEO_TIKTOK:
        return _first_match((_TT_RE,), url)
    if kind is SourceKind.WEB:
        return url.strip() if _is_http_url(url) else None
    return None
