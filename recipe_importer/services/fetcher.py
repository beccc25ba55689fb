from __future__ import annotations

import logging
import re
from typing import Callable
from urllib.parse import urlparse

import httpx

from recipe_importer.app.config import Settings
from recipe_importer.app.domain.models import SourceKind

from .errors import (
    FetchFailedError,
    NetworkTimeoutError,
    PrivateOrUnavailableError,
    UnsupportedPlatformError,
)
from .text import collapse_whitespace, decode_html_entities, extract_hashtags
from .types import ContentMetadata, WebPage

logger = logging.getLogger(__name__)

YOUTUBE_VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"
INSTAGRAM_OEMBED_URL = "https://graph.facebook.com/v18.0/instagram_oembed"
TIKTOK_OEMBED_URL = "https://www.tiktok.com/oembed"

THUMBNAIL_PREFERENCE = ("maxres", "standard", "high", "medium", "default")

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

TITLE_PATTERN = re.compile(r"<title[^>]*>([^<]*)</title>", re.IGNORECASE)
INSTAGRAM_WRAPPER_PATTERN = re.compile(
    r"^.*? - (?P<creator>.+?) on Instagram: [\"“](?P<caption>.*?)[\"”]?\s*$",
    re.DOTALL,
)


def _meta_patterns(name: str) -> tuple[re.Pattern[str], re.Pattern[str]]:
    key = re.escape(name)
    return (
        re.compile(
            rf"<meta\s[^>]*?(?:property|name)\s*=\s*[\"']{key}[\"'][^>]*?\scontent\s*=\s*([\"'])(.*?)\1",
            re.IGNORECASE | re.DOTALL,
        ),
        re.compile(
            rf"<meta\s[^>]*?content\s*=\s*([\"'])(.*?)\1[^>]*?\s(?:property|name)\s*=\s*[\"']{key}[\"']",
            re.IGNORECASE | re.DOTALL,
        ),
    )


def get_meta(html: str, *names: str) -> str | None:
    """First non-empty meta content among `names`, tried in order."""
    for name in names:
        for pattern in _meta_patterns(name):
            match = pattern.search(html)
            if match and match.group(2).strip():
                return decode_html_entities(match.group(2).strip())
    return None


def get_title_tag(html: str) -> str | None:
    match = TITLE_PATTERN.search(html)
    if not match:
        return None
    title = collapse_whitespace(decode_html_entities(match.group(1)))
    return title or None


def extract_page_metadata(html: str, url: str) -> ContentMetadata:
    domain = urlparse(url).hostname or url
    title = get_meta(html, "og:title", "title") or get_title_tag(html) or "Web Recipe"
    return ContentMetadata(
        platform=SourceKind.WEB.platform,
        url=url,
        content_id=url,
        title=title,
        description=get_meta(html, "og:description", "description"),
        creator=get_meta(html, "og:site_name") or domain,
        thumbnail_url=get_meta(html, "og:image"),
        hashtags=[],
    )


def best_thumbnail(thumbnails: dict | None) -> str | None:
    if not isinstance(thumbnails, dict):
        return None
    for key in THUMBNAIL_PREFERENCE:
        entry = thumbnails.get(key)
        if isinstance(entry, dict) and entry.get("url"):
            return entry["url"]
    return None


def split_instagram_description(description: str) -> tuple[str | None, str]:
    """
    Instagram og:description looks like
    '12 likes, 3 comments - chef on Instagram: "Caption..."'.
    Returns (creator, caption) with the wrapper removed.
    """
    match = INSTAGRAM_WRAPPER_PATTERN.match(description)
    if match:
        return match.group("creator").strip(), match.group("caption").strip()

    marker = description.find(': "')
    if marker == -1:
        return None, description.strip()
    caption = description[marker + 3:]
    if caption.endswith('"'):
        caption = caption[:-1]
    return None, caption.strip()


def placeholder_metadata(kind: SourceKind, content_id: str, url: str) -> ContentMetadata:
    label = "Instagram" if kind is SourceKind.VIDEO_INSTAGRAM else "TikTok"
    return ContentMetadata(
        platform=kind.platform,
        url=url,
        content_id=content_id,
        title=f"{label} Video",
        hashtags=[],
    )


class PlatformFetcher:
    def __init__(self, settings: Settings, http_client: httpx.Client | None = None) -> None:
        self.settings = settings
        self.timeout = settings.HTTP_TIMEOUT_SECONDS
        self._client = http_client or httpx.Client(timeout=self.timeout, follow_redirects=True)

    def close(self) -> None:
        self._client.close()

    def fetch(self, kind: SourceKind, content_id: str) -> ContentMetadata:
        fetchers: dict[SourceKind, Callable[[str], ContentMetadata]] = {
            SourceKind.VIDEO_YOUTUBE: self.fetch_youtube,
            SourceKind.VIDEO_INSTAGRAM: self.fetch_instagram,
            SourceKind.VIDEO_TIKTOK: self.fetch_tiktok,
        }
        fetcher = fetchers.get(kind)
        if not fetcher:
            raise UnsupportedPlatformError(f"No metadata fetcher for source: {kind.value}")
        return fetcher(content_id)

    def _get(self, url: str, **kwargs) -> httpx.Response:
        try:
            return self._client.get(url, timeout=self.timeout, **kwargs)
        except httpx.TimeoutException as error:
            raise NetworkTimeoutError(url, self.timeout) from error
        except httpx.HTTPError as error:
            raise FetchFailedError(f"Network error requesting {url}: {error}") from error

    def fetch_youtube(self, video_id: str) -> ContentMetadata:
        if not self.settings.YOUTUBE_API_KEY:
            raise FetchFailedError("YOUTUBE_API_KEY not configured")

        response = self._get(
            YOUTUBE_VIDEOS_URL,
            params={"part": "snippet", "id": video_id, "key": self.settings.YOUTUBE_API_KEY},
        )
        if response.status_code >= 400:
            raise FetchFailedError(f"YouTube API error: HTTP {response.status_code}")

        items = response.json().get("items") or []
        if not items:
            raise PrivateOrUnavailableError("Video not found or is private")

        snippet = items[0].get("snippet") or {}
        description = snippet.get("description") or ""
        return ContentMetadata(
            platform=SourceKind.VIDEO_YOUTUBE.platform,
            url=f"https://www.youtube.com/watch?v={video_id}",
            content_id=video_id,
            title=snippet.get("title"),
            description=description or None,
            creator=snippet.get("channelTitle"),
            thumbnail_url=best_thumbnail(snippet.get("thumbnails")),
            hashtags=extract_hashtags(description),
        )

    def fetch_instagram(self, reel_id: str) -> ContentMetadata:
        url = f"https://www.instagram.com/reel/{reel_id}/"

        if self.settings.INSTAGRAM_ACCESS_TOKEN:
            metadata = self._try_instagram_oembed(reel_id, url)
            if metadata:
                return metadata

        metadata = self._try_instagram_scrape(reel_id, url)
        if metadata:
            return metadata

        logger.warning("Instagram metadata unavailable, using placeholder: reel=%s", reel_id)
        return placeholder_metadata(SourceKind.VIDEO_INSTAGRAM, reel_id, url)

    def _try_instagram_oembed(self, reel_id: str, url: str) -> ContentMetadata | None:
        try:
            response = self._get(
                INSTAGRAM_OEMBED_URL,
                params={"url": url, "access_token": self.settings.INSTAGRAM_ACCESS_TOKEN},
            )
            if response.status_code >= 400:
                logger.warning("Instagram oEmbed failed with HTTP %s, trying page scrape", response.status_code)
                return None
            data = response.json()
        except (FetchFailedError, NetworkTimeoutError, ValueError) as error:
            logger.warning("Instagram oEmbed failed, trying page scrape: %s", error)
            return None

        caption = data.get("title") or None
        return ContentMetadata(
            platform=SourceKind.VIDEO_INSTAGRAM.platform,
            url=url,
            content_id=reel_id,
            title=caption or "Instagram Reel",
            caption=caption,
            creator=data.get("author_name"),
            thumbnail_url=data.get("thumbnail_url"),
            hashtags=extract_hashtags(caption),
        )

    def _try_instagram_scrape(self, reel_id: str, url: str) -> ContentMetadata | None:
        try:
            response = self._get(url, headers=BROWSER_HEADERS)
        except (FetchFailedError, NetworkTimeoutError) as error:
            logger.warning("Instagram page scrape failed: %s", error)
            return None

        if response.status_code >= 400:
            logger.warning("Instagram page scrape failed with HTTP %s", response.status_code)
            return None

        html = response.text
        description = get_meta(html, "og:description")
        if not description:
            return None

        creator, caption = split_instagram_description(description)
        return ContentMetadata(
            platform=SourceKind.VIDEO_INSTAGRAM.platform,
            url=url,
            content_id=reel_id,
            title=get_title_tag(html) or "Instagram Reel",
            description=caption,
            caption=caption,
            creator=creator,
            thumbnail_url=get_meta(html, "og:image"),
            hashtags=extract_hashtags(caption),
        )

    def fetch_tiktok(self, video_id: str) -> ContentMetadata:
        url = f"https://www.tiktok.com/@user/video/{video_id}"

        try:
            response = self._get(TIKTOK_OEMBED_URL, params={"url": url})
            if response.status_code >= 400:
                raise FetchFailedError(f"TikTok oEmbed error: HTTP {response.status_code}")
            data = response.json()
        except (FetchFailedError, NetworkTimeoutError, ValueError) as error:
            logger.warning("TikTok metadata unavailable, using placeholder: %s", error)
            return placeholder_metadata(SourceKind.VIDEO_TIKTOK, video_id, url)

        caption = data.get("title") or None
        return ContentMetadata(
            platform=SourceKind.VIDEO_TIKTOK.platform,
            url=url,
            content_id=video_id,
            title=caption or "TikTok Video",
            caption=caption,
            creator=data.get("author_name"),
            thumbnail_url=data.get("thumbnail_url"),
            hashtags=extract_hashtags(caption),
        )

    def fetch_web_page(self, url: str) -> WebPage:
        try:
            response = self._get(url, headers=BROWSER_HEADERS)
        except (FetchFailedError, NetworkTimeoutError) as error:
            raise FetchFailedError(f"Failed to fetch webpage content: {error}") from error

        if response.status_code >= 400:
            raise FetchFailedError(
                f"Failed to fetch webpage content: HTTP {response.status_code} {response.reason_phrase}"
            )

        html = response.text
        return WebPage(html=html, metadata=extract_page_metadata(html, url))
