from __future__ import annotations

import json
import logging
import re
from typing import Callable, Optional
from urllib.parse import parse_qs, urlparse

import httpx

from recipe_importer.app.config import Settings

from .response_parser import find_json_bounds
from .text import collapse_whitespace, decode_html_entities, strip_markup, truncate
from .types import ExternalContent, TranscriptResult

logger = logging.getLogger(__name__)

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
WATCH_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept-Language": "en-US,en;q=0.9",
}
LINK_HEADERS = {"User-Agent": "Mozilla/5.0 (compatible; RecipeImporter/1.0)"}

CAPTION_TRACKS_PATTERN = re.compile(r'"captionTracks":(\[.*?\])')
CAPTION_TRACKS_ANCHOR = re.compile(r'"captionTracks":\s*')
PLAYER_RESPONSE_ANCHOR = re.compile(r"ytInitialPlayerResponse\s*=\s*")
CAPTIONS_MARKER = '"captions":'
CAPTIONS_WINDOW_CHARS = 5000
TIMED_TEXT_PATTERN = re.compile(r"<text[^>]*>(.*?)</text>", re.DOTALL)
LINK_PATTERN = re.compile(r"https?://[^\s]+")

BOT_BLOCK_MARKERS = (
    ("consent.youtube.com", "Consent Page Block"),
    ("g-recaptcha", "Recaptcha Block"),
)

NON_RECIPE_DOMAINS = (
    "youtube.com", "youtu.be", "instagram.com", "tiktok.com",
    "facebook.com", "twitter.com", "x.com", "pinterest.com",
    "amazon.com", "amzn.to", "goo.gl", "t.co", "bit.ly",
)

CaptionStrategy = Callable[[str], Optional[list[dict]]]


def _load_track_list(raw: str) -> Optional[list[dict]]:
    try:
        tracks = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(tracks, list):
        return None
    tracks = [track for track in tracks if isinstance(track, dict)]
    return tracks or None


def _bounded_track_list(text: str) -> Optional[list[dict]]:
    anchor = CAPTION_TRACKS_ANCHOR.search(text)
    if not anchor:
        return None
    bounds = find_json_bounds(text, anchor.end())
    if not bounds or text[bounds[0]] != "[":
        return None
    return _load_track_list(text[bounds[0]:bounds[1] + 1])


def captions_from_track_list(html: str) -> Optional[list[dict]]:
    """Direct regex for the captionTracks array."""
    match = CAPTION_TRACKS_PATTERN.search(html)
    if not match:
        return None
    return _load_track_list(match.group(1))


def captions_from_player_response(html: str) -> Optional[list[dict]]:
    """Parse the embedded ytInitialPlayerResponse object and read its caption tracks."""
    anchor = PLAYER_RESPONSE_ANCHOR.search(html)
    if not anchor:
        return None
    bounds = find_json_bounds(html, anchor.end())
    if not bounds or html[bounds[0]] != "{":
        return None
    try:
        player = json.loads(html[bounds[0]:bounds[1] + 1])
    except json.JSONDecodeError:
        return None

    tracks = (
        (player.get("captions") or {})
        .get("playerCaptionsTracklistRenderer", {})
        .get("captionTracks")
    )
    if not isinstance(tracks, list):
        return None
    return [track for track in tracks if isinstance(track, dict)] or None


def captions_from_captions_window(html: str) -> Optional[list[dict]]:
    """Search a fixed window after the "captions": marker."""
    index = html.find(CAPTIONS_MARKER)
    if index == -1:
        return None
    return _bounded_track_list(html[index:index + CAPTIONS_WINDOW_CHARS])


CAPTION_STRATEGIES: tuple[CaptionStrategy, ...] = (
    captions_from_track_list,
    captions_from_player_response,
    captions_from_captions_window,
)


def find_caption_tracks(html: str, strategies: tuple[CaptionStrategy, ...] = CAPTION_STRATEGIES) -> Optional[list[dict]]:
    for strategy in strategies:
        tracks = strategy(html)
        if tracks:
            logger.debug("Caption tracks found by %s", strategy.__name__)
            return tracks
    return None


def select_caption_track(tracks: list[dict]) -> Optional[dict]:
    if not tracks:
        return None
    for track in tracks:
        if track.get("languageCode") == "en":
            return track
    for track in tracks:
        if str(track.get("languageCode") or "").startswith("en"):
            return track
    return tracks[0]


def timed_text_to_plain(xml: str) -> str:
    lines = [decode_html_entities(body) for body in TIMED_TEXT_PATTERN.findall(xml)]
    return collapse_whitespace(" ".join(lines))


def detect_bot_block(html: str) -> Optional[str]:
    for marker, reason in BOT_BLOCK_MARKERS:
        if marker in html:
            return reason
    return None


def _is_recipe_candidate(link: str) -> bool:
    try:
        parsed = urlparse(link)
    except ValueError:
        return False
    hostname = (parsed.hostname or "").lower()
    if not hostname:
        return False
    if any(domain in hostname for domain in NON_RECIPE_DOMAINS):
        return False
    if "list" in parse_qs(parsed.query) or "playlist" in link:
        return False
    return True


def find_recipe_links(description: str | None, limit: int) -> list[str]:
    if not description:
        return []
    candidates = [link for link in LINK_PATTERN.findall(description) if _is_recipe_candidate(link)]
    return candidates[:limit]


class TranscriptRetriever:
    def __init__(self, settings: Settings, http_client: httpx.Client | None = None) -> None:
        self.settings = settings
        self.timeout = settings.HTTP_TIMEOUT_SECONDS
        self._client = http_client or httpx.Client(timeout=self.timeout, follow_redirects=True)

    def close(self) -> None:
        self._client.close()

    def fetch_youtube_transcript(self, video_id: str) -> TranscriptResult:
        try:
            response = self._client.get(WATCH_URL.format(video_id=video_id), headers=WATCH_HEADERS, timeout=self.timeout)
            if response.status_code >= 400:
                return TranscriptResult(text=None, error=f"HTTP {response.status_code}", details=response.reason_phrase)

            html = response.text
            tracks = find_caption_tracks(html)
            if not tracks:
                block = detect_bot_block(html)
                if block:
                    return TranscriptResult(text=None, error=block, details="Bot detection")
                return TranscriptResult(text=None, error="No captionTracks found", details="No strategy matched caption data")

            track = select_caption_track(tracks)
            if not track or not track.get("baseUrl"):
                return TranscriptResult(text=None, error="No valid track URL found")

            xml_response = self._client.get(track["baseUrl"], timeout=self.timeout)
            if xml_response.status_code >= 400:
                return TranscriptResult(text=None, error=f"Transcript XML HTTP {xml_response.status_code}")

            text = timed_text_to_plain(xml_response.text)
        except httpx.HTTPError as error:
            logger.warning("Transcript fetch failed for %s: %s", video_id, error)
            return TranscriptResult(text=None, error="Exception", details=str(error))

        if len(text) < self.settings.MIN_TRANSCRIPT_CHARS:
            return TranscriptResult(text=None, error="Transcript too short or empty")
        return TranscriptResult(text=text)

    def fetch_external_content(self, description: str | None) -> ExternalContent:
        """Scrape recipe pages linked from a video description."""
        links = find_recipe_links(description, self.settings.MAX_EXTERNAL_LINKS)
        content = ExternalContent(links=links)

        for link in links:
            try:
                response = self._client.get(link, headers=LINK_HEADERS, timeout=self.timeout)
            except httpx.HTTPError as error:
                logger.warning("Failed to fetch linked page %s: %s", link, error)
                continue
            if response.status_code >= 400:
                logger.warning("Linked page %s returned HTTP %s", link, response.status_code)
                continue

            page_text = truncate(strip_markup(response.text), self.settings.EXTERNAL_LINK_CHAR_LIMIT)
            content.text += f"\n\n--- Content from {link} ---\n{page_text}"

        return content
