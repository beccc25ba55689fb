from __future__ import annotations

import json

import httpx

from recipe_importer.services.transcript import (
    TranscriptRetriever,
    captions_from_captions_window,
    captions_from_player_response,
    captions_from_track_list,
    detect_bot_block,
    find_caption_tracks,
    find_recipe_links,
    select_caption_track,
    timed_text_to_plain,
)
from tests.unit.stubs import create_test_settings

TRACKS = [
    {"baseUrl": "https://www.youtube.com/api/timedtext?lang=es", "languageCode": "es"},
    {"baseUrl": "https://www.youtube.com/api/timedtext?lang=en", "languageCode": "en"},
]

TIMED_TEXT = (
    '<?xml version="1.0"?><transcript>'
    '<text start="0.0" dur="2.1">First, smash the beef &amp; season it</text>'
    '<text start="2.1" dur="3.0">then flip after two minutes and add the cheese</text>'
    "</transcript>"
)


def watch_page(tracks: list[dict]) -> str:
    player = {
        "videoDetails": {"title": "Burger {the best}"},
        "captions": {"playerCaptionsTracklistRenderer": {"captionTracks": tracks}},
    }
    return f"<html><script>var ytInitialPlayerResponse = {json.dumps(player)};</script></html>"


def make_retriever(handler, **settings_overrides) -> TranscriptRetriever:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return TranscriptRetriever(create_test_settings(**settings_overrides), http_client=client)


class TestCaptionStrategies:
    def test_direct_track_list(self) -> None:
        html = 'stuff "captionTracks":' + json.dumps(TRACKS) + ',"audioTracks":[]'
        assert captions_from_track_list(html) == TRACKS

    def test_player_response_with_braces_in_strings(self) -> None:
        html = watch_page(TRACKS)
        assert captions_from_player_response(html) == TRACKS

    def test_captions_window(self) -> None:
        html = '"captions": {"renderer": {"captionTracks": ' + json.dumps(TRACKS) + "}}"
        assert captions_from_captions_window(html) == TRACKS

    def test_strategies_run_in_order(self) -> None:
        html = watch_page(TRACKS)
        assert find_caption_tracks(html) == TRACKS

    def test_no_captions(self) -> None:
        assert find_caption_tracks("<html>nothing here</html>") is None

    def test_custom_strategy_order(self) -> None:
        calls: list[str] = []

        def first(html: str):
            calls.append("first")
            return None

        def second(html: str):
            calls.append("second")
            return [{"baseUrl": "x"}]

        def third(html: str):
            calls.append("third")
            return [{"baseUrl": "y"}]

        assert find_caption_tracks("", (first, second, third)) == [{"baseUrl": "x"}]
        assert calls == ["first", "second"]


class TestTrackSelection:
    def test_prefers_exact_english(self) -> None:
        tracks = [{"languageCode": "en-GB"}, {"languageCode": "en"}]
        assert select_caption_track(tracks)["languageCode"] == "en"

    def test_falls_back_to_english_variant_then_first(self) -> None:
        assert select_caption_track([{"languageCode": "fr"}, {"languageCode": "en-US"}])["languageCode"] == "en-US"
        assert select_caption_track([{"languageCode": "fr"}, {"languageCode": "de"}])["languageCode"] == "fr"
        assert select_caption_track([]) is None


def test_timed_text_to_plain() -> None:
    text = timed_text_to_plain(TIMED_TEXT)
    assert text == "First, smash the beef & season it then flip after two minutes and add the cheese"


def test_detect_bot_block() -> None:
    assert detect_bot_block('<form action="https://consent.youtube.com/save">') == "Consent Page Block"
    assert detect_bot_block('<div class="g-recaptcha"></div>') == "Recaptcha Block"
    assert detect_bot_block("<html></html>") is None


class TestFindRecipeLinks:
    def test_filters_social_and_playlist_links(self) -> None:
        description = (
            "Full recipe: https://blog.example.com/burger\n"
            "Follow me https://instagram.com/chef and https://www.youtube.com/playlist?list=PL1\n"
            "Gear https://amzn.to/abc https://shop.example.com/pan?list=2\n"
            "Also https://other.example.org/sauce https://third.example.net/fries"
        )

        assert find_recipe_links(description, limit=2) == [
            "https://blog.example.com/burger",
            "https://other.example.org/sauce",
        ]

    def test_no_description(self) -> None:
        assert find_recipe_links(None, limit=2) == []


class TestTranscriptRetriever:
    def test_fetches_english_transcript(self) -> None:
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            if request.url.path == "/watch":
                return httpx.Response(200, text=watch_page(TRACKS))
            return httpx.Response(200, text=TIMED_TEXT)

        result = make_retriever(handler).fetch_youtube_transcript("dQw4w9WgXcQ")

        assert result.text.startswith("First, smash the beef")
        assert result.error is None
        assert requested[1].endswith("lang=en")

    def test_consent_wall_is_reported(self) -> None:
        page = '<html><form action="https://consent.youtube.com/s"></form></html>'
        result = make_retriever(lambda request: httpx.Response(200, text=page)).fetch_youtube_transcript("abc")

        assert result.text is None
        assert result.error == "Consent Page Block"

    def test_short_transcript_is_unusable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/watch":
                return httpx.Response(200, text=watch_page(TRACKS))
            return httpx.Response(200, text='<transcript><text start="0">Hi</text></transcript>')

        result = make_retriever(handler).fetch_youtube_transcript("abc")

        assert result.text is None
        assert result.error == "Transcript too short or empty"

    def test_track_without_base_url(self) -> None:
        page = watch_page([{"languageCode": "en"}])
        result = make_retriever(lambda request: httpx.Response(200, text=page)).fetch_youtube_transcript("abc")

        assert result.error == "No valid track URL found"

    def test_network_errors_never_raise(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        result = make_retriever(handler).fetch_youtube_transcript("abc")

        assert result.text is None
        assert result.error == "Exception"
        assert "refused" in result.details

    def test_external_content_concatenates_pages(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "down.example.com":
                return httpx.Response(500)
            body = "<html><script>var x = 1;</script><style>p {}</style><p>Mix   flour</p>" + "y" * 100 + "</html>"
            return httpx.Response(200, text=body)

        retriever = make_retriever(handler, EXTERNAL_LINK_CHAR_LIMIT=30)
        content = retriever.fetch_external_content(
            "Recipe https://down.example.com/a and https://blog.example.com/b"
        )

        assert content.links == ["https://down.example.com/a", "https://blog.example.com/b"]
        assert "--- Content from https://down.example.com/a ---" not in content.text
        assert "--- Content from https://blog.example.com/b ---\nMix flour" in content.text
        assert "var x" not in content.text
        assert content.text.endswith("Mix flour " + "y" * 20)
