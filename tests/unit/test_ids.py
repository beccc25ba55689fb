from __future__ import annotations

import pytest

from recipe_importer.app.domain.models import SourceKind
from recipe_importer.services.ids import classify, extract_content_id


class TestClassify:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", SourceKind.VIDEO_YOUTUBE),
            ("https://youtu.be/dQw4w9WgXcQ", SourceKind.VIDEO_YOUTUBE),
            ("https://www.instagram.com/reel/C1a2b3c4/", SourceKind.VIDEO_INSTAGRAM),
            ("https://www.tiktok.com/@chef/video/7234567890123456789", SourceKind.VIDEO_TIKTOK),
            ("https://cooking.example.com/lasagna", SourceKind.WEB),
        ],
    )
    def test_known_platforms(self, url: str, expected: SourceKind) -> None:
        assert classify(url) is expected

    def test_unknown_domain_falls_through_to_web(self) -> None:
        assert classify("http://some-food-blog.net/posts/1") is SourceKind.WEB

    @pytest.mark.parametrize("value", ["", "not a url", "ftp://files.example.com/recipe.txt"])
    def test_non_http_input_is_unclassified(self, value: str) -> None:
        assert classify(value) is None


class TestExtractContentId:
    @pytest.mark.parametrize(
        "url",
        [
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://www.youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
            "https://youtu.be/dQw4w9WgXcQ?t=42",
            "https://www.youtube.com/shorts/dQw4w9WgXcQ",
            "https://www.youtube.com/embed/dQw4w9WgXcQ",
        ],
    )
    def test_youtube_variants(self, url: str) -> None:
        assert extract_content_id(url, SourceKind.VIDEO_YOUTUBE) == "dQw4w9WgXcQ"

    def test_instagram_reel_and_reels(self) -> None:
        assert extract_content_id("https://www.instagram.com/reel/C1a2b3c4/", SourceKind.VIDEO_INSTAGRAM) == "C1a2b3c4"
        assert extract_content_id("https://instagram.com/reels/C1a2b3c4?igsh=x", SourceKind.VIDEO_INSTAGRAM) == "C1a2b3c4"

    def test_tiktok_video(self) -> None:
        url = "https://www.tiktok.com/@chef.jo/video/7234567890123456789?lang=en"
        assert extract_content_id(url, SourceKind.VIDEO_TIKTOK) == "7234567890123456789"

    def test_web_returns_url(self) -> None:
        url = "https://cooking.example.com/lasagna"
        assert extract_content_id(url, SourceKind.WEB) == url

    def test_missing_id_returns_none(self) -> None:
        assert extract_content_id("https://www.youtube.com/feed/trending", SourceKind.VIDEO_YOUTUBE) is None
        assert extract_content_id("https://www.instagram.com/chef/", SourceKind.VIDEO_INSTAGRAM) is None
        assert extract_content_id("https://www.tiktok.com/@chef", SourceKind.VIDEO_TIKTOK) is None

    def test_image_and_unknown_have_no_id(self) -> None:
        assert extract_content_id("anything", SourceKind.IMAGE) is None
        assert extract_content_id("anything", SourceKind.UNKNOWN) is None
