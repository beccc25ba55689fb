# recipe_importer/services/text.py
import html
import re

HASHTAG_PATTERN = re.compile(r"#\w+")
WHITESPACE_PATTERN = re.compile(r"\s+")
SCRIPT_PATTERN = re.compile(r"<script\b[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
STYLE_PATTERN = re.compile(r"<style\b[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL)
TAG_PATTERN = re.compile(r"<[^>]+>")


def decode_html_entities(text: str) -> str:
    return html.unescape(text)


def collapse_whitespace(text: str) -> str:
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def extract_hashtags(text: str | None) -> list[str]:
    """Hashtags in source order, without the leading '#'."""
    if not text:
        return []
    return [tag[1:] for tag in HASHTAG_PATTERN.findall(text)]


def strip_markup(page: str) -> str:
    """Drops script/style blocks and every tag, leaving collapsed body text."""
    without_code = STYLE_PATTERN.sub("", SCRIPT_PATTERN.sub("", page))
    return collapse_whitespace(TAG_PATTERN.sub(" ", without_code))


def truncate(text: str | None, limit: int) -> str:
    if not text:
        return ""
    return text[:max(limit, 0)]
