from dataclasses import asdict, dataclass, field
from typing import Any, Optional


@dataclass
class ContentMetadata:
    platform: str
    url: str
    content_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    caption: Optional[str] = None
    creator: Optional[str] = None
    thumbnail_url: Optional[str] = None
    hashtags: list[str] = field(default_factory=list)

    def to_snapshot(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class WebPage:
    html: str
    metadata: ContentMetadata


@dataclass
class TranscriptResult:
    text: Optional[str]
    error: Optional[str] = None
    details: Optional[str] = None

    def describe(self) -> str:
        if self.text:
            return f"Fetched ({len(self.text)} chars)"
        return f"Failed: {self.error or 'Unknown'} ({self.details or 'No details'})"


@dataclass
class ExternalContent:
    text: str = ""
    links: list[str] = field(default_factory=list)

    @property
    def has_text(self) -> bool:
        return bool(self.text.strip())
