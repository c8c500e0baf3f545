"""
Provider interface and request/response types for generative-content calls.
"""
import threading
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field


@dataclass
class InlineData:
    """Binary payload sent inline, base64 encoded."""
    mime_type: str
    data: str

    def to_dict(self) -> Dict[str, str]:
        return {"mimeType": self.mime_type, "data": self.data}


@dataclass
class ContentPart:
    """One part of a content message: text or inline data."""
    text: Optional[str] = None
    inline_data: Optional[InlineData] = None

    @classmethod
    def text_part(cls, text: str) -> "ContentPart":
        return cls(text=text)

    @classmethod
    def inline_image(cls, mime_type: str, data: str) -> "ContentPart":
        return cls(inline_data=InlineData(mime_type=mime_type, data=data))

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.text is not None:
            payload["text"] = self.text
        if self.inline_data is not None:
            payload["inlineData"] = self.inline_data.to_dict()
        return payload


@dataclass
class Content:
    parts: List[ContentPart] = field(default_factory=list)
    role: str = "user"

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "parts": [part.to_dict() for part in self.parts]}


@dataclass
class GenerateContentRequest:
    """Structured multi-part request body."""
    contents: List[Content] = field(default_factory=list)

    @classmethod
    def from_parts(cls, *parts: ContentPart) -> "GenerateContentRequest":
        """Build a single user turn from the given parts."""
        return cls(contents=[Content(parts=list(parts))])

    def has_parts(self) -> bool:
        return any(content.parts for content in self.contents)

    def to_dict(self) -> Dict[str, Any]:
        return {"contents": [content.to_dict() for content in self.contents]}


@dataclass(frozen=True)
class UsageMetadata:
    """Token counts reported by the endpoint for one call."""
    prompt_token_count: int = 0
    candidates_token_count: int = 0
    total_token_count: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "UsageMetadata":
        if not isinstance(data, dict):
            data = {}

        def _count(key: str) -> int:
            try:
                return max(int(data.get(key) or 0), 0)
            except (TypeError, ValueError):
                return 0

        prompt = _count("promptTokenCount")
        candidates = _count("candidatesTokenCount")
        total = _count("totalTokenCount") or prompt + candidates
        return cls(prompt, candidates, total)


@dataclass
class GenerationResult:
    """Extracted text plus usage for a successful call."""
    text: str
    usage: UsageMetadata = field(default_factory=UsageMetadata)
    model: str = ""


class LLMProvider(ABC):
    """Abstract base class for generative-content providers."""

    model: str = ""

    @abstractmethod
    def generate_content(
        self,
        request: GenerateContentRequest,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> GenerationResult:
        """
        Run one generate-content call.

        Args:
            request: Content parts to send
            timeout: Deadline in seconds for the whole call, retries included
            cancel_event: Set by the caller to abort between attempts

        Returns:
            GenerationResult with trimmed text and usage metadata

        Raises:
            AIClientError subclasses on failure
        """
        pass
