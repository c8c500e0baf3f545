"""
Gemini generateContent client over httpx.

Retries transport and protocol failures with exponential backoff. Backoff
waits are cancellable through a ``threading.Event`` and bounded by the
per-call deadline.
"""
import logging
import threading
import time
from typing import Optional, Callable, Dict, Any

import httpx
from tenacity import (
    Retrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from finance_api.core import config
from finance_api.llm.errors import (
    AIClientError,
    AIConfigurationError,
    AIRequestError,
    AITransportError,
    AIProtocolError,
    AIContentError,
    AICancelledError,
    AIRetriesExhaustedError,
)
from finance_api.llm.provider import (
    LLMProvider,
    GenerateContentRequest,
    GenerationResult,
    UsageMetadata,
)

logger = logging.getLogger(__name__)

WaitFn = Callable[[Optional[threading.Event], float], bool]

_shared_client: Optional[httpx.Client] = None
_shared_lock = threading.Lock()


def get_http_client() -> httpx.Client:
    """Process-wide httpx client, created on first use."""
    global _shared_client
    with _shared_lock:
        if _shared_client is None or _shared_client.is_closed:
            _shared_client = httpx.Client(timeout=config.GEMINI_TIMEOUT_SECONDS)
        return _shared_client


def close_http_client():
    global _shared_client
    with _shared_lock:
        if _shared_client is not None:
            _shared_client.close()
            _shared_client = None


def is_retryable(error: BaseException) -> bool:
    return isinstance(error, AIClientError) and error.retryable


def default_wait(cancel_event: Optional[threading.Event], seconds: float) -> bool:
    """Sleep for ``seconds``; return True if the cancel event fired first."""
    if cancel_event is None:
        time.sleep(seconds)
        return False
    return cancel_event.wait(seconds)


def extract_text(body: Dict[str, Any]) -> str:
    """
    First non-blank text part across all candidates, in response order, trimmed.

    Raises:
        AIContentError: no candidates, or none of them carries text
    """
    candidates = body.get("candidates") or []
    if not isinstance(candidates, list) or not candidates:
        raise AIContentError("AI response has no candidates")
    for candidate in candidates:
        if not isinstance(candidate, dict):
            continue
        content = candidate.get("content")
        if not isinstance(content, dict):
            continue
        parts = content.get("parts")
        if not isinstance(parts, list):
            continue
        for part in parts:
            text = part.get("text") if isinstance(part, dict) else None
            if isinstance(text, str) and text.strip():
                return text.strip()
    raise AIContentError("AI response has no usable text")


class GeminiClient(LLMProvider):
    """Generative-content client for the Gemini REST API."""

    def __init__(
        self,
        api_key: Optional[str],
        model: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
        base_url: Optional[str] = None,
        max_retries: int = 3,
        backoff: float = 1.0,
        request_timeout: float = 30.0,
        wait: Optional[WaitFn] = None,
        clock: Optional[Callable[[], float]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if not api_key or not api_key.strip():
            raise AIConfigurationError("Gemini API key is not configured")
        self.api_key = api_key.strip()
        self.model = (model or config.GEMINI_MODEL).strip()
        if not self.model:
            raise AIConfigurationError("Gemini model is not configured")
        self.http_client = http_client
        self.base_url = (base_url or config.GEMINI_BASE_URL).rstrip("/")
        self.max_retries = max(int(max_retries), 1)
        self.backoff = max(float(backoff), 0.0)
        self.request_timeout = request_timeout
        self.wait = wait or default_wait
        self.clock = clock or time.monotonic
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_env(cls, http_client: Optional[httpx.Client] = None, logger: Optional[logging.Logger] = None) -> "GeminiClient":
        """Build a client from GEMINI_* settings, sharing the process-wide httpx client."""
        return cls(
            api_key=config.GEMINI_API_KEY,
            model=config.GEMINI_MODEL,
            http_client=http_client or get_http_client(),
            max_retries=config.GEMINI_MAX_RETRIES,
            backoff=config.GEMINI_BACKOFF_SECONDS,
            request_timeout=config.GEMINI_TIMEOUT_SECONDS,
            logger=logger,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def generate_content(
        self,
        request: GenerateContentRequest,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> GenerationResult:
        if request is None or not request.has_parts():
            raise AIRequestError("AI request has no content parts")

        deadline = self.clock() + timeout if timeout else None
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=self._backoff(deadline),
            retry=retry_if_exception(is_retryable),
            sleep=self._sleeper(cancel_event),
            before_sleep=self._log_retry,
        )
        try:
            for attempt in retrying:
                with attempt:
                    self._ensure_not_cancelled(cancel_event, deadline)
                    return self._attempt(request, self._attempt_timeout(deadline))
        except RetryError as e:
            last_error = e.last_attempt.exception()
            self.logger.warning(f"Gemini gave up after {self.max_retries} attempts: {type(last_error).__name__}: {last_error}")
            raise AIRetriesExhaustedError(
                f"AI call failed after {self.max_retries} attempts: {last_error}",
                attempts=self.max_retries,
                last_error=last_error,
            ) from last_error

    def _backoff(self, deadline: Optional[float]):
        """Exponential backoff (backoff, 2*backoff, ...) never waiting past the deadline."""
        exponential = wait_exponential(multiplier=self.backoff)

        def wait(retry_state: RetryCallState) -> float:
            seconds = exponential(retry_state)
            if deadline is not None:
                seconds = min(seconds, max(deadline - self.clock(), 0.0))
            return seconds

        return wait

    def _sleeper(self, cancel_event: Optional[threading.Event]):
        def sleep(seconds: float):
            if self.wait(cancel_event, float(seconds)):
                raise AICancelledError("AI call cancelled during backoff")

        return sleep

    def _log_retry(self, retry_state: RetryCallState):
        error = retry_state.outcome.exception()
        self.logger.warning(
            f"Gemini attempt {retry_state.attempt_number}/{self.max_retries} failed: {type(error).__name__}: {error}"
        )

    def _ensure_not_cancelled(self, cancel_event: Optional[threading.Event], deadline: Optional[float]):
        if cancel_event is not None and cancel_event.is_set():
            raise AICancelledError("AI call cancelled")
        if deadline is not None and self.clock() >= deadline:
            raise AICancelledError("AI call deadline exceeded")

    def _attempt_timeout(self, deadline: Optional[float]) -> float:
        if deadline is None:
            return self.request_timeout
        return max(min(self.request_timeout, deadline - self.clock()), 0.001)

    def _attempt(self, request: GenerateContentRequest, attempt_timeout: float) -> GenerationResult:
        client = self.http_client or get_http_client()
        try:
            response = client.post(
                self.endpoint,
                params={"key": self.api_key},
                json=request.to_dict(),
                timeout=attempt_timeout,
            )
        except httpx.TransportError as e:
            raise AITransportError(f"{type(e).__name__} calling Gemini") from e

        if not response.is_success:
            raise AIProtocolError(
                f"Gemini returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise AIProtocolError("Gemini returned a malformed body", status_code=response.status_code) from e
        if not isinstance(body, dict):
            raise AIProtocolError("Gemini returned a malformed body", status_code=response.status_code)
        if not isinstance(body.get("candidates") or [], list):
            raise AIProtocolError("Gemini candidates is not a list", status_code=response.status_code)
        if not isinstance(body.get("usageMetadata") or {}, dict):
            raise AIProtocolError("Gemini usageMetadata is not an object", status_code=response.status_code)

        text = extract_text(body)
        usage = UsageMetadata.from_dict(body.get("usageMetadata"))
        self.logger.debug(
            f"Gemini call ok: model={self.model}, prompt_tokens={usage.prompt_token_count}, "
            f"response_tokens={usage.candidates_token_count}"
        )
        return GenerationResult(text=text, usage=usage, model=self.model)
