"""
FastAPI dependencies for the AI provider and the token ledger.

Routes receive these through ``Depends`` so tests can swap in fakes with
``app.dependency_overrides``.
"""
import logging
from typing import Optional

from finance_api.llm.errors import AIConfigurationError
from finance_api.llm.gemini_client import GeminiClient
from finance_api.llm.provider import LLMProvider
from finance_api.services.token_usage_service import TokenUsageLedger

logger = logging.getLogger(__name__)


def get_ai_provider() -> Optional[LLMProvider]:
    """Gemini client built from the environment, or None when not configured."""
    try:
        return GeminiClient.from_env()
    except AIConfigurationError as e:
        logger.info(f"Gemini disabled: {e}")
        return None


def get_token_ledger() -> TokenUsageLedger:
    return TokenUsageLedger.from_env()
