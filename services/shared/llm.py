"""Factory and helpers for the hosted language model client."""
import logging
import re
import typing as t

from openai import AsyncOpenAI

from services.shared import config

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def get_llm_client() -> t.Optional[AsyncOpenAI]:
    """Return an async client for the configured model, or None without a credential."""
    if not config.GOOGLE_API_KEY:
        logger.warning(
            "Missing model API key. Set GOOGLE_GENERATIVE_AI_API_KEY to enable AI features."
        )
        return None
    return AsyncOpenAI(
        api_key=config.GOOGLE_API_KEY,
        base_url=config.LLM_BASE_URL,
        timeout=config.LLM_TIMEOUT,
    )


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence, which models often add around JSON."""
    text = text.strip()
    match = _CODE_FENCE.match(text)
    return match.group(1) if match else text
