"""LLM client utilities: provider dispatch and JSON response parsing."""

import json
import re
import time
from typing import Any, TypeVar

import anthropic
import openai
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel

from brief_engine.core.config import get_settings
from brief_engine.core.errors import GenerationFailed
from brief_engine.core.llm_usage import log_llm_usage
from brief_engine.core.logging import get_logger

T = TypeVar("T", bound=BaseModel)

logger = get_logger(__name__)

PROVIDERS = ("anthropic", "openai")


def current_model() -> str:
    """Model name of the configured provider, recorded alongside generated data."""
    settings = get_settings()
    if settings.LLM_PROVIDER == "openai":
        return settings.OPENAI_MODEL
    return settings.ANTHROPIC_MODEL


def get_llm(model: str | None = None, temperature: float = 0.4) -> ChatOpenAI:
    """
    Get configured OpenAI chat model for LangChain calls.

    Args:
        model: Model name override (defaults to config setting)
        temperature: Temperature for generation

    Returns:
        ChatOpenAI instance configured with API key and model
    """
    settings = get_settings()
    return ChatOpenAI(
        api_key=settings.OPENAI_API_KEY,
        model=model or settings.OPENAI_MODEL,
        temperature=temperature,
        max_tokens=settings.GENERATION_MAX_TOKENS,
    )


async def _call_anthropic(system: str, user: str, max_tokens: int) -> tuple[str, int, int]:
    from anthropic import AsyncAnthropic

    settings = get_settings()
    if not settings.ANTHROPIC_API_KEY:
        raise GenerationFailed("ANTHROPIC_API_KEY not set", retryable=False)

    client = AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)
    response = await client.messages.create(
        model=settings.ANTHROPIC_MODEL,
        max_tokens=max_tokens,
        system=system,
        messages=[{"role": "user", "content": user}],
    )

    text = next(
        (block.text for block in response.content if getattr(block, "type", "text") == "text"),
        None,
    )
    if not text:
        raise GenerationFailed("No text response")
    usage = response.usage
    return text, usage.input_tokens, usage.output_tokens


async def _call_openai(system: str, user: str) -> tuple[str, int, int]:
    settings = get_settings()
    if not settings.OPENAI_API_KEY:
        raise GenerationFailed("OPENAI_API_KEY not set", retryable=False)

    response = await get_llm().ainvoke([SystemMessage(content=system), HumanMessage(content=user)])
    text = response.content if isinstance(response.content, str) else ""
    if not text:
        raise GenerationFailed("No text response")
    usage = getattr(response, "usage_metadata", None) or {}
    return text, usage.get("input_tokens", 0), usage.get("output_tokens", 0)


async def generate_text(
    system: str,
    user: str,
    *,
    chain: str,
    max_tokens: int | None = None,
    session_id: str | None = None,
) -> str:
    """
    Run one generation call against the configured provider.

    No retries: every failure is surfaced so the user can retry the step.

    Raises:
        GenerationFailed: On provider, network or configuration errors
    """
    settings = get_settings()
    provider = settings.LLM_PROVIDER
    if provider not in PROVIDERS:
        raise GenerationFailed(f"Unknown LLM provider: {provider}", chain=chain, retryable=False)

    logger.info(f"Running {chain} via {provider}", extra={"session_id": session_id})
    start = time.time()
    try:
        if provider == "anthropic":
            text, tokens_in, tokens_out = await _call_anthropic(
                system, user, max_tokens or settings.GENERATION_MAX_TOKENS
            )
        else:
            text, tokens_in, tokens_out = await _call_openai(system, user)
    except GenerationFailed as e:
        e.chain = chain
        raise
    except (anthropic.RateLimitError, openai.RateLimitError) as e:
        raise GenerationFailed(
            f"{provider} rate limit exceeded. Please wait a few minutes or switch provider.",
            chain=chain,
        ) from e
    except (
        anthropic.AuthenticationError,
        anthropic.PermissionDeniedError,
        openai.AuthenticationError,
        openai.PermissionDeniedError,
    ) as e:
        raise GenerationFailed(
            f"{provider} authentication failed. Please check your API key.",
            chain=chain,
            retryable=False,
        ) from e
    except Exception as e:
        logger.error(f"{chain} failed: {e}", extra={"session_id": session_id})
        raise GenerationFailed(f"{chain} failed: {e}", chain=chain) from e

    duration_ms = int((time.time() - start) * 1000)
    log_llm_usage(
        chain=chain,
        model=current_model(),
        provider=provider,
        tokens_input=tokens_in,
        tokens_output=tokens_out,
        duration_ms=duration_ms,
        session_id=session_id,
    )
    return text


def _strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)```", cleaned, re.DOTALL)
    if fence_match:
        return fence_match.group(1).strip()

    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_llm_json_dict(raw_output: str) -> Any:
    """
    Parse LLM output as JSON, returning the raw object.

    Falls back to the outermost {...} or [...] span when the model wraps
    the JSON in prose.

    Raises:
        json.JSONDecodeError: If JSON parsing fails after cleanup
    """
    cleaned = _strip_llm_fences(raw_output)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        starts = [i for i in (cleaned.find("{"), cleaned.find("[")) if i != -1]
        end = max(cleaned.rfind("}"), cleaned.rfind("]"))
        if not starts or end <= min(starts):
            raise
        parsed = json.loads(cleaned[min(starts) : end + 1])

    if isinstance(parsed, str):
        # Some responses double-encode the JSON payload
        parsed = json.loads(parsed)
    return parsed


def parse_llm_json(raw_output: str, model: type[T]) -> T:
    """
    Parse LLM output as JSON and validate against a Pydantic model.

    Raises:
        json.JSONDecodeError: If JSON parsing fails after cleanup
        pydantic.ValidationError: If parsed JSON doesn't match schema
    """
    return model.model_validate(parse_llm_json_dict(raw_output))
