"""
Groq LLM Client

Async chat-completion client for Groq's OpenAI-compatible endpoint. The
llm_analysis node calls analyze_signal() and gets back the model's JSON
answer as a dict.
"""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

import aiohttp

from signal_agent.exceptions import LLMConfigurationError, TransientFetchError
from signal_agent.prompts.signal_analysis import build_signal_analysis_messages, parse_json_object
from signal_agent.utils.config import GROQ_API_KEY, GROQ_API_URL, GROQ_MODEL, LLM_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


def extract_message_content(payload: Any) -> str:
    """Return choices[0].message.content, or '' if the payload has another shape."""
    if not isinstance(payload, Mapping):
        return ""
    choices = payload.get("choices")
    if isinstance(choices, list) and choices:
        first = choices[0]
        if isinstance(first, Mapping):
            message = first.get("message")
            if isinstance(message, Mapping):
                content = message.get("content")
                if isinstance(content, str):
                    return content
    return ""


class GroqLLMClient:
    """Groq chat completions over aiohttp."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = GROQ_MODEL,
        api_url: str = GROQ_API_URL,
        timeout: float = LLM_TIMEOUT_SECONDS,
        temperature: float = 0.2,
        max_tokens: int = 1024,
    ):
        self.api_key = api_key if api_key is not None else GROQ_API_KEY
        self.model = model
        self.api_url = api_url
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def complete(self, messages: List[Mapping[str, str]], json_mode: bool = False) -> str:
        """
        Run one chat completion and return the assistant message text.

        Raises:
            LLMConfigurationError: If no API key is configured
            TransientFetchError: On HTTP errors, timeouts or an empty answer
        """
        if not self.api_key:
            raise LLMConfigurationError("Groq client not available - API key not configured")

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": list(messages),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.api_url, json=payload, headers=headers) as response:
                    if response.status >= 400:
                        body = await response.text()
                        if response.status == 401:
                            logger.error("Groq authentication failed (401): invalid API key")
                        raise TransientFetchError(
                            f"Groq API error {response.status}: {body[:200]}",
                            status_code=response.status,
                        )
                    data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientFetchError(f"Groq request failed: {e.__class__.__name__}: {e}") from e

        content = extract_message_content(data)
        if not content:
            raise TransientFetchError("Groq returned an empty completion")
        return content

    async def analyze_signal(self, prompt_vars: Mapping[str, str]) -> Dict[str, Any]:
        """
        Ask the model for a signal decision.

        Args:
            prompt_vars: Variables from build_prompt_variables()

        Returns:
            Raw decision dict as answered by the model (not yet normalized)

        Raises:
            LLMConfigurationError: If no API key is configured
            TransientFetchError: On HTTP errors or malformed JSON
        """
        messages = build_signal_analysis_messages(prompt_vars)
        content = await self.complete(messages, json_mode=True)

        try:
            decision = parse_json_object(content)
        except ValueError as e:
            raise TransientFetchError(f"Groq returned malformed JSON: {e}") from e

        logger.info(
            f"Groq analysis for {prompt_vars.get('token_symbol')}: "
            f"generate={decision.get('should_generate_signal')}, "
            f"direction={decision.get('direction')}, confidence={decision.get('confidence')}"
        )
        return decision
