import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from greyrock.errors import ProviderResponseError
from greyrock.prompts import combined_prompt, system_prompt, user_prompt
from greyrock.providers.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TIMEOUT,
    build_analysis,
    post_json,
    require_key,
)
from greyrock.schemas import ProviderAnalysis

logger = logging.getLogger(__name__)

REASONING_PREFIXES = ("gpt-5", "o1", "o3")
TEMPERATURE = 0.7


def is_reasoning_model(model: str) -> bool:
    return model.startswith(REASONING_PREFIXES)


def reasoning_effort(model: str) -> Optional[str]:
    # gpt-5.1 only accepts "medium"; earlier gpt-5 releases take "low"
    if model.startswith("gpt-5.1"):
        return "medium"
    if model.startswith("gpt-5"):
        return "low"
    return None


class OpenAIAdapter:
    """
    Chat Completions API. Reasoning models (gpt-5*, o1*, o3*) get no system
    role, no temperature and no JSON mode, and use max_completion_tokens.
    """
    provider_name = "openai"

    def __init__(
            self,
            api_key: Optional[str],
            base_url: str = "https://api.openai.com/v1",
            timeout: float = DEFAULT_TIMEOUT,
            max_tokens: int = DEFAULT_MAX_TOKENS,
            transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.transport = transport

    def build_request(self, text: str, model: str) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        reasoning = is_reasoning_model(model)
        payload: Dict[str, Any] = {"model": model}

        if reasoning:
            payload["messages"] = [{"role": "user", "content": combined_prompt(text)}]
            payload["max_completion_tokens"] = self.max_tokens
            effort = reasoning_effort(model)
            if effort:
                payload["reasoning_effort"] = effort
        else:
            payload["messages"] = [
                {"role": "system", "content": system_prompt()},
                {"role": "user", "content": user_prompt(text)},
            ]
            payload["temperature"] = TEMPERATURE
            payload["max_tokens"] = self.max_tokens
            payload["response_format"] = {"type": "json_object"}

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        return f"{self.base_url}/chat/completions", headers, payload

    async def analyze(self, text: str, model: str) -> ProviderAnalysis:
        require_key(self.api_key, self.provider_name, model)
        url, headers, payload = self.build_request(text, model)

        data = await post_json(url, headers, payload, self.provider_name, model,
                               timeout=self.timeout, transport=self.transport)

        if not data.get("choices"):
            logger.warning("openai returned no choices (model=%s)", model)
            raise ProviderResponseError("Invalid response from openai: no choices returned",
                                        provider=self.provider_name, model=model)

        completion = data["choices"][0].get("message", {}).get("content") or ""
        return build_analysis(completion, text, self.provider_name, model)
