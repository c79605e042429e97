import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from greyrock.errors import ProviderResponseError
from greyrock.prompts import combined_prompt
from greyrock.providers.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TIMEOUT,
    build_analysis,
    post_json,
    require_key,
)
from greyrock.schemas import ProviderAnalysis

logger = logging.getLogger(__name__)


class GeminiAdapter:
    """Gemini generateContent; both prompts are sent as one user turn."""
    provider_name = "gemini"

    def __init__(
            self,
            api_key: Optional[str],
            base_url: str = "https://generativelanguage.googleapis.com/v1beta",
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
        payload = {
            "contents": [{"role": "user", "parts": [{"text": combined_prompt(text)}]}],
            "generationConfig": {"maxOutputTokens": self.max_tokens},
        }
        headers = {
            "x-goog-api-key": self.api_key or "",
            "Content-Type": "application/json",
        }
        return f"{self.base_url}/models/{model}:generateContent", headers, payload

    async def analyze(self, text: str, model: str) -> ProviderAnalysis:
        require_key(self.api_key, self.provider_name, model)
        url, headers, payload = self.build_request(text, model)

        data = await post_json(url, headers, payload, self.provider_name, model,
                               timeout=self.timeout, transport=self.transport)

        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            logger.warning("gemini returned no candidates (model=%s, blockReason=%s)", model, block_reason)
            detail = "Invalid response from gemini: no candidates returned"
            if block_reason:
                detail = f"gemini blocked the prompt: {block_reason}"
            raise ProviderResponseError(detail, provider=self.provider_name, model=model)

        parts = (candidates[0].get("content") or {}).get("parts") or []
        completion = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        return build_analysis(completion, text, self.provider_name, model)
