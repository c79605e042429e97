import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from greyrock.errors import ProviderResponseError
from greyrock.prompts import system_prompt, user_prompt
from greyrock.providers.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TIMEOUT,
    build_analysis,
    post_json,
    require_key,
)
from greyrock.schemas import ProviderAnalysis

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class ClaudeAdapter:
    """Anthropic Messages API; the system prompt goes in its own field."""
    provider_name = "claude"

    def __init__(
            self,
            api_key: Optional[str],
            base_url: str = "https://api.anthropic.com/v1",
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
            "model": model,
            "max_tokens": self.max_tokens,
            "system": system_prompt(),
            "messages": [{"role": "user", "content": user_prompt(text)}],
        }
        headers = {
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        return f"{self.base_url}/messages", headers, payload

    async def analyze(self, text: str, model: str) -> ProviderAnalysis:
        require_key(self.api_key, self.provider_name, model)
        url, headers, payload = self.build_request(text, model)

        data = await post_json(url, headers, payload, self.provider_name, model,
                               timeout=self.timeout, transport=self.transport)

        blocks = data.get("content") or []
        completion = "".join(
            block.get("text", "") for block in blocks
            if isinstance(block, dict) and block.get("type", "text") == "text"
        )
        if not completion:
            logger.warning("claude returned no text content (model=%s, stop_reason=%s)",
                           model, data.get("stop_reason"))
            raise ProviderResponseError("Invalid response from claude: no text content",
                                        provider=self.provider_name, model=model)

        return build_analysis(completion, text, self.provider_name, model)
