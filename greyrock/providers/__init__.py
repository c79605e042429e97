from typing import Dict

from greyrock.providers.base import Analyzer
from greyrock.providers.claude import ClaudeAdapter
from greyrock.providers.gemini import GeminiAdapter
from greyrock.providers.openai import OpenAIAdapter
from greyrock.schemas import AdapterKind

__all__ = ["Analyzer", "ClaudeAdapter", "GeminiAdapter", "OpenAIAdapter", "build_adapters"]


def build_adapters(settings) -> Dict[AdapterKind, Analyzer]:
    """One adapter per backend family, configured from settings."""
    common = {"timeout": settings.REQUEST_TIMEOUT, "max_tokens": settings.MAX_OUTPUT_TOKENS}
    return {
        AdapterKind.OPENAI: OpenAIAdapter(settings.OPENAI_API_KEY, settings.OPENAI_BASE_URL, **common),
        AdapterKind.CLAUDE: ClaudeAdapter(settings.CLAUDE_API_KEY, settings.ANTHROPIC_BASE_URL, **common),
        AdapterKind.GEMINI: GeminiAdapter(settings.GEMINI_API_KEY, settings.GEMINI_BASE_URL, **common),
    }
