# greyrock/providers/base.py
import logging
from typing import Any, Dict, Optional, Protocol

import httpx
from pydantic import ValidationError

from greyrock.errors import (
    PROVIDER_ERROR_CODES,
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitError,
    ProviderResponseError,
)
from greyrock.extraction import ExtractionError, extract_json
from greyrock.highlights import normalize_highlights
from greyrock.schemas import AnalysisPayload, ProviderAnalysis

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0
DEFAULT_MAX_TOKENS = 2048
# Connection-level retries of the transport; completed exchanges are never retried
CONNECT_RETRIES = 2


class Analyzer(Protocol):
    provider_name: str

    async def analyze(self, text: str, model: str) -> ProviderAnalysis:
        """
        Run the grey rock / yellow rock analysis of `text` on `model`.
        Raises ProviderError (annotated with provider and model) on any failure.
        """
        ...


def _error_message(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    err = data.get("error")
    if isinstance(err, dict):
        return err.get("message")
    if isinstance(err, str):
        return err
    return data.get("message")


def _raise_for_status(response: httpx.Response, data: Any, body_preview: str, provider: str, model: str):
    status = response.status_code
    provider_msg = _error_message(data)

    if status == 429:
        retry_after = response.headers.get("Retry-After")
        logger.warning("%s rate limited (429) model=%s Retry-After=%s body=%s",
                       provider, model, retry_after, body_preview)
        raise ProviderRateLimitError(
            f"{provider} rate limit. Retry-After: {retry_after or 'unknown'}",
            retry_after=retry_after, provider=provider, model=model,
        )

    if status in (401, 403):
        logger.error("%s rejected credentials: %s | body=%s", provider, status, body_preview)
        raise ProviderAuthError(
            f"{provider} authentication failed: {provider_msg or status}",
            provider=provider, model=model, upstream_status=status,
        )

    if status == 408:
        logger.error("%s request timeout (408) model=%s", provider, model)
        raise ProviderError(504, f"{provider} request timed out",
                            provider=provider, model=model, upstream_status=status)

    if 400 <= status < 500:
        logger.error("%s client error: %s | body=%s", provider, status, body_preview)
        raise ProviderError(status, f"{provider} client error: {provider_msg or status}",
                            provider=provider, model=model, upstream_status=status)

    if status >= 500:
        logger.error("%s server error: %s | body=%s", provider, status, body_preview)
        raise ProviderError(502, f"{provider} returned server error: {status}",
                            provider=provider, model=model, upstream_status=status)


async def post_json(
        url: str,
        headers: Dict[str, str],
        payload: Dict[str, Any],
        provider: str,
        model: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """POST a completion request and return the decoded 2xx body."""
    if transport is None:
        transport = httpx.AsyncHTTPTransport(retries=CONNECT_RETRIES)

    async with httpx.AsyncClient(transport=transport, timeout=timeout) as client:
        try:
            response = await client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException:
            logger.error("Request to %s timed out (model=%s)", provider, model)
            raise ProviderError(504, f"{provider} timeout", provider=provider, model=model, retryable=True)
        except httpx.RequestError as e:
            logger.error("Request error from %s (model=%s): %s", provider, model, e)
            raise ProviderError(503, f"{provider} unavailable", provider=provider, model=model, retryable=True)

    try:
        data = response.json()
        body_preview = str(data)[:1000]
    except ValueError:
        data = None
        body_preview = response.text[:1000]

    logger.debug("%s response | status=%s model=%s body_preview=%s",
                 provider, response.status_code, model, body_preview)

    _raise_for_status(response, data, body_preview, provider, model)

    if not isinstance(data, dict):
        logger.error("Unexpected response format from %s: %s", provider, body_preview)
        raise ProviderResponseError(f"Invalid response from {provider}", provider=provider, model=model)

    # Error object inside a 2xx body
    if "error" in data and data["error"]:
        err = data["error"]
        provider_msg = err.get("message", "Provider returned an error") if isinstance(err, dict) else str(err)
        provider_code = err.get("code", "unknown") if isinstance(err, dict) else "unknown"
        logger.error("%s error in JSON: %s - %s", provider, provider_code, provider_msg)
        status_code = PROVIDER_ERROR_CODES.get(provider_code, 502)
        if status_code == 429:
            raise ProviderRateLimitError(f"{provider} error: {provider_msg}", provider=provider, model=model)
        if status_code == 401:
            raise ProviderAuthError(f"{provider} error: {provider_msg}", provider=provider, model=model)
        raise ProviderError(status_code, f"{provider} error: {provider_msg}", provider=provider, model=model,
                            retryable=False)

    return data


def require_key(api_key: Optional[str], provider: str, model: str) -> str:
    if not api_key:
        logger.error("%s API key not configured (model=%s)", provider, model)
        raise ProviderAuthError(f"{provider} API key not configured", provider=provider, model=model)
    return api_key


def build_analysis(completion: str, text: str, provider: str, model: str) -> ProviderAnalysis:
    """Extract, validate and normalize the analysis inside a raw completion."""
    try:
        data = extract_json(completion)
    except ExtractionError as e:
        logger.error("Unusable completion from %s (%s): %s | raw=%s", provider, model, e, completion[:1000])
        raise ProviderResponseError(f"{e} from {provider}", provider=provider, model=model) from e

    try:
        payload = AnalysisPayload.model_validate(data)
    except ValidationError as e:
        logger.error("Completion from %s (%s) has the wrong shape: %s", provider, model, e)
        raise ProviderResponseError(f"Incomplete analysis from {provider}", provider=provider, model=model) from e

    payload.emotions.highlights = normalize_highlights(text, payload.emotions.highlights)
    return ProviderAnalysis(**payload.model_dump(), provider=provider, model=model)
