"""Provider error taxonomy.

Every failure an adapter can hit is raised as a ``ProviderError``. It is an
``HTTPException`` so the status a provider problem maps to travels with it,
and it also records whether the condition is transient. Nothing in this
service retries; ``retryable`` is reported to the caller.
"""
from typing import Optional

from fastapi import HTTPException

# Upstream statuses that describe a temporary condition
TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504, 529})

# Error codes some providers put in a JSON body next to a 2xx status
PROVIDER_ERROR_CODES = {
    "rate_limit_exceeded": 429,
    "invalid_api_key": 401,
    "insufficient_quota": 402,
    "model_not_found": 404,
}


def is_transient(status_code: Optional[int]) -> bool:
    return status_code in TRANSIENT_STATUS_CODES


class ModelNotFoundError(LookupError):
    def __init__(self, model_id: str):
        super().__init__(f"Model {model_id} not found")
        self.model_id = model_id


class ProviderError(HTTPException):
    """A single backend failed to produce an analysis."""

    def __init__(
            self,
            status_code: int,
            detail: str,
            provider: Optional[str] = None,
            model: Optional[str] = None,
            upstream_status: Optional[int] = None,
            retryable: Optional[bool] = None,
    ):
        super().__init__(status_code=status_code, detail=detail)
        self.provider = provider
        self.model = model
        self.upstream_status = upstream_status
        if retryable is None:
            retryable = is_transient(upstream_status if upstream_status is not None else status_code)
        self.retryable = retryable

    def __str__(self) -> str:
        return str(self.detail)


class ProviderRateLimitError(ProviderError):
    def __init__(self, detail: str, retry_after: Optional[str] = None, **kwargs):
        kwargs.setdefault("upstream_status", 429)
        super().__init__(status_code=429, detail=detail, **kwargs)
        self.retry_after = retry_after


class ProviderAuthError(ProviderError):
    def __init__(self, detail: str, **kwargs):
        kwargs.setdefault("retryable", False)
        super().__init__(status_code=401, detail=detail, **kwargs)


class ProviderResponseError(ProviderError):
    """The backend answered, but not with a usable analysis."""

    def __init__(self, detail: str, **kwargs):
        kwargs.setdefault("retryable", False)
        super().__init__(status_code=502, detail=detail, **kwargs)
