from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from .config import OPENAI_API_BASE
from .errors import ConfigurationError, RequestTimeoutError, UpstreamError, UpstreamProtocolError
from .models import CompletionEnvelope, CompletionRequest
from .openai_compat import envelope_from_response
from .request_builder import to_request_body

log = structlog.get_logger()


class CompletionClient:
    """
    Single round-trip wrapper around an OpenAI-compatible chat completion endpoint.

    Retrying is not done here: the caller owns the attempt history and the
    budget escalation policy.
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        client: httpx.AsyncClient | None = None,
        base_url: str = OPENAI_API_BASE,
        timeout_seconds: float = 60,
    ):
        self.api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            raise ConfigurationError("OpenAI API key not configured. Please set it in the settings.")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def complete(self, request: CompletionRequest) -> CompletionEnvelope:
        headers = self._headers()
        payload = to_request_body(request)
        url = f"{self._base_url}/chat/completions"

        try:
            resp = await self._client.post(url, headers=headers, json=payload, timeout=self._timeout_seconds)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(
                f"Completion request timed out after {self._timeout_seconds:g}s."
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamProtocolError("Completion request failed.") from e

        if not resp.is_success:
            body = resp.text
            log.warning("completion_upstream_error", status_code=resp.status_code, body=body[:500])
            raise UpstreamError(resp.status_code, body)

        try:
            data: Any = resp.json()
        except ValueError as e:
            raise UpstreamProtocolError("Completion response is not valid JSON.") from e
        if not isinstance(data, dict):
            raise UpstreamProtocolError("Completion response must be a JSON object.")

        try:
            envelope = envelope_from_response(data)
        except ValidationError as e:
            raise UpstreamProtocolError("Unexpected completion response shape.") from e

        log.debug(
            "completion_ok",
            model=request.model,
            budget=request.output_budget,
            finish_reason=envelope.finish_reason.value,
            content_chars=len(envelope.content),
        )
        return envelope

    async def check_connection(self) -> bool:
        """Return whether the endpoint accepts the configured key."""
        headers = self._headers()
        try:
            resp = await self._client.get(f"{self._base_url}/models", headers=headers, timeout=self._timeout_seconds)
        except httpx.HTTPError as e:
            log.info("connection_check_failed", error=str(e))
            return False
        return resp.is_success
