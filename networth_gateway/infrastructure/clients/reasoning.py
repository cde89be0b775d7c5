"""Reasoning service client (Anthropic Messages API) for Layer-2 refinement"""

import anthropic

from networth_gateway.config import settings
from networth_gateway.domain.exceptions import ReasoningServiceError


class ReasoningClient:
    """Thin async wrapper over the Anthropic SDK returning plain text"""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.anthropic_api_key
        self.model = model or settings.reasoning_model
        self.max_tokens = max_tokens or settings.reasoning_max_tokens
        self.timeout = timeout or settings.reasoning_timeout_seconds
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            # No SDK-level retries: a failed call falls back immediately
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    async def complete(self, system: str, prompt: str) -> str:
        """
        Send a single-turn message and return the concatenated text blocks.

        Raises:
            ReasoningServiceError: Key missing, connection failure, timeout or
                non-2xx status from the service
        """
        if not self.configured:
            raise ReasoningServiceError("Reasoning service API key not configured")

        try:
            response = await self._get_client().messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            raise ReasoningServiceError(f"Reasoning service error: {e}") from e

        return "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
