"""Async client for the OpenRouter chat completions API."""

import logging
from typing import Any

import httpx

from rmadesk.core.config import settings

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class OpenRouterClient:
    """Thin wrapper over ``httpx.AsyncClient`` for ``/chat/completions``.

    The underlying HTTP client is created lazily and recreated after ``close``.
    """

    def __init__(self, api_key: str | None = None):
        self.api_key = api_key or settings.OPENROUTER_API_KEY
        self._client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=OPENROUTER_BASE_URL,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "HTTP-Referer": f"https://{settings.APP_DOMAIN}",
                    "X-Title": "RMA Desk",
                },
                timeout=60.0,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def chat(
        self,
        model: str,
        messages: list[dict[str, Any]],
        **options: Any,
    ) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.post(
                "/chat/completions", json={"model": model, "messages": messages, **options}
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning("OpenRouter returned %s", exc.response.status_code)
            raise OpenRouterError(exc.response.text, exc.response.status_code) from exc
        except httpx.RequestError as exc:
            raise OpenRouterError(f"Request failed: {exc}") from exc
        result: dict[str, Any] = response.json()
        return result

    @staticmethod
    def extract_content(response: dict[str, Any]) -> str:
        choices = response.get("choices") or []
        if not choices:
            return ""
        return choices[0].get("message", {}).get("content") or ""
