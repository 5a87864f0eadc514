# ============================================================================
# src/lab_extraction/ai/client.py
# ============================================================================
"""
AI Proxy Client

The engine never talks to the AI provider directly: requests go to a
server-side proxy that holds the API key and enforces budgets. Clients
return the raw HTTP status and JSON body; status handling (retries,
model fallback, error codes) belongs to ai.retry.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp

from ..config import ai_settings
from ...utils.exceptions import AIProxyUnreachableError


@dataclass(frozen=True)
class ProviderResponse:
    """
    One proxy response.

    Attributes:
        status: HTTP status
        body: Decoded JSON body ({} if empty; {"error": {"message": ...}} if not JSON)
        retry_after: Retry-After header in whole seconds, if present and positive
    """
    status: int
    body: Dict[str, Any] = field(default_factory=dict)
    retry_after: Optional[int] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        """Text of the first text content block, stripped."""
        content = self.body.get("content")
        if not isinstance(content, list):
            return ""
        for block in content:
            if isinstance(block, dict) and block.get("type") == "text":
                return str(block.get("text") or "").strip()
        return ""

    @property
    def stop_reason(self) -> Optional[str]:
        return self.body.get("stop_reason")

    @property
    def error(self) -> Dict[str, Any]:
        error = self.body.get("error")
        return error if isinstance(error, dict) else {}

    @property
    def error_message(self) -> str:
        return str(self.error.get("message") or self.error.get("detail") or "")

    @property
    def error_code(self) -> str:
        return str(self.error.get("code") or "")


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    if seconds <= 0:
        return None
    return int(-(-seconds // 1))


def decode_body(raw_text: str) -> Dict[str, Any]:
    if not raw_text:
        return {}
    try:
        body = json.loads(raw_text)
    except json.JSONDecodeError:
        return {"error": {"message": raw_text[:280]}}
    return body if isinstance(body, dict) else {}


class BaseAIClient(ABC):
    """Transport to the AI proxy."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    async def send(self, model: str, prompt: str, max_tokens: int) -> ProviderResponse:
        """
        Send one single-turn request.

        Raises:
            AIProxyUnreachableError: no HTTP response at all
        """

    async def close(self) -> None:
        pass


class ProxyAIClient(BaseAIClient):
    """
    aiohttp client for the message proxy.

    The session is created lazily on first use and bound to the running
    event loop; call close() when done.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        request_type: str = "extraction",
        unreachable_code: str = "PDF_PROXY_UNREACHABLE"
    ):
        super().__init__()
        self.url = url or ai_settings.AI_PROXY_URL
        self.timeout = timeout if timeout is not None else ai_settings.AI_TIMEOUT
        self.request_type = request_type
        self.unreachable_code = unreachable_code

        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        current_loop = asyncio.get_running_loop()
        needs_new_session = (
            self._session is None
            or self._session.closed
            or self._session_loop is not current_loop
        )
        if needs_new_session:
            if self._session is not None and not self._session.closed:
                await self._session.close()
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
            self._session_loop = current_loop
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop = None

    async def send(self, model: str, prompt: str, max_tokens: int) -> ProviderResponse:
        payload = {
            "requestType": self.request_type,
            "payload": {
                "model": model,
                "max_tokens": max_tokens,
                "messages": [{"role": "user", "content": prompt}],
            },
        }

        session = await self._get_session()
        try:
            async with session.post(self.url, json=payload) as response:
                raw_text = await response.text()
                result = ProviderResponse(
                    status=response.status,
                    body=decode_body(raw_text),
                    retry_after=parse_retry_after(response.headers.get("retry-after")),
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"AI proxy unreachable at {self.url}: {e}")
            raise AIProxyUnreachableError(self.unreachable_code, detail=str(e)) from e

        self.logger.debug(f"AI proxy answered {result.status} for model {model}")
        return result
