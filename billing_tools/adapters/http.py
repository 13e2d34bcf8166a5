"""HTTP Tool Adapter - Executes catalog tools against the billing API."""

import json
import logging
import time
from typing import Any, Optional

import httpx

from .base import BaseToolAdapter
from ..errors import ApiError, NetworkError
from ..types import PreparedRequest, ToolSpec

logger = logging.getLogger(__name__)


class HttpToolAdapter(BaseToolAdapter):
    """
    Adapter issuing one HTTP request per invocation.

    Timeouts are the HTTP client's defaults; no retry layer exists here.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        super().__init__()
        self.name = "http"
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def execute(
        self,
        spec: ToolSpec,
        request: Optional[PreparedRequest],
    ) -> Any:
        """
        Perform the HTTP call.

        Raises:
            NetworkError: On transport failure (connection, timeout)
            ApiError: On a non-2xx response, with status and raw body
        """
        if request is None:
            raise ValueError(f"{spec.name} requires a prepared request")

        client = await self._get_client()
        content = json.dumps(request.body) if request.body is not None else None
        start_time = time.time()

        try:
            response = await client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=content,
            )
        except httpx.RequestError as e:
            logger.error(f"[{spec.name}] Network error: {e!r}")
            raise NetworkError(f"Network error: {e}", tool_name=spec.name, cause=e) from e

        response_text = response.text
        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"[{spec.name}] Response received in {duration_ms}ms - "
            f"Status: {response.status_code}, Size: {len(response_text)} chars"
        )

        if not response.is_success:
            logger.error(f"[{spec.name}] API Error Response: {response_text}")
            raise ApiError(
                response.status_code,
                response_text,
                tool_name=spec.name,
                reason=response.reason_phrase,
            )

        try:
            result: Any = json.loads(response_text)
        except ValueError:
            logger.debug(f"[{spec.name}] Failed to parse JSON response, returning as text")
            result = response_text

        if spec.response_template and spec.response_template.prepend_body:
            result = {
                "template_info": spec.response_template.prepend_body,
                "api_response": result,
            }

        return result

    def supports_tool(self, tool_name: str) -> bool:
        """Every catalog tool is an HTTP tool unless a local adapter claims it."""
        return True

    async def shutdown(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        await super().shutdown()
