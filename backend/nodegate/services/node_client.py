from __future__ import annotations

from typing import Any, Protocol

import httpx

from nodegate.core.logging import get_logger
from nodegate.models.domain import MLNodeState


class NodeClientError(RuntimeError):
    pass


class NodeClient(Protocol):
    async def inference_up(self, model_id: str, args: list[str]) -> None: ...

    async def inference_health(self) -> bool: ...

    async def set_node_state(self, state: MLNodeState, reason: str) -> None: ...

    async def post_chat_completion(self, body: bytes) -> int: ...

    async def close(self) -> None: ...


class HttpNodeClient:
    """
    Client for one ML node's management (PoC) and inference endpoints.

    Management API, relative to the versioned PoC URL:
    - POST /api/v1/inference/up
    - GET  /api/v1/inference/health
    - POST /api/v1/state
    Inference API, relative to the inference URL:
    - POST /v1/chat/completions
    """

    UP_ENDPOINT = "/api/v1/inference/up"
    HEALTH_ENDPOINT = "/api/v1/inference/health"
    STATE_ENDPOINT = "/api/v1/state"
    CHAT_COMPLETIONS_ENDPOINT = "/v1/chat/completions"

    def __init__(
        self,
        poc_url: str,
        inference_url: str,
        timeout: float = 30.0,
        dtype: str = "float16",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._poc_url = poc_url.rstrip("/")
        self._inference_url = inference_url.rstrip("/")
        self._dtype = dtype
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self.logger = get_logger("nodegate.node_client")

    @property
    def poc_url(self) -> str:
        return self._poc_url

    @property
    def inference_url(self) -> str:
        return self._inference_url

    async def close(self) -> None:
        await self._client.aclose()

    def _format_error(self, exc: Exception) -> str:
        if isinstance(exc, httpx.HTTPStatusError):
            response = exc.response
            request = exc.request
            detail = (response.text or "").strip().replace("\n", " ")
            if len(detail) > 220:
                detail = f"{detail[:220]}..."
            return (
                f"status={response.status_code} method={request.method} "
                f"url={request.url} detail={detail}"
            )
        if isinstance(exc, httpx.RequestError):
            request = exc.request
            return (
                f"{exc.__class__.__name__} method={request.method} "
                f"url={request.url} detail={exc}"
            )
        return str(exc)

    async def _request(
        self,
        method: str,
        url: str,
        json_body: dict[str, Any] | None = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        raise_for_status: bool = True,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, url, json=json_body, content=content, headers=headers)
            if raise_for_status:
                response.raise_for_status()
            return response
        except httpx.HTTPError as exc:
            message = self._format_error(exc)
            self.logger.warning("node_request_failed method=%s url=%s error=%s", method, url, message)
            raise NodeClientError(message) from exc

    async def inference_up(self, model_id: str, args: list[str]) -> None:
        payload = {"model": model_id, "dtype": self._dtype, "args": list(args)}
        await self._request("POST", f"{self._poc_url}{self.UP_ENDPOINT}", json_body=payload)

    async def inference_health(self) -> bool:
        response = await self._request(
            "GET",
            f"{self._poc_url}{self.HEALTH_ENDPOINT}",
            raise_for_status=False,
        )
        return response.status_code == 200

    async def set_node_state(self, state: MLNodeState, reason: str) -> None:
        payload = {"state": str(state), "reason": reason}
        await self._request("POST", f"{self._poc_url}{self.STATE_ENDPOINT}", json_body=payload)

    async def post_chat_completion(self, body: bytes) -> int:
        response = await self._request(
            "POST",
            f"{self._inference_url}{self.CHAT_COMPLETIONS_ENDPOINT}",
            content=body,
            headers={"Content-Type": "application/json"},
            raise_for_status=False,
        )
        return response.status_code


def http_node_client_factory(
    timeout: float = 30.0,
    dtype: str = "float16",
    transport: httpx.AsyncBaseTransport | None = None,
):
    def factory(poc_url: str, inference_url: str) -> HttpNodeClient:
        return HttpNodeClient(poc_url, inference_url, timeout=timeout, dtype=dtype, transport=transport)

    return factory
