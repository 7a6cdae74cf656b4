from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from memory_wrapper.core.errors import BackendTimeoutError, BackendUnavailableError
from memory_wrapper.models.memory import Memory

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 30.0


class HttpMemoryRepo:
    """Proxy to an upstream memory service speaking the /memory/* JSON API.

    Every call is bounded by one timeout (default 30s).  A timeout surfaces
    as BackendTimeoutError (504), any other transport or protocol failure
    as BackendUnavailableError (502).  Nothing is retried here.
    """

    backend_name = "mcp_service"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SEC,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self._client = httpx.Client(
            base_url=base_url, timeout=timeout, transport=transport
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException:
            logger.warning("Upstream %s %s timed out", method, path)
            raise BackendTimeoutError(
                description=f"memory service did not answer {method} {path} in time"
            ) from None
        except httpx.HTTPError as e:
            logger.warning("Upstream %s %s failed: %s", method, path, e)
            raise BackendUnavailableError(
                description="memory service unreachable"
            ) from None
        return response

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPStatusError, ValueError):
            logger.warning(
                "Upstream %s %s answered %d",
                response.request.method,
                response.request.url.path,
                response.status_code,
            )
            raise BackendUnavailableError(
                description=f"memory service answered {response.status_code}"
            ) from None
        if not isinstance(data, dict):
            raise BackendUnavailableError(description="unexpected upstream payload")
        return data

    def ping(self) -> None:
        """Raise unless the upstream answers its health check."""
        self._json(self._request("GET", "/health"))

    def add(self, memory: Memory) -> Memory:
        data = self._json(
            self._request(
                "POST",
                "/memory/store",
                json={
                    "content": memory.content,
                    "metadata": memory.metadata,
                    "tags": memory.tags,
                },
            )
        )
        # The upstream assigns its own id and timestamps.
        return Memory.from_dict(data["memory"]) if "memory" in data else memory

    def search(
        self, query: str | None, tags: list[str] | None, limit: int
    ) -> list[Memory]:
        params: dict[str, Any] = {"limit": limit}
        if query:
            params["query"] = query
        if tags:
            params["tags"] = tags
        data = self._json(self._request("GET", "/memory/search", params=params))
        return [Memory.from_dict(m) for m in data.get("memories", [])]

    def list(self, limit: int, offset: int) -> tuple[list[Memory], int]:
        data = self._json(
            self._request(
                "GET", "/memory/list", params={"limit": limit, "offset": offset}
            )
        )
        memories = [Memory.from_dict(m) for m in data.get("memories", [])]
        return memories, int(data.get("total", len(memories)))

    def delete(self, memory_id: str) -> bool:
        response = self._request("DELETE", f"/memory/{quote(memory_id, safe='')}")
        if response.status_code == httpx.codes.NOT_FOUND:
            return False
        self._json(response)
        return True

    def count(self) -> int:
        data = self._json(self._request("GET", "/memory/stats"))
        return int(data.get("total_memories", 0))
