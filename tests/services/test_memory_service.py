from __future__ import annotations

import httpx
import pytest

from memory_wrapper.core.errors import NotFoundError, ValidationError
from memory_wrapper.repos.memory_repo import InMemoryMemoryRepo
from memory_wrapper.services.memory_service import MemoryService, build_memory_service


@pytest.fixture
def service() -> MemoryService:
    return MemoryService(InMemoryMemoryRepo(), mode="memory")


def test_store_then_search_finds_it(service: MemoryService) -> None:
    stored = service.store("remember the milk", tags=["shopping"])
    results = service.search("MILK")
    assert [m.id for m in results] == [stored.id]


@pytest.mark.parametrize("content", ["", "   ", "\n\t"])
def test_blank_content_is_rejected(service: MemoryService, content: str) -> None:
    with pytest.raises(ValidationError):
        service.store(content)
    assert service.stats()["total_memories"] == 0


def test_delete_then_list_excludes(service: MemoryService) -> None:
    keep = service.store("keep me")
    gone = service.store("delete me")
    service.delete(gone.id)
    page, total = service.list()
    assert [m.id for m in page] == [keep.id]
    assert total == 1


def test_delete_unknown_is_not_found(service: MemoryService) -> None:
    with pytest.raises(NotFoundError):
        service.delete("no-such-id")


def test_search_rejects_zero_limit(service: MemoryService) -> None:
    with pytest.raises(ValidationError):
        service.search("x", limit=0)


def test_stats_reports_mode_and_backend(service: MemoryService) -> None:
    service.store("one")
    assert service.stats() == {
        "mode": "memory",
        "total_memories": 1,
        "backend": "memory",
    }


# ---- backend selection ----


def test_build_defaults_to_json_file_fallback(make_settings, tmp_path) -> None:
    svc = build_memory_service(make_settings(memory_backend="json_file"))
    assert svc.mode == "fallback"
    assert svc.backend == "json_file"
    svc.store("persisted")
    assert (tmp_path / "memories.json").exists()


def test_build_memory_backend(make_settings) -> None:
    svc = build_memory_service(make_settings(memory_backend="memory"))
    assert (svc.mode, svc.backend) == ("memory", "memory")


def test_build_uses_upstream_when_healthy(make_settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/health"
        return httpx.Response(200, json={"status": "healthy"})

    settings = make_settings(memory_service_url="http://upstream:8000")
    svc = build_memory_service(settings, transport=httpx.MockTransport(handler))
    assert (svc.mode, svc.backend) == ("mcp_service", "mcp_service")
    svc.close()


def test_build_falls_back_when_upstream_down(make_settings, caplog) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    settings = make_settings(
        memory_service_url="http://upstream:8000", memory_backend="json_file"
    )
    svc = build_memory_service(settings, transport=httpx.MockTransport(handler))
    assert svc.mode == "fallback"
    assert "using fallback mode" in caplog.text
