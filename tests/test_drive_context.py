from __future__ import annotations

import asyncio

import pytest

from conftest import FakeDriveService, make_http_error
from gdrive_search_mcp_tool import drive_context as drive_context_module
from gdrive_search_mcp_tool.drive_context import (
    DriveContext,
    TTLCache,
    is_rate_limit_error,
    is_retryable_error,
    make_cache_key,
    retry_with_backoff,
)
from gdrive_search_mcp_tool.errors import DriveAuthError, format_google_api_error


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_ttl_cache_expires_entries() -> None:
    clock = FakeClock()
    cache = TTLCache(default_ttl=10, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2, ttl=60)

    clock.now += 9
    assert cache.get("a") == 1

    clock.now += 1
    assert cache.get("a") is None
    assert cache.get("b") == 2
    assert len(cache) == 1

    cache.clear()
    assert cache.get("b") is None


def test_ttl_cache_drops_expired_entries_on_write() -> None:
    clock = FakeClock()
    cache = TTLCache(default_ttl=60, clock=clock)

    for i in range(1000):
        cache.set(f"search:{i}", i)
        clock.now += 120

    assert len(cache) == 1
    cache.set("fresh", "value")
    assert len(cache) == 1
    assert cache.get("fresh") == "value"


def test_make_cache_key_ignores_argument_order() -> None:
    assert make_cache_key("search", a=1, b=None) == make_cache_key("search", b=None, a=1)
    assert make_cache_key("search", a=1) != make_cache_key("search", a=2)


@pytest.mark.parametrize("status", [403, 429, 500, 502, 503, 504])
def test_transient_statuses_are_retryable(status: int) -> None:
    assert is_retryable_error(make_http_error(status, "Backend Error"))


def test_other_errors_are_not_retryable() -> None:
    assert not is_retryable_error(make_http_error(404, "File not found"))
    assert not is_retryable_error(ValueError("bad input"))
    assert is_retryable_error(RuntimeError("User Rate Limit Exceeded"))
    assert is_retryable_error(RuntimeError("Quota exceeded for quota metric"))


def test_rate_limit_errors_exclude_server_failures() -> None:
    assert is_rate_limit_error(make_http_error(429, "Too Many Requests"))
    assert is_rate_limit_error(make_http_error(403, "User Rate Limit Exceeded"))
    assert not is_rate_limit_error(make_http_error(503, "Backend Error"))
    assert not is_rate_limit_error(make_http_error(500, "Internal Error"))


def test_retry_with_backoff_uses_given_predicate() -> None:
    attempts = []

    async def operation():
        attempts.append(1)
        raise make_http_error(503, "Backend Error")

    with pytest.raises(Exception):
        asyncio.run(retry_with_backoff(operation, max_retries=3, initial_delay=0, jitter=0,
                                       retry_on=is_rate_limit_error))

    assert len(attempts) == 1


def test_retry_with_backoff_recovers(monkeypatch: pytest.MonkeyPatch) -> None:
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(drive_context_module.asyncio, "sleep", fake_sleep)
    attempts = []

    async def operation():
        attempts.append(1)
        if len(attempts) < 3:
            raise make_http_error(429, "Rate Limit Exceeded")
        return "ok"

    result = asyncio.run(retry_with_backoff(operation, max_retries=3, initial_delay=1.0, jitter=0))

    assert result == "ok"
    assert len(attempts) == 3
    assert delays == [1.0, 2.0]


def test_retry_with_backoff_gives_up_after_max_retries() -> None:
    attempts = []
    error = make_http_error(503, "Backend Error")

    async def operation():
        attempts.append(1)
        raise error

    with pytest.raises(type(error)) as excinfo:
        asyncio.run(retry_with_backoff(operation, max_retries=3, initial_delay=0, jitter=0))

    assert excinfo.value is error
    assert len(attempts) == 3


def test_retry_with_backoff_does_not_retry_permanent_errors() -> None:
    attempts = []

    async def operation():
        attempts.append(1)
        raise make_http_error(404, "File not found")

    with pytest.raises(Exception):
        asyncio.run(retry_with_backoff(operation, max_retries=3, initial_delay=0, jitter=0))

    assert len(attempts) == 1


def test_format_google_api_error() -> None:
    assert format_google_api_error(make_http_error(404, "File not found")) == (
        "Google API Error: File not found (Code: 404)")
    assert format_google_api_error(RuntimeError("boom")) == "Google Drive Error: boom"


def test_context_initializes_once_for_concurrent_callers() -> None:
    loads = []
    service = FakeDriveService()

    def loader():
        loads.append(1)
        return "creds"

    context = DriveContext(credentials_loader=loader, service_builder=lambda creds: service)

    async def run():
        return await asyncio.gather(*(context.get_service() for _ in range(3)))

    assert asyncio.run(run()) == [service, service, service]
    assert len(loads) == 1
    assert context.is_initialized


def test_context_retries_credential_loading() -> None:
    loads = []

    def loader():
        loads.append(1)
        if len(loads) < 3:
            raise OSError("token file busy")
        return "creds"

    context = DriveContext(
        credentials_loader=loader,
        service_builder=lambda creds: FakeDriveService(),
        auth_max_retries=3,
        auth_retry_delay=0,
    )

    assert isinstance(asyncio.run(context.get_service()), FakeDriveService)
    assert len(loads) == 3


def test_context_failed_initialization_can_be_retried() -> None:
    loads = []

    def loader():
        loads.append(1)
        raise DriveAuthError("no credentials")

    context = DriveContext(credentials_loader=loader, auth_max_retries=2, auth_retry_delay=0)

    with pytest.raises(DriveAuthError):
        asyncio.run(context.get_service())
    assert len(loads) == 2

    with pytest.raises(DriveAuthError):
        asyncio.run(context.get_service())
    assert len(loads) == 4
    assert not context.is_initialized


def test_context_execute_runs_request(fake_service, drive_context) -> None:
    fake_service.handlers[("files", "get")] = {"id": "f1"}

    async def run():
        service = await drive_context.get_service()
        return await drive_context.execute(service.files().get(fileId="f1"))

    assert asyncio.run(run()) == {"id": "f1"}
    assert fake_service.calls == [("files", "get", {"fileId": "f1"})]
