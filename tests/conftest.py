from __future__ import annotations

import json
import re

import pytest
from googleapiclient.errors import HttpError

from gdrive_search_mcp_tool.drive_context import DriveContext, TTLCache


class FakeResp(dict):
    def __init__(self, status: int):
        super().__init__(status=str(status))
        self.status = status
        self.reason = "error"


def make_http_error(status: int, message: str) -> HttpError:
    content = json.dumps({"error": {"code": status, "message": message}}).encode("utf-8")
    return HttpError(FakeResp(status), content)


class FakeRequest:
    def __init__(self, service, resource, method, kwargs):
        self.service = service
        self.resource = resource
        self.method = method
        self.kwargs = kwargs

    def execute(self):
        self.service.calls.append((self.resource, self.method, self.kwargs))
        handler = self.service.handlers.get((self.resource, self.method))
        if handler is None:
            return {}
        result = handler(**self.kwargs) if callable(handler) else handler
        if isinstance(result, Exception):
            raise result
        return result


class FakeResource:
    def __init__(self, service, name):
        self._service = service
        self._name = name

    def __getattr__(self, method):
        if method.startswith("_"):
            raise AttributeError(method)

        def build_request(**kwargs):
            return FakeRequest(self._service, self._name, method, kwargs)

        return build_request


class FakeDriveService:
    """Stands in for a Drive v3 service; handlers are keyed by (resource, method)."""

    def __init__(self, handlers=None):
        self.handlers = dict(handlers or {})
        self.calls = []

    def files(self):
        return FakeResource(self, "files")

    def permissions(self):
        return FakeResource(self, "permissions")

    def drives(self):
        return FakeResource(self, "drives")

    def revisions(self):
        return FakeResource(self, "revisions")

    def about(self):
        return FakeResource(self, "about")

    def calls_to(self, resource, method):
        return [kwargs for r, m, kwargs in self.calls if (r, m) == (resource, method)]


_NAME_CONTAINS = re.compile(r'name contains "((?:[^"\\]|\\.)*)"')


def search_term(q: str) -> str:
    match = _NAME_CONTAINS.search(q)
    assert match, q
    return re.sub(r"\\(.)", r"\1", match.group(1))


def corpus_handler(files):
    """Answer files().list like Drive's case-insensitive ``name contains``."""

    def handler(q, pageSize, **kwargs):
        term = search_term(q).lower()
        matches = [f for f in files if term in f["name"].lower()]
        return {"files": matches[:pageSize]}

    return handler


@pytest.fixture()
def fake_service() -> FakeDriveService:
    return FakeDriveService()


@pytest.fixture()
def drive_context(fake_service: FakeDriveService) -> DriveContext:
    return DriveContext(
        service=fake_service,
        cache=TTLCache(),
        max_retries=3,
        initial_delay=0,
        jitter=0,
    )
