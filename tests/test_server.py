from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from conftest import corpus_handler, make_http_error
from gdrive_search_mcp_tool.drive_helper import GoogleDriveHelper
from gdrive_search_mcp_tool.gdrive_search_mcp_server import (
    AuthenticationRequest,
    DeleteFileRequest,
    DriveTools,
    ListFilesRequest,
    SearchFilesRequest,
    ShareFileRequest,
    create_mcp_server,
)

TOOL_NAMES = {
    "search_files",
    "list_files",
    "get_file",
    "get_file_content",
    "create_file",
    "update_file",
    "delete_file",
    "copy_file",
    "move_file",
    "create_folder",
    "get_file_permissions",
    "share_file",
    "get_drive_info",
    "list_shared_drives",
    "get_file_revisions",
    "authenticate_drive",
}


@pytest.fixture()
def tools(drive_context) -> DriveTools:
    return DriveTools(GoogleDriveHelper(drive_context))


def test_server_registers_every_tool(drive_context) -> None:
    mcp = create_mcp_server(GoogleDriveHelper(drive_context))

    registered = asyncio.run(mcp.list_tools())

    assert {tool.name for tool in registered} == TOOL_NAMES


def test_search_files_tool_returns_report(fake_service, tools) -> None:
    fake_service.handlers[("files", "list")] = corpus_handler([
        {"id": "r1", "name": "Report", "mimeType": "application/pdf",
         "modifiedTime": "2024-01-01T00:00:00Z"},
    ])

    response = asyncio.run(tools.search_files(SearchFilesRequest(query="report")))

    assert response.error is None
    assert response.total_results == 1
    assert response.files[0]["id"] == "r1"
    assert response.report.startswith('Found 1 files for query: "report"')
    assert "**Report**" in response.report


def test_search_files_tool_surfaces_errors(fake_service, tools) -> None:
    fake_service.handlers[("files", "list")] = make_http_error(400, "Invalid Value")

    response = asyncio.run(tools.search_files(SearchFilesRequest(query="report")))

    assert response.files == []
    assert response.report is None
    assert response.error.startswith("Error searching files:")


def test_list_files_tool_passes_error_through(fake_service, tools) -> None:
    fake_service.handlers[("files", "list")] = make_http_error(404, "File not found")

    response = asyncio.run(tools.list_files(ListFilesRequest()))

    assert response.error == "Error listing files: Google API Error: File not found (Code: 404)"


def test_delete_file_tool(fake_service, tools) -> None:
    response = asyncio.run(tools.delete_file(DeleteFileRequest(file_id="f1")))

    assert response.success is True
    assert response.message == "File moved to trash"


def test_authenticate_drive_reports_failure(fake_service, tools) -> None:
    fake_service.handlers[("files", "list")] = make_http_error(401, "Invalid Credentials")

    response = asyncio.run(tools.authenticate_drive(AuthenticationRequest()))

    assert response.authenticated is False
    assert "Invalid Credentials" in response.error


@pytest.mark.parametrize("kwargs", [{"query": ""}, {"query": "x", "max_results": 0}])
def test_search_request_validation(kwargs) -> None:
    with pytest.raises(ValidationError):
        SearchFilesRequest(**kwargs)


def test_share_request_rejects_unknown_role() -> None:
    with pytest.raises(ValidationError):
        ShareFileRequest(file_id="f1", email="a@example.com", role="admin")
