#!/usr/bin/env python
"""
Google Drive Search MCP Server - Provides fuzzy Google Drive file search and file management via MCP protocol.
"""

import logging
import logging.config
from typing import Optional, Dict, Any, List, Literal

from pydantic import BaseModel, Field
from mcp.server.fastmcp import FastMCP
from mcp.server import Server
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.routing import Mount, Route
from mcp.server.sse import SseServerTransport
import uvicorn

from .config import (
    DEFAULT_MAX_RESULTS,
    DRIVE_MCP_PORT,
    LOGGING_CONFIG,
    MCP_HOST,
)
from .drive_context import DriveContext
from .drive_helper import GoogleDriveHelper
from .search_helper import format_search_results

logger = logging.getLogger('gdrive_search_server')

# -------------------------------------------------------------------------
# Request / Response Models
# -------------------------------------------------------------------------

class SearchFilesRequest(BaseModel):
    query: str = Field(min_length=1, description="Search query for files in Google Drive")
    max_results: int = Field(default=DEFAULT_MAX_RESULTS, ge=1, description="Maximum number of results to return")
    file_type: Optional[str] = Field(
        default=None, description="Filter by MIME type (e.g., 'application/vnd.google-apps.spreadsheet')")
    order_by: Optional[str] = Field(default=None, description="Order by field (e.g., 'name', 'modifiedTime desc')")
    include_trashed: bool = Field(default=False, description="Include trashed files")

class SearchFilesResponse(BaseModel):
    files: List[Dict[str, Any]] = []
    total_results: int = 0
    report: Optional[str] = None
    error: Optional[str] = None

class ListFilesRequest(BaseModel):
    page_size: int = Field(default=20, ge=1, le=1000)
    page_token: Optional[str] = None
    order_by: Optional[str] = None
    q: Optional[str] = Field(default=None, description="Raw Google Drive query string")
    drive_id: Optional[str] = None
    include_items_from_all_drives: bool = False

class ListFilesResponse(BaseModel):
    files: List[Dict[str, Any]] = []
    next_page_token: Optional[str] = None
    total_results: int = 0
    error: Optional[str] = None

class GetFileRequest(BaseModel):
    file_id: str
    include_content: bool = False
    include_permissions: bool = False

class GetFileResponse(BaseModel):
    file: Optional[Dict[str, Any]] = None
    content: Optional[str] = None
    error: Optional[str] = None

class GetFileContentRequest(BaseModel):
    file_id: str
    mime_type: Optional[str] = Field(default=None, description="Export MIME type (e.g., 'text/plain')")
    encoding: Optional[str] = Field(default=None, description="Text encoding (e.g., 'utf-8', 'latin1')")

class GetFileContentResponse(BaseModel):
    content: Optional[str] = None
    mime_type: Optional[str] = None
    encoding: Optional[str] = None
    error: Optional[str] = None

class CreateFileRequest(BaseModel):
    name: str
    mime_type: str
    content: str
    parent_id: Optional[str] = None
    description: Optional[str] = None

class UpdateFileRequest(BaseModel):
    file_id: str
    name: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None

class CopyFileRequest(BaseModel):
    file_id: str
    name: Optional[str] = None
    parent_id: Optional[str] = None

class MoveFileRequest(BaseModel):
    file_id: str
    parent_id: str
    remove_from_parents: bool = True

class FileResponse(BaseModel):
    file: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

class DeleteFileRequest(BaseModel):
    file_id: str
    permanent: bool = False

class DeleteFileResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None

class CreateFolderRequest(BaseModel):
    name: str
    parent_id: Optional[str] = None
    description: Optional[str] = None

class FolderResponse(BaseModel):
    folder: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

class FilePermissionsRequest(BaseModel):
    file_id: str

class FilePermissionsResponse(BaseModel):
    permissions: List[Dict[str, Any]] = []
    total_results: int = 0
    error: Optional[str] = None

class ShareFileRequest(BaseModel):
    file_id: str
    email: str
    role: Literal['reader', 'writer', 'commenter', 'owner']
    message: Optional[str] = None

class ShareFileResponse(BaseModel):
    permission: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

class DriveInfoRequest(BaseModel):
    drive_id: Optional[str] = Field(default=None, description="ID of a shared drive (defaults to 'My Drive')")

class DriveInfoResponse(BaseModel):
    drive: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

class ListSharedDrivesRequest(BaseModel):
    page_size: int = Field(default=20, ge=1, le=100)
    page_token: Optional[str] = None

class ListSharedDrivesResponse(BaseModel):
    drives: List[Dict[str, Any]] = []
    next_page_token: Optional[str] = None
    total_results: int = 0
    error: Optional[str] = None

class FileRevisionsRequest(BaseModel):
    file_id: str
    max_results: int = Field(default=10, ge=1, le=1000)

class FileRevisionsResponse(BaseModel):
    revisions: List[Dict[str, Any]] = []
    total_results: int = 0
    error: Optional[str] = None

class AuthenticationRequest(BaseModel):
    pass  # No parameters needed

class AuthenticationResponse(BaseModel):
    authenticated: bool
    message: str
    error: Optional[str] = None


class DriveTools:
    """MCP tool implementations backed by a ``GoogleDriveHelper``.

    Each tool takes a request model and returns a response model whose
    ``error`` field is set instead of raising.
    """

    def __init__(self, helper: GoogleDriveHelper):
        self.helper = helper

    # ---------------------------------------------------------------------
    # Search Tool
    # ---------------------------------------------------------------------

    async def search_files(self, request: SearchFilesRequest) -> SearchFilesResponse:
        """
        Search for files in Google Drive by name.

        The query does not need to match file names exactly: case, accents
        (including Vietnamese), separators such as spaces, dashes and
        underscores, and partial words are all tolerated. Results are ranked
        by relevance to the query, most recently modified first on ties.

        Args:
            request: An object containing:
                - query: Free-text search query
                - max_results: Maximum number of results (default: 20)
                - file_type: MIME type filter (optional)
                - order_by: Drive ordering for candidate retrieval (optional)
                - include_trashed: Whether to include trashed files (default: False)

        Returns:
            An object containing the ranked files, their count, a readable report and any error messages.
        """
        try:
            logger.debug(f"Searching for: \"{request.query}\"")

            result = await self.helper.search_files(
                query=request.query,
                max_results=request.max_results,
                file_type=request.file_type,
                order_by=request.order_by,
                include_trashed=request.include_trashed
            )

            if result["error"]:
                logger.error(result["error"])
                return SearchFilesResponse(error=result["error"])

            return SearchFilesResponse(
                files=result["files"],
                total_results=result["total_results"],
                report=format_search_results(result["results"], request.query),
                error=None
            )

        except Exception as e:
            error_msg = f"Error in search_files: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return SearchFilesResponse(error=error_msg)

    # ---------------------------------------------------------------------
    # File Tools
    # ---------------------------------------------------------------------

    async def list_files(self, request: ListFilesRequest) -> ListFilesResponse:
        """
        List files in Google Drive, optionally filtered with a raw Drive query.

        Returns:
            An object containing the files, the next page token and any error messages.
        """
        try:
            result = await self.helper.list_files(
                page_size=request.page_size,
                page_token=request.page_token,
                order_by=request.order_by,
                q=request.q,
                drive_id=request.drive_id,
                include_items_from_all_drives=request.include_items_from_all_drives
            )
            return ListFilesResponse(**result)
        except Exception as e:
            error_msg = f"Error in list_files: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return ListFilesResponse(error=error_msg)

    async def get_file(self, request: GetFileRequest) -> GetFileResponse:
        """
        Get file metadata, and optionally the content of text files and the permission list.

        Returns:
            An object containing the file metadata, content and any error messages.
        """
        try:
            result = await self.helper.get_file(
                file_id=request.file_id,
                include_content=request.include_content,
                include_permissions=request.include_permissions
            )
            return GetFileResponse(**result)
        except Exception as e:
            error_msg = f"Error in get_file: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return GetFileResponse(error=error_msg)

    async def get_file_content(self, request: GetFileContentRequest) -> GetFileContentResponse:
        """
        Get file content. Google Docs, Sheets and Slides must be exported by passing mime_type.

        Returns:
            An object containing the content, its MIME type and encoding, and any error messages.
        """
        try:
            result = await self.helper.get_file_content(
                file_id=request.file_id,
                mime_type=request.mime_type,
                encoding=request.encoding
            )
            return GetFileContentResponse(**result)
        except Exception as e:
            error_msg = f"Error in get_file_content: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return GetFileContentResponse(error=error_msg)

    async def create_file(self, request: CreateFileRequest) -> FileResponse:
        """
        Create a new file in Google Drive from text content.

        Returns:
            An object containing the created file metadata and any error messages.
        """
        try:
            logger.info(f"Creating file: {request.name}")
            result = await self.helper.create_file(
                name=request.name,
                mime_type=request.mime_type,
                content=request.content,
                parent_id=request.parent_id,
                description=request.description
            )
            return FileResponse(**result)
        except Exception as e:
            error_msg = f"Error in create_file: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return FileResponse(error=error_msg)

    async def update_file(self, request: UpdateFileRequest) -> FileResponse:
        """
        Update the name, description or content of an existing file.

        Returns:
            An object containing the updated file metadata and any error messages.
        """
        try:
            logger.info(f"Updating file: {request.file_id}")
            result = await self.helper.update_file(
                file_id=request.file_id,
                name=request.name,
                description=request.description,
                content=request.content
            )
            return FileResponse(**result)
        except Exception as e:
            error_msg = f"Error in update_file: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return FileResponse(error=error_msg)

    async def delete_file(self, request: DeleteFileRequest) -> DeleteFileResponse:
        """
        Delete a file. By default the file is moved to the trash; set permanent to skip the trash.

        Returns:
            An object indicating success or failure and any error messages.
        """
        try:
            logger.info(f"Deleting file: {request.file_id}")
            result = await self.helper.delete_file(
                file_id=request.file_id,
                permanent=request.permanent
            )
            return DeleteFileResponse(**result)
        except Exception as e:
            error_msg = f"Error in delete_file: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return DeleteFileResponse(success=False, error=error_msg)

    async def copy_file(self, request: CopyFileRequest) -> FileResponse:
        """
        Copy a file, optionally with a new name or into another folder.

        Returns:
            An object containing the copied file metadata and any error messages.
        """
        try:
            result = await self.helper.copy_file(
                file_id=request.file_id,
                name=request.name,
                parent_id=request.parent_id
            )
            return FileResponse(**result)
        except Exception as e:
            error_msg = f"Error in copy_file: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return FileResponse(error=error_msg)

    async def move_file(self, request: MoveFileRequest) -> FileResponse:
        """
        Move a file to a different folder.

        By default the file is removed from its previous parent folders.

        Returns:
            An object containing the moved file metadata and any error messages.
        """
        try:
            logger.info(f"Moving file {request.file_id} to folder {request.parent_id}")
            result = await self.helper.move_file(
                file_id=request.file_id,
                parent_id=request.parent_id,
                remove_from_parents=request.remove_from_parents
            )
            return FileResponse(**result)
        except Exception as e:
            error_msg = f"Error in move_file: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return FileResponse(error=error_msg)

    async def create_folder(self, request: CreateFolderRequest) -> FolderResponse:
        """
        Create a new folder in Google Drive.

        Returns:
            An object containing the folder metadata and any error messages.
        """
        try:
            logger.info(f"Creating folder: {request.name}")
            result = await self.helper.create_folder(
                name=request.name,
                parent_id=request.parent_id,
                description=request.description
            )
            return FolderResponse(**result)
        except Exception as e:
            error_msg = f"Error in create_folder: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return FolderResponse(error=error_msg)

    # ---------------------------------------------------------------------
    # Sharing Tools
    # ---------------------------------------------------------------------

    async def get_file_permissions(self, request: FilePermissionsRequest) -> FilePermissionsResponse:
        """
        Get the permissions of a file.

        Returns:
            An object containing the permission list and any error messages.
        """
        try:
            result = await self.helper.get_file_permissions(file_id=request.file_id)
            return FilePermissionsResponse(**result)
        except Exception as e:
            error_msg = f"Error in get_file_permissions: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return FilePermissionsResponse(error=error_msg)

    async def share_file(self, request: ShareFileRequest) -> ShareFileResponse:
        """
        Share a file with another user.

        Args:
            request: An object containing:
                - file_id: ID of the file to share
                - email: Email address of the user to share with
                - role: Permission role ('reader', 'writer', 'commenter', 'owner')
                - message: Text for the notification email (optional)

        Returns:
            An object containing the permission data and any error messages.
        """
        try:
            logger.info(f"Sharing file {request.file_id} with {request.email}")
            result = await self.helper.share_file(
                file_id=request.file_id,
                email=request.email,
                role=request.role,
                message=request.message
            )
            return ShareFileResponse(**result)
        except Exception as e:
            error_msg = f"Error in share_file: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return ShareFileResponse(error=error_msg)

    # ---------------------------------------------------------------------
    # Drive and Revision Tools
    # ---------------------------------------------------------------------

    async def get_drive_info(self, request: DriveInfoRequest) -> DriveInfoResponse:
        """
        Get information about a shared drive, or about "My Drive" when no drive_id is given.
        """
        try:
            result = await self.helper.get_drive_info(drive_id=request.drive_id)
            return DriveInfoResponse(**result)
        except Exception as e:
            error_msg = f"Error in get_drive_info: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return DriveInfoResponse(error=error_msg)

    async def list_shared_drives(self, request: ListSharedDrivesRequest) -> ListSharedDrivesResponse:
        """
        List all shared drives the account can access.
        """
        try:
            result = await self.helper.list_shared_drives(
                page_size=request.page_size,
                page_token=request.page_token
            )
            return ListSharedDrivesResponse(**result)
        except Exception as e:
            error_msg = f"Error in list_shared_drives: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return ListSharedDrivesResponse(error=error_msg)

    async def get_file_revisions(self, request: FileRevisionsRequest) -> FileRevisionsResponse:
        """
        Get the revision history of a file.
        """
        try:
            result = await self.helper.get_file_revisions(
                file_id=request.file_id,
                max_results=request.max_results
            )
            return FileRevisionsResponse(**result)
        except Exception as e:
            error_msg = f"Error in get_file_revisions: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return FileRevisionsResponse(error=error_msg)

    # ---------------------------------------------------------------------
    # Authentication Tool
    # ---------------------------------------------------------------------

    async def authenticate_drive(self, request: AuthenticationRequest) -> AuthenticationResponse:
        """
        Authenticate with Google Drive API and verify the connection.

        Credentials come from GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET/GOOGLE_REFRESH_TOKEN,
        GOOGLE_SERVICE_ACCOUNT_KEY, or a stored OAuth token. Without any of them a
        browser window is opened for the OAuth consent flow.

        Returns:
            An object containing authentication status and any error messages.
        """
        try:
            logger.info("Manual authentication requested")
            auth_result = await self.helper.ensure_authenticated()
            return AuthenticationResponse(**auth_result)
        except Exception as e:
            error_msg = f"Error in authenticate_drive: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return AuthenticationResponse(
                authenticated=False,
                message="Unexpected error during authentication",
                error=error_msg
            )

    def tool_functions(self):
        return [
            self.search_files,
            self.list_files,
            self.get_file,
            self.get_file_content,
            self.create_file,
            self.update_file,
            self.delete_file,
            self.copy_file,
            self.move_file,
            self.create_folder,
            self.get_file_permissions,
            self.share_file,
            self.get_drive_info,
            self.list_shared_drives,
            self.get_file_revisions,
            self.authenticate_drive,
        ]


# -------------------------------------------------------------------------
# Server Setup
# -------------------------------------------------------------------------

def create_mcp_server(helper: GoogleDriveHelper) -> FastMCP:
    """Create a FastMCP server exposing every Drive tool backed by ``helper``."""
    mcp = FastMCP("GoogleDriveSearchTools")
    for fn in DriveTools(helper).tool_functions():
        mcp.tool()(fn)
    return mcp


def create_starlette_app(mcp_server: Server, *, debug: bool = False) -> Starlette:
    """Create a Starlette app with SSE transport for the MCP server."""
    sse = SseServerTransport("/messages/")

    async def handle_sse(request: Request) -> None:
        async with sse.connect_sse(
            request.scope,
            request.receive,
            request._send,
        ) as (read_stream, write_stream):
            await mcp_server.run(
                read_stream,
                write_stream,
                mcp_server.create_initialization_options(),
            )

    return Starlette(
        debug=debug,
        routes=[
            Route("/sse", endpoint=handle_sse),
            Mount("/messages/", app=sse.handle_post_message),
        ],
    )


async def check_authentication(helper: GoogleDriveHelper) -> None:
    logger.info("Checking Google Drive API authentication before starting server")
    auth_result = await helper.ensure_authenticated()
    if auth_result["authenticated"]:
        logger.info(f"Authentication successful: {auth_result['message']}")
    else:
        logger.error(f"Authentication failed: {auth_result['message']}")
        logger.error(f"Error details: {auth_result['error']}")
        logger.error("The server will still start, but Drive-related operations may fail. "
                     "Use --skip-auth-check to bypass this check.")


def main():
    import argparse
    import asyncio

    logging.config.dictConfig(LOGGING_CONFIG)

    parser = argparse.ArgumentParser(description="Google Drive Search MCP Server")
    parser.add_argument("--transport", choices=["sse", "stdio"], default="sse", help="MCP transport")
    parser.add_argument("--port", type=int, default=DRIVE_MCP_PORT, help="Port for server")
    parser.add_argument("--host", type=str, default=MCP_HOST, help="Host for server")
    parser.add_argument("--skip-auth-check", action="store_true", help="Skip authentication check before starting server")

    args = parser.parse_args()

    helper = GoogleDriveHelper(DriveContext())
    mcp = create_mcp_server(helper)

    # Check authentication before starting the server
    if not args.skip_auth_check:
        asyncio.run(check_authentication(helper))

    if args.transport == "stdio":
        logger.info("Starting Google Drive Search MCP Server on stdio")
        mcp.run(transport="stdio")
        return

    logger.info(f"Starting Google Drive Search MCP Server on {args.host}:{args.port}")

    # Create Starlette app with SSE transport
    starlette_app = create_starlette_app(mcp._mcp_server, debug=True)

    # Run the server with uvicorn
    uvicorn.run(
        starlette_app,
        host=args.host,
        port=args.port,
    )


if __name__ == "__main__":
    main()
