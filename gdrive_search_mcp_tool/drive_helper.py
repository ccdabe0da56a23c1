#!/usr/bin/env python
"""
Helper functions for Google Drive MCP tools
"""

import base64
import io
import logging
from typing import Optional, Dict, Any

from googleapiclient.http import MediaIoBaseUpload

from . import config
from .drive_context import DriveContext, is_rate_limit_error, is_retryable_error, make_cache_key
from .errors import format_google_api_error
from .search_helper import DriveSearcher

# Configure logging
logger = logging.getLogger('gdrive_helper')

SHARE_ROLES = ('reader', 'writer', 'commenter', 'owner')


def _copy_search_result(result: Dict[str, Any]) -> Dict[str, Any]:
    """Copy a cached search result so callers cannot change the cached lists."""
    return {
        **result,
        "files": [dict(f) for f in result["files"]],
        "results": list(result["results"]),
    }


class GoogleDriveHelper:
    """Helper class for Google Drive operations

    Every method returns a dict holding its payload and an ``error`` key
    that is None on success and a readable message on failure.
    """

    def __init__(self, context: DriveContext):
        """Initialize Google Drive helper.

        Args:
            context: Shared Drive service, cache and retry settings
        """
        self.context = context
        self.searcher = DriveSearcher(context)

    async def _execute(self, build_request, retry_on=is_retryable_error):
        service = await self.context.get_service()
        return await self.context.execute(build_request(service), retry_on=retry_on)

    async def _execute_once(self, build_request):
        # Creating calls are only retried when the request was rejected outright
        return await self._execute(build_request, retry_on=is_rate_limit_error)

    async def ensure_authenticated(self) -> Dict[str, Any]:
        """Ensure Google Drive API authentication is valid and ready to use.

        Returns:
            Dict with authentication status and any error message
        """
        try:
            logger.info("Checking Google Drive API authentication status")
            await self._execute(lambda s: s.files().list(pageSize=1, fields='files(id)'))
            return {
                "authenticated": True,
                "error": None,
                "message": "Successfully authenticated with Google Drive API"
            }
        except Exception as e:
            error_msg = format_google_api_error(e)
            logger.error(f"Authentication check failed: {error_msg}")
            return {
                "authenticated": False,
                "error": error_msg,
                "message": "Failed to authenticate with Google Drive API"
            }

    async def search_files(self, query: str, max_results: int = config.DEFAULT_MAX_RESULTS,
                           file_type: Optional[str] = None, order_by: Optional[str] = None,
                           include_trashed: bool = False) -> Dict[str, Any]:
        """Search files by name, tolerating case, accent and separator differences.

        Args:
            query: Free-text query
            max_results: Maximum number of ranked files to return
            file_type: Restrict to this MIME type (optional)
            order_by: Drive ordering for each underlying request (optional)
            include_trashed: Whether trashed files may match

        Returns:
            Dict containing ranked files, their count, the ranked results and any error
        """
        cache_key = make_cache_key(
            'search', query=query, max_results=max_results, file_type=file_type,
            order_by=order_by, include_trashed=include_trashed)
        cached = self.context.cache.get(cache_key)
        if cached is not None:
            logger.debug("Returning cached search result")
            return _copy_search_result(cached)

        try:
            results = await self.searcher.search(
                query,
                max_results=max_results,
                file_type=file_type,
                order_by=order_by,
                include_trashed=include_trashed,
            )
        except Exception as e:
            logger.error(f"Error searching files: {e}")
            return {
                "files": [],
                "total_results": 0,
                "results": [],
                "error": f"Error searching files: {format_google_api_error(e)}"
            }

        result = {
            "files": [r.to_dict() for r in results],
            "total_results": len(results),
            "results": results,
            "error": None
        }
        self.context.cache.set(cache_key, result, ttl=config.SEARCH_CACHE_TTL)
        return _copy_search_result(result)

    async def list_files(self, page_size: int = 20, page_token: Optional[str] = None,
                         order_by: Optional[str] = None, q: Optional[str] = None,
                         drive_id: Optional[str] = None,
                         include_items_from_all_drives: bool = False) -> Dict[str, Any]:
        """List files in Google Drive.

        Args:
            page_size: Number of files to return
            page_token: Token for the next page (optional)
            order_by: Ordering such as 'name' or 'modifiedTime desc' (optional)
            q: Raw Google Drive query (optional)
            drive_id: Shared drive to list (optional)
            include_items_from_all_drives: Whether to include shared drive items

        Returns:
            Dict containing files, the next page token and any error
        """
        params = {
            'pageSize': page_size,
            'orderBy': order_by or 'modifiedTime desc',
            'fields': config.LIST_FIELDS,
            'includeItemsFromAllDrives': include_items_from_all_drives or bool(drive_id),
            'supportsAllDrives': True,
        }
        if page_token:
            params['pageToken'] = page_token
        if q:
            params['q'] = q
        if drive_id:
            params['driveId'] = drive_id
            params['corpora'] = 'drive'

        try:
            response = await self._execute(lambda s: s.files().list(**params))
            files = response.get('files') or []
            logger.info(f"Listed {len(files)} files")
            return {
                "files": files,
                "next_page_token": response.get('nextPageToken'),
                "total_results": len(files),
                "error": None
            }
        except Exception as e:
            logger.error(f"Error listing files: {e}")
            return {
                "files": [],
                "next_page_token": None,
                "total_results": 0,
                "error": f"Error listing files: {format_google_api_error(e)}"
            }

    async def get_file(self, file_id: str, include_content: bool = False,
                       include_permissions: bool = False) -> Dict[str, Any]:
        """Get metadata of a file, and its content for text files.

        Args:
            file_id: ID of the file
            include_content: Download the content when the file is a text type
            include_permissions: Include the permission list in the metadata

        Returns:
            Dict containing file metadata, content (or None) and any error
        """
        fields = config.FILE_FIELDS + (',permissions' if include_permissions else '')
        try:
            metadata = await self._execute(
                lambda s: s.files().get(fileId=file_id, fields=fields, supportsAllDrives=True))
        except Exception as e:
            logger.error(f"Error getting file: {e}")
            return {
                "file": None,
                "content": None,
                "error": f"Error getting file: {format_google_api_error(e)}"
            }

        content = None
        if include_content and 'text' in (metadata.get('mimeType') or ''):
            try:
                raw = await self._execute(
                    lambda s: s.files().get_media(fileId=file_id, supportsAllDrives=True))
                content = raw.decode('utf-8', errors='replace') if isinstance(raw, bytes) else raw
            except Exception as e:
                logger.warning(f"Failed to get file content for {file_id}: {e}")

        return {
            "file": metadata,
            "content": content,
            "error": None
        }

    async def get_file_content(self, file_id: str, mime_type: Optional[str] = None,
                               encoding: Optional[str] = None) -> Dict[str, Any]:
        """Get file content, exporting Google Workspace files when a MIME type is given.

        Args:
            file_id: ID of the file
            mime_type: Export MIME type, e.g. 'text/plain' (optional)
            encoding: Text encoding used to decode the content (default utf-8)

        Returns:
            Dict containing content, MIME type, encoding and any error. Content
            that cannot be decoded is returned base64 encoded with encoding 'base64'.
        """
        encoding = encoding or 'utf-8'
        try:
            if mime_type:
                raw = await self._execute(lambda s: s.files().export(fileId=file_id, mimeType=mime_type))
            else:
                raw = await self._execute(
                    lambda s: s.files().get_media(fileId=file_id, supportsAllDrives=True))
        except Exception as e:
            logger.error(f"Error getting file content: {e}")
            return {
                "content": None,
                "mime_type": None,
                "encoding": None,
                "error": f"Error getting file content: {format_google_api_error(e)}"
            }

        if isinstance(raw, bytes):
            try:
                raw = raw.decode(encoding)
            except (UnicodeDecodeError, LookupError):
                raw = base64.b64encode(raw).decode('ascii')
                encoding = 'base64'

        return {
            "content": raw,
            "mime_type": mime_type or 'raw',
            "encoding": encoding,
            "error": None
        }

    async def create_file(self, name: str, mime_type: str, content: str,
                          parent_id: Optional[str] = None,
                          description: Optional[str] = None) -> Dict[str, Any]:
        """Create a new file from text content.

        Args:
            name: File name
            mime_type: MIME type of the content
            content: File content
            parent_id: ID of parent folder (optional)
            description: File description (optional)

        Returns:
            Dict containing file metadata and any error
        """
        file_metadata = {'name': name}
        if description:
            file_metadata['description'] = description
        if parent_id:
            file_metadata['parents'] = [parent_id]

        try:
            media = MediaIoBaseUpload(io.BytesIO(content.encode('utf-8')), mimetype=mime_type)
            file = await self._execute_once(lambda s: s.files().create(
                body=file_metadata,
                media_body=media,
                fields='id,name,mimeType,webViewLink,size',
                supportsAllDrives=True
            ))
            logger.info(f"File created: {file.get('name')} (ID: {file.get('id')})")
            return {
                "file": file,
                "error": None
            }
        except Exception as e:
            logger.error(f"Error creating file: {e}")
            return {
                "file": None,
                "error": f"Error creating file: {format_google_api_error(e)}"
            }

    async def update_file(self, file_id: str, name: Optional[str] = None,
                          description: Optional[str] = None,
                          content: Optional[str] = None) -> Dict[str, Any]:
        """Update the name, description or content of a file.

        Args:
            file_id: ID of the file to update
            name: New name (optional)
            description: New description (optional)
            content: New text content (optional)

        Returns:
            Dict containing updated file metadata and any error
        """
        file_metadata = {}
        if name:
            file_metadata['name'] = name
        if description:
            file_metadata['description'] = description

        params = {
            'fileId': file_id,
            'body': file_metadata,
            'fields': 'id,name,mimeType,webViewLink,size,modifiedTime',
            'supportsAllDrives': True,
        }
        if content:
            params['media_body'] = MediaIoBaseUpload(io.BytesIO(content.encode('utf-8')),
                                                     mimetype='text/plain')

        try:
            updated_file = await self._execute(lambda s: s.files().update(**params))
            logger.info(f"File updated: {updated_file.get('name')} (ID: {updated_file.get('id')})")
            return {
                "file": updated_file,
                "error": None
            }
        except Exception as e:
            logger.error(f"Error updating file: {e}")
            return {
                "file": None,
                "error": f"Error updating file: {format_google_api_error(e)}"
            }

    async def delete_file(self, file_id: str, permanent: bool = False) -> Dict[str, Any]:
        """Move a file to the trash, or delete it permanently.

        Args:
            file_id: ID of the file to delete
            permanent: Skip the trash

        Returns:
            Dict indicating success or failure
        """
        try:
            if permanent:
                await self._execute(lambda s: s.files().delete(fileId=file_id, supportsAllDrives=True))
                message = "File permanently deleted"
            else:
                await self._execute(lambda s: s.files().update(
                    fileId=file_id, body={'trashed': True}, supportsAllDrives=True))
                message = "File moved to trash"

            logger.info(f"{message} (ID: {file_id})")
            return {
                "success": True,
                "message": message,
                "error": None
            }
        except Exception as e:
            logger.error(f"Error deleting file: {e}")
            return {
                "success": False,
                "message": None,
                "error": f"Error deleting file: {format_google_api_error(e)}"
            }

    async def copy_file(self, file_id: str, name: Optional[str] = None,
                        parent_id: Optional[str] = None) -> Dict[str, Any]:
        """Copy a file, optionally renaming it or placing it in another folder.

        Returns:
            Dict containing the copy's metadata and any error
        """
        body = {}
        if name:
            body['name'] = name
        if parent_id:
            body['parents'] = [parent_id]

        try:
            copied = await self._execute_once(lambda s: s.files().copy(
                fileId=file_id, body=body, fields='id,name,mimeType,webViewLink,size',
                supportsAllDrives=True))
            logger.info(f"File copied: {copied.get('name')} (ID: {copied.get('id')})")
            return {
                "file": copied,
                "error": None
            }
        except Exception as e:
            logger.error(f"Error copying file: {e}")
            return {
                "file": None,
                "error": f"Error copying file: {format_google_api_error(e)}"
            }

    async def move_file(self, file_id: str, parent_id: str, remove_from_parents: bool = True) -> Dict[str, Any]:
        """Move a file to a different folder.

        Args:
            file_id: ID of the file to move
            parent_id: ID of the destination folder
            remove_from_parents: Whether to remove existing parents (default True)

        Returns:
            Dict containing updated file metadata and any error
        """
        try:
            # Get current parents
            file = await self._execute(
                lambda s: s.files().get(fileId=file_id, fields='parents', supportsAllDrives=True))
            previous_parents = [p for p in file.get('parents', []) if p != parent_id]

            params = {
                'fileId': file_id,
                'addParents': parent_id,
                'fields': 'id,name,parents,webViewLink',
                'supportsAllDrives': True,
            }
            if remove_from_parents and previous_parents:
                params['removeParents'] = ",".join(previous_parents)

            updated_file = await self._execute(lambda s: s.files().update(**params))
            logger.info(f"File moved: {updated_file.get('name')} (ID: {updated_file.get('id')})")
            return {
                "file": updated_file,
                "error": None
            }
        except Exception as e:
            logger.error(f"Error moving file: {e}")
            return {
                "file": None,
                "error": f"Error moving file: {format_google_api_error(e)}"
            }

    async def create_folder(self, name: str, parent_id: Optional[str] = None,
                            description: Optional[str] = None) -> Dict[str, Any]:
        """Create a new folder in Google Drive.

        Args:
            name: Folder name
            parent_id: ID of parent folder (optional)
            description: Folder description (optional)

        Returns:
            Dict containing folder metadata and any error
        """
        file_metadata = {
            'name': name,
            'mimeType': config.MIME_TYPES['folder']
        }
        if description:
            file_metadata['description'] = description
        if parent_id:
            file_metadata['parents'] = [parent_id]

        try:
            folder = await self._execute_once(lambda s: s.files().create(
                body=file_metadata, fields='id,name,mimeType,webViewLink', supportsAllDrives=True))
            logger.info(f"Folder created: {folder.get('name')} (ID: {folder.get('id')})")
            return {
                "folder": folder,
                "error": None
            }
        except Exception as e:
            logger.error(f"Error creating folder: {e}")
            return {
                "folder": None,
                "error": f"Error creating folder: {format_google_api_error(e)}"
            }

    async def get_file_permissions(self, file_id: str) -> Dict[str, Any]:
        """List the permissions of a file."""
        try:
            response = await self._execute(lambda s: s.permissions().list(
                fileId=file_id, fields=config.PERMISSION_FIELDS, supportsAllDrives=True))
            permissions = response.get('permissions') or []
            return {
                "permissions": permissions,
                "total_results": len(permissions),
                "error": None
            }
        except Exception as e:
            logger.error(f"Error getting file permissions: {e}")
            return {
                "permissions": [],
                "total_results": 0,
                "error": f"Error getting file permissions: {format_google_api_error(e)}"
            }

    async def share_file(self, file_id: str, email: str, role: str = 'reader',
                         message: Optional[str] = None) -> Dict[str, Any]:
        """Share a file with another user.

        Args:
            file_id: ID of the file to share
            email: Email address of the user to share with
            role: Permission role ('reader', 'writer', 'commenter', 'owner')
            message: Text for the notification email (optional)

        Returns:
            Dict containing permission data and any error
        """
        if role not in SHARE_ROLES:
            return {
                "permission": None,
                "error": f"Invalid role '{role}', expected one of: {', '.join(SHARE_ROLES)}"
            }

        permission = {
            'type': 'user',
            'role': role,
            'emailAddress': email
        }
        params = {
            'fileId': file_id,
            'body': permission,
            'fields': 'id,emailAddress,role',
            'supportsAllDrives': True,
        }
        if message:
            params['emailMessage'] = message
        if role == 'owner':
            params['transferOwnership'] = True

        try:
            created_permission = await self._execute_once(lambda s: s.permissions().create(**params))
            logger.info(f"File shared: {file_id} with {email}")
            return {
                "permission": created_permission,
                "error": None
            }
        except Exception as e:
            logger.error(f"Error sharing file: {e}")
            return {
                "permission": None,
                "error": f"Error sharing file: {format_google_api_error(e)}"
            }

    async def get_drive_info(self, drive_id: Optional[str] = None) -> Dict[str, Any]:
        """Get information about a shared drive, or about "My Drive" when no ID is given."""
        try:
            if drive_id and drive_id != 'root':
                info = await self._execute(
                    lambda s: s.drives().get(driveId=drive_id, fields=config.DRIVE_FIELDS))
            else:
                info = await self._execute(lambda s: s.about().get(fields='user,storageQuota'))
            return {
                "drive": info,
                "error": None
            }
        except Exception as e:
            logger.error(f"Error getting drive info: {e}")
            return {
                "drive": None,
                "error": f"Error getting drive info: {format_google_api_error(e)}"
            }

    async def list_shared_drives(self, page_size: int = 20, page_token: Optional[str] = None) -> Dict[str, Any]:
        """List the shared drives the user can access."""
        params = {
            'pageSize': page_size,
            'fields': f'drives({config.DRIVE_FIELDS}),nextPageToken',
        }
        if page_token:
            params['pageToken'] = page_token

        try:
            response = await self._execute(lambda s: s.drives().list(**params))
            drives = response.get('drives') or []
            return {
                "drives": drives,
                "next_page_token": response.get('nextPageToken'),
                "total_results": len(drives),
                "error": None
            }
        except Exception as e:
            logger.error(f"Error listing shared drives: {e}")
            return {
                "drives": [],
                "next_page_token": None,
                "total_results": 0,
                "error": f"Error listing shared drives: {format_google_api_error(e)}"
            }

    async def get_file_revisions(self, file_id: str, max_results: int = 10) -> Dict[str, Any]:
        """Get the revision history of a file."""
        try:
            response = await self._execute(lambda s: s.revisions().list(
                fileId=file_id, fields=config.REVISION_FIELDS, pageSize=max_results))
            revisions = response.get('revisions') or []
            return {
                "revisions": revisions,
                "total_results": len(revisions),
                "error": None
            }
        except Exception as e:
            logger.error(f"Error getting file revisions: {e}")
            return {
                "revisions": [],
                "total_results": 0,
                "error": f"Error getting file revisions: {format_google_api_error(e)}"
            }
