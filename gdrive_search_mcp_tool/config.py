#!/usr/bin/env python
"""
Configuration settings for the Google Drive search MCP tool
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Base directory
BASE_DIR = Path(__file__).parent

# Google Drive API settings
USER_SCOPES = [
    'https://www.googleapis.com/auth/drive',
]
SERVICE_ACCOUNT_SCOPES = [
    'https://www.googleapis.com/auth/drive.readonly',
    'https://www.googleapis.com/auth/drive.metadata.readonly',
    'https://www.googleapis.com/auth/drive.file',
]
TOKEN_PATH = Path(os.getenv("GOOGLE_TOKEN_PATH", str(BASE_DIR / 'token.json')))
CREDENTIALS_PATH = Path(os.getenv("GOOGLE_CREDENTIALS_PATH", str(BASE_DIR / 'credentials.json')))

# Credentials passed through the environment
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REFRESH_TOKEN = os.getenv("GOOGLE_REFRESH_TOKEN")
GOOGLE_SERVICE_ACCOUNT_KEY = os.getenv("GOOGLE_SERVICE_ACCOUNT_KEY")

# MCP Server settings
MCP_HOST = os.getenv("MCP_HOST", "127.0.0.1")
DRIVE_MCP_PORT = int(os.getenv("DRIVE_MCP_PORT", "3006"))

# Search settings
DEFAULT_MAX_RESULTS = int(os.getenv("DEFAULT_MAX_RESULTS", "20"))
SEARCH_CACHE_TTL = float(os.getenv("SEARCH_CACHE_TTL", "60"))
DEFAULT_CACHE_TTL = float(os.getenv("DEFAULT_CACHE_TTL", "300"))

# Retry settings for Drive API calls
API_MAX_RETRIES = int(os.getenv("API_MAX_RETRIES", "3"))
API_RETRY_INITIAL_DELAY = float(os.getenv("API_RETRY_INITIAL_DELAY", "1.0"))
API_RETRY_JITTER = float(os.getenv("API_RETRY_JITTER", "1.0"))

# Retry settings for building credentials
AUTH_MAX_RETRIES = int(os.getenv("AUTH_MAX_RETRIES", "3"))
AUTH_RETRY_DELAY = float(os.getenv("AUTH_RETRY_DELAY", "1.0"))

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# stdout is reserved for the stdio MCP transport
LOGGING_CONFIG = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
            'level': LOG_LEVEL,
            'stream': 'ext://sys.stderr'
        },
    },
    'loggers': {
        'gdrive_search_server': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False
        },
        'gdrive_helper': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False
        },
        'gdrive_search': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False
        }
    }
}

# File types and MIME types
MIME_TYPES = {
    'folder': 'application/vnd.google-apps.folder',
    'document': 'application/vnd.google-apps.document',
    'spreadsheet': 'application/vnd.google-apps.spreadsheet',
    'presentation': 'application/vnd.google-apps.presentation',
    'pdf': 'application/pdf',
    'text': 'text/plain',
    'csv': 'text/csv',
    'word': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'excel': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'powerpoint': 'application/vnd.openxmlformats-officedocument.presentationml.presentation',
    'image': 'image/jpeg'
}

# Fields requested from the Drive API
SEARCH_FIELDS = (
    'files(id,name,mimeType,modifiedTime,size,webViewLink,parents,description,owners,permissions),'
    'nextPageToken'
)
LIST_FIELDS = 'files(id,name,mimeType,modifiedTime,size,webViewLink,parents,description,owners),nextPageToken'
FILE_FIELDS = 'id,name,mimeType,modifiedTime,size,webViewLink,parents,description,owners,createdTime,lastModifyingUser'
DRIVE_FIELDS = 'id,name,capabilities,restrictions,createdTime'
REVISION_FIELDS = (
    'revisions(id,mimeType,modifiedTime,size,originalFilename,keepForever,published,publishedOutsideDomain)'
)
PERMISSION_FIELDS = 'permissions(id,emailAddress,role,displayName,type,deleted)'

# Error messages
ERROR_MESSAGES = {
    'no_credentials': (
        "No authentication credentials found. Set GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET/"
        "GOOGLE_REFRESH_TOKEN, GOOGLE_SERVICE_ACCOUNT_KEY, or provide {credentials_path}"
    ),
    'missing_refresh_token': "GOOGLE_REFRESH_TOKEN is required when GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET are set",
    'invalid_service_account': "Invalid Service Account credentials: {error}",
    'authentication_error': "Authentication failed: {error}",
    'search_failed': "All {count} search variations failed for query \"{query}\": {error}",
}
