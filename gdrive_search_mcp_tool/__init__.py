"""
Google Drive Search MCP Tool - Google Drive file operations exposed through the MCP protocol.

This package provides fuzzy, multi-variant file search with relevance ranking,
plus file, folder, sharing, shared drive and revision tools.
"""

__version__ = "0.1.0"
