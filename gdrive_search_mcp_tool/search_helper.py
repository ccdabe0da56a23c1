#!/usr/bin/env python
"""
Multi-variation Drive file search with relevance ranking
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from . import config
from .drive_context import DriveContext
from .errors import DriveSearchError
from .text_matching import calculate_relevance_score, generate_search_variations

logger = logging.getLogger('gdrive_search')

DEFAULT_ORDER_BY = 'modifiedTime desc'
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class ScoredFile:
    """A Drive file record paired with its relevance to the search query."""

    file: Dict[str, Any]
    score: float

    @property
    def id(self) -> str:
        return self.file.get('id')

    @property
    def name(self) -> str:
        return self.file.get('name', '')

    @property
    def modified_timestamp(self) -> float:
        return parse_timestamp(self.file.get('modifiedTime'))

    def to_dict(self) -> Dict[str, Any]:
        return {**self.file, 'relevanceScore': self.score}


def parse_timestamp(value: Optional[str]) -> float:
    """Convert an RFC 3339 Drive timestamp to epoch seconds; missing or bad values sort oldest."""
    if not value:
        return float('-inf')
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00')).timestamp()
    except ValueError:
        return float('-inf')


def quote_query_value(value: str) -> str:
    escaped = value.replace('\\', '\\\\').replace('"', '\\"')
    return f'"{escaped}"'


def build_search_query(term: str, file_type: Optional[str] = None, include_trashed: bool = False) -> str:
    """Build the Drive ``q`` filter for one search variation.

    >>> build_search_query("Report", "application/pdf")
    'name contains "Report" and mimeType = "application/pdf" and trashed = false'
    """
    conditions = [f"name contains {quote_query_value(term)}"]
    if file_type:
        conditions.append(f"mimeType = {quote_query_value(file_type)}")
    if not include_trashed:
        conditions.append("trashed = false")
    return " and ".join(conditions)


def rank_files(files: Sequence[Dict[str, Any]], query: str) -> List[ScoredFile]:
    """Score ``files`` against ``query`` and sort best first, newest first on ties."""
    scored = [ScoredFile(file=f, score=calculate_relevance_score(f.get('name', ''), query)) for f in files]
    scored.sort(key=lambda item: (-item.score, -item.modified_timestamp))
    return scored


class DriveSearcher:
    """Searches Drive once per query variation and ranks the merged results.

    Drive's ``name contains`` matching is literal, so one query string misses
    files that differ by case, accents or separators. Each variation from
    ``generate_search_variations`` is sent as its own request; results are
    merged by file id in variation order, scored against the original query,
    and truncated to the requested count.
    """

    def __init__(self, context: DriveContext):
        self.context = context

    async def search(
        self,
        query: str,
        max_results: int = config.DEFAULT_MAX_RESULTS,
        file_type: Optional[str] = None,
        order_by: Optional[str] = None,
        include_trashed: bool = False,
    ) -> List[ScoredFile]:
        """Return at most ``max_results`` ranked files matching ``query``.

        Raises:
            DriveSearchError: every variation request failed
        """
        variations = generate_search_variations(query)
        logger.debug(f"Generated {len(variations)} search variations for \"{query}\"")

        page_size = min(max_results * 2, MAX_PAGE_SIZE)
        merged: Dict[str, Dict[str, Any]] = {}
        failures = 0
        last_error: Optional[Exception] = None

        for variation in variations:
            q = build_search_query(variation, file_type, include_trashed)
            logger.debug(f"Searching with query: {q}")
            try:
                files = await self._list_files(q, page_size, order_by or DEFAULT_ORDER_BY)
            except Exception as e:
                failures += 1
                last_error = e
                logger.warning(f"Search variation failed: \"{variation}\": {e}")
                continue
            for file in files:
                merged.setdefault(file.get('id'), file)

        if variations and failures == len(variations):
            raise DriveSearchError(config.ERROR_MESSAGES['search_failed'].format(
                count=failures, query=query, error=last_error)) from last_error

        results = rank_files(list(merged.values()), query)[:max_results]
        logger.info(f"Found {len(results)} files (from {len(merged)} total)")
        return results

    async def _list_files(self, q: str, page_size: int, order_by: str) -> List[Dict[str, Any]]:
        service = await self.context.get_service()
        request = service.files().list(
            q=q,
            pageSize=page_size,
            fields=config.SEARCH_FIELDS,
            orderBy=order_by,
            includeItemsFromAllDrives=True,
            supportsAllDrives=True,
        )
        response = await self.context.execute(request)
        return (response or {}).get('files') or []


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _format_size(size: Any) -> str:
    if not size:
        return 'N/A'
    try:
        return f"{_round_half_up(int(size) / 1024)}KB"
    except (TypeError, ValueError):
        return 'N/A'


def _format_modified(value: Optional[str]) -> str:
    if not value:
        return 'N/A'
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00')).astimezone().strftime('%c')
    except ValueError:
        return value


def format_search_results(results: Sequence[ScoredFile], original_query: str) -> str:
    """Render ranked results as a numbered, human-readable report."""
    if not results:
        return f'No files found for query: "{original_query}"'

    entries = []
    for index, result in enumerate(results, start=1):
        file = result.file
        score = f" (Score: {_round_half_up(result.score)})" if result.score else ''
        entries.append(
            f"{index}. **{result.name}**{score} (ID: `{result.id}`)\n"
            f"   - Type: {file.get('mimeType')}\n"
            f"   - Size: {_format_size(file.get('size'))}\n"
            f"   - Modified: {_format_modified(file.get('modifiedTime'))}\n"
            f"   - Link: {file.get('webViewLink') or 'N/A'}"
        )

    return f'Found {len(results)} files for query: "{original_query}"\n\n' + "\n\n".join(entries)
