"""Paginated backend catalog queries for full sync."""

import asyncio
from collections.abc import Iterable

import structlog

from ..constants import QUERY_VOLUME_LIMIT
from ..core.exceptions import BackendQueryError
from ..models.query import QueryCursor, QueryFilter, QueryResult
from ..services.backend import VolumeManager

logger = structlog.get_logger()


async def full_sync_get_query_results(
    volume_ids: Iterable[str],
    cluster_id: str,
    volume_manager: VolumeManager,
    *,
    limit: int = QUERY_VOLUME_LIMIT,
    timeout: float | None = None,
) -> list[QueryResult]:
    """Fetch every page of backend volumes matching volume_ids.

    An empty volume_ids queries the whole catalog (scoped to cluster_id when
    set). Pages are fetched one after another because the cursor is assigned
    by the backend.

    Args:
        volume_ids: Canonical volume IDs to query, or nothing for all volumes
        cluster_id: Restrict results to this container cluster when non-empty
        volume_manager: Backend to query
        limit: Page size
        timeout: Deadline in seconds for the whole sequence, None for no deadline

    Returns:
        All non-empty pages in order

    Raises:
        BackendQueryError: If any page fails, the cursor misbehaves, or the
            deadline passes. Pages fetched so far are discarded.
    """
    query_filter = QueryFilter(
        volume_ids=list(volume_ids),
        cursor=QueryCursor(offset=0, limit=limit),
    )
    if cluster_id:
        query_filter.container_cluster_ids = [cluster_id]
    logger.debug(
        "FullSync: querying volumes",
        volume_ids=query_filter.volume_ids,
        cluster_id=cluster_id,
        entire_catalog=query_filter.queries_entire_catalog,
    )

    try:
        async with asyncio.timeout(timeout):
            return await _query_all_pages(query_filter, volume_manager)
    except TimeoutError as e:
        logger.error("FullSync: volume query timed out", timeout=timeout)
        raise BackendQueryError(f"volume query timed out after {timeout}s") from e


async def _query_all_pages(query_filter: QueryFilter, volume_manager: VolumeManager) -> list[QueryResult]:
    all_query_results: list[QueryResult] = []
    while True:
        cursor = query_filter.cursor
        logger.debug("Query volumes", offset=cursor.offset, limit=cursor.limit)
        try:
            query_result = await volume_manager.query_volume(query_filter.model_copy(deep=True))
        except Exception as e:
            logger.error(
                "Failed to query volumes",
                offset=cursor.offset,
                limit=cursor.limit,
                error=str(e),
            )
            raise BackendQueryError(f"failed to query volumes at offset {cursor.offset}: {e}") from e

        if query_result is None or not query_result.volumes:
            logger.info("Observed empty query result")
            break

        all_query_results.append(query_result)
        returned = query_result.cursor
        logger.info("More volumes to be queried", remaining=returned.total_records - returned.offset)
        if returned.exhausted:
            logger.info("Metadata retrieved for all requested volumes")
            break
        if returned.offset <= cursor.offset:
            raise BackendQueryError(
                f"backend cursor did not advance (offset {cursor.offset} -> {returned.offset})"
            )
        query_filter.cursor = QueryCursor(
            offset=returned.offset,
            limit=returned.limit,
            total_records=returned.total_records,
        )
    return all_query_results
