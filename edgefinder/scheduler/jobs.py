"""
Job functions for scheduled execution.

Each job is an async function that receives the pipeline it works on, so
the same functions serve the scheduler, the CLI and manual API triggers.
"""

import logging
from datetime import datetime
from typing import Any

from edgefinder.data.pipeline import PipelineUnavailableError

logger = logging.getLogger(__name__)


async def refresh_odds(pipeline: Any) -> Any:
    """
    Pull the latest odds and rebuild edges and movements.

    A refresh where every sport fails is logged and re-raised so the
    scheduler records the run as an error; the previous result stays
    available on the pipeline.

    Args:
        pipeline: EdgePipeline instance

    Returns:
        RefreshResult for this pass
    """
    logger.info("=== STARTING ODDS REFRESH ===")
    start_time = datetime.now()

    try:
        result = await pipeline.refresh()
    except PipelineUnavailableError as e:
        logger.error(f"REFRESH FAILED: {e}")
        raise

    if result.failed_sports:
        for sport, error in result.failed_sports.items():
            logger.warning(f"  {sport} skipped: {error}")

    for edge in result.edges[:5]:
        logger.info(f"  {edge.game} | {edge.description}: {edge.ev_display} ({edge.book})")

    for movement in result.movements[:5]:
        logger.info(
            f"  Line move {movement.game}: {movement.outcome} "
            f"{movement.old_line} -> {movement.new_line}"
        )

    elapsed = (datetime.now() - start_time).total_seconds()
    logger.info(
        f"=== REFRESH COMPLETE in {elapsed:.1f}s: {len(result.edges)} edges, "
        f"{len(result.movements)} movements ==="
    )
    return result


async def health_check(pipeline: Any) -> Any:
    """
    Periodic health monitoring of all data sources.

    Args:
        pipeline: EdgePipeline instance

    Returns:
        PipelineHealth with status for each source
    """
    logger.debug("Running health check...")

    try:
        health = await pipeline.health_check()
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise

    healthy_count = sum(1 for h in health.sources.values() if h.status.value == "healthy")
    logger.debug(f"Health check: {healthy_count}/{len(health.sources)} sources healthy")

    for name, source_health in health.sources.items():
        if source_health.status.value != "healthy":
            logger.warning(
                f"Data source {name} is {source_health.status.value}: "
                f"{source_health.error_message or 'no details'}"
            )

    return health
