"""Cache maintenance tasks — trending refresh and expiry of derived rows."""

import asyncio
import logging
from datetime import datetime, timezone, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import get_settings
from app.tasks.celery_app import celery_app
from app.models.base import SyncSessionLocal, create_task_engine
from app.models.problem_similarity import ProblemSimilarity
from app.models.trending_cache import TrendingCache
from app.services.recommendation_store import SqlRecommendationStore
from app.services.trending_service import TrendingScorer

logger = logging.getLogger(__name__)


async def _refresh_trending() -> dict:
    engine = create_task_engine()
    try:
        session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        records, _, degraded = await TrendingScorer(SqlRecommendationStore(session_factory)).calculate()
    finally:
        await engine.dispose()
    return {"trending": len(records), "degraded": degraded}


@celery_app.task(name="app.tasks.cache_tasks.refresh_trending")
def refresh_trending():
    """Recompute the trending cache ahead of the request path."""
    result = asyncio.run(_refresh_trending())
    logger.info("Refreshed trending cache: %d problems trending", result["trending"])
    return result


@celery_app.task(name="app.tasks.cache_tasks.purge_expired_trending")
def purge_expired_trending():
    """Delete trending rows past their expiry."""
    db = SyncSessionLocal()
    try:
        now = datetime.now(timezone.utc)
        result = db.query(TrendingCache).filter(
            TrendingCache.expires_at <= now,
        ).delete(synchronize_session=False)
        db.commit()
        logger.info("Purged %d expired trending rows", result)
        return {"purged": result}
    except Exception:
        db.rollback()
        logger.exception("Failed to purge expired trending rows")
        raise
    finally:
        db.close()


@celery_app.task(name="app.tasks.cache_tasks.purge_stale_similarities")
def purge_stale_similarities():
    """Delete similarity rows older than the retention window."""
    db = SyncSessionLocal()
    try:
        cutoff = datetime.now(timezone.utc) - timedelta(days=get_settings().similarity_retention_days)
        result = db.query(ProblemSimilarity).filter(
            ProblemSimilarity.calculated_at < cutoff,
        ).delete(synchronize_session=False)
        db.commit()
        logger.info("Purged %d stale similarity rows", result)
        return {"purged": result}
    except Exception:
        db.rollback()
        logger.exception("Failed to purge stale similarity rows")
        raise
    finally:
        db.close()
