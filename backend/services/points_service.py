from schemas.user_schema import User
from schemas.points_schema import WatchProgressUpdate
from db.session import get_or_use_session
from db.models.video import Video, WatchProgress, YogicPointsTransaction
from config import config
from fastapi import HTTPException
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from decimal import Decimal, ROUND_FLOOR
from typing import Dict, Any
from utils.timing import timeit
import logging

logger = logging.getLogger(__name__)


def minimum_watch_seconds(duration_seconds: int) -> int:
    threshold = Decimal(duration_seconds or 0) * config.get_points_completion_threshold()
    return int(threshold.to_integral_value(rounding=ROUND_FLOOR))


async def record_watch_progress(current_user: User, video_id: int, progress: WatchProgressUpdate, db: AsyncSession = None) -> Dict[str, Any]:
    async with get_or_use_session(db) as _db:
        video = await _db.get(Video, video_id)
        if not video or not video.is_published:
            raise HTTPException(status_code=404, detail="Video not found")

        result = await _db.execute(
            select(WatchProgress).where(WatchProgress.user_id == current_user.id, WatchProgress.video_id == video_id)
        )
        row = result.scalars().first()
        if row is None:
            row = WatchProgress(user_id=current_user.id, video_id=video_id, watched_seconds=0, completed=False, points_awarded=False)
            _db.add(row)

        newly_completed = progress.completed and not row.completed
        # Seeking backwards never lowers recorded progress
        row.watched_seconds = max(row.watched_seconds or 0, progress.watched_seconds)
        row.completed = bool(row.completed or progress.completed)
        row.last_watched_at = datetime.utcnow()
        if newly_completed:
            await _db.execute(
                update(Video).where(Video.id == video_id).values(completion_count=Video.completion_count + 1)
            )
        await _db.commit()
        return {
            "video_id": video_id,
            "watched_seconds": row.watched_seconds,
            "completed": row.completed,
            "points_awarded": row.points_awarded,
        }


@timeit("award_yogic_points")
async def award_yogic_points(current_user: User, video_id: int, db: AsyncSession = None) -> Dict[str, Any]:
    """Award a video's points once, after the caller has actually watched it."""
    async with get_or_use_session(db) as _db:
        video = await _db.get(Video, video_id)
        if not video:
            raise HTTPException(status_code=400, detail="Video not found")
        if not video.yogic_points or video.yogic_points <= 0:
            return {"success": True, "points": 0, "message": "No points for this video"}

        result = await _db.execute(
            select(WatchProgress).where(WatchProgress.user_id == current_user.id, WatchProgress.video_id == video_id)
        )
        progress = result.scalars().first()
        if not progress:
            raise HTTPException(status_code=400, detail="No watch progress found - video must be watched first")
        if progress.points_awarded:
            return {"success": True, "points": 0, "message": "Points already awarded"}

        if not (progress.completed or (progress.watched_seconds or 0) >= minimum_watch_seconds(video.duration_seconds)):
            raise HTTPException(status_code=400, detail="Video must be completed to earn points")

        # Conditional flip guards against a double award from two concurrent calls
        flipped = await _db.execute(
            update(WatchProgress)
            .where(WatchProgress.id == progress.id, WatchProgress.points_awarded.is_(False))
            .values(points_awarded=True)
        )
        if not flipped.rowcount:
            await _db.rollback()
            return {"success": True, "points": 0, "message": "Points already awarded"}

        _db.add(YogicPointsTransaction(
            user_id=current_user.id,
            video_id=video_id,
            points=video.yogic_points,
            transaction_type="video_completion",
            description=f"Completed {video.title}",
        ))
        await _db.commit()

    logger.info(f"Awarded {video.yogic_points} yogic points to user {current_user.id} for video {video_id}")
    return {"success": True, "points": video.yogic_points, "message": f"Earned {video.yogic_points} Yogic Points!"}


async def get_yogic_points(current_user: User, db: AsyncSession = None) -> Dict[str, Any]:
    async with get_or_use_session(db) as _db:
        result = await _db.execute(
            select(func.coalesce(func.sum(YogicPointsTransaction.points), 0))
            .where(YogicPointsTransaction.user_id == current_user.id)
        )
        return {"points": int(result.scalar_one())}
