from fastapi import APIRouter, Depends, Path
from schemas.user_schema import User
from schemas.points_schema import AwardPointsRequest, WatchProgressUpdate
from api.dependencies import get_current_user
from services.points_service import award_yogic_points, get_yogic_points, record_watch_progress
from utils.responses import no_store_json

router = APIRouter()

@router.post("/videos/{video_id}/progress")
async def video_progress_update(body: WatchProgressUpdate, video_id: int = Path(gt=0), current_user: User = Depends(get_current_user)):
    return no_store_json(await record_watch_progress(current_user, video_id, body))

@router.post("/points/award")
async def points_award(body: AwardPointsRequest, current_user: User = Depends(get_current_user)):
    return no_store_json(await award_yogic_points(current_user, body.video_id))

@router.get("/points")
async def points_total(current_user: User = Depends(get_current_user)):
    return no_store_json(await get_yogic_points(current_user))
