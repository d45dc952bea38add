from fastapi import APIRouter, Depends, Path, Query
from schemas.user_schema import User
from schemas.wallet_schema import WithdrawalStatusUpdate
from api.dependencies import admin_required
from services.settlement_service import process_pending_settlements
from services.wallet_service import resolve_withdrawal
from utils.responses import no_store_json

router = APIRouter(prefix="/admin")

@router.post("/withdrawals/{withdrawal_id}/status")
async def admin_withdrawal_status(body: WithdrawalStatusUpdate, withdrawal_id: int = Path(gt=0), admin: User = Depends(admin_required)):
    return no_store_json(await resolve_withdrawal(withdrawal_id, body, admin))

@router.post("/settlements/retry")
async def admin_settlements_retry(limit: int = Query(default=50, gt=0, le=500), admin: User = Depends(admin_required)):
    return no_store_json(await process_pending_settlements(limit))
