from fastapi import APIRouter, Depends
from schemas.user_schema import User
from schemas.wallet_schema import WithdrawalCreate
from api.dependencies import get_current_user
from services.wallet_service import get_wallet_info, request_withdrawal
from utils.responses import no_store_json

router = APIRouter()

@router.get("/wallet")
async def get_wallet(current_user: User = Depends(get_current_user)):
    return no_store_json(await get_wallet_info(current_user))

@router.post("/wallet/withdrawals")
async def wallet_withdrawal_create(body: WithdrawalCreate, current_user: User = Depends(get_current_user)):
    return no_store_json(await request_withdrawal(current_user, body))
