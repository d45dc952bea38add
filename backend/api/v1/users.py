from fastapi import APIRouter, Depends
from schemas.user_schema import User as UserSchema
from api.dependencies import get_current_user
from services.user_service import get_subscription_status
from utils.responses import no_store_json

router = APIRouter()

@router.get("/me", response_model=UserSchema)
async def read_users_me(current_user: UserSchema = Depends(get_current_user)):
    return current_user

@router.get("/subscription")
async def read_subscription(current_user: UserSchema = Depends(get_current_user)):
    return no_store_json(await get_subscription_status(current_user))
