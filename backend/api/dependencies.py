from fastapi import Depends, HTTPException, status
from core.security import oauth2_scheme, verify_token
from schemas.user_schema import User as UserSchema
from db.session import get_db_session
from db.models.user import User as UserModel
from sqlalchemy.ext.asyncio import AsyncSession
import logging

logger = logging.getLogger(__name__)

CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)

async def get_current_user(token: str = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db_session)) -> UserSchema:
    payload = verify_token(token)
    if not payload:
        raise CREDENTIALS_EXCEPTION

    try:
        user_id = int(payload.get("user_id"))
    except (TypeError, ValueError):
        raise CREDENTIALS_EXCEPTION

    db_user = await db.get(UserModel, user_id)
    if not db_user or not db_user.is_active:
        logger.warning(f"Token for unknown or inactive user {user_id}")
        raise CREDENTIALS_EXCEPTION

    return UserSchema.model_validate(db_user)

async def admin_required(current_user: UserSchema = Depends(get_current_user)) -> UserSchema:
    if current_user.role != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return current_user
