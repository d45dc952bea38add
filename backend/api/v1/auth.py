from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from schemas.user_schema import Token, UserCreate
from services.user_service import create_user, login_user
from utils.responses import no_store_json

router = APIRouter()

@router.post("/signup", response_model=dict)
async def signup(user: UserCreate):
    return no_store_json(await create_user(user))

@router.post("/login", response_model=Token)
async def login(form_data: OAuth2PasswordRequestForm = Depends()):
    # OAuth2 form calls the email field "username"
    return no_store_json(await login_user(form_data.username, form_data.password))
