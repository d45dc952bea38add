from pydantic import BaseModel, EmailStr
from typing import Optional

class UserBase(BaseModel):
    email: EmailStr

class UserCreate(UserBase):
    password: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    referral_code: Optional[str] = None

class User(UserBase):
    id: int
    full_name: str = ""
    phone: str = ""
    role: str = "user"
    referral_code: Optional[str] = None

    class Config:
        from_attributes = True
        extra = "ignore"

class Token(BaseModel):
    access_token: str
    token_type: str
