from pydantic import BaseModel, Field
from typing import Literal, Optional

class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1)
    role: Literal["participant", "admin"] = "participant"
    adminKey: Optional[str] = None

class LoginIn(BaseModel):
    username: str
    password: str
    deviceId: Optional[str] = Field(default=None, max_length=128)

class UserInfo(BaseModel):
    id: int
    username: str
    role: str

class LoginOut(BaseModel):
    success: bool = True
    token: str
    token_type: str = "bearer"
    deviceId: str
    user: UserInfo
    previousSessionInvalidated: bool = False

class MeOut(BaseModel):
    success: bool = True
    user: UserInfo

class SuccessOut(BaseModel):
    success: bool = True
