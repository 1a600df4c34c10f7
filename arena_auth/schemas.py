from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


# Request bodies. Fields are optional here so that missing values reach the
# rule-based validator and come back as field errors instead of a bare 422.
class RegisterRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserOut(BaseModel):
    id: int
    username: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class RegisteredUserOut(UserOut):
    createdAt: Optional[datetime] = None

    @classmethod
    def from_user(cls, user) -> "RegisteredUserOut":
        return cls(id=user.id, username=user.username, email=user.email, createdAt=user.created_at)


class RegisterData(BaseModel):
    user: RegisteredUserOut
    token: str


class LoginData(BaseModel):
    user: UserOut
    token: str


class RegisterResponse(BaseModel):
    success: bool = True
    message: str
    data: RegisterData


class LoginResponse(BaseModel):
    success: bool = True
    message: str
    data: LoginData


class FieldErrorOut(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    errors: Optional[List[FieldErrorOut]] = None


class DatabaseHealth(BaseModel):
    status: str
    message: str
    error: Optional[str] = None


class HealthResponse(BaseModel):
    success: bool
    status: str
    timestamp: str
    uptime: float
    environment: str
    database: DatabaseHealth
    message: Optional[str] = None
