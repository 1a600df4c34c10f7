"""
Registration and login endpoints.
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import RequestValidationFailed
from ..rate_limit import AUTH_TIER, LOGIN_TIER, REGISTER_TIER, rate_limit
from ..schemas import (
    ErrorResponse,
    LoginData,
    LoginRequest,
    LoginResponse,
    RegisterData,
    RegisteredUserOut,
    RegisterRequest,
    RegisterResponse,
    UserOut,
)
from ..service import AuthService, LoginPayload, RegisterPayload
from ..validation import LOGIN_RULES, REGISTER_RULES, field_errors, validate_payload

router = APIRouter(tags=["users"])

ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
    status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    status.HTTP_429_TOO_MANY_REQUESTS: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


def get_auth_service(request: Request, db: Session = Depends(get_db)) -> AuthService:
    state = request.app.state
    return AuthService(db, state.password_hasher, state.token_issuer)


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(rate_limit(AUTH_TIER, REGISTER_TIER))],
)
def register(body: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    result = validate_payload(body.model_dump(), REGISTER_RULES)
    if not result.ok:
        raise RequestValidationFailed(errors=field_errors(result))

    auth = service.register(RegisterPayload(**result.data))
    return RegisterResponse(
        message="User registered successfully",
        data=RegisterData(user=RegisteredUserOut.from_user(auth.user), token=auth.token),
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(rate_limit(AUTH_TIER, LOGIN_TIER))],
)
def login(body: LoginRequest, service: AuthService = Depends(get_auth_service)):
    result = validate_payload(body.model_dump(), LOGIN_RULES)
    if not result.ok:
        raise RequestValidationFailed(errors=field_errors(result))

    auth = service.login(LoginPayload(**result.data))
    return LoginResponse(
        message="Login successful",
        data=LoginData(user=UserOut.model_validate(auth.user), token=auth.token),
    )
