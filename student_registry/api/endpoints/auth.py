# student_registry/api/endpoints/auth.py

from functools import partial

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from student_registry.api.deps import get_current_identity, get_db_session
from student_registry.core.rate_limiter import AUTH_LIMIT, PASSWORD_RESET_LIMIT, limiter
from student_registry.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    SessionIdentity,
    SignupRequest,
    TokenWithUser,
    UpdatePasswordRequest,
)
from student_registry.schemas.user import UserEnvelope, UserRead
from student_registry.services import auth_service
from student_registry.services.email_service import send_password_reset_email

router = APIRouter(prefix="/api/auth", tags=["Auth"])


# -------------------------------------------------------------------
# SIGNUP (auto-login)
# -------------------------------------------------------------------
@router.post("/signup", response_model=TokenWithUser, status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_LIMIT)
async def signup(
    request: Request,
    payload: SignupRequest,
    session: AsyncSession = Depends(get_db_session),
):
    return await auth_service.signup(
        session,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
    )


# -------------------------------------------------------------------
# LOGIN
# -------------------------------------------------------------------
@router.post("/login", response_model=TokenWithUser)
@limiter.limit(AUTH_LIMIT)
async def login(
    request: Request,
    payload: LoginRequest,
    session: AsyncSession = Depends(get_db_session),
):
    return await auth_service.login(session, payload.email, payload.password)


# -------------------------------------------------------------------
# CURRENT USER
# -------------------------------------------------------------------
@router.get("/me", response_model=UserEnvelope)
async def me(
    identity: SessionIdentity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
):
    user = await auth_service.get_current_user(session, identity.user_id)
    return UserEnvelope(user=UserRead.model_validate(user))


# -------------------------------------------------------------------
# PUBLIC FORGOT / RESET PASSWORD
# -------------------------------------------------------------------
@router.post("/forgot-password", response_model=MessageResponse, tags=["Password Reset"])
@limiter.limit(PASSWORD_RESET_LIMIT)
async def forgot_password(
    request: Request,
    payload: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Always answers the same way so callers cannot enumerate accounts.
    The email goes out after the response is sent.
    """
    message = await auth_service.request_password_reset(
        session,
        payload.email,
        notify=partial(background_tasks.add_task, send_password_reset_email),
    )
    return MessageResponse(message=message)


@router.post("/reset-password", response_model=MessageResponse, tags=["Password Reset"])
@limiter.limit(PASSWORD_RESET_LIMIT)
async def reset_password(
    request: Request,
    payload: ResetPasswordRequest,
    session: AsyncSession = Depends(get_db_session),
):
    await auth_service.confirm_password_reset(session, payload.token, payload.new_password)
    return MessageResponse(message="Password reset successful")


# -------------------------------------------------------------------
# UPDATE PASSWORD (logged-in user)
# -------------------------------------------------------------------
@router.put("/update-password", response_model=MessageResponse)
async def update_password(
    payload: UpdatePasswordRequest,
    identity: SessionIdentity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
):
    await auth_service.update_password(session, identity.user_id, payload.new_password)
    return MessageResponse(message="Password updated successfully")
