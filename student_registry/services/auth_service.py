# student_registry/services/auth_service.py

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from fastapi.concurrency import run_in_threadpool
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from student_registry.core.config import settings
from student_registry.core.exceptions import (
    InvalidCredentials,
    InvalidOrExpiredToken,
    NotFound,
    ValidationError,
    validate_input,
)
from student_registry.core.security import (
    create_access_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    pwd_context,
    verify_password,
)
from student_registry.models.user import User, UserRole
from student_registry.schemas.auth import (
    ResetPasswordRequest,
    SignupRequest,
    TokenWithUser,
    UpdatePasswordRequest,
)
from student_registry.schemas.user import UserRead
from student_registry.services.email_service import send_password_reset_email

RESET_REQUEST_MESSAGE = "If an account exists for that email, a password reset link has been sent."
EMAIL_TAKEN_MESSAGE = "User with this email already exists"

Notifier = Callable[[str, str], Any]


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


# ============================================================================
# FETCH USER BY EMAIL
# ============================================================================
async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


# ============================================================================
# FETCH USER BY ID
# ============================================================================
async def get_user_by_id(session: AsyncSession, user_id: str | uuid.UUID) -> User | None:
    try:
        user_uuid = user_id if isinstance(user_id, uuid.UUID) else uuid.UUID(str(user_id))
    except ValueError:
        return None

    result = await session.execute(select(User).where(User.id == user_uuid))
    return result.scalar_one_or_none()


# ============================================================================
# CREATE USER
# ============================================================================
async def create_user(
    session: AsyncSession,
    full_name: str,
    email: str,
    password: str,
    role: UserRole = UserRole.Authority,
) -> User:
    email = normalize_email(email)

    if await get_user_by_email(session, email):
        raise ValidationError(EMAIL_TAKEN_MESSAGE, errors=["Email is already registered"])

    user = User(
        id=uuid.uuid4(),
        full_name=full_name,
        email=email,
        password_hash=hash_password(password),
        role=role,
    )

    session.add(user)

    try:
        await session.commit()
        await session.refresh(user)
        return user

    except IntegrityError:
        # Lost a race with a concurrent signup for the same address
        await session.rollback()
        raise ValidationError(EMAIL_TAKEN_MESSAGE, errors=["Email is already registered"])


# ============================================================================
# LOGIN RESPONSE (token + user summary)
# ============================================================================
def create_login_response(user: User) -> TokenWithUser:
    role_str = user.role.value if isinstance(user.role, UserRole) else str(user.role)

    token = create_access_token(subject=str(user.id), data={"role": role_str})

    return TokenWithUser(token=token, user=UserRead.model_validate(user))


# ============================================================================
# SIGNUP
# ============================================================================
async def signup(
    session: AsyncSession,
    email: str,
    password: str,
    full_name: str,
) -> TokenWithUser:
    data = validate_input(SignupRequest, email=email, password=password, full_name=full_name)

    user = await create_user(
        session=session,
        full_name=data.full_name,
        email=data.email,
        password=data.password,
    )
    logger.info(f"New authority account created: {user.id}")

    return create_login_response(user)


# ============================================================================
# LOGIN
# ============================================================================
async def authenticate_user(session: AsyncSession, email: str, password: str) -> User | None:
    user = await get_user_by_email(session, email)
    if not user:
        # Burn the same hashing time as a real check
        pwd_context.dummy_verify()
        return None

    if not verify_password(password, user.password_hash):
        return None

    return user


async def login(session: AsyncSession, email: str, password: str) -> TokenWithUser:
    user = await authenticate_user(session, email, password)

    if not user:
        logger.warning("Failed login attempt")
        raise InvalidCredentials()

    return create_login_response(user)


# ============================================================================
# CURRENT USER
# ============================================================================
async def get_current_user(session: AsyncSession, user_id: str | uuid.UUID) -> User:
    user = await get_user_by_id(session, user_id)
    if not user:
        raise NotFound("User not found")
    return user


# ============================================================================
# FORGOT PASSWORD LOGIC
# ============================================================================
async def request_password_reset(
    session: AsyncSession,
    email: str,
    notify: Optional[Notifier] = None,
) -> str:
    """
    Issues a single-use reset token for a known email and hands it to
    `notify(email, token)`. Unknown emails get the exact same answer.
    """
    user = await get_user_by_email(session, email)
    if not user:
        logger.info("Password reset requested for an unknown email")
        return RESET_REQUEST_MESSAGE

    token = generate_reset_token()
    user.reset_token_hash = hash_reset_token(token)
    user.reset_token_expires_at = datetime.now(timezone.utc) + timedelta(
        minutes=settings.RESET_TOKEN_EXPIRE_MINUTES
    )

    session.add(user)
    await session.commit()

    if notify is None:
        # smtplib blocks; keep it off the event loop
        await run_in_threadpool(send_password_reset_email, user.email, token)
    else:
        notify(user.email, token)
    logger.info(f"Password reset token issued for user {user.id}")

    return RESET_REQUEST_MESSAGE


async def confirm_password_reset(session: AsyncSession, token: str, new_password: str) -> None:
    """
    Redeems a reset token. The token is cleared on success and on expiry,
    so it can never be used twice.
    """
    data = validate_input(ResetPasswordRequest, token=token, new_password=new_password)
    if not data.token:
        raise InvalidOrExpiredToken()

    result = await session.execute(
        select(User).where(User.reset_token_hash == hash_reset_token(data.token))
    )
    user = result.scalar_one_or_none()
    if not user:
        raise InvalidOrExpiredToken()

    expires_at = user.reset_token_expires_at
    user.reset_token_hash = None
    user.reset_token_expires_at = None

    if expires_at is None or _as_utc(expires_at) <= datetime.now(timezone.utc):
        session.add(user)
        await session.commit()
        raise InvalidOrExpiredToken()

    user.password_hash = hash_password(data.new_password)
    session.add(user)
    await session.commit()
    logger.info(f"Password reset completed for user {user.id}")


# ============================================================================
# UPDATE PASSWORD (authenticated)
# ============================================================================
async def update_password(
    session: AsyncSession,
    user_id: str | uuid.UUID,
    new_password: str,
) -> None:
    data = validate_input(UpdatePasswordRequest, new_password=new_password)

    user = await get_user_by_id(session, user_id)
    if not user:
        raise NotFound("User not found")

    user.password_hash = hash_password(data.new_password)
    session.add(user)
    await session.commit()
    logger.info(f"Password updated for user {user.id}")
