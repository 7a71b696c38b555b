from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, field_validator
from pydantic.alias_generators import to_camel

from student_registry.schemas.user import UserRead

MIN_PASSWORD_LENGTH = 6
MIN_NAME_LENGTH = 2


def check_password(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return value


Password = Annotated[str, AfterValidator(check_password)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# -------------------------------------------------------------------
# SIGNUP REQUEST
# -------------------------------------------------------------------
class SignupRequest(CamelModel):
    email: EmailStr
    password: Password
    full_name: str

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"email": "alice@school.edu", "password": "secret1", "fullName": "Alice Doe"}
            ]
        },
    )

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("full_name")
    @classmethod
    def check_full_name(cls, v: str) -> str:
        if len(v) < MIN_NAME_LENGTH:
            raise ValueError(f"Full name must be at least {MIN_NAME_LENGTH} characters")
        return v


# -------------------------------------------------------------------
# LOGIN REQUEST
# -------------------------------------------------------------------
class LoginRequest(CamelModel):
    email: EmailStr
    password: str


# -------------------------------------------------------------------
# PASSWORD RESET / UPDATE
# -------------------------------------------------------------------
class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str
    new_password: Password


class UpdatePasswordRequest(CamelModel):
    new_password: Password


# -------------------------------------------------------------------
# RESPONSES
# -------------------------------------------------------------------
class TokenWithUser(BaseModel):
    success: bool = True
    token: str
    token_type: str = "bearer"
    user: UserRead


class MessageResponse(BaseModel):
    success: bool = True
    message: str


# -------------------------------------------------------------------
# AUTHENTICATED IDENTITY (decoded from the session token)
# -------------------------------------------------------------------
class SessionIdentity(BaseModel):
    user_id: UUID
    role: str
