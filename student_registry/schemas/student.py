# student_registry/schemas/student.py
import re
from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")
PHONE_PATTERN = re.compile(r"^[\d\s\-+()]{7,20}$")
MAX_NAME_LENGTH = 100
MAX_ADDRESS_LENGTH = 500


class Gender(str, Enum):
    Male = "Male"
    Female = "Female"
    Other = "Other"


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


# ------------------------------------------------------------
# STUDENT FIELDS (validated on create and on every update)
# ------------------------------------------------------------
class StudentFields(BaseModel):
    """
    Editable profile fields. Required fields default to None and are
    validated anyway, so a single pass reports every violation.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        use_enum_values=True,
    )

    full_name: Optional[str] = Field(default=None, validate_default=True)
    email: Optional[str] = Field(default=None, validate_default=True)
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    course_or_department: Optional[str] = None
    batch_or_year: Optional[str] = None
    address: Optional[str] = None

    @field_validator(
        "phone", "date_of_birth", "course_or_department",
        "batch_or_year", "address",
        mode="before",
    )
    @classmethod
    def empty_means_unset(cls, v):
        return _blank_to_none(v)

    @field_validator("full_name")
    @classmethod
    def check_full_name(cls, v: Optional[str]) -> str:
        if not v:
            raise ValueError("Full name is required")
        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f"Name cannot be more than {MAX_NAME_LENGTH} characters")
        return v

    @field_validator("email")
    @classmethod
    def check_email(cls, v: Optional[str]) -> str:
        if not v:
            raise ValueError("Email is required")
        v = v.lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Please provide a valid email")
        return v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not PHONE_PATTERN.match(v):
            raise ValueError("Please provide a valid phone number")
        return v

    @field_validator("gender", mode="before")
    @classmethod
    def check_gender(cls, v):
        v = _blank_to_none(v)
        if v is None or isinstance(v, Gender):
            return v
        if v not in {g.value for g in Gender}:
            raise ValueError("Gender must be one of Male, Female, Other")
        return v

    @field_validator("address")
    @classmethod
    def check_address(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) > MAX_ADDRESS_LENGTH:
            raise ValueError(f"Address cannot be more than {MAX_ADDRESS_LENGTH} characters")
        return v


# ------------------------------------------------------------
# FULL STUDENT READ RESPONSE
# ------------------------------------------------------------
class StudentRead(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: UUID
    full_name: str
    email: str
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    course_or_department: Optional[str] = None
    batch_or_year: Optional[str] = None
    address: Optional[str] = None
    profile_image_url: Optional[str] = None

    created_by: UUID
    created_at: datetime
    updated_at: datetime


class StudentEnvelope(BaseModel):
    success: bool = True
    data: StudentRead


class StudentListEnvelope(BaseModel):
    success: bool = True
    count: int
    data: List[StudentRead]


class ImageUploadResponse(BaseModel):
    success: bool = True
    url: str
