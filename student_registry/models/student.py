from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Text, String, DateTime
from datetime import date, datetime, timezone
from typing import Optional
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Student(SQLModel, table=True):
    __tablename__ = "students"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    full_name: str = Field(
        sa_column=Column(String(100), nullable=False)
    )

    email: str = Field(
        sa_column=Column(String, nullable=False)
    )

    phone: Optional[str] = Field(
        default=None, sa_column=Column(String(20), nullable=True)
    )

    date_of_birth: Optional[date] = Field(default=None)

    gender: Optional[str] = Field(
        default=None, sa_column=Column(String, nullable=True)
    )

    course_or_department: Optional[str] = Field(
        default=None, sa_column=Column(String, nullable=True)
    )
    batch_or_year: Optional[str] = Field(
        default=None, sa_column=Column(String, nullable=True)
    )

    address: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )

    profile_image_url: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )

    # Owner; every query filters on this column
    created_by: uuid.UUID = Field(foreign_key="users.id", index=True, nullable=False)

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
