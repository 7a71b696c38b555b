# student_registry/services/student_service.py

import uuid
from typing import Any, Mapping, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from student_registry.core.exceptions import NotFound, validate_input
from student_registry.core.storage import upload_profile_image
from student_registry.models.student import Student, utcnow
from student_registry.schemas.student import StudentFields

STUDENT_NOT_FOUND = "Student not found"


def _as_uuid(value: Any) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


# ------------------------------------------------------------
# CREATE STUDENT
# ------------------------------------------------------------
async def create_student(
    session: AsyncSession,
    owner_id: uuid.UUID | str,
    fields: Mapping[str, Any],
    image: Optional[bytes] = None,
    image_content_type: Optional[str] = None,
) -> Student:
    """
    Validates every field up front, uploads the optional image, then
    writes the row. A failed upload aborts before anything is stored.
    """
    owner_uuid = _as_uuid(owner_id)
    data = validate_input(StudentFields, **fields)

    profile_image_url = None
    if image:
        profile_image_url = await upload_profile_image(
            image, image_content_type, folder=str(owner_uuid)
        )

    now = utcnow()
    student = Student(
        **data.model_dump(),
        profile_image_url=profile_image_url,
        created_by=owner_uuid,
        created_at=now,
        updated_at=now,
    )

    session.add(student)
    await session.commit()
    await session.refresh(student)

    logger.info(f"Student {student.id} created by {owner_uuid}")
    return student


# ------------------------------------------------------------
# LIST STUDENTS (owner only, newest first)
# ------------------------------------------------------------
async def list_students(session: AsyncSession, owner_id: uuid.UUID | str) -> list[Student]:
    owner_uuid = _as_uuid(owner_id)
    if owner_uuid is None:
        return []

    result = await session.execute(
        select(Student)
        .where(Student.created_by == owner_uuid)
        .order_by(Student.created_at.desc())
    )
    return list(result.scalars().all())


# ------------------------------------------------------------
# GET STUDENT BY ID (owner only)
# ------------------------------------------------------------
async def get_student(
    session: AsyncSession,
    owner_id: uuid.UUID | str,
    student_id: uuid.UUID | str,
) -> Student:
    # Unknown ids, malformed ids and other owners' records all look the same
    student_uuid = _as_uuid(student_id)
    owner_uuid = _as_uuid(owner_id)
    if student_uuid is None or owner_uuid is None:
        raise NotFound(STUDENT_NOT_FOUND)

    result = await session.execute(
        select(Student).where(
            Student.id == student_uuid,
            Student.created_by == owner_uuid,
        )
    )
    student = result.scalar_one_or_none()
    if not student:
        raise NotFound(STUDENT_NOT_FOUND)

    return student


# ------------------------------------------------------------
# UPDATE STUDENT (merge, not replace)
# ------------------------------------------------------------
async def update_student(
    session: AsyncSession,
    owner_id: uuid.UUID | str,
    student_id: uuid.UUID | str,
    fields: Mapping[str, Any],
    image: Optional[bytes] = None,
    image_content_type: Optional[str] = None,
) -> Student:
    """
    `None` in `fields` means "leave as is"; an empty string clears an
    optional field. The merged record is validated with the create rules.
    Without new image bytes the stored profile_image_url is kept.
    """
    student = await get_student(session, owner_id, student_id)

    merged = {name: getattr(student, name) for name in StudentFields.model_fields}
    merged.update({key: value for key, value in fields.items() if value is not None})
    data = validate_input(StudentFields, **merged)

    if image:
        student.profile_image_url = await upload_profile_image(
            image, image_content_type, folder=str(student.created_by)
        )

    for key, value in data.model_dump().items():
        setattr(student, key, value)
    student.updated_at = utcnow()

    session.add(student)
    await session.commit()
    await session.refresh(student)

    logger.info(f"Student {student.id} updated")
    return student


# ------------------------------------------------------------
# DELETE STUDENT
# ------------------------------------------------------------
async def delete_student(
    session: AsyncSession,
    owner_id: uuid.UUID | str,
    student_id: uuid.UUID | str,
) -> str:
    student = await get_student(session, owner_id, student_id)

    # The hosted profile image stays in the bucket.
    await session.delete(student)
    await session.commit()

    logger.info(f"Student {student_id} deleted")
    return "Student deleted successfully"


# ------------------------------------------------------------
# STANDALONE IMAGE UPLOAD
# ------------------------------------------------------------
async def upload_image(
    content: Optional[bytes],
    content_type: Optional[str] = None,
    owner_id: uuid.UUID | str | None = None,
) -> str:
    return await upload_profile_image(
        content, content_type, folder=str(owner_id) if owner_id else None
    )
