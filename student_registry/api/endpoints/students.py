# student_registry/api/endpoints/students.py

from typing import Optional, Tuple

from fastapi import APIRouter, Depends, File, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from student_registry.api.deps import get_db_session, require_authority
from student_registry.core.exceptions import ValidationError
from student_registry.schemas.auth import MessageResponse, SessionIdentity
from student_registry.schemas.student import (
    ImageUploadResponse,
    StudentEnvelope,
    StudentListEnvelope,
    StudentRead,
)
from student_registry.services import student_service

# Every route below requires a valid token AND the authority role
router = APIRouter(
    prefix="/api/students",
    tags=["Students"],
    dependencies=[Depends(require_authority)],
)


# ------------------------------------------------------------
# REQUEST BODY FIELDS
# ------------------------------------------------------------
STUDENT_FORM_FIELDS = {
    "fullName": "full_name",
    "email": "email",
    "phone": "phone",
    "dateOfBirth": "date_of_birth",
    "gender": "gender",
    "courseOrDepartment": "course_or_department",
    "batchOrYear": "batch_or_year",
    "address": "address",
}


FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def _pick_fields(source) -> dict:
    fields = {}
    for alias, name in STUDENT_FORM_FIELDS.items():
        value = source.get(alias, source.get(name))
        if value is None and (alias in source or name in source):
            # JSON null clears the field, like an empty form value
            value = ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str):
            fields[name] = value
    return fields


async def student_form(request: Request) -> dict:
    """
    Reads the raw body so an omitted field (keep) can be told apart from
    one sent empty (clear). Declared Form() params collapse both to None.
    Accepts multipart, urlencoded and JSON bodies.
    """
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()

    if content_type == "application/json":
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError("Request body is not valid JSON")
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        return _pick_fields(body)

    if content_type and content_type not in FORM_CONTENT_TYPES:
        raise ValidationError(f"Unsupported content type: {content_type}")

    return _pick_fields(await request.form())


async def read_image(file: Optional[UploadFile]) -> Tuple[Optional[bytes], Optional[str]]:
    if file is None:
        return None, None
    content = await file.read()
    return content or None, file.content_type


# ------------------------------------------------------------
# LIST MY STUDENTS
# ------------------------------------------------------------
@router.get("", response_model=StudentListEnvelope)
async def get_students(
    identity: SessionIdentity = Depends(require_authority),
    session: AsyncSession = Depends(get_db_session),
):
    students = await student_service.list_students(session, identity.user_id)
    return StudentListEnvelope(
        count=len(students),
        data=[StudentRead.model_validate(s) for s in students],
    )


# ------------------------------------------------------------
# CREATE STUDENT
# ------------------------------------------------------------
@router.post("", response_model=StudentEnvelope, status_code=status.HTTP_201_CREATED)
async def create_student(
    fields: dict = Depends(student_form),
    profile_image: Optional[UploadFile] = File(None, alias="profileImage"),
    identity: SessionIdentity = Depends(require_authority),
    session: AsyncSession = Depends(get_db_session),
):
    image, content_type = await read_image(profile_image)
    student = await student_service.create_student(
        session,
        owner_id=identity.user_id,
        fields=fields,
        image=image,
        image_content_type=content_type,
    )
    return StudentEnvelope(data=StudentRead.model_validate(student))


# ------------------------------------------------------------
# STANDALONE IMAGE UPLOAD
# ------------------------------------------------------------
@router.post("/upload-image", response_model=ImageUploadResponse)
async def upload_image(
    image: Optional[UploadFile] = File(None),
    identity: SessionIdentity = Depends(require_authority),
):
    content, content_type = await read_image(image)
    url = await student_service.upload_image(content, content_type, owner_id=identity.user_id)
    return ImageUploadResponse(url=url)


# ------------------------------------------------------------
# GET ONE
# ------------------------------------------------------------
@router.get("/{student_id}", response_model=StudentEnvelope)
async def get_student(
    student_id: str,
    identity: SessionIdentity = Depends(require_authority),
    session: AsyncSession = Depends(get_db_session),
):
    student = await student_service.get_student(session, identity.user_id, student_id)
    return StudentEnvelope(data=StudentRead.model_validate(student))


# ------------------------------------------------------------
# UPDATE
# ------------------------------------------------------------
@router.put("/{student_id}", response_model=StudentEnvelope)
async def update_student(
    student_id: str,
    fields: dict = Depends(student_form),
    profile_image: Optional[UploadFile] = File(None, alias="profileImage"),
    identity: SessionIdentity = Depends(require_authority),
    session: AsyncSession = Depends(get_db_session),
):
    image, content_type = await read_image(profile_image)
    student = await student_service.update_student(
        session,
        owner_id=identity.user_id,
        student_id=student_id,
        fields=fields,
        image=image,
        image_content_type=content_type,
    )
    return StudentEnvelope(data=StudentRead.model_validate(student))


# ------------------------------------------------------------
# DELETE
# ------------------------------------------------------------
@router.delete("/{student_id}", response_model=MessageResponse)
async def delete_student(
    student_id: str,
    identity: SessionIdentity = Depends(require_authority),
    session: AsyncSession = Depends(get_db_session),
):
    message = await student_service.delete_student(session, identity.user_id, student_id)
    return MessageResponse(message=message)
