from uuid import UUID
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from student_registry.models.user import UserRole


# ---------------------------------------------------------
# READ USER (response) -- never carries password/reset data
# ---------------------------------------------------------
class UserRead(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: UUID
    full_name: str
    email: str
    role: UserRole | str


class UserEnvelope(BaseModel):
    success: bool = True
    user: UserRead
