"""Domain Entities - Auth

The authenticated user only stamps audit fields (booked_by, canceled_by,
ordered_by); no permission checks hang off it.
"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from typing import Optional


class User(BaseModel):
    """Staff member operating the front desk or restaurant"""
    user_id: UUID = Field(default_factory=uuid4)
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    disabled: bool = False

    class Config:
        from_attributes = True

    @property
    def display_name(self) -> str:
        return self.full_name or self.username


class UserInDB(User):
    """User with hashed password for DB storage"""
    hashed_password: str
