from pydantic import BaseModel, EmailStr, Field
from typing import Annotated, List, Literal, Optional, Union
from datetime import datetime

RoleName = Literal["super-admin", "director", "clinician"]

class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=2, max_length=100)
    password: str = Field(..., min_length=8, max_length=72)
    position_id: Optional[int] = None
    department: Optional[str] = None

class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    position_id: Optional[int] = None
    department: Optional[str] = None
    is_active: Optional[bool] = None

class UserResponse(BaseModel):
    id: int
    email: EmailStr
    name: Optional[str]
    role: str
    is_active: bool
    accepted: bool

    model_config = {"from_attributes": True}

class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str
    user: UserResponse


# Person variants, picked by role at the API boundary
class _ProfileBase(BaseModel):
    id: int
    email: EmailStr
    name: Optional[str]
    position_id: Optional[int] = None
    department: Optional[str] = None
    is_active: bool
    accepted: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

class ClinicianProfile(_ProfileBase):
    role: Literal["clinician"]
    director_id: Optional[int] = None  # None = unassigned

class DirectorProfile(_ProfileBase):
    role: Literal["director"]

class SuperAdminProfile(_ProfileBase):
    role: Literal["super-admin"]

Person = Annotated[
    Union[ClinicianProfile, DirectorProfile, SuperAdminProfile],
    Field(discriminator="role"),
]

PROFILE_TYPES = {
    "clinician": ClinicianProfile,
    "director": DirectorProfile,
    "super-admin": SuperAdminProfile,
}

def to_person(user) -> Union[ClinicianProfile, DirectorProfile, SuperAdminProfile]:
    """Validate an ORM user row into its role-specific profile."""
    try:
        profile_cls = PROFILE_TYPES[user.role]
    except KeyError:
        raise ValueError(f"Unknown role {user.role!r} for user {user.id}")
    return profile_cls.model_validate(user)


class RoleUpdate(BaseModel):
    role: RoleName

class AssignDirectorRequest(BaseModel):
    director_id: Optional[int] = None  # None = unassign

class AcceptanceUpdate(BaseModel):
    accept: bool

class BulkAcceptanceRequest(BaseModel):
    user_ids: List[int] = Field(..., min_length=1)
    accept: bool

class UserStatsResponse(BaseModel):
    total: int
    super_admins: int
    directors: int
    clinicians: int
    pending: int
    unassigned_clinicians: int
