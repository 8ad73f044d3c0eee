from typing import List

from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    email: str
    name: str
    role: str
    password: str


class RoleUpdate(BaseModel):
    new_role: str


class UserInvite(BaseModel):
    email: str
    name: str
    role: str


class CourseCreate(BaseModel):
    name: str
    admin_id: str


class CourseUpdate(BaseModel):
    name: str


class TeamCreate(BaseModel):
    course_id: str
    name: str


class TeamMembersUpdate(BaseModel):
    user_ids: List[str] = Field(default_factory=list)
