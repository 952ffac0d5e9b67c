"""
Request/response schemas for the owner-facing API.
Registration secrets appear only in RegistrationCreated.
"""
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class OrganizationRegistrationRequest(BaseModel):
    organization: str = Field(min_length=1, max_length=255)
    token: str = Field(min_length=1)


class RepositoryRegistrationRequest(BaseModel):
    owner: str = Field(min_length=1, max_length=255)
    repository: str = Field(min_length=1, max_length=255)
    token: str = Field(min_length=1)


class RegistrationCreated(BaseModel):
    id: str
    hook_id: int
    secret: str


class RegistrationSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    source_kind: str
    organization_name: Optional[str] = None
    repository_owner: Optional[str] = None
    repository_name: Optional[str] = None
    github_hook_id: int
    created_at: datetime


class RegistrationListResponse(BaseModel):
    registrations: list[RegistrationSummary]


class CommitAuthorOut(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class CommitOut(BaseModel):
    id: str
    message: str = ""
    timestamp: Optional[str] = None
    url: Optional[str] = None
    author: CommitAuthorOut = Field(default_factory=CommitAuthorOut)
    added: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)


class ReflectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    repository_name: str
    commits: list[CommitOut]
    reflection: str
    status: str
    created_at: datetime
    updated_at: datetime


class ReflectionListResponse(BaseModel):
    reflections: list[ReflectionOut]
    total: int


class ReflectionUpdateRequest(BaseModel):
    reflection: str = ""
    status: Literal["completed", "skipped"] = "completed"


class MessageResponse(BaseModel):
    message: str
