"""
GitHub webhook payload schemas.
Deliveries are loosely-typed JSON; everything the pipeline relies on is
validated here before it reaches the reflection builder. Unknown fields are
ignored.
"""
from typing import Literal, Optional, Union
from pydantic import BaseModel, Field, ValidationError, field_validator


class MalformedPayloadError(ValueError):
    """Delivery is missing required fields or cannot be parsed."""


class CommitAuthor(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class PushCommit(BaseModel):
    """One commit from a push event, in the shape it is stored on the reflection."""
    id: str
    message: str = ""
    timestamp: Optional[str] = None  # ISO 8601, as sent by GitHub
    url: Optional[str] = None
    author: CommitAuthor = Field(default_factory=CommitAuthor)
    added: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("commit id must not be empty")
        return v


class RepositoryOwner(BaseModel):
    name: Optional[str] = None  # push payloads
    login: Optional[str] = None  # ping and most other events


class Repository(BaseModel):
    name: str
    full_name: Optional[str] = None
    owner: Optional[RepositoryOwner] = None


class Organization(BaseModel):
    login: str


class PingEvent(BaseModel):
    kind: Literal["ping"] = "ping"
    zen: Optional[str] = None
    hook_id: Optional[int] = None
    organization: Optional[Organization] = None
    repository: Optional[Repository] = None


class PushEvent(BaseModel):
    kind: Literal["push"] = "push"
    ref: Optional[str] = None
    repository: Repository
    commits: list[PushCommit] = Field(default_factory=list)
    organization: Optional[Organization] = None


GithubEvent = Union[PingEvent, PushEvent]


def parse_event(event_type: str, payload: dict) -> Optional[GithubEvent]:
    """
    Parse a verified delivery into its typed event.
    Returns None for event types this service does not handle.
    Raises MalformedPayloadError if a handled event fails validation.
    """
    model = {"ping": PingEvent, "push": PushEvent}.get(event_type)
    if model is None:
        return None
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise MalformedPayloadError(
            f"Invalid {event_type} payload: {e.error_count()} validation error(s)"
        ) from e
