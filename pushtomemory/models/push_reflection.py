"""
Push reflection - one record per push event, holding its commits and the
owner's written reflection. The id is derived from repository name + first
commit id so a redelivered push lands on the same row.
"""
from datetime import datetime, timezone
from sqlalchemy import String, Text, DateTime, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from pushtomemory.database import Base

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_SKIPPED = "skipped"


class PushReflection(Base):
    __tablename__ = "push_reflections"
    __table_args__ = (
        Index("ix_push_reflections_user_created", "user_id", "created_at"),
        Index("ix_push_reflections_user_repo", "user_id", "repository_name"),
    )

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    repository_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Ordered as delivered: [{id, message, timestamp, url, author: {name, email}, added, modified, removed}]
    commits: Mapped[list] = mapped_column(JSONB, nullable=False)

    reflection: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=STATUS_PENDING, server_default=STATUS_PENDING
    )  # pending, completed, skipped

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
