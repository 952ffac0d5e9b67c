"""
Webhook registration - trust relationship between one GitHub source and one user.

A source is either an organization (keyed by login) or a single repository
(keyed by owner/name). The shared secret is what GitHub signs deliveries with;
it is stored encrypted and only ever returned to the user at creation time.
"""
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, BigInteger, DateTime, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from pushtomemory.database import Base

SOURCE_ORGANIZATION = "organization"
SOURCE_REPOSITORY = "repository"
SOURCE_KINDS = (SOURCE_ORGANIZATION, SOURCE_REPOSITORY)


class WebhookRegistration(Base):
    __tablename__ = "webhook_registrations"
    __table_args__ = (
        UniqueConstraint("source_kind", "source_key", "user_id", name="uq_webhook_registrations_source_user"),
        Index("ix_webhook_registrations_source", "source_kind", "source_key"),
    )

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    source_kind: Mapped[str] = mapped_column(String(20), nullable=False)  # organization, repository
    source_key: Mapped[str] = mapped_column(String(255), nullable=False)  # "acme" or "octocat/hello-world"

    organization_name: Mapped[Optional[str]] = mapped_column(String(255))
    repository_owner: Mapped[Optional[str]] = mapped_column(String(255))
    repository_name: Mapped[Optional[str]] = mapped_column(String(255))

    github_hook_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    secret_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        # Never include the secret
        return f"<WebhookRegistration {self.id} {self.source_kind}={self.source_key}>"
