from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from studiohub.extensions import db

JSONType = JSON().with_variant(JSONB, 'postgresql')


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class TimestampedBase(db.Model):
    """Abstract base providing id/created/updated columns."""

    __abstract__ = True

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class UserRole(Enum):
    ADMIN = "admin"
    USER = "user"


class StudioRole(Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class SlugEntityKind(Enum):
    STUDIO = "studio"
    GAME_PAGE = "game_page"


class PageVisibility(Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"


class ChangeRequestField(Enum):
    SLUG = "slug"
    NAME = "name"


class ChangeRequestStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ClaimStatus(Enum):
    OPEN = "open"
    APPROVED = "approved"
    REJECTED = "rejected"


class User(TimestampedBase):
    __tablename__ = "user"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    display_name: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(
        SqlEnum(UserRole, name="user_role", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=UserRole.USER,
    )
    active: Mapped[bool] = mapped_column('is_active', Boolean, nullable=False, default=True)

    memberships: Mapped[list["StudioMember"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def has_role(self, *roles: UserRole | str) -> bool:
        role_value = self.role.value if isinstance(self.role, UserRole) else str(self.role)
        allowed = {r.value if isinstance(r, UserRole) else str(r) for r in roles}
        return role_value in allowed

    @property
    def is_admin(self) -> bool:
        return self.has_role(UserRole.ADMIN)

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def is_active(self) -> bool:  # Flask-Login compatibility
        return bool(self.active)

    @property
    def is_anonymous(self) -> bool:
        return False

    def get_id(self) -> str:
        return self.id


class Studio(TimestampedBase):
    __tablename__ = "studio"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    # Staged desired slug while the live slug is a temporary placeholder
    requested_slug: Mapped[str | None] = mapped_column(String(64))
    last_slug_change: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_name_change: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    bio: Mapped[str | None] = mapped_column(Text)

    members: Mapped[list["StudioMember"]] = relationship(
        back_populates="studio",
        cascade="all, delete-orphan",
    )
    games: Mapped[list["Game"]] = relationship(back_populates="owner_studio")


class StudioMember(TimestampedBase):
    __tablename__ = "studio_member"
    __table_args__ = (
        UniqueConstraint("studio_id", "user_id", name="uq_studio_member"),
    )

    studio_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("studio.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[StudioRole] = mapped_column(
        SqlEnum(StudioRole, name="studio_role", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=StudioRole.MEMBER,
    )

    studio: Mapped[Studio] = relationship(back_populates="members")
    user: Mapped[User] = relationship(back_populates="memberships")


class Game(TimestampedBase):
    __tablename__ = "game"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    owner_studio_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("studio.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    owner_studio: Mapped[Studio] = relationship(back_populates="games")
    pages: Mapped[list["GamePage"]] = relationship(
        back_populates="game",
        cascade="all, delete-orphan",
    )

    @property
    def primary_page(self) -> "GamePage | None":
        for page in self.pages:
            if page.is_primary:
                return page
        return None


class GamePage(TimestampedBase):
    __tablename__ = "game_page"
    __table_args__ = (
        Index("ix_game_page_game_primary", "game_id", "is_primary"),
    )

    game_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("game.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    slug: Mapped[str] = mapped_column(String(160), nullable=False, unique=True, index=True)
    requested_slug: Mapped[str | None] = mapped_column(String(160))
    last_slug_change: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_name_change: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    visibility: Mapped[PageVisibility] = mapped_column(
        SqlEnum(PageVisibility, name="page_visibility", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=PageVisibility.DRAFT,
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_claimable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    unpublished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    game: Mapped[Game] = relationship(back_populates="pages")


class ProtectedSlug(TimestampedBase):
    """Admin-curated slugs that require verification to hold live."""
    __tablename__ = "protected_slug"
    __table_args__ = (
        UniqueConstraint("entity_kind", "slug", name="uq_protected_slug_kind_slug"),
    )

    entity_kind: Mapped[SlugEntityKind] = mapped_column(
        SqlEnum(SlugEntityKind, name="slug_entity_kind", native_enum=False, values_callable=_enum_values),
        nullable=False,
    )
    slug: Mapped[str] = mapped_column(String(160), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    created_by_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="SET NULL"),
    )

    created_by: Mapped[User | None] = relationship()


class ChangeRequest(TimestampedBase):
    """Approval-gated slug/name edit on a verified entity."""
    __tablename__ = "change_request"
    __table_args__ = (
        Index("ix_change_request_entity_field", "entity_kind", "entity_id", "field_name", "status"),
    )

    entity_kind: Mapped[SlugEntityKind] = mapped_column(
        SqlEnum(SlugEntityKind, name="change_request_entity_kind", native_enum=False, values_callable=_enum_values),
        nullable=False,
    )
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    field_name: Mapped[ChangeRequestField] = mapped_column(
        SqlEnum(ChangeRequestField, name="change_request_field", native_enum=False, values_callable=_enum_values),
        nullable=False,
    )
    current_value: Mapped[str | None] = mapped_column(String(200))
    requested_value: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[ChangeRequestStatus] = mapped_column(
        SqlEnum(ChangeRequestStatus, name="change_request_status", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=ChangeRequestStatus.PENDING,
    )

    requested_by_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reviewed_by_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="SET NULL"),
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reviewer_notes: Mapped[str | None] = mapped_column(Text)

    requested_by: Mapped[User] = relationship(foreign_keys=[requested_by_id])
    reviewed_by: Mapped[User | None] = relationship(foreign_keys=[reviewed_by_id])


class OwnershipClaim(TimestampedBase):
    """A studio's request to take over a game page owned by another studio."""
    __tablename__ = "ownership_claim"
    __table_args__ = (
        Index("ix_ownership_claim_page_target", "page_id", "requested_studio_id", "status"),
    )

    page_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("game_page.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    game_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("game.id", ondelete="CASCADE"),
        nullable=False,
    )
    current_studio_id: Mapped[str] = mapped_column(String(36), nullable=False)
    requested_studio_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("studio.id", ondelete="CASCADE"),
        nullable=False,
    )
    claimed_slug: Mapped[str] = mapped_column(String(160), nullable=False)
    claimant_user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    claimant_email: Mapped[str | None] = mapped_column(String(255))
    details: Mapped[str | None] = mapped_column(Text)
    status: Mapped[ClaimStatus] = mapped_column(
        SqlEnum(ClaimStatus, name="claim_status", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=ClaimStatus.OPEN,
    )
    handled_by_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="SET NULL"),
    )
    handled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    page: Mapped[GamePage] = relationship()
    claimant: Mapped[User] = relationship(foreign_keys=[claimant_user_id])
    handled_by: Mapped[User | None] = relationship(foreign_keys=[handled_by_id])


class AuditLog(TimestampedBase):
    __tablename__ = "audit_log"

    user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="SET NULL"),
        index=True,
    )
    studio_id: Mapped[str | None] = mapped_column(String(36), index=True)
    action: Mapped[str] = mapped_column(String(128), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(128), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(36))
    meta: Mapped[dict | None] = mapped_column(JSONType, default=dict)

    user: Mapped[User | None] = relationship()


__all__ = [name for name in globals() if name[0].isupper()]
