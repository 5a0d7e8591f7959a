"""ORM models for accounts: identity, credential, role, and default preferences."""

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    func,
)
from sqlalchemy.orm import relationship

from app.models.base import Base

ROLE_ADMIN = "admin"
ROLE_USER = "user"
ROLES = (ROLE_ADMIN, ROLE_USER)


def _new_user_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    Identity root. Email is unique and compared case-sensitively as stored.

    Credential, role, and preferences rows are created together with the user in one
    transaction and are removed with it.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_user_id)
    email = Column(String(255), nullable=False, unique=True, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    credential = relationship(
        "Credential", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    role = relationship(
        "Role", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    preferences = relationship(
        "UserPreferences", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )


class Credential(Base):
    """Password hash for a user; replaced wholesale on change or reset."""

    __tablename__ = "credentials"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    password_hash = Column(String(255), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    user = relationship("User", back_populates="credential")


class Role(Base):
    """role: 'admin' or 'user'. Signup always assigns 'user'."""

    __tablename__ = "roles"
    __table_args__ = (CheckConstraint("role IN ('admin', 'user')", name="ck_roles_role"),)

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role = Column(String(32), nullable=False, default=ROLE_USER)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    user = relationship("User", back_populates="role")


class UserPreferences(Base):
    """Feature toggles owned by the preferences collaborator; seeded at signup."""

    __tablename__ = "user_preferences"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    bills_enabled = Column(Boolean, nullable=False, default=True)
    doordash_enabled = Column(Boolean, nullable=False, default=False)
    home_maintenance_enabled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    user = relationship("User", back_populates="preferences")
