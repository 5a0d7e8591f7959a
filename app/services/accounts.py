"""Account directory: user identity, credential, and role records."""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    AccountNotFoundError,
    AccountValidationError,
    EmailConflictError,
    PermissionDeniedError,
)
from app.models import Credential, Role, User, UserPreferences
from app.models.user import ROLE_ADMIN, ROLE_USER, ROLES
from app.schemas.auth import UserProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountCredentials:
    """What login needs to know about an account, fetched in one query."""

    user_id: str
    password_hash: str
    role: str
    profile: UserProfile


class AccountDirectory:
    """
    Reads and writes account rows through the caller's session.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def create(
        self,
        email: str,
        password_hash: str,
        first_name: str | None = None,
        last_name: str | None = None,
        role: str = ROLE_USER,
    ) -> UserProfile:
        """
        Insert user, credential, role, and default preferences as one unit.

        Duplicate emails are detected only by the unique index on users.email, so two
        concurrent signups cannot both succeed. Raises EmailConflictError.
        """
        if role not in ROLES:
            raise AccountValidationError(f"Unknown role {role!r}", field="role")
        user = User(email=email, first_name=first_name, last_name=last_name)
        user.credential = Credential(password_hash=password_hash)
        user.role = Role(role=role)
        user.preferences = UserPreferences(
            bills_enabled=True,
            doordash_enabled=False,
            home_maintenance_enabled=False,
        )
        self._db.add(user)
        try:
            self._db.flush()
        except IntegrityError as e:
            raise EmailConflictError("User already exists") from e
        return UserProfile.model_validate(user)

    def find_by_email(self, email: str) -> AccountCredentials | None:
        row = (
            self._db.query(User, Credential.password_hash, Role.role)
            .join(Credential, Credential.user_id == User.id)
            .join(Role, Role.user_id == User.id)
            .filter(User.email == email)
            .first()
        )
        if row is None:
            return None
        user, password_hash, role = row
        return AccountCredentials(
            user_id=user.id,
            password_hash=password_hash,
            role=role,
            profile=UserProfile.model_validate(user),
        )

    def get_profile(self, user_id: str) -> UserProfile | None:
        user = self._db.get(User, user_id)
        return UserProfile.model_validate(user) if user is not None else None

    def get_role(self, user_id: str) -> str | None:
        return self._db.query(Role.role).filter(Role.user_id == user_id).scalar()

    def get_password_hash(self, user_id: str) -> str | None:
        return (
            self._db.query(Credential.password_hash)
            .filter(Credential.user_id == user_id)
            .scalar()
        )

    def update_password(self, user_id: str, new_hash: str) -> None:
        """Replace the stored hash; no history is kept."""
        credential = self._db.get(Credential, user_id)
        if credential is None:
            raise AccountNotFoundError(f"No credential for user {user_id}")
        credential.password_hash = new_hash
        self._db.flush()

    def is_admin(self, user_id: str) -> bool:
        return self.get_role(user_id) == ROLE_ADMIN

    def require_role(self, user_id: str, role: str) -> None:
        """Raise PermissionDeniedError unless the user currently holds `role`."""
        current = self.get_role(user_id)
        if current is None:
            raise AccountNotFoundError(f"No role for user {user_id}")
        if current != role:
            raise PermissionDeniedError(f"Role {role!r} required")

    def set_role(self, user_id: str, role: str) -> None:
        """Change a user's role. Only the out-of-band admin script calls this."""
        if role not in ROLES:
            raise AccountValidationError(f"Unknown role {role!r}", field="role")
        record = self._db.get(Role, user_id)
        if record is None:
            raise AccountNotFoundError(f"No role for user {user_id}")
        record.role = role
        self._db.flush()
        logger.info("Role updated", extra={"user_id": user_id, "role": role})
