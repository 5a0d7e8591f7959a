"""
Create a user (e.g. the first admin) or change an existing user's role. Run from project root:
  python -m app.scripts.create_user EMAIL PASSWORD [role]
Example:
  python -m app.scripts.create_user admin@example.com your-secure-password admin

This is the only way to grant 'admin'; signup always creates 'user' accounts.
"""
import argparse
import sys

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.exceptions import EmailConflictError
from app.core.security import EMAIL_MAX_LEN, PASSWORD_MAX_LEN, PASSWORD_MIN_LEN, hash_password
from app.models.user import ROLES
from app.services.accounts import AccountDirectory


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a HomeLedger user or update its role.")
    parser.add_argument("email", help=f"Email (1-{EMAIL_MAX_LEN} chars)")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument("role", nargs="?", default="user", choices=list(ROLES))
    args = parser.parse_args(argv)

    email = args.email.strip()
    if not email or len(email) > EMAIL_MAX_LEN or "@" not in email:
        print("Invalid email.", file=sys.stderr)
        return 1
    if not (PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN):
        print(f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.", file=sys.stderr)
        return 1

    settings = get_settings()
    db = SessionLocal()
    try:
        accounts = AccountDirectory(db)
        password_hash = hash_password(args.password, rounds=settings.BCRYPT_ROUNDS)
        try:
            profile = accounts.create(email, password_hash, role=args.role)
            db.commit()
            print(f"Created user '{email}' ({profile.id}) with role '{args.role}'.")
            return 0
        except EmailConflictError:
            db.rollback()

        existing = accounts.find_by_email(email)
        if existing is None:
            print(f"Could not create or find user '{email}'.", file=sys.stderr)
            return 1
        accounts.update_password(existing.user_id, password_hash)
        accounts.set_role(existing.user_id, args.role)
        db.commit()
        print(f"User '{email}' already existed; password reset and role set to '{args.role}'.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
