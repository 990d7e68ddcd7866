"""Print a bearer token for a dashboard user.

Usage:
    python -m restaurant_backend.issue_token admin@restaurant.com
    python -m restaurant_backend.issue_token new@restaurant.com --create --role manager --name "Floor Manager"
"""
import argparse
import sys

from restaurant_backend.auth import jwt_handler
from restaurant_backend.auth.permissions import UserRole
from restaurant_backend.database import Base, SessionLocal, engine
from restaurant_backend.models.user import User


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Issue an access token for a dashboard user.")
    parser.add_argument("email", help="Email of the user the token is issued for")
    parser.add_argument("--create", action="store_true", help="Create the user if it does not exist")
    parser.add_argument(
        "--role",
        choices=[role.value for role in UserRole],
        default=UserRole.STAFF.value,
        help="Role for a newly created user (default: staff)",
    )
    parser.add_argument("--name", default="", help="Display name for a newly created user")
    parser.add_argument("--expires-minutes", type=int, default=None, help="Token lifetime override")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    email = args.email.strip().lower()

    Base.metadata.create_all(bind=engine, tables=[User.__table__])
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        if user is None:
            if not args.create:
                print(f"No user with email {email}. Pass --create to add one.", file=sys.stderr)
                return 1
            user = User(email=email, name=args.name or email, role=args.role)
            db.add(user)
            db.commit()
            db.refresh(user)
    finally:
        db.close()

    print(jwt_handler.create_access_token(subject=user.email, role=user.role, expires_minutes=args.expires_minutes))
    return 0


if __name__ == "__main__":
    sys.exit(main())
