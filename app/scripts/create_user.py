"""
Create a user from the shell. Run from project root:
  python -m app.scripts.create_user NAME EMAIL PASSWORD [user_type]
Example:
  python -m app.scripts.create_user "Coop Admin" admin@coop.example your-secure-password COOPERATIVA
"""
import argparse
import sys

from app.core.database import SessionLocal
from app.core.security import NAME_MAX_LEN, PASSWORD_MAX_LEN, PASSWORD_MIN_LEN, hash_password
from app.models.user import USER_TYPES, User


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create an AgroView user.")
    parser.add_argument("name", help=f"Display name (1-{NAME_MAX_LEN} chars)")
    parser.add_argument("email", help="Email address (unique)")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument("user_type", nargs="?", default="PRODUTOR", choices=USER_TYPES)
    args = parser.parse_args(argv)

    name = args.name.strip()
    email = args.email.strip().lower()
    if not name or len(name) > NAME_MAX_LEN:
        print("Invalid name length.", file=sys.stderr)
        return 1
    if "@" not in email:
        print("Invalid email address.", file=sys.stderr)
        return 1
    if len(args.password) < PASSWORD_MIN_LEN or len(args.password) > PASSWORD_MAX_LEN:
        print(
            f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.",
            file=sys.stderr,
        )
        return 1

    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            print(f"User '{email}' already exists.", file=sys.stderr)
            return 1
        user = User(
            name=name,
            email=email,
            password_hash=hash_password(args.password),
            role=args.user_type,
        )
        db.add(user)
        db.commit()
        print(f"Created user '{email}' with type '{args.user_type}'.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
