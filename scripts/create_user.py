"""Utility script to create a user profile and print an access token for it."""

from __future__ import annotations

import argparse

from sqlalchemy.exc import SQLAlchemyError

from reelnotify.domain.entities import User
from reelnotify.infrastructure.database import SessionLocal, initialize_database
from reelnotify.infrastructure.repositories import UserRepository
from reelnotify.infrastructure.security import create_access_token


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for user creation."""

    parser = argparse.ArgumentParser(
        description="Create a user and print a bearer token for the notification API.",
    )
    parser.add_argument("username", help="Unique handle of the user")
    parser.add_argument(
        "--display-name",
        default=None,
        help="Name shown next to notifications (defaults to the username)",
    )
    parser.add_argument("--avatar-url", default="", help="Avatar image URL")
    return parser.parse_args()


def main() -> None:
    """Create the user, or reuse it when the username is taken, and print a token."""

    args = parse_args()
    initialize_database()

    session = SessionLocal()
    try:
        repository = UserRepository(session)
        user = repository.get_by_username(args.username)
        if user is None:
            user = repository.create(
                User(
                    id=None,
                    username=args.username,
                    display_name=args.display_name or args.username,
                    avatar_url=args.avatar_url,
                )
            )
    except SQLAlchemyError as exc:
        session.rollback()
        raise SystemExit(f"Could not save the user: {exc}") from exc
    finally:
        session.close()

    print(
        "User ready:\n"
        f"  ID: {user.id}\n"
        f"  Username: {user.username}\n"
        f"  Token: {create_access_token(user.id)}"
    )


if __name__ == "__main__":
    main()
