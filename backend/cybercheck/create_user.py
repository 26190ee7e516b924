#!/usr/bin/env python3
"""
User Provisioning Utility
Creates accounts that can sign in through /auth/login

Usage:
    cybercheck-create-user --login t.aliyev --role teacher --name "Bekzod Aliyev"
    cybercheck-create-user --login admin --role admin --init-db
"""
import argparse
import getpass
import sys
import uuid
from typing import List, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from cybercheck.config import get_settings
from cybercheck.database import build_engine, metadata
from cybercheck.identity import Role
from cybercheck.security import hash_password
from cybercheck.stores import UserRepository


def create_user(
    db_url: str,
    login: str,
    password: str,
    role: Role,
    full_name: Optional[str] = None,
    init_db: bool = False,
) -> str:
    """Insert one user and return its id"""
    engine = build_engine(db_url)
    try:
        if init_db:
            metadata.create_all(engine)

        session = sessionmaker(bind=engine, autoflush=False)()
        try:
            identity = UserRepository(session).create_user(
                user_id=str(uuid.uuid4()),
                login=login,
                password_hash=hash_password(password),
                role=role,
                full_name=full_name,
            )
        finally:
            session.close()
    finally:
        engine.dispose()

    return identity.user_id


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Create a CyberCheck user account"
    )

    parser.add_argument(
        "--login",
        required=True,
        help="Login name used at sign-in"
    )

    parser.add_argument(
        "--role",
        choices=[role.value for role in Role],
        default=Role.STUDENT.value,
        help="Account role"
    )

    parser.add_argument(
        "--name",
        help="Full name shown to teachers"
    )

    parser.add_argument(
        "--password",
        help="Password (prompted for when omitted)"
    )

    parser.add_argument(
        "--db",
        default=None,
        help="Database connection string (defaults to DATABASE_URL)"
    )

    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create missing tables first"
    )

    args = parser.parse_args(argv)

    password = args.password or getpass.getpass("Password: ")
    if not password:
        logger.error("Password must not be empty")
        return 1

    db_url = args.db or get_settings().DATABASE_URL

    try:
        user_id = create_user(db_url, args.login, password, Role(args.role), args.name, init_db=args.init_db)
    except IntegrityError:
        logger.error(f"Login {args.login} is already taken")
        return 1

    print(f"Created {args.role} {args.login} ({user_id})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
