#!/usr/bin/env python3
# scripts/create_admin.py - Create an administrator account from the command line
"""
Usage: python scripts/create_admin.py --email admin@example.com [--nome "Nome"] [--superadmin]

The password is read from --password or prompted for when omitted.
"""
import argparse
import getpass
import sys
import os

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pg_repense.core.db import db_manager
from pg_repense.core.security import password_manager
from pg_repense.models.admin import AdminRole
from pg_repense.services.auth_service import AuthService


def create_admin(email: str, password: str, nome: str = None, superadmin: bool = False) -> bool:
    role = AdminRole.SUPERADMIN.value if superadmin else AdminRole.ADMIN.value

    strength = password_manager.validate_password_strength(password)
    if not strength["valid"]:
        print("Password rejected:")
        for item in strength["feedback"]:
            print(f"  - {item}")
        return False

    try:
        with db_manager.transaction() as session:
            admin = AuthService(session).create_admin(email, password, nome=nome, role=role)
    except ValueError as e:
        print(f"Could not create admin: {e}")
        return False

    print(f"Admin created: {admin.email} ({admin.role}) id={admin.id}")
    return True


def main():
    parser = argparse.ArgumentParser(description="Create a PG Repense administrator")
    parser.add_argument("--email", required=True)
    parser.add_argument("--nome", default=None)
    parser.add_argument("--password", default=None)
    parser.add_argument("--superadmin", action="store_true", help="Grant access to the audit trail")
    args = parser.parse_args()

    password = args.password or getpass.getpass("Password: ")
    if not create_admin(args.email, password, nome=args.nome, superadmin=args.superadmin):
        sys.exit(1)


if __name__ == "__main__":
    main()
