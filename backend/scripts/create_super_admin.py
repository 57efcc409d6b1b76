"""CLI script to create a superadmin account.
Usage: python scripts/create_super_admin.py [--name NAME] [--email EMAIL] [--password PASSWORD]

Missing values are prompted for interactively; the password prompt does
not echo.
"""
import sys
import argparse
import getpass
import pathlib
# Ensure `backend/` is on sys.path so `admin_panel` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from admin_panel.database import engine, create_db_and_tables
from admin_panel import models, services


def main(name: str, email: str, password: str) -> int:
    """Store a new `superadmin`; returns a process exit code."""
    if len(password) < 6:
        print('Password must be at least 6 characters')
        return 1
    create_db_and_tables()
    with Session(engine) as session:
        try:
            user = services.AuthService(session).register(name, email, password, models.ROLE_SUPERADMIN)
        except ValueError as e:
            print(f'Could not create superadmin: {e}')
            return 1
        print(f'Superadmin created: {user.email} (id {user.id})')
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Create a superadmin account')
    parser.add_argument('--name', help='Display name')
    parser.add_argument('--email', help='Login e-mail')
    parser.add_argument('--password', help='Password (prompted when omitted)')
    args = parser.parse_args()
    name = args.name or input('Name: ').strip()
    email = args.email or input('Email: ').strip()
    password = args.password or getpass.getpass('Password: ')
    if not name or not email:
        print('Name and email are required')
        sys.exit(1)
    sys.exit(main(name, email, password))
