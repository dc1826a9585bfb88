"""One-time bootstrap script to create a PDA user (Admin role by default).

Usage:
  python scripts/create_admin.py --user-id ADMIN --name Administrator --saupj 10 --password secret
Or provide via env: ADMIN_USER_ID, ADMIN_PASSWORD, ADMIN_SAUPJ
"""
import os
import argparse
from getpass import getpass

from mes_core.app.config import DEFAULT_SAUPJ
from mes_core.app.db import SessionLocal, create_db_and_tables
from mes_core.app import models
from mes_core.app.security import ROLE_PERMISSIONS, get_password_hash


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument('--user-id')
    parser.add_argument('--name', default='Administrator')
    parser.add_argument('--saupj')
    parser.add_argument('--password')
    parser.add_argument('--role', default='Admin', choices=sorted(ROLE_PERMISSIONS))
    parser.add_argument('--line-code')
    parser.add_argument('--op-code')
    args = parser.parse_args()

    user_id = args.user_id or os.getenv('ADMIN_USER_ID')
    saupj = args.saupj or os.getenv('ADMIN_SAUPJ') or DEFAULT_SAUPJ
    password = args.password or os.getenv('ADMIN_PASSWORD')
    if not user_id:
        user_id = input('User ID: ').strip()
    if not password:
        password = getpass('Password: ')
    user_id = user_id.upper()

    create_db_and_tables()
    db = SessionLocal()
    try:
        existing = db.query(models.User).filter(
            models.User.user_id == user_id, models.User.saupj == saupj
        ).first()
        if existing:
            print('User already exists:', user_id)
            return
        user = models.User(
            user_id=user_id, saupj=saupj, user_name=args.name,
            password_hash=get_password_hash(password), role=args.role,
            line_code=args.line_code, op_code=args.op_code, is_active=True,
        )
        db.add(user)
        db.commit()
        print(f'Created {args.role} user {user_id} for business unit {saupj}')
    finally:
        db.close()


if __name__ == '__main__':
    main()
