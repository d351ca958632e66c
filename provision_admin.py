# provision_admin.py
"""
Create (or link) an administrator account out of band.

    python provision_admin.py --email admin@campus.edu --name Admin

The password is prompted for only when the auth account is new; nothing is stored in the app.
Requires the service account configured in FIREBASE_CREDENTIALS.
"""
import argparse
import getpass
import logging
import sys
from typing import Callable

from firebase_admin import auth as admin_auth
from firebase_admin.exceptions import FirebaseError

import firebase_client
from config import get_settings
from errors import ComplaintTrackerError
from models import new_user_record
from repository import UserRepository

logger = logging.getLogger(__name__)


def ensure_auth_account(email: str, name: str, ask_password: Callable[[], str]) -> str:
    """Return the uid for email, creating the auth account (and asking for its password) if needed."""
    try:
        user = admin_auth.get_user_by_email(email)
        logger.info("Auth account for %s already exists (%s)", email, user.uid)
        return user.uid
    except admin_auth.UserNotFoundError:
        pass
    user = admin_auth.create_user(email=email, password=ask_password(), display_name=name)
    logger.info("Created auth account %s for %s", user.uid, email)
    return user.uid


def provision_admin(users: UserRepository, uid: str, email: str, name: str,
                    staff_id: str, department: str) -> str:
    """
    Store the administrator record for uid. Roles are fixed at creation, so an
    existing regular record is refused rather than promoted.
    """
    existing = users.find_by_uid(uid)
    if existing is not None:
        if not existing.get("isAdmin"):
            raise ComplaintTrackerError(f"{email} is already registered as a regular user.")
        logger.info("Administrator record already present (%s)", existing["id"])
        return existing["id"]
    return users.create(new_user_record(uid, name, staff_id, email, department, is_admin=True))


def main(argv=None):
    parser = argparse.ArgumentParser(description="Provision a complaint tracker administrator")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default="Admin")
    parser.add_argument("--staff-id", default="ADMIN001")
    parser.add_argument("--department", default="Administration")
    args = parser.parse_args(argv)

    logging.basicConfig(level=get_settings().log_level)

    def ask_password():
        password = getpass.getpass("Password for new administrator: ")
        if len(password) < 6:
            parser.error("password must be at least 6 characters")
        return password

    try:
        users = UserRepository(firebase_client.get_db())
        uid = ensure_auth_account(args.email, args.name, ask_password)
        doc_id = provision_admin(users, uid, args.email, args.name, args.staff_id, args.department)
    except (ComplaintTrackerError, FirebaseError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    print(f"Administrator ready: uid={uid} record={doc_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
