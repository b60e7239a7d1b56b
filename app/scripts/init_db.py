"""
Initialize Database Script
Creates the system tables (users, model_definitions) and optionally promotes a
user to Admin by email. Safe to run repeatedly.

Usage: python -m app.scripts.init_db [--admin-email someone@example.com]
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from app.config.permissions_config import Role
from app.database.session import SessionLocal, init_db
from app.modules.users.service import UserService
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def promote_admin(email: str) -> bool:
    """Give the Admin role to an existing user. The user must have signed in once."""
    with SessionLocal() as db:
        service = UserService(db)
        user = service.get_user_by_email(email)
        if user is None:
            logger.error(f"No local user with email {email}; sign in once to create it")
            return False
        service.set_role(user.id, Role.ADMIN)
        logger.info(f"Promoted {email} (id {user.id}) to Admin")
        return True


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--admin-email", help="promote this user to Admin")
    args = parser.parse_args(argv)

    logger.info("Creating system tables...")
    init_db()
    logger.info("System tables ready")

    if args.admin_email and not promote_admin(args.admin_email):
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
