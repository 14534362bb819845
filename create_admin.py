"""Create or promote an admin account.

    python create_admin.py admin@example.com "Ops Admin" s3cret
"""
import sys
import logging

from database import get_db, create_document
from main import hash_password
from schemas import User

logger = logging.getLogger(__name__)


def create_admin(email: str, name: str, password: str) -> str:
    db = get_db()
    if db is None:
        raise RuntimeError("Database not configured")
    email = email.strip().lower()
    existing = db["users"].find_one({"email": email})
    if existing:
        db["users"].update_one(
            {"_id": existing["_id"]},
            {"$set": {"role": "admin", "password_hash": hash_password(password), "is_active": True}},
        )
        logger.info("Promoted %s to admin", email)
        return str(existing["_id"])
    user = User(email=email, name=name, role="admin", password_hash=hash_password(password))
    user_id = create_document("users", user)
    logger.info("Created admin %s", email)
    return user_id


if __name__ == "__main__":
    if len(sys.argv) != 4:
        print(__doc__)
        sys.exit(1)
    print(create_admin(*sys.argv[1:]))
