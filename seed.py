"""Reset the user collection and create the demo accounts."""

import logging
import sys

from pymongo.errors import PyMongoError

from auth import hash_password
from database import create_document, db, ensure_indexes
from schemas import User, UserPreferences

logger = logging.getLogger("distracto.seed")

SEED_USERS = [
    {
        "email": "admin@distracto.com",
        "password": "admin123",
        "display_name": "Admin User",
        "preferences": {
            "distracto_id": "admin",
            "goal": "Manage the platform",
            "occupation": "Administrator",
            "interests": ["Management", "Technology"],
        },
    },
    {
        "email": "demo@distracto.com",
        "password": "demo123",
        "display_name": "Demo User",
        "preferences": {
            "distracto_id": "demo",
            "goal": "Improve productivity",
            "occupation": "Software Developer",
            "interests": ["Coding", "Productivity", "Technology"],
        },
    },
]


def seed_users(users=SEED_USERS) -> list:
    result = db["user"].delete_many({})
    logger.info("Cleared %d existing users", result.deleted_count)
    ids = []
    for data in users:
        user = User(
            email=data["email"],
            password_hash=hash_password(data["password"]),
            display_name=data["display_name"],
            preferences=UserPreferences(**data["preferences"]),
        )
        ids.append(create_document("user", user))
        logger.info("Created user: %s", user.email)
    return ids


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        ensure_indexes()
        seed_users()
    except PyMongoError:
        logger.exception("Error seeding database")
        return 1
    logger.info("Database seeded successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
