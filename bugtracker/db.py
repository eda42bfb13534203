# bugtracker/db.py
import os
import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

MONGODB_URI = os.getenv("MONGODB_URI")
MONGODB_DB = os.getenv("MONGODB_DB", "bugtracker")
CREATE_INDEXES = os.getenv("CREATE_INDEXES", "true").lower() == "true"

client = AsyncIOMotorClient(MONGODB_URI)

# Explicitly pick your database
db = client[MONGODB_DB]


async def ensure_indexes(database: AsyncIOMotorDatabase):
    """Create the indexes the queries and the email uniqueness rely on."""
    await database.users.create_index("email", unique=True)
    await database.projects.create_index("team_members.user")
    await database.tickets.create_index([("project", 1), ("created_at", -1)])
    await database.comments.create_index([("ticket", 1), ("created_at", -1)])
    logger.info("MongoDB indexes ensured on %s", database.name)
