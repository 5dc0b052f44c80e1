"""
MongoDB connection.

``db`` is a pymongo Database when DATABASE_URL and DATABASE_NAME are set,
otherwise None and the API runs on in-memory storage.
"""
import logging

from pymongo import MongoClient

from config import settings

logger = logging.getLogger(__name__)

client = None
db = None

if settings.database_configured:
    client = MongoClient(settings.database_url)
    db = client[settings.database_name]
    logger.info("Using MongoDB database %s", settings.database_name)
else:
    logger.info("DATABASE_URL/DATABASE_NAME not set, MongoDB disabled")
