from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from app.config.setting import settings
import logging

load_dotenv()

logger = logging.getLogger(__name__)


class MongoDB:
    def __init__(self, uri: str, db_name: str):
        self.uri = uri
        self.client = None
        self.db = None
        self.db_name = db_name

    async def init_db(self):
        # Motor connects lazily, the first query opens the socket
        self.client = AsyncIOMotorClient(self.uri)
        self.db = self.client[self.db_name]
        logger.info(f"MongoDB client created for database '{self.db_name}'")

    def get_db(self):
        return self.db

    def get_collection(self, name: str):
        if self.db is None:
            raise Exception("MongoDB not connected")
        return self.db[name]

    def close(self):
        if self.client is not None:
            self.client.close()
            self.client = None
            self.db = None


mongodb = MongoDB(uri=settings.mongo_uri, db_name=settings.mongo_db_name)
