# database.py
from motor.motor_asyncio import AsyncIOMotorClient
from fastapi import Request
from pymongo import ASCENDING
import logging

logger = logging.getLogger(__name__)

LABOUR_COLLECTION = "labours"
ASSIGNMENT_COLLECTION = "labourassignments"
EMPLOYEE_COLLECTION = "employees"


class MongoDatabase:
    """
    Owned handle on the Mongo client.

    Opened once at application startup and closed at shutdown. A client
    passed in by the caller (tests, scripts) is used as-is and left open
    on close, since the caller owns it.
    """

    def __init__(self, uri: str, db_name: str, client=None):
        self.uri = uri
        self.db_name = db_name
        self._client = client
        self._owns_client = client is None
        self._db = None

    async def connect(self):
        if self._client is None:
            self._client = AsyncIOMotorClient(self.uri)
        self._db = self._client[self.db_name]
        logger.info("MongoDB handle opened for database %s", self.db_name)
        await self.ensure_indexes()
        return self

    def close(self):
        if self._client is not None and self._owns_client:
            self._client.close()
            logger.info("MongoDB connection closed")
        self._db = None

    @property
    def db(self):
        if self._db is None:
            raise RuntimeError("MongoDatabase.connect() has not been called")
        return self._db

    def labours(self):
        return self.db[LABOUR_COLLECTION]

    def assignments(self):
        return self.db[ASSIGNMENT_COLLECTION]

    def employees(self):
        return self.db[EMPLOYEE_COLLECTION]

    async def ensure_indexes(self):
        labours = self.labours()
        await labours.create_index([("villageName", ASCENDING)])
        await labours.create_index([("name", ASCENDING)])
        await labours.create_index([("isActive", ASCENDING)])

        assignments = self.assignments()
        await assignments.create_index([("labourId", ASCENDING), ("farmerId", ASCENDING)])
        await assignments.create_index([("farmerId", ASCENDING)])
        await assignments.create_index([("assignmentDate", ASCENDING)])
        await assignments.create_index([("status", ASCENDING)])

        employees = self.employees()
        for field in (
            "personalDetails.email",
            "personalDetails.mobileNumber",
            "employmentDetails.employeeId",
        ):
            await employees.create_index([(field, ASCENDING)], unique=True)
        await employees.create_index([("employmentDetails.department", ASCENDING)])


def get_database(request: Request) -> MongoDatabase:
    return request.app.state.mongo
