# services/labour_service.py
from database import MongoDatabase
from models.labour import LabourCreate
from utils.exceptions import Conflict, InvalidInput, NotFound
from utils.query_utils import build_search_filter, contains_filter, parse_object_id
from pymongo import ASCENDING, ReturnDocument
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

SAMPLE_LABOURERS = [
    {
        "name": "Ramesh Kumar",
        "villageName": "Village A",
        "contactNumber": "9876543210",
        "email": "ramesh@example.com",
        "workTypes": ["Plowing", "Harvesting", "Sowing"],
        "experience": "10 years of experience in agriculture",
        "availability": "Available Monday to Saturday",
        "address": "Village A, Block B, District C",
    },
    {
        "name": "Suresh Singh",
        "villageName": "Village A",
        "contactNumber": "9876543211",
        "workTypes": ["Weeding", "Irrigation", "Fertilizer Application"],
        "experience": "7 years",
        "availability": "Available all week",
        "address": "Village A, Block B, District C",
    },
    {
        "name": "Amit Patel",
        "villageName": "Village B",
        "contactNumber": "9876543212",
        "email": "amit@example.com",
        "workTypes": ["Harvesting", "Plowing"],
        "experience": "5 years in agricultural work",
        "availability": "Available Monday to Friday",
        "address": "Village B, Block A, District C",
    },
    {
        "name": "Rajesh Verma",
        "villageName": "Village B",
        "contactNumber": "9876543213",
        "workTypes": ["Sowing", "Weeding", "Plowing"],
        "experience": "8 years",
        "availability": "Available all week",
        "address": "Village B, Block A, District C",
    },
    {
        "name": "Mohan Das",
        "villageName": "Village C",
        "contactNumber": "9876543214",
        "email": "mohan@example.com",
        "workTypes": ["Harvesting", "Irrigation"],
        "experience": "12 years of farming experience",
        "availability": "Available Monday to Saturday",
        "address": "Village C, Block C, District C",
    },
    {
        "name": "Vikram Singh",
        "villageName": "Village C",
        "contactNumber": "9876543215",
        "workTypes": ["Plowing", "Sowing", "Fertilizer Application"],
        "experience": "6 years",
        "availability": "Available all week",
        "address": "Village C, Block C, District C",
    },
]


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _new_labourer_document(fields: Dict[str, Any]) -> Dict[str, Any]:
    now = datetime.now()
    email = _clean(fields.get("email"))
    return {
        "name": _clean(fields.get("name")),
        "villageName": _clean(fields.get("villageName")),
        "contactNumber": _clean(fields.get("contactNumber")),
        "email": email.lower() if email else None,
        "workTypes": [w.strip() for w in fields.get("workTypes") or [] if w and w.strip()],
        "experience": _clean(fields.get("experience")),
        "availability": _clean(fields.get("availability")),
        "address": _clean(fields.get("address")),
        "isActive": True,
        "totalPresentDays": 0,
        "createdAt": now,
        "updatedAt": now,
    }


class LabourerDirectory:
    """Lookup and maintenance of labourer records, including the present-day counter."""

    def __init__(self, mongo: MongoDatabase):
        self.collection = mongo.labours()

    async def find_by_id(self, labour_id) -> Optional[Dict[str, Any]]:
        oid = parse_object_id(labour_id)
        if oid is None:
            return None
        return await self.collection.find_one({"_id": oid})

    async def get(self, labour_id) -> Dict[str, Any]:
        labourer = await self.find_by_id(labour_id)
        if not labourer:
            raise NotFound("Labourer not found")
        return labourer

    async def find_many(self, labour_ids) -> Dict[str, Dict[str, Any]]:
        """Fetch several labourers at once, keyed by their string id."""
        oids = [oid for oid in (parse_object_id(i) for i in labour_ids) if oid is not None]
        if not oids:
            return {}
        labourers = await self.collection.find({"_id": {"$in": oids}}).to_list(length=None)
        return {str(labourer["_id"]): labourer for labourer in labourers}

    async def increment_present_days(self, labour_id, delta: int):
        """Atomically add delta to the labourer's totalPresentDays."""
        oid = parse_object_id(labour_id)
        result = None
        if oid is not None:
            result = await self.collection.update_one(
                {"_id": oid},
                {"$inc": {"totalPresentDays": delta}, "$set": {"updatedAt": datetime.now()}},
            )
        if result is None or result.matched_count == 0:
            raise NotFound("Labourer not found")
        logger.debug("Adjusted totalPresentDays of labourer %s by %+d", labour_id, delta)

    async def set_present_days(self, labour_id, count: int) -> Dict[str, Any]:
        oid = parse_object_id(labour_id)
        labourer = None
        if oid is not None:
            labourer = await self.collection.find_one_and_update(
                {"_id": oid},
                {"$set": {"totalPresentDays": count, "updatedAt": datetime.now()}},
                return_document=ReturnDocument.AFTER,
            )
        if not labourer:
            raise NotFound("Labourer not found")
        return labourer

    async def _ensure_unique(self, field: str, value: Optional[str], label: str):
        if not value:
            return
        existing = await self.collection.find_one({field: value, "isActive": True})
        if existing:
            raise Conflict(f"Labourer with this {label} already exists")

    async def create(self, labour_data: LabourCreate) -> Dict[str, Any]:
        document = _new_labourer_document(labour_data.model_dump())

        # Validate required fields
        if not document["name"] or not document["villageName"]:
            raise InvalidInput("Name and village name are required")

        await self._ensure_unique("contactNumber", document["contactNumber"], "contact number")
        await self._ensure_unique("email", document["email"], "email")

        result = await self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        logger.info("Registered labourer %s (%s)", result.inserted_id, document["name"])
        return document

    async def list_active(self, village_name: Optional[str] = None, search: Optional[str] = None) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"isActive": True}

        if village_name:
            query["villageName"] = contains_filter(village_name)

        if search:
            query.update(build_search_filter(search, ["name", "villageName"], array_fields=["workTypes"]))

        cursor = self.collection.find(query).sort("name", ASCENDING)
        return await cursor.to_list(length=None)

    async def villages(self) -> List[str]:
        villages = await self.collection.distinct("villageName", {"isActive": True})
        return sorted(v for v in villages if v)

    async def deactivate(self, labour_id) -> Dict[str, Any]:
        oid = parse_object_id(labour_id)
        labourer = None
        if oid is not None:
            labourer = await self.collection.find_one_and_update(
                {"_id": oid},
                {"$set": {"isActive": False, "updatedAt": datetime.now()}},
                return_document=ReturnDocument.AFTER,
            )
        if not labourer:
            raise NotFound("Labourer not found")
        logger.info("Deactivated labourer %s", labour_id)
        return labourer

    async def delete(self, labour_id):
        oid = parse_object_id(labour_id)
        result = None
        if oid is not None:
            result = await self.collection.delete_one({"_id": oid})
        if result is None or result.deleted_count == 0:
            raise NotFound("Labourer not found")
        logger.info("Permanently deleted labourer %s", labour_id)

    async def seed(self) -> List[Dict[str, Any]]:
        """Insert the sample labourers into an empty collection."""
        existing_count = await self.collection.count_documents({})
        if existing_count > 0:
            raise InvalidInput("Labour data already exists. Use POST /labour to add individual labourers.")

        documents = [_new_labourer_document(sample) for sample in SAMPLE_LABOURERS]
        result = await self.collection.insert_many(documents)
        for document, inserted_id in zip(documents, result.inserted_ids):
            document["_id"] = inserted_id
        logger.info("Seeded %d sample labourers", len(documents))
        return documents
