# services/employee_service.py

from database import MongoDatabase
from models.employee import EmployeeCreate, EmployeeUpdate
from utils.exceptions import Conflict, InvalidInput, NotFound
from utils.query_utils import build_search_filter, parse_object_id
from pymongo import DESCENDING, ReturnDocument
from datetime import datetime
from typing import Any, Dict, Optional
import math
import logging

logger = logging.getLogger(__name__)

FIELD_GROUPS = ("personalDetails", "employmentDetails", "identityAndCompliance", "bankingDetails")


def normalize_groups(groups: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply the stored casing rules to the unique fields of an employee record:
    email in lower case, employee ID in upper case, both trimmed.
    """
    personal = groups.get("personalDetails")
    if personal:
        if personal.get("email"):
            personal["email"] = personal["email"].strip().lower()
        if personal.get("mobileNumber"):
            personal["mobileNumber"] = personal["mobileNumber"].strip()
    employment = groups.get("employmentDetails")
    if employment and employment.get("employeeId"):
        employment["employeeId"] = employment["employeeId"].strip().upper()
    return groups


async def _find_employee(mongo: MongoDatabase, employee_id: str) -> Dict[str, Any]:
    oid = parse_object_id(employee_id)
    employee = None
    if oid is not None:
        employee = await mongo.employees().find_one({"_id": oid})
    if not employee:
        raise NotFound("Employee not found")
    return employee


async def register_employee(mongo: MongoDatabase, employee_data: EmployeeCreate):
    groups = employee_data.model_dump(exclude_none=True)

    # Validate required field groups
    if any(group not in groups for group in FIELD_GROUPS):
        raise InvalidInput(
            "All field groups are required: personalDetails, employmentDetails, "
            "identityAndCompliance, bankingDetails"
        )
    groups = normalize_groups(groups)
    collection = mongo.employees()

    # Check if employee with same email already exists
    if await collection.find_one({"personalDetails.email": groups["personalDetails"]["email"]}):
        raise Conflict("Employee with this email already exists")

    # Check if employee with same mobile number already exists
    if await collection.find_one({"personalDetails.mobileNumber": groups["personalDetails"]["mobileNumber"]}):
        raise Conflict("Employee with this mobile number already exists")

    # Check if employee ID already exists
    if await collection.find_one({"employmentDetails.employeeId": groups["employmentDetails"]["employeeId"]}):
        raise Conflict("Employee with this employee ID already exists")

    now = datetime.now()
    employee_doc = dict(groups, isActive=True, createdAt=now, updatedAt=now)
    result = await collection.insert_one(employee_doc)
    employee_doc["_id"] = result.inserted_id
    logger.info("Registered employee %s", groups["employmentDetails"]["employeeId"])
    return employee_doc


async def get_employees(
    mongo: MongoDatabase,
    page: int = 1,
    limit: int = 10,
    is_active: Optional[bool] = None,
    department: Optional[str] = None,
    employment_type: Optional[str] = None,
    verification_status: Optional[str] = None,
    search: Optional[str] = None,
):
    """Get employees with pagination and filtering, newest first."""
    page = max(page, 1)
    limit = max(limit, 1)
    skip = (page - 1) * limit

    # Build query
    query: Dict[str, Any] = {}
    if is_active is not None:
        query["isActive"] = is_active
    if department:
        query["employmentDetails.department"] = department
    if employment_type:
        query["employmentDetails.employmentType"] = employment_type
    if verification_status:
        query["identityAndCompliance.verificationStatus"] = verification_status
    if search:
        query.update(build_search_filter(search, [
            "personalDetails.firstName",
            "personalDetails.lastName",
            "employmentDetails.employeeId",
        ]))

    collection = mongo.employees()
    cursor = collection.find(query).sort("createdAt", DESCENDING).skip(skip).limit(limit)
    employees = await cursor.to_list(length=limit)

    # Get total count for pagination
    total = await collection.count_documents(query)

    return {
        "employees": employees,
        "total": total,
        "page": page,
        "totalPages": math.ceil(total / limit),
    }


async def get_employee(mongo: MongoDatabase, employee_id: str):
    return await _find_employee(mongo, employee_id)


async def get_employee_by_employee_id(mongo: MongoDatabase, employee_code: str):
    employee = await mongo.employees().find_one({"employmentDetails.employeeId": employee_code.strip().upper()})
    if not employee:
        raise NotFound("Employee not found")
    return employee


async def update_employee(mongo: MongoDatabase, employee_id: str, employee_data: EmployeeUpdate):
    update_data = normalize_groups(employee_data.model_dump(exclude_none=True))
    collection = mongo.employees()
    oid = parse_object_id(employee_id)

    # Prevent taking over another employee's ID
    new_code = (update_data.get("employmentDetails") or {}).get("employeeId")
    if new_code and oid is not None:
        existing = await collection.find_one({
            "employmentDetails.employeeId": new_code,
            "_id": {"$ne": oid},
        })
        if existing:
            raise Conflict("Employee ID already exists")

    update_data["updatedAt"] = datetime.now()
    employee = None
    if oid is not None:
        employee = await collection.find_one_and_update(
            {"_id": oid},
            {"$set": update_data},
            return_document=ReturnDocument.AFTER,
        )
    if not employee:
        raise NotFound("Employee not found")
    return employee


async def deactivate_employee(mongo: MongoDatabase, employee_id: str):
    oid = parse_object_id(employee_id)
    employee = None
    if oid is not None:
        employee = await mongo.employees().find_one_and_update(
            {"_id": oid},
            {"$set": {"isActive": False, "updatedAt": datetime.now()}},
            return_document=ReturnDocument.AFTER,
        )
    if not employee:
        raise NotFound("Employee not found")
    logger.info("Deactivated employee %s", employee_id)
    return employee


async def delete_employee(mongo: MongoDatabase, employee_id: str):
    employee = await _find_employee(mongo, employee_id)
    await mongo.employees().delete_one({"_id": employee["_id"]})
    logger.info("Permanently deleted employee %s", employee_id)


async def _count_by(collection, field: str, match: Optional[Dict[str, Any]] = None):
    pipeline = []
    if match:
        pipeline.append({"$match": match})
    pipeline.extend([
        {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
    ])
    return await collection.aggregate(pipeline).to_list(length=None)


async def get_employee_stats(mongo: MongoDatabase):
    collection = mongo.employees()
    active = {"isActive": True}
    return {
        "totalEmployees": await collection.count_documents(active),
        "employeesByDepartment": await _count_by(collection, "employmentDetails.department", active),
        "employeesByEmploymentType": await _count_by(collection, "employmentDetails.employmentType", active),
        "employeesByVerificationStatus": await _count_by(collection, "identityAndCompliance.verificationStatus"),
    }
