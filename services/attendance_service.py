# services/attendance_service.py
from database import MongoDatabase
from models.attendance_model import (
    ASSIGNMENT_ASSIGNED,
    ASSIGNMENT_CONFIRMED,
    ATTENDANCE_ABSENT,
    ATTENDANCE_PENDING,
    ATTENDANCE_PRESENT,
    SETTABLE_ATTENDANCE_STATUSES,
    AssignmentCreate,
    AttendanceUpdate,
)
from services.labour_service import LabourerDirectory
from utils.exceptions import Conflict, InvalidInput, NotFound, StorePersistenceFailure
from utils.query_utils import day_bounds, parse_object_id, to_local_naive
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError
from datetime import datetime
from typing import Any, Dict, Iterable, List
import logging

logger = logging.getLogger(__name__)


def previous_attendance_status(assignment: Dict[str, Any]) -> str:
    """Current attendance status of an assignment, `pending` if none was ever recorded."""
    attendance = assignment.get("attendance") or {}
    return attendance.get("status") or ATTENDANCE_PENDING


def present_days_delta(previous_status: str, new_status: str) -> int:
    """
    Change to apply to a labourer's totalPresentDays when an assignment's
    attendance moves from previous_status to new_status.
    """
    if previous_status == new_status:
        return 0
    if new_status == ATTENDANCE_PRESENT:
        return 1
    if previous_status == ATTENDANCE_PRESENT:
        return -1
    return 0


def _status_filter(status: str):
    # Assignments written before attendance tracking have no attendance sub-document
    if status == ATTENDANCE_PENDING:
        return {"$in": [ATTENDANCE_PENDING, None]}
    return status


class AttendanceLedger:
    """
    Owns labourer assignments and keeps each labourer's totalPresentDays
    equal to the number of their assignments currently marked present.

    Attendance writes are conditional on the status read beforehand, so a
    concurrent change to the same assignment is detected and the whole
    read-compute-write is redone instead of applying a stale delta.
    """

    def __init__(self, mongo: MongoDatabase, directory: LabourerDirectory, max_attempts: int = 5):
        self.collection = mongo.assignments()
        self.directory = directory
        self.max_attempts = max(1, max_attempts)

    async def _find(self, assignment_id) -> Dict[str, Any]:
        oid = parse_object_id(assignment_id)
        assignment = None
        if oid is not None:
            assignment = await self.collection.find_one({"_id": oid})
        if not assignment:
            raise NotFound("Assignment not found")
        return assignment

    async def _resolve_labourers(self, assignments: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        labourers = await self.directory.find_many({a["labourId"] for a in assignments})
        for assignment in assignments:
            assignment["labourId"] = labourers.get(str(assignment["labourId"]))
        return assignments

    async def create_assignment(self, labour_id, assignment_data: AssignmentCreate) -> Dict[str, Any]:
        farmer_id = (assignment_data.farmerId or "").strip()
        if not farmer_id:
            raise InvalidInput("Farmer ID is required")

        # Check if labourer exists
        labourer = await self.directory.find_by_id(labour_id)
        if not labourer:
            raise NotFound("Labourer not found")

        now = datetime.now()
        assignment = {
            "labourId": labourer["_id"],
            "farmerId": farmer_id,
            "assignmentDate": to_local_naive(assignment_data.assignmentDate) or now,
            "status": ASSIGNMENT_ASSIGNED,
            "attendance": {"status": ATTENDANCE_PENDING},
            "notes": (assignment_data.notes or "").strip(),
            "createdAt": now,
            "updatedAt": now,
        }
        result = await self.collection.insert_one(assignment)
        assignment["_id"] = result.inserted_id
        logger.info("Assigned labourer %s to farmer %s (assignment %s)", labourer["_id"], farmer_id, result.inserted_id)
        return assignment

    async def set_attendance(self, assignment_id, update: AttendanceUpdate) -> Dict[str, Any]:
        """
        Record present/absent for an assignment and adjust the labourer's counter.

        Args:
            assignment_id: ID of the assignment
            update: New attendance status with optional date, time and notes

        Returns:
            The updated assignment document
        """
        new_status = (update.status or "").strip().lower()
        if new_status not in SETTABLE_ATTENDANCE_STATUSES:
            raise InvalidInput("Valid attendance status (present/absent) is required")

        for attempt in range(1, self.max_attempts + 1):
            assignment = await self._find(assignment_id)
            previous_status = previous_attendance_status(assignment)
            delta = present_days_delta(previous_status, new_status)

            now = datetime.now()
            attendance = {
                "status": new_status,
                "date": to_local_naive(update.date) or now,
                "time": update.time or now.strftime("%H:%M"),
                "notes": (update.notes or "").strip(),
                "confirmedAt": now,
            }

            # Counter first: an unknown labourer aborts before anything is written
            if delta:
                await self._backfill_counter(assignment["labourId"])
                await self.directory.increment_present_days(assignment["labourId"], delta)

            try:
                updated = await self.collection.find_one_and_update(
                    {"_id": assignment["_id"], "attendance.status": _status_filter(previous_status)},
                    {"$set": {
                        "attendance": attendance,
                        "status": ASSIGNMENT_CONFIRMED,
                        "updatedAt": now,
                    }},
                    return_document=ReturnDocument.AFTER,
                )
            except PyMongoError as exc:
                logger.exception("Saving attendance for assignment %s failed", assignment["_id"])
                await self._compensate(assignment["labourId"], delta)
                raise StorePersistenceFailure("Failed to save attendance") from exc

            if updated is not None:
                logger.info(
                    "Attendance for assignment %s: %s -> %s (present days %+d)",
                    assignment["_id"], previous_status, new_status, delta,
                )
                return updated

            # Someone else changed the status since we read it
            await self._compensate(assignment["labourId"], delta)
            logger.info(
                "Attendance for assignment %s changed concurrently, retrying (attempt %d/%d)",
                assignment["_id"], attempt, self.max_attempts,
            )

        raise Conflict("Attendance for this assignment is being updated concurrently, please retry")

    async def _backfill_counter(self, labour_id):
        # Labourers stored before the counter existed start from their assignment records
        labourer = await self.directory.find_by_id(labour_id)
        if labourer and "totalPresentDays" not in labourer:
            await self.recount_present_days(labourer["_id"])

    async def _compensate(self, labour_id, delta: int):
        if not delta:
            return
        try:
            await self.directory.increment_present_days(labour_id, -delta)
        except (PyMongoError, NotFound):
            logger.exception(
                "Could not revert totalPresentDays of labourer %s by %+d; recount required",
                labour_id, -delta,
            )

    async def get_assignment(self, assignment_id) -> Dict[str, Any]:
        assignment = await self._find(assignment_id)
        resolved = await self._resolve_labourers([assignment])
        return resolved[0]

    async def list_assignments_by_farmer(self, farmer_id: str) -> List[Dict[str, Any]]:
        cursor = self.collection.find({"farmerId": farmer_id}).sort("createdAt", DESCENDING)
        assignments = await cursor.to_list(length=None)
        return await self._resolve_labourers(assignments)

    async def compute_today_attendance(self, labour_ids: Iterable, day=None) -> Dict[str, str]:
        """
        Today's attendance per labourer.

        Labourers with no assignment today are left out of the result. When a
        labourer has several assignments today, the most recently created one
        decides.
        """
        oids = [oid for oid in (parse_object_id(i) for i in labour_ids) if oid is not None]
        if not oids:
            return {}

        start, end = day_bounds(day)
        cursor = self.collection.find({
            "labourId": {"$in": oids},
            "assignmentDate": {"$gte": start, "$lte": end},
        }).sort([("createdAt", ASCENDING), ("_id", ASCENDING)])
        assignments = await cursor.to_list(length=None)

        attendance_map: Dict[str, str] = {}
        for assignment in assignments:
            status = previous_attendance_status(assignment)
            if status not in (ATTENDANCE_PRESENT, ATTENDANCE_ABSENT):
                status = ATTENDANCE_PENDING
            attendance_map[str(assignment["labourId"])] = status
        return attendance_map

    async def recount_present_days(self, labour_id) -> Dict[str, Any]:
        """Recompute a labourer's totalPresentDays from the assignment records."""
        labourer = await self.directory.find_by_id(labour_id)
        if not labourer:
            raise NotFound("Labourer not found")

        count = await self.collection.count_documents({
            "labourId": labourer["_id"],
            "attendance.status": ATTENDANCE_PRESENT,
        })
        if count != labourer.get("totalPresentDays", 0):
            logger.warning(
                "totalPresentDays of labourer %s was %s, recounted %d",
                labourer["_id"], labourer.get("totalPresentDays"), count,
            )
        return await self.directory.set_present_days(labourer["_id"], count)
