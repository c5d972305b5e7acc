import asyncio
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from bson.objectid import ObjectId
from pymongo.errors import OperationFailure

from models.attendance_model import AssignmentCreate, AttendanceUpdate
from models.labour import LabourCreate
from services.attendance_service import AttendanceLedger, present_days_delta, previous_attendance_status
from utils.exceptions import Conflict, InvalidInput, NotFound, StorePersistenceFailure


async def present_days(directory, labourer):
    return (await directory.get(labourer["_id"]))["totalPresentDays"]


@pytest_asyncio.fixture
async def assignment(ledger, labourer):
    return await ledger.create_assignment(labourer["_id"], AssignmentCreate(farmerId="farmer-1"))


class LostUpdateCollection:
    """Assignment collection whose conditional writes never match."""

    def __init__(self, collection):
        self._collection = collection

    async def find_one_and_update(self, *args, **kwargs):
        return None

    def __getattr__(self, name):
        return getattr(self._collection, name)


class FailingWriteCollection(LostUpdateCollection):
    async def find_one_and_update(self, *args, **kwargs):
        raise OperationFailure("write failed")


@pytest.mark.parametrize("previous, new, expected", [
    ("pending", "present", 1),
    ("absent", "present", 1),
    ("present", "absent", -1),
    ("pending", "absent", 0),
    ("present", "present", 0),
    ("absent", "absent", 0),
])
def test_present_days_delta(previous, new, expected):
    assert present_days_delta(previous, new) == expected


def test_previous_status_defaults_to_pending():
    assert previous_attendance_status({}) == "pending"
    assert previous_attendance_status({"attendance": None}) == "pending"
    assert previous_attendance_status({"attendance": {"status": "absent"}}) == "absent"


async def test_create_assignment_starts_pending(ledger, directory, labourer, assignment):
    assert assignment["status"] == "assigned"
    assert assignment["attendance"] == {"status": "pending"}
    assert assignment["labourId"] == labourer["_id"]
    assert assignment["farmerId"] == "farmer-1"
    assert isinstance(assignment["assignmentDate"], datetime)
    assert await present_days(directory, labourer) == 0


async def test_create_assignment_keeps_given_date(ledger, labourer):
    when = datetime(2026, 3, 14, 7, 30)
    assignment = await ledger.create_assignment(
        labourer["_id"], AssignmentCreate(farmerId="farmer-1", assignmentDate=when, notes=" bring tools "),
    )
    assert assignment["assignmentDate"] == when
    assert assignment["notes"] == "bring tools"


async def test_create_assignment_requires_farmer(ledger, labourer):
    with pytest.raises(InvalidInput):
        await ledger.create_assignment(labourer["_id"], AssignmentCreate(farmerId="  "))


@pytest.mark.parametrize("labour_id", [str(ObjectId()), "not-an-id"])
async def test_create_assignment_unknown_labourer(ledger, labour_id):
    with pytest.raises(NotFound):
        await ledger.create_assignment(labour_id, AssignmentCreate(farmerId="farmer-1"))
    assert await ledger.collection.count_documents({}) == 0


async def test_present_increments_counter(ledger, directory, labourer, assignment):
    updated = await ledger.set_attendance(assignment["_id"], AttendanceUpdate(status="present", notes="on time"))

    assert updated["status"] == "confirmed"
    assert updated["attendance"]["status"] == "present"
    assert updated["attendance"]["notes"] == "on time"
    assert updated["attendance"]["time"]
    assert updated["attendance"]["confirmedAt"]
    assert await present_days(directory, labourer) == 1


async def test_status_is_case_insensitive(ledger, directory, labourer, assignment):
    updated = await ledger.set_attendance(assignment["_id"], AttendanceUpdate(status="PRESENT"))
    assert updated["attendance"]["status"] == "present"
    assert await present_days(directory, labourer) == 1


async def test_repeated_present_counts_once(ledger, directory, labourer, assignment):
    await ledger.set_attendance(assignment["_id"], AttendanceUpdate(status="present"))
    await ledger.set_attendance(assignment["_id"], AttendanceUpdate(status="present"))
    assert await present_days(directory, labourer) == 1


async def test_flip_scenario(ledger, directory, labourer, assignment):
    await ledger.set_attendance(assignment["_id"], AttendanceUpdate(status="present"))
    assert await present_days(directory, labourer) == 1

    await ledger.set_attendance(assignment["_id"], AttendanceUpdate(status="absent"))
    assert await present_days(directory, labourer) == 0

    await ledger.set_attendance(assignment["_id"], AttendanceUpdate(status="present"))
    assert await present_days(directory, labourer) == 1


async def test_pending_to_absent_leaves_counter(ledger, directory, labourer, assignment):
    updated = await ledger.set_attendance(assignment["_id"], AttendanceUpdate(status="absent"))
    assert updated["attendance"]["status"] == "absent"
    assert await present_days(directory, labourer) == 0


@pytest.mark.parametrize("sequence", [
    ["present"],
    ["absent"],
    ["present", "absent"],
    ["absent", "present"],
    ["present", "present", "absent", "absent"],
    ["absent", "present", "absent", "present", "present"],
])
async def test_counter_follows_latest_status(ledger, directory, labourer, assignment, sequence):
    for status in sequence:
        await ledger.set_attendance(assignment["_id"], AttendanceUpdate(status=status))
    expected = 1 if sequence[-1] == "present" else 0
    assert await present_days(directory, labourer) == expected


async def test_counter_spans_assignments(ledger, directory, labourer):
    first = await ledger.create_assignment(labourer["_id"], AssignmentCreate(farmerId="farmer-1"))
    second = await ledger.create_assignment(labourer["_id"], AssignmentCreate(farmerId="farmer-2"))

    await ledger.set_attendance(first["_id"], AttendanceUpdate(status="present"))
    await ledger.set_attendance(second["_id"], AttendanceUpdate(status="present"))
    assert await present_days(directory, labourer) == 2

    await ledger.set_attendance(first["_id"], AttendanceUpdate(status="absent"))
    assert await present_days(directory, labourer) == 1


@pytest.mark.parametrize("status", ["maybe", "pending", "", None])
async def test_invalid_status_does_not_mutate(ledger, directory, labourer, assignment, status):
    with pytest.raises(InvalidInput):
        await ledger.set_attendance(assignment["_id"], AttendanceUpdate(status=status))

    stored = await ledger.collection.find_one({"_id": assignment["_id"]})
    assert stored["status"] == "assigned"
    assert stored["attendance"] == {"status": "pending"}
    assert await present_days(directory, labourer) == 0


async def test_unknown_assignment(ledger):
    with pytest.raises(NotFound):
        await ledger.set_attendance(str(ObjectId()), AttendanceUpdate(status="present"))


async def test_present_for_deleted_labourer_is_rejected(ledger, directory, labourer, assignment):
    await directory.delete(labourer["_id"])

    with pytest.raises(NotFound):
        await ledger.set_attendance(assignment["_id"], AttendanceUpdate(status="present"))

    stored = await ledger.collection.find_one({"_id": assignment["_id"]})
    assert stored["attendance"]["status"] == "pending"


async def test_concurrent_present_calls_count_once(ledger, directory, labourer, assignment):
    await asyncio.gather(*[
        ledger.set_attendance(assignment["_id"], AttendanceUpdate(status="present"))
        for _ in range(3)
    ])
    assert await present_days(directory, labourer) == 1


async def test_concurrent_mixed_calls_match_final_status(ledger, directory, labourer, assignment):
    await asyncio.gather(*[
        ledger.set_attendance(assignment["_id"], AttendanceUpdate(status=status))
        for status in ("present", "absent", "present")
    ])
    stored = await ledger.collection.find_one({"_id": assignment["_id"]})
    expected = 1 if stored["attendance"]["status"] == "present" else 0
    assert await present_days(directory, labourer) == expected


async def test_status_changed_between_read_and_write_is_retried(ledger, directory, labourer, assignment, monkeypatch):
    increment = directory.increment_present_days
    deltas = []

    async def racing_increment(labour_id, delta):
        deltas.append(delta)
        if len(deltas) == 1:
            # another request confirms the same assignment first
            await increment(labour_id, 1)
            await ledger.collection.update_one(
                {"_id": assignment["_id"]}, {"$set": {"attendance.status": "present"}},
            )
        await increment(labour_id, delta)

    monkeypatch.setattr(directory, "increment_present_days", racing_increment)

    updated = await ledger.set_attendance(assignment["_id"], AttendanceUpdate(status="present"))

    assert updated["attendance"]["status"] == "present"
    assert deltas == [1, -1]
    assert await present_days(directory, labourer) == 1


async def test_exhausted_retries_raise_conflict(mongo, directory, labourer):
    ledger = AttendanceLedger(mongo, directory, max_attempts=2)
    assignment = await ledger.create_assignment(labourer["_id"], AssignmentCreate(farmerId="farmer-1"))
    ledger.collection = LostUpdateCollection(ledger.collection)

    with pytest.raises(Conflict):
        await ledger.set_attendance(assignment["_id"], AttendanceUpdate(status="present"))
    assert await present_days(directory, labourer) == 0


async def test_failed_write_reverts_counter(ledger, directory, labourer, assignment):
    ledger.collection = FailingWriteCollection(ledger.collection)

    with pytest.raises(StorePersistenceFailure):
        await ledger.set_attendance(assignment["_id"], AttendanceUpdate(status="present"))
    assert await present_days(directory, labourer) == 0


async def test_get_assignment_resolves_labourer(ledger, labourer, assignment):
    fetched = await ledger.get_assignment(str(assignment["_id"]))
    assert fetched["labourId"]["_id"] == labourer["_id"]
    assert fetched["labourId"]["name"] == "Ramesh Kumar"


async def test_get_assignment_of_deleted_labourer(ledger, directory, labourer, assignment):
    await directory.delete(labourer["_id"])
    fetched = await ledger.get_assignment(assignment["_id"])
    assert fetched["labourId"] is None


async def test_list_by_farmer_newest_first(ledger, labourer):
    first = await ledger.create_assignment(labourer["_id"], AssignmentCreate(farmerId="farmer-1"))
    await ledger.create_assignment(labourer["_id"], AssignmentCreate(farmerId="farmer-2"))
    await asyncio.sleep(0.01)
    second = await ledger.create_assignment(labourer["_id"], AssignmentCreate(farmerId="farmer-1"))

    assignments = await ledger.list_assignments_by_farmer("farmer-1")

    assert [a["_id"] for a in assignments] == [second["_id"], first["_id"]]
    assert all(a["labourId"]["name"] == "Ramesh Kumar" for a in assignments)


async def test_list_by_unknown_farmer_is_empty(ledger):
    assert await ledger.list_assignments_by_farmer("nobody") == []


async def test_compute_today_attendance(ledger, directory):
    async def register(name, contact):
        return await directory.create(LabourCreate(name=name, villageName="Village B", contactNumber=contact))

    present = await register("Amit Patel", "9000000001")
    waiting = await register("Rajesh Verma", "9000000002")
    yesterday_only = await register("Mohan Das", "9000000003")
    unassigned = await register("Vikram Singh", "9000000004")

    confirmed = await ledger.create_assignment(present["_id"], AssignmentCreate(farmerId="f"))
    await ledger.set_attendance(confirmed["_id"], AttendanceUpdate(status="present"))
    await ledger.create_assignment(waiting["_id"], AssignmentCreate(farmerId="f"))
    await ledger.create_assignment(
        yesterday_only["_id"],
        AssignmentCreate(farmerId="f", assignmentDate=datetime.now() - timedelta(days=1)),
    )

    result = await ledger.compute_today_attendance(
        [present["_id"], waiting["_id"], yesterday_only["_id"], unassigned["_id"]]
    )

    assert result == {
        str(present["_id"]): "present",
        str(waiting["_id"]): "pending",
    }


async def test_today_attendance_uses_latest_assignment(ledger, labourer):
    earlier = await ledger.create_assignment(labourer["_id"], AssignmentCreate(farmerId="f1"))
    await ledger.set_attendance(earlier["_id"], AttendanceUpdate(status="absent"))
    await asyncio.sleep(0.01)
    await ledger.create_assignment(labourer["_id"], AssignmentCreate(farmerId="f2"))

    result = await ledger.compute_today_attendance([labourer["_id"]])
    assert result == {str(labourer["_id"]): "pending"}


async def test_today_attendance_without_labourers(ledger):
    assert await ledger.compute_today_attendance([]) == {}


async def test_recount_repairs_drift(ledger, directory, labourer, assignment):
    await ledger.set_attendance(assignment["_id"], AttendanceUpdate(status="present"))
    await directory.set_present_days(labourer["_id"], 7)

    repaired = await ledger.recount_present_days(str(labourer["_id"]))

    assert repaired["totalPresentDays"] == 1
    assert await present_days(directory, labourer) == 1


async def test_recount_unknown_labourer(ledger):
    with pytest.raises(NotFound):
        await ledger.recount_present_days(str(ObjectId()))


async def test_missing_counter_is_backfilled_before_flip(ledger, directory, labourer, assignment):
    await directory.collection.update_one({"_id": labourer["_id"]}, {"$unset": {"totalPresentDays": ""}})
    await ledger.collection.update_one({"_id": assignment["_id"]}, {"$set": {"attendance.status": "present"}})

    await ledger.set_attendance(assignment["_id"], AttendanceUpdate(status="absent"))

    assert await present_days(directory, labourer) == 0


async def test_missing_counter_counts_existing_present_assignments(ledger, directory, labourer, assignment):
    await directory.collection.update_one({"_id": labourer["_id"]}, {"$unset": {"totalPresentDays": ""}})
    await ledger.collection.update_one({"_id": assignment["_id"]}, {"$set": {"attendance.status": "present"}})
    second = await ledger.create_assignment(labourer["_id"], AssignmentCreate(farmerId="farmer-2"))

    await ledger.set_attendance(second["_id"], AttendanceUpdate(status="present"))

    assert await present_days(directory, labourer) == 2
