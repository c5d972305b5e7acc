# routers/labour_router.py
from fastapi import APIRouter, Depends, Request
from database import MongoDatabase, get_database
from models.attendance_model import AssignmentCreate, AttendanceUpdate
from models.labour import LabourCreate
from services.attendance_service import AttendanceLedger
from services.labour_service import LabourerDirectory
from utils.query_utils import serialize_document
from typing import Optional

router = APIRouter(prefix="/labour", tags=["labour"])


def get_directory(mongo: MongoDatabase = Depends(get_database)) -> LabourerDirectory:
    return LabourerDirectory(mongo)


def get_ledger(
    request: Request,
    mongo: MongoDatabase = Depends(get_database),
    directory: LabourerDirectory = Depends(get_directory),
) -> AttendanceLedger:
    settings = request.app.state.settings
    return AttendanceLedger(mongo, directory, max_attempts=settings.attendance_max_attempts)


# Fixed paths must be registered before /{labour_id}

@router.get("/villages")
async def api_get_villages(directory: LabourerDirectory = Depends(get_directory)):
    villages = await directory.villages()
    return {"success": True, "count": len(villages), "data": villages}


@router.post("/seed", status_code=201)
async def api_seed_labourers(directory: LabourerDirectory = Depends(get_directory)):
    created = await directory.seed()
    return {
        "success": True,
        "message": f"Successfully created {len(created)} sample labourers",
        "count": len(created),
        "data": serialize_document(created),
    }


@router.get("/farmer/{farmer_id}/assignments")
async def api_get_farmer_assignments(farmer_id: str, ledger: AttendanceLedger = Depends(get_ledger)):
    assignments = await ledger.list_assignments_by_farmer(farmer_id)
    return {"success": True, "count": len(assignments), "data": serialize_document(assignments)}


@router.post("", status_code=201)
async def api_create_labourer(labourer: LabourCreate, directory: LabourerDirectory = Depends(get_directory)):
    saved = await directory.create(labourer)
    return {"success": True, "message": "Labourer created successfully", "data": serialize_document(saved)}


@router.get("")
async def api_get_labourers(
    villageName: Optional[str] = None,
    search: Optional[str] = None,
    directory: LabourerDirectory = Depends(get_directory),
    ledger: AttendanceLedger = Depends(get_ledger),
):
    labourers = await directory.list_active(village_name=villageName, search=search)
    attendance_map = await ledger.compute_today_attendance(l["_id"] for l in labourers)

    summary = {"present": 0, "absent": 0, "pending": 0, "unassigned": 0}
    for labourer in labourers:
        today = attendance_map.get(str(labourer["_id"]))
        labourer["todayAttendance"] = today
        summary[today or "unassigned"] += 1

    return {
        "success": True,
        "count": len(labourers),
        "summary": summary,
        "data": serialize_document(labourers),
    }


@router.post("/attendance/{assignment_id}")
async def api_confirm_attendance(
    assignment_id: str,
    update: AttendanceUpdate,
    ledger: AttendanceLedger = Depends(get_ledger),
):
    assignment = await ledger.set_attendance(assignment_id, update)
    return {
        "success": True,
        "message": "Attendance confirmed successfully",
        "data": serialize_document(assignment),
    }


@router.get("/attendance/{assignment_id}")
async def api_get_assignment(assignment_id: str, ledger: AttendanceLedger = Depends(get_ledger)):
    assignment = await ledger.get_assignment(assignment_id)
    return {"success": True, "data": serialize_document(assignment)}


@router.post("/{labour_id}/assign", status_code=201)
async def api_assign_labour(
    labour_id: str,
    assignment_data: AssignmentCreate,
    ledger: AttendanceLedger = Depends(get_ledger),
):
    saved = await ledger.create_assignment(labour_id, assignment_data)
    return {
        "success": True,
        "message": "Labourer assigned successfully",
        "data": serialize_document({
            "assignmentId": saved["_id"],
            "labourId": saved["labourId"],
            "farmerId": saved["farmerId"],
            "assignmentDate": saved["assignmentDate"],
            "status": saved["status"],
        }),
    }


@router.post("/{labour_id}/recount")
async def api_recount_present_days(labour_id: str, ledger: AttendanceLedger = Depends(get_ledger)):
    labourer = await ledger.recount_present_days(labour_id)
    return {"success": True, "message": "Present days recounted", "data": serialize_document(labourer)}


@router.get("/{labour_id}")
async def api_get_labourer(labour_id: str, directory: LabourerDirectory = Depends(get_directory)):
    labourer = await directory.get(labour_id)
    return {"success": True, "data": serialize_document(labourer)}


@router.delete("/{labour_id}")
async def api_deactivate_labourer(labour_id: str, directory: LabourerDirectory = Depends(get_directory)):
    await directory.deactivate(labour_id)
    return {"success": True, "message": "Labourer deactivated successfully"}


@router.delete("/{labour_id}/permanent")
async def api_delete_labourer(labour_id: str, directory: LabourerDirectory = Depends(get_directory)):
    await directory.delete(labour_id)
    return {"success": True, "message": "Labourer permanently deleted successfully"}
