# routers/employee_router.py
from fastapi import APIRouter, Depends
from database import MongoDatabase, get_database
from services.employee_service import (
    register_employee,
    get_employees,
    get_employee,
    get_employee_by_employee_id,
    get_employee_stats,
    update_employee,
    deactivate_employee,
    delete_employee,
)
from models.employee import EmployeeCreate, EmployeeUpdate
from utils.query_utils import serialize_document
from typing import Optional

router = APIRouter(prefix="/employee", tags=["employee"])


@router.post("", status_code=201)
async def api_register_employee(employee: EmployeeCreate, mongo: MongoDatabase = Depends(get_database)):
    saved = await register_employee(mongo, employee)
    return {"success": True, "message": "Employee registered successfully", "data": serialize_document(saved)}


@router.get("")
async def api_get_employees(
    page: int = 1,
    limit: int = 10,
    isActive: Optional[bool] = None,
    department: Optional[str] = None,
    employmentType: Optional[str] = None,
    verificationStatus: Optional[str] = None,
    search: Optional[str] = None,
    mongo: MongoDatabase = Depends(get_database),
):
    result = await get_employees(
        mongo, page, limit, isActive, department, employmentType, verificationStatus, search
    )
    return {
        "success": True,
        "count": len(result["employees"]),
        "total": result["total"],
        "page": result["page"],
        "totalPages": result["totalPages"],
        "data": serialize_document(result["employees"]),
    }


@router.get("/stats")
async def api_get_employee_stats(mongo: MongoDatabase = Depends(get_database)):
    return {"success": True, "data": await get_employee_stats(mongo)}


@router.get("/by-employee-id/{employee_code}")
async def api_get_employee_by_employee_id(employee_code: str, mongo: MongoDatabase = Depends(get_database)):
    employee = await get_employee_by_employee_id(mongo, employee_code)
    return {"success": True, "data": serialize_document(employee)}


@router.get("/{employee_id}")
async def api_get_employee(employee_id: str, mongo: MongoDatabase = Depends(get_database)):
    employee = await get_employee(mongo, employee_id)
    return {"success": True, "data": serialize_document(employee)}


@router.put("/{employee_id}")
async def api_update_employee(employee_id: str, employee_data: EmployeeUpdate, mongo: MongoDatabase = Depends(get_database)):
    employee = await update_employee(mongo, employee_id, employee_data)
    return {"success": True, "message": "Employee updated successfully", "data": serialize_document(employee)}


@router.delete("/{employee_id}")
async def api_deactivate_employee(employee_id: str, mongo: MongoDatabase = Depends(get_database)):
    await deactivate_employee(mongo, employee_id)
    return {"success": True, "message": "Employee deactivated successfully"}


@router.delete("/{employee_id}/permanent")
async def api_delete_employee(employee_id: str, mongo: MongoDatabase = Depends(get_database)):
    await delete_employee(mongo, employee_id)
    return {"success": True, "message": "Employee permanently deleted successfully"}
