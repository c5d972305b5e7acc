# models/attendance_model.py
from pydantic import BaseModel
from typing import Optional
from datetime import datetime

# Assignment lifecycle
ASSIGNMENT_ASSIGNED = "assigned"
ASSIGNMENT_CONFIRMED = "confirmed"
ASSIGNMENT_COMPLETED = "completed"
ASSIGNMENT_CANCELLED = "cancelled"

# Attendance outcomes
ATTENDANCE_PENDING = "pending"
ATTENDANCE_PRESENT = "present"
ATTENDANCE_ABSENT = "absent"

SETTABLE_ATTENDANCE_STATUSES = (ATTENDANCE_PRESENT, ATTENDANCE_ABSENT)


class AssignmentCreate(BaseModel):
    farmerId: Optional[str] = None
    assignmentDate: Optional[datetime] = None
    notes: Optional[str] = None


class AttendanceUpdate(BaseModel):
    status: Optional[str] = None  # "present" or "absent", any case
    date: Optional[datetime] = None
    time: Optional[str] = None  # "HH:MM"
    notes: Optional[str] = None
