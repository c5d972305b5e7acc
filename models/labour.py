# models/labour.py
from pydantic import BaseModel
from typing import List, Optional


class LabourCreate(BaseModel):
    name: Optional[str] = None
    villageName: Optional[str] = None
    contactNumber: Optional[str] = None
    email: Optional[str] = None
    workTypes: Optional[List[str]] = None
    experience: Optional[str] = None
    availability: Optional[str] = None
    address: Optional[str] = None
