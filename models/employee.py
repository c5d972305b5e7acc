# models/employee.py
from pydantic import BaseModel, ConfigDict
from typing import Optional


class _FieldGroup(BaseModel):
    # Field formats are not checked here; unknown keys are kept as submitted
    model_config = ConfigDict(extra="allow")


class PersonalDetails(_FieldGroup):
    email: str
    mobileNumber: str


class EmploymentDetails(_FieldGroup):
    employeeId: str


class IdentityAndCompliance(_FieldGroup):
    verificationStatus: str = "pending"


class BankingDetails(_FieldGroup):
    pass


class EmployeeCreate(BaseModel):
    personalDetails: Optional[PersonalDetails] = None
    employmentDetails: Optional[EmploymentDetails] = None
    identityAndCompliance: Optional[IdentityAndCompliance] = None
    bankingDetails: Optional[BankingDetails] = None


class EmployeeUpdate(BaseModel):
    personalDetails: Optional[PersonalDetails] = None
    employmentDetails: Optional[EmploymentDetails] = None
    identityAndCompliance: Optional[IdentityAndCompliance] = None
    bankingDetails: Optional[BankingDetails] = None
    isActive: Optional[bool] = None
