"""
Auth Schemas
Pydantic models for accounts, login and caregiver links
"""

from typing import Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, ConfigDict

from models import ProfileType


# ==================== REQUEST SCHEMAS ====================

class UserRegister(BaseModel):
    """Schema for creating an account"""
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    name: str = Field(..., min_length=2, max_length=255)
    profile_type: ProfileType = ProfileType.PATIENT
    age: Optional[int] = Field(None, ge=0, le=150)
    weight: Optional[float] = Field(None, gt=0, le=500)
    whatsapp: Optional[str] = Field(None, pattern=r"^\+?[0-9 ()-]{8,20}$")
    gender: Optional[str] = Field(None, max_length=20)
    crm: Optional[str] = Field(None, max_length=30)


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserUpdate(BaseModel):
    """Schema for editing one's own profile; fields sent as null are cleared, except name"""
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    age: Optional[int] = Field(None, ge=0, le=150)
    weight: Optional[float] = Field(None, gt=0, le=500)
    whatsapp: Optional[str] = Field(None, pattern=r"^\+?[0-9 ()-]{8,20}$")
    gender: Optional[str] = Field(None, max_length=20)
    crm: Optional[str] = Field(None, max_length=30)
    photo: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class ShareCodeUse(BaseModel):
    """Schema for a caregiver following a patient"""
    share_code: str = Field(..., min_length=4, max_length=16)


# ==================== RESPONSE SCHEMAS ====================

class UserResponse(BaseModel):
    """Account as returned to its owner (never the password hash)"""
    id: int
    email: str
    name: str
    profile_type: ProfileType
    age: Optional[int] = None
    weight: Optional[float] = None
    whatsapp: Optional[str] = None
    gender: Optional[str] = None
    crm: Optional[str] = None
    photo: Optional[str] = None
    share_code: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PatientSummary(BaseModel):
    """Patient visible to a caregiver"""
    id: int
    name: str
    email: str
    age: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserResponse


class ShareCodeResponse(BaseModel):
    share_code: str


class SharedAccessResponse(BaseModel):
    """Caregiver or doctor following the patient"""
    id: int
    caregiver_id: int
    caregiver_name: str
    caregiver_email: str
    profile_type: ProfileType
    created_at: Optional[datetime] = None
