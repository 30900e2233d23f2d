import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field
from models.user import Department, UserRole, UserStatus

PHONE_PATTERN = r"^\+?[0-9]{10,15}$"


class UserRead(BaseModel):
    id: uuid.UUID
    username: str
    name: str
    email: Optional[str]
    phone_number: Optional[str]
    role: UserRole
    department: Optional[Department]
    status: UserStatus
    created_at: datetime

    class Config:
        from_attributes = True


class CitizenRead(UserRead):
    address: Optional[str]
    verified: bool
    profile_photo_url: Optional[str] = None


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserRead


# Auth requests
class LoginRequest(BaseModel):
    username: str
    password: str


class CitizenSignup(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    phone_number: str = Field(pattern=PHONE_PATTERN)
    password: str = Field(min_length=6)
    address: Optional[str] = None


class CitizenSignin(BaseModel):
    identifier: str  # email or phone number
    password: Optional[str] = None
    otp: Optional[str] = Field(default=None, pattern=r"^[0-9]{6}$")


class OTPVerify(BaseModel):
    identifier: str
    otp: str = Field(pattern=r"^[0-9]{6}$")


class OTPRequest(BaseModel):
    identifier: str


class PasswordReset(BaseModel):
    username: str
    otp: str = Field(pattern=r"^[0-9]{6}$")
    password: str = Field(min_length=6)


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)


# Roster management
class WorkerCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=6)
    department: Department
    phone_number: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    email: Optional[EmailStr] = None


class WorkerUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    department: Optional[Department] = None
    status: Optional[UserStatus] = None
    phone_number: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=6)


class OfficeCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    department: Department
    phone_number: str = Field(pattern=PHONE_PATTERN)
    email: EmailStr


class OfficeUpdate(WorkerUpdate):
    """Offices edit the same fields as workers."""


class OfficeCreated(BaseModel):
    office: UserRead
    generated_password: str


class AdminCreate(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=6)
    name: str = ""
    role: UserRole = UserRole.admin
