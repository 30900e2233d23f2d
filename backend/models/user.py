import uuid
from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field
import enum

from utils.clock import utcnow


class UserStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"


class UserRole(str, enum.Enum):
    citizen = "citizen"
    worker = "worker"
    office = "office"
    admin = "admin"
    superadmin = "superadmin"


class Department(str, enum.Enum):
    road = "road"
    water = "water"
    sewage = "sewage"
    electricity = "electricity"
    garbage = "garbage"
    other = "other"


STAFF_ROLES = (UserRole.worker, UserRole.office, UserRole.admin, UserRole.superadmin)
ADMIN_ROLES = (UserRole.admin, UserRole.superadmin)


class User(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    username: str = Field(index=True, unique=True, nullable=False)  # login id; citizens use their email
    name: str = Field(default="")
    email: Optional[str] = Field(default=None, index=True, unique=True)
    phone_number: Optional[str] = Field(default=None, index=True, unique=True)
    password_hash: str = Field(nullable=False)
    role: UserRole = Field(default=UserRole.citizen, nullable=False)
    department: Optional[Department] = None  # workers and offices only
    status: UserStatus = Field(default=UserStatus.active, nullable=False)
    address: Optional[str] = None
    profile_photo_url: Optional[str] = None
    profile_photo_public_id: Optional[str] = None

    # Citizens verify their phone before signing in; staff use OTPs for password resets
    verified: bool = Field(default=False)
    otp: Optional[str] = None
    otp_expiry: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)
