import uuid
from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field
import enum

from utils.clock import utcnow


class AuditAction(str, enum.Enum):
    # Complaint-related actions
    CREATED_COMPLAINT = "created_complaint"
    ASSIGNED_COMPLAINT = "assigned_complaint"
    UPDATED_COMPLAINT_STATUS = "updated_complaint_status"
    UPLOADED_PROGRESS_PHOTO = "uploaded_progress_photo"
    RATED_COMPLAINT = "rated_complaint"
    DELETED_COMPLAINT = "deleted_complaint"

    # Roster-related actions
    ADDED_WORKER = "added_worker"
    UPDATED_WORKER = "updated_worker"
    REMOVED_WORKER = "removed_worker"
    CREATED_OFFICE = "created_office"
    UPDATED_OFFICE = "updated_office"
    REMOVED_OFFICE = "removed_office"
    CREATED_ADMIN = "created_admin"
    REMOVED_CITIZEN = "removed_citizen"

    # Account actions
    UPDATED_PASSWORD = "updated_password"
    RESET_PASSWORD = "reset_password"
    UPDATED_PROFILE_PHOTO = "updated_profile_photo"

    # Notifications
    SMS_NOTIFICATION_SENT = "sms_notification_sent"
    SMS_NOTIFICATION_FAILED = "sms_notification_failed"


class AuditLog(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    action: str  # one of AuditAction
    details: Optional[str] = None

    user_id: uuid.UUID = Field(foreign_key="user.id")  # who did the action
    created_at: datetime = Field(default_factory=utcnow)
