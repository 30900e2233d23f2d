import uuid
from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field, Relationship
import enum

from utils.clock import utcnow

from models.user import Department


class ComplaintStatus(str, enum.Enum):
    pending = "pending"            # Filed by a citizen, nobody assigned yet
    assigned = "assigned"          # Office handed it to a worker
    in_progress = "in-progress"    # Worker started on site
    completed = "completed"        # Work done (terminal)
    rejected = "rejected"          # Will not be fixed (terminal)


class ComplaintPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


class MediaType(str, enum.Enum):
    image = "image"
    video = "video"


class ProgressStage(str, enum.Enum):
    start = "start"
    in_progress = "in-progress"
    completed = "completed"


class Complaint(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    citizen_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    title: str
    description: str
    department: Department = Field(index=True)
    category: str

    # Recorded once at creation and never moved
    latitude: float
    longitude: float
    address: Optional[str] = None

    status: ComplaintStatus = Field(default=ComplaintStatus.pending, index=True)
    priority: ComplaintPriority = Field(default=ComplaintPriority.medium)
    assigned_worker_id: Optional[uuid.UUID] = Field(default=None, foreign_key="user.id", index=True)
    office_id: Optional[uuid.UUID] = Field(default=None, foreign_key="user.id")

    rating: Optional[int] = None
    feedback: Optional[str] = None
    rejection_reason: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)
    completed_at: Optional[datetime] = None

    media: list["ComplaintMedia"] = Relationship(
        back_populates="complaint",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )
    progress_photos: list["ProgressPhoto"] = Relationship(
        back_populates="complaint",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "ProgressPhoto.uploaded_at"},
    )


class ComplaintMedia(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    complaint_id: uuid.UUID = Field(foreign_key="complaint.id")
    media_type: MediaType
    url: str
    public_id: str

    complaint: Complaint = Relationship(back_populates="media")


class ProgressPhoto(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    complaint_id: uuid.UUID = Field(foreign_key="complaint.id")
    stage: ProgressStage
    url: str
    public_id: str
    # Where the worker's device said it was; only used for the geofence check
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    uploaded_at: datetime = Field(default_factory=utcnow)

    complaint: Complaint = Relationship(back_populates="progress_photos")
