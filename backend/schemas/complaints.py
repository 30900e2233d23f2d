import uuid
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from models.complaints import ComplaintPriority, ComplaintStatus, MediaType, ProgressStage
from models.user import Department


class ComplaintMediaRead(BaseModel):
    id: uuid.UUID
    media_type: MediaType
    url: str

    class Config:
        from_attributes = True


class ProgressPhotoRead(BaseModel):
    id: uuid.UUID
    stage: ProgressStage
    url: str
    latitude: Optional[float]
    longitude: Optional[float]
    uploaded_at: datetime

    class Config:
        from_attributes = True


# Response schema
class ComplaintRead(BaseModel):
    id: uuid.UUID
    citizen_id: uuid.UUID
    title: str
    description: str
    department: Department
    category: str
    latitude: float
    longitude: float
    address: Optional[str]
    status: ComplaintStatus
    priority: ComplaintPriority
    assigned_worker_id: Optional[uuid.UUID]
    office_id: Optional[uuid.UUID]
    rating: Optional[int]
    feedback: Optional[str]
    rejection_reason: Optional[str]
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime]
    media: List[ComplaintMediaRead] = []
    progress_photos: List[ProgressPhotoRead] = []

    class Config:
        from_attributes = True  # allows reading from ORM objects


class ComplaintPage(BaseModel):
    data: List[ComplaintRead]
    page: int
    limit: int
    total: int
    pages: int


class AssignRequest(BaseModel):
    worker_id: uuid.UUID


class StatusUpdateRequest(BaseModel):
    # Kept as a plain string so unknown values reach the transition check
    status: str
    reason: Optional[str] = Field(default=None, max_length=500)


class RatingRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    feedback: Optional[str] = Field(default=None, max_length=500)


class ProgressUploadResponse(BaseModel):
    complaint_id: uuid.UUID
    stage: ProgressStage
    photo_url: str
    distance_meters: float
