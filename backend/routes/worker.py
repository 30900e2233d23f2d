from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlmodel import Session, select
from models.audit_log import AuditAction
from models.complaints import Complaint, ComplaintStatus, ProgressStage
from models.user import User
from schemas.complaints import ComplaintRead, ProgressUploadResponse
from schemas.users import PasswordChange, UserRead
from services import workflow
from core.database import get_session
from utils.audit import log_action
from utils.clock import utcnow
from utils.security import hash_password, verify_password, worker_required
from utils.storage import delete_media, save_upload

router = APIRouter(tags=["Worker"])


# Get the currently authenticated worker's profile.
@router.get("/profile", response_model=UserRead)
def get_profile(worker: User = Depends(worker_required)):
    return worker


# Get assigned complaints
@router.get("/tasks", response_model=List[ComplaintRead])
def get_assigned_tasks(
    status: Optional[ComplaintStatus] = None,
    worker: User = Depends(worker_required),
    session: Session = Depends(get_session),
):
    statement = select(Complaint).where(Complaint.assigned_worker_id == worker.id)
    if status:
        statement = statement.where(Complaint.status == status)
    return session.exec(statement.order_by(Complaint.created_at.desc())).all()


@router.post("/tasks/{complaint_id}/progress", response_model=ProgressUploadResponse)
async def upload_progress_photo(
    complaint_id: str,
    stage: ProgressStage = Form(...),
    latitude: float = Form(..., ge=-90, le=90),
    longitude: float = Form(..., ge=-180, le=180),
    photo: UploadFile = File(...),
    session: Session = Depends(get_session),
    worker: User = Depends(worker_required),
):
    complaint = workflow.get_complaint_or_404(session, complaint_id)

    # Gate before anything is written to storage
    geofence = workflow.ensure_can_upload_progress(complaint, worker, latitude, longitude)

    stored = await save_upload(photo, "progress", images_only=True)
    try:
        workflow.record_progress_photo(session, complaint, worker, stage, latitude, longitude, stored)
    except HTTPException:
        delete_media([stored.public_id])
        raise

    return ProgressUploadResponse(
        complaint_id=complaint.id,
        stage=stage,
        photo_url=stored.url,
        distance_meters=geofence.distance_meters,
    )


# Worker can update their password
@router.patch("/profile/password")
def update_password(
    body: PasswordChange,
    worker: User = Depends(worker_required),
    session: Session = Depends(get_session),
):
    if not verify_password(body.current_password, worker.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    worker.password_hash = hash_password(body.new_password)
    worker.updated_at = utcnow()
    session.add(worker)
    session.commit()

    log_action(
        session,
        performed_by=worker.id,
        action=AuditAction.UPDATED_PASSWORD,
        details=f"Worker '{worker.username}' updated their password",
    )
    return {"message": "Password updated successfully"}
