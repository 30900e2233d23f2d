import logging
import math
from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlmodel import Session, func, select
from core.database import get_session
from models.audit_log import AuditAction
from models.complaints import Complaint, ComplaintMedia, ComplaintStatus
from models.user import ADMIN_ROLES, STAFF_ROLES, Department, User, UserRole
from schemas.complaints import (
    AssignRequest,
    ComplaintPage,
    ComplaintRead,
    RatingRequest,
    StatusUpdateRequest,
)
from services import workflow
from utils.audit import log_action
from utils.security import citizen_required, get_current_user, role_required, worker_required
from utils.storage import delete_media, save_upload

router = APIRouter(tags=["Complaints"])
logger = logging.getLogger(__name__)

staff_required = role_required(*STAFF_ROLES)
assigner_required = role_required(UserRole.office, *ADMIN_ROLES)
owner_or_admin_required = role_required(UserRole.citizen, *ADMIN_ROLES)


@router.post("/", response_model=ComplaintRead, status_code=201)
async def create_complaint(
    title: str = Form(..., min_length=5, max_length=200),
    description: str = Form(..., min_length=10, max_length=1000),
    department: Department = Form(...),
    category: str = Form(..., min_length=1),
    latitude: float = Form(..., ge=-90, le=90),
    longitude: float = Form(..., ge=-180, le=180),
    address: Optional[str] = Form(None),
    media: List[UploadFile] = File(default=[]),
    session: Session = Depends(get_session),
    citizen: User = Depends(citizen_required),
):
    stored = [await save_upload(file, "complaints") for file in media]

    complaint = Complaint(
        citizen_id=citizen.id,
        title=title.strip(),
        description=description.strip(),
        department=department,
        category=category,
        latitude=latitude,
        longitude=longitude,
        address=address or "",
        status=ComplaintStatus.pending,
        media=[
            ComplaintMedia(media_type=item.media_type, url=item.url, public_id=item.public_id)
            for item in stored
        ],
    )

    try:
        session.add(complaint)
        session.commit()
        session.refresh(complaint)
    except Exception as e:
        session.rollback()
        delete_media(item.public_id for item in stored)
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    log_action(
        session,
        performed_by=citizen.id,
        action=AuditAction.CREATED_COMPLAINT,
        details=f"Complaint '{complaint.title}' filed for {department.value} with {len(stored)} media file(s)",
    )
    return complaint


@router.get("/mine", response_model=List[ComplaintRead])
def list_my_complaints(
    status: Optional[ComplaintStatus] = None,
    department: Optional[Department] = None,
    session: Session = Depends(get_session),
    citizen: User = Depends(citizen_required),
):
    statement = select(Complaint).where(Complaint.citizen_id == citizen.id)
    if status:
        statement = statement.where(Complaint.status == status)
    if department:
        statement = statement.where(Complaint.department == department)
    return session.exec(statement.order_by(Complaint.created_at.desc())).all()


@router.get("/", response_model=ComplaintPage)
def list_complaints(
    status: Optional[ComplaintStatus] = None,
    department: Optional[Department] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: Session = Depends(get_session),
    current_user: User = Depends(staff_required),
):
    """
    Retrieve complaints visible to the caller.

    Offices only see their own department, workers only their assignments.
    """
    statement = select(Complaint)
    if current_user.role == UserRole.office:
        statement = statement.where(Complaint.department == current_user.department)
    elif department:
        statement = statement.where(Complaint.department == department)
    if current_user.role == UserRole.worker:
        statement = statement.where(Complaint.assigned_worker_id == current_user.id)
    if status:
        statement = statement.where(Complaint.status == status)

    total = session.exec(select(func.count()).select_from(statement.subquery())).one()
    complaints = session.exec(
        statement.order_by(Complaint.created_at.desc()).offset((page - 1) * limit).limit(limit)
    ).all()

    return ComplaintPage(
        data=[ComplaintRead.model_validate(c) for c in complaints],
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit),
    )


@router.get("/{complaint_id}", response_model=ComplaintRead)
def get_complaint_by_id(
    complaint_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    Retrieve a complaint by its ID.
    """
    complaint = workflow.get_complaint_or_404(session, complaint_id)

    if current_user.role == UserRole.citizen and complaint.citizen_id != current_user.id:
        raise HTTPException(status_code=403, detail="You can only view your own complaints")
    return complaint


@router.delete("/{complaint_id}")
def delete_complaint(
    complaint_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(owner_or_admin_required),
):
    complaint = workflow.get_complaint_or_404(session, complaint_id)

    if current_user.role == UserRole.citizen and complaint.citizen_id != current_user.id:
        raise HTTPException(status_code=403, detail="You can only delete your own complaints")

    public_ids = [m.public_id for m in complaint.media] + [p.public_id for p in complaint.progress_photos]
    title = complaint.title

    session.delete(complaint)
    session.commit()
    delete_media(public_ids)

    log_action(
        session,
        performed_by=current_user.id,
        action=AuditAction.DELETED_COMPLAINT,
        details=f"Complaint '{title}' deleted with {len(public_ids)} media file(s)",
    )
    return {"detail": f"Complaint {complaint_id} deleted successfully"}


@router.post("/{complaint_id}/assign", response_model=ComplaintRead)
def assign_complaint(
    complaint_id: str,
    body: AssignRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(assigner_required),
):
    return workflow.assign_complaint(session, complaint_id, body.worker_id, assigned_by=current_user)


@router.patch("/{complaint_id}/status", response_model=ComplaintRead)
def update_complaint_status(
    complaint_id: str,
    body: StatusUpdateRequest,
    session: Session = Depends(get_session),
    worker: User = Depends(worker_required),
):
    return workflow.change_status(session, complaint_id, worker, body.status, reason=body.reason)


@router.post("/{complaint_id}/rate", response_model=ComplaintRead)
def rate_complaint(
    complaint_id: str,
    body: RatingRequest,
    session: Session = Depends(get_session),
    citizen: User = Depends(citizen_required),
):
    return workflow.rate_complaint(session, complaint_id, citizen, body.rating, body.feedback)
