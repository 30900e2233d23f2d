"""
Complaint workflow.

Every request that moves a complaint along its lifecycle, or attaches
evidence to it, goes through here: records are loaded from the session,
checked with ``validate_transition`` / ``check_geofence`` and persisted in
one commit. Role checks happen in the route dependencies beforehand.
"""
import logging
import uuid
from typing import Optional, Union

from fastapi import HTTPException
from sqlmodel import Session

from core.config import config
from models.audit_log import AuditAction
from models.complaints import Complaint, ComplaintStatus, ProgressPhoto, ProgressStage
from models.user import User, UserRole, UserStatus
from utils.audit import log_action
from utils.clock import utcnow
from utils.geofence import GeofenceResult, check_geofence
from utils.sms import notify
from utils.storage import StoredMedia
from utils.transitions import accepts_progress_photos, validate_transition

logger = logging.getLogger(__name__)


def get_complaint_or_404(session: Session, complaint_id: Union[str, uuid.UUID]) -> Complaint:
    try:
        complaint_uuid = complaint_id if isinstance(complaint_id, uuid.UUID) else uuid.UUID(complaint_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid complaint ID")

    complaint = session.get(Complaint, complaint_uuid)
    if not complaint:
        raise HTTPException(status_code=404, detail="Complaint not found")
    return complaint


def _ensure_transition(complaint: Complaint, target: Union[str, ComplaintStatus]):
    result = validate_transition(complaint.status, target)
    if not result.allowed:
        target = getattr(target, "value", target)
        raise HTTPException(
            status_code=400,
            detail=f"Cannot move complaint from '{complaint.status.value}' to '{target}': {result.reason.value}",
        )


def _ensure_assigned_worker(complaint: Complaint, worker: User):
    if complaint.assigned_worker_id != worker.id:
        raise HTTPException(status_code=403, detail="You are not assigned to this complaint")


def _commit(session: Session, complaint: Complaint, error: str):
    complaint.updated_at = utcnow()
    try:
        session.add(complaint)
        session.commit()
        session.refresh(complaint)
    except Exception as e:
        session.rollback()
        logger.error("%s: %s", error, e)
        raise HTTPException(status_code=500, detail=f"{error}: {str(e)}")


def assign_complaint(
    session: Session,
    complaint_id: Union[str, uuid.UUID],
    worker_id: uuid.UUID,
    assigned_by: User,
) -> Complaint:
    complaint = get_complaint_or_404(session, complaint_id)

    worker = session.get(User, worker_id)
    if not worker:
        raise HTTPException(status_code=404, detail="Worker not found")
    if worker.role != UserRole.worker:
        raise HTTPException(status_code=400, detail="Assigned user is not a worker")
    if worker.status != UserStatus.active:
        raise HTTPException(status_code=400, detail="Worker is inactive")
    if worker.department != complaint.department:
        raise HTTPException(status_code=400, detail="Worker department does not match complaint department")
    if assigned_by.role == UserRole.office and assigned_by.department != complaint.department:
        raise HTTPException(status_code=403, detail="Complaint belongs to another department")

    _ensure_transition(complaint, ComplaintStatus.assigned)

    complaint.status = ComplaintStatus.assigned
    complaint.assigned_worker_id = worker.id
    if assigned_by.role == UserRole.office:
        complaint.office_id = assigned_by.id
    _commit(session, complaint, "Error assigning complaint")

    log_action(
        session,
        performed_by=assigned_by.id,
        action=AuditAction.ASSIGNED_COMPLAINT,
        details=f"Complaint '{complaint.title}' assigned to {worker.username}",
    )

    sent = notify(worker.phone_number, f"You have been assigned a new complaint: {complaint.title}")
    log_action(
        session,
        performed_by=assigned_by.id,
        action=AuditAction.SMS_NOTIFICATION_SENT if sent else AuditAction.SMS_NOTIFICATION_FAILED,
        details=f"Assignment SMS to {worker.username} for complaint '{complaint.title}'",
    )
    return complaint


def change_status(
    session: Session,
    complaint_id: Union[str, uuid.UUID],
    worker: User,
    target: str,
    reason: Optional[str] = None,
) -> Complaint:
    complaint = get_complaint_or_404(session, complaint_id)
    _ensure_assigned_worker(complaint, worker)
    _ensure_transition(complaint, target)

    previous = complaint.status
    complaint.status = ComplaintStatus(target)
    if complaint.status == ComplaintStatus.completed:
        complaint.completed_at = utcnow()
    if complaint.status == ComplaintStatus.rejected:
        complaint.rejection_reason = reason
    _commit(session, complaint, "Error updating complaint status")

    log_action(
        session,
        performed_by=worker.id,
        action=AuditAction.UPDATED_COMPLAINT_STATUS,
        details=f"Complaint '{complaint.title}' moved from {previous.value} to {complaint.status.value}",
    )

    if complaint.status in (ComplaintStatus.completed, ComplaintStatus.rejected):
        citizen = session.get(User, complaint.citizen_id)
        if citizen:
            notify(citizen.phone_number, f"Your complaint '{complaint.title}' is now {complaint.status.value}.")
    return complaint


def ensure_can_upload_progress(
    complaint: Complaint,
    worker: User,
    latitude: float,
    longitude: float,
    max_distance_meters: Optional[float] = None,
) -> GeofenceResult:
    """Refuse unless the worker owns the complaint, it is still open, and they are on site."""
    _ensure_assigned_worker(complaint, worker)

    if not accepts_progress_photos(complaint.status):
        raise HTTPException(
            status_code=400,
            detail="Progress photos can only be added while a complaint is assigned or in progress",
        )

    radius = config.GEOFENCE_RADIUS_METERS if max_distance_meters is None else max_distance_meters
    geofence = check_geofence(latitude, longitude, complaint.latitude, complaint.longitude, radius)
    logger.info(
        "Geofence check for complaint %s by %s: %.2f m (limit %.0f m)",
        complaint.id, worker.username, geofence.distance_meters, radius,
    )
    if not geofence.within_range:
        raise HTTPException(
            status_code=403,
            detail=(
                f"You must be within {radius:g} meters of the complaint location to upload "
                f"progress photos (currently {geofence.distance_meters:.1f} m away)"
            ),
        )
    return geofence


def record_progress_photo(
    session: Session,
    complaint: Complaint,
    worker: User,
    stage: ProgressStage,
    latitude: float,
    longitude: float,
    media: StoredMedia,
) -> ProgressPhoto:
    photo = ProgressPhoto(
        complaint_id=complaint.id,
        stage=stage,
        url=media.url,
        public_id=media.public_id,
        latitude=latitude,
        longitude=longitude,
    )
    session.add(photo)
    _commit(session, complaint, "Error saving progress photo")
    session.refresh(photo)

    log_action(
        session,
        performed_by=worker.id,
        action=AuditAction.UPLOADED_PROGRESS_PHOTO,
        details=f"Worker '{worker.username}' uploaded a {stage.value} photo for complaint '{complaint.title}'",
    )
    return photo


def rate_complaint(
    session: Session,
    complaint_id: Union[str, uuid.UUID],
    citizen: User,
    rating: int,
    feedback: Optional[str] = None,
) -> Complaint:
    complaint = get_complaint_or_404(session, complaint_id)

    if complaint.citizen_id != citizen.id:
        raise HTTPException(status_code=403, detail="You can only rate your own complaints")
    if complaint.status != ComplaintStatus.completed:
        raise HTTPException(status_code=400, detail="You can only rate completed complaints")
    if complaint.rating:
        raise HTTPException(status_code=400, detail="Complaint already rated")

    complaint.rating = rating
    complaint.feedback = feedback or ""
    _commit(session, complaint, "Error saving rating")

    log_action(
        session,
        performed_by=citizen.id,
        action=AuditAction.RATED_COMPLAINT,
        details=f"Complaint '{complaint.title}' rated {rating}/5",
    )
    return complaint
