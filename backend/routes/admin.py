import logging
import math
import secrets
import time
import uuid
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session, func, or_, select
from core.config import config
from core.database import get_session
from models.audit_log import AuditAction, AuditLog
from models.complaints import Complaint, ComplaintStatus
from models.user import ADMIN_ROLES, Department, User, UserRole, UserStatus
from schemas.users import (
    AdminCreate,
    CitizenRead,
    OfficeCreate,
    OfficeCreated,
    OfficeUpdate,
    UserRead,
    WorkerCreate,
    WorkerUpdate,
)
from utils.audit import log_action
from utils.clock import utcnow
from utils.security import admin_required, clear_otp, hash_password, role_required, superadmin_required
from utils.sms import notify
from utils.storage import delete_media

router = APIRouter(tags=["Admin"])
logger = logging.getLogger(__name__)

roster_required = role_required(UserRole.office, *ADMIN_ROLES)
ACTIVE_STATUSES = (ComplaintStatus.assigned, ComplaintStatus.in_progress)
PASSWORD_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnpqrstuvwxyz23456789"


def get_user_or_404(session: Session, user_id: uuid.UUID, role: UserRole) -> User:
    user = session.get(User, user_id)
    if not user or user.role != role:
        raise HTTPException(status_code=404, detail=f"{role.value.capitalize()} not found")
    return user


def ensure_unique(
    session: Session,
    username: Optional[str] = None,
    email: Optional[str] = None,
    phone_number: Optional[str] = None,
    exclude_id: Optional[uuid.UUID] = None,
):
    conditions = []
    if username:
        conditions.append(User.username == username)
    if email:
        conditions.append(User.email == email)
    if phone_number:
        conditions.append(User.phone_number == phone_number)
    if not conditions:
        return

    statement = select(User).where(or_(*conditions))
    if exclude_id:
        statement = statement.where(User.id != exclude_id)
    existing = session.exec(statement).first()
    if not existing:
        return
    if username and existing.username == username:
        raise HTTPException(status_code=409, detail="Username already exists")
    if email and existing.email == email:
        raise HTTPException(status_code=409, detail="Email already registered")
    raise HTTPException(status_code=409, detail="Phone number already registered")


def save_user(session: Session, user: User, error: str) -> User:
    user.updated_at = utcnow()
    try:
        session.add(user)
        session.commit()
        session.refresh(user)
    except Exception as e:
        session.rollback()
        logger.error("%s: %s", error, e)
        raise HTTPException(status_code=500, detail=f"{error}: {str(e)}")
    return user


def apply_user_changes(session: Session, user: User, body) -> List[str]:
    """Copy the fields set on an update body onto ``user``; returns the changed field names."""
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    password = changes.pop("password", None)
    if "email" in changes:
        changes["email"] = changes["email"].lower()
    ensure_unique(
        session,
        email=changes.get("email"),
        phone_number=changes.get("phone_number"),
        exclude_id=user.id,
    )

    for field, value in changes.items():
        setattr(user, field, value)
    fields = sorted(changes)
    if password:
        user.password_hash = hash_password(password)
        fields.append("password")
    return fields


def deactivate_user(session: Session, user: User) -> User:
    # Users are never hard-deleted: complaints and audit logs reference them
    user.status = UserStatus.inactive
    return save_user(session, user, f"Error removing {user.role.value}")


def generate_office_username(department: Department) -> str:
    prefix = department.value[:3].upper()
    return f"{prefix}_{str(int(time.time()))[-6:]}{secrets.randbelow(100):02d}"


def generate_password(length: int = 8) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


# Workers
@router.post("/workers/", response_model=UserRead, status_code=201)
def add_worker(
    body: WorkerCreate,
    session: Session = Depends(get_session),
    actor: User = Depends(roster_required),
):
    # Offices can only staff their own department
    if actor.role == UserRole.office and body.department != actor.department:
        raise HTTPException(status_code=403, detail="Offices can only add workers to their own department")

    email = body.email.lower() if body.email else None
    ensure_unique(session, body.username, email, body.phone_number)

    worker = User(
        username=body.username,
        name=body.name,
        email=email,
        phone_number=body.phone_number,
        password_hash=hash_password(body.password),
        role=UserRole.worker,
        department=body.department,
        status=UserStatus.active,
    )
    session.add(worker)
    session.commit()
    session.refresh(worker)

    log_action(
        session,
        performed_by=actor.id,
        action=AuditAction.ADDED_WORKER,
        details=f"Worker {worker.username} created for {worker.department.value}",
    )
    return worker


# List all workers
@router.get("/workers/", response_model=List[UserRead])
def list_workers(
    department: Optional[Department] = None,
    status: Optional[UserStatus] = None,
    session: Session = Depends(get_session),
    actor: User = Depends(roster_required),
):
    statement = select(User).where(User.role == UserRole.worker)
    if actor.role == UserRole.office:
        statement = statement.where(User.department == actor.department)
    elif department:
        statement = statement.where(User.department == department)
    if status:
        statement = statement.where(User.status == status)
    return session.exec(statement.order_by(User.created_at.desc())).all()


@router.patch("/workers/{worker_id}", response_model=UserRead)
def update_worker(
    worker_id: uuid.UUID,
    body: WorkerUpdate,
    session: Session = Depends(get_session),
    actor: User = Depends(roster_required),
):
    worker = get_user_or_404(session, worker_id, UserRole.worker)
    if actor.role == UserRole.office and worker.department != actor.department:
        raise HTTPException(status_code=403, detail="Worker belongs to another department")

    changes = apply_user_changes(session, worker, body)
    save_user(session, worker, "Error updating worker")

    log_action(
        session,
        performed_by=actor.id,
        action=AuditAction.UPDATED_WORKER,
        details=f"Worker '{worker.username}' updated: {', '.join(changes) or 'nothing'}",
    )
    return worker


# Remove worker
@router.delete("/workers/{worker_id}")
def remove_worker(
    worker_id: uuid.UUID,
    session: Session = Depends(get_session),
    admin: User = Depends(admin_required),
):
    worker = get_user_or_404(session, worker_id, UserRole.worker)

    active = session.exec(
        select(Complaint).where(
            Complaint.assigned_worker_id == worker.id,
            Complaint.status.in_(ACTIVE_STATUSES),
        )
    ).first()
    if active:
        raise HTTPException(status_code=400, detail="Worker still has active complaints")

    deactivate_user(session, worker)

    log_action(
        session,
        performed_by=admin.id,
        action=AuditAction.REMOVED_WORKER,
        details=f"Worker '{worker.username}' deactivated",
    )
    return {"detail": f"Worker '{worker.username}' removed"}


# Offices
@router.post("/offices/", response_model=OfficeCreated, status_code=201)
def create_office(
    body: OfficeCreate,
    session: Session = Depends(get_session),
    admin: User = Depends(admin_required),
):
    email = body.email.lower()
    username = generate_office_username(body.department)
    ensure_unique(session, username, email, body.phone_number)
    password = generate_password()

    office = User(
        username=username,
        name=body.name,
        email=email,
        phone_number=body.phone_number,
        password_hash=hash_password(password),
        role=UserRole.office,
        department=body.department,
    )
    session.add(office)
    session.commit()
    session.refresh(office)

    # Credentials go out by SMS; the request does not fail if the SMS does
    sent = notify(
        office.phone_number,
        f"Welcome to the complaint portal!\nLogin ID: {username}\nPassword: {password}\nLogin at: {config.APP_URL}",
    )
    log_action(
        session,
        performed_by=admin.id,
        action=AuditAction.CREATED_OFFICE,
        details=f"Office {username} created for {office.department.value}; credentials SMS {'sent' if sent else 'not sent'}",
    )
    return OfficeCreated(office=UserRead.model_validate(office), generated_password=password)


@router.get("/offices/", response_model=List[UserRead])
def list_offices(
    department: Optional[Department] = None,
    session: Session = Depends(get_session),
    admin: User = Depends(admin_required),
):
    statement = select(User).where(User.role == UserRole.office)
    if department:
        statement = statement.where(User.department == department)
    return session.exec(statement.order_by(User.created_at.desc())).all()


@router.patch("/offices/{office_id}", response_model=UserRead)
def update_office(
    office_id: uuid.UUID,
    body: OfficeUpdate,
    session: Session = Depends(get_session),
    admin: User = Depends(admin_required),
):
    office = get_user_or_404(session, office_id, UserRole.office)

    changes = apply_user_changes(session, office, body)
    save_user(session, office, "Error updating office")

    log_action(
        session,
        performed_by=admin.id,
        action=AuditAction.UPDATED_OFFICE,
        details=f"Office '{office.username}' updated: {', '.join(changes) or 'nothing'}",
    )
    return office


@router.delete("/offices/{office_id}")
def remove_office(
    office_id: uuid.UUID,
    session: Session = Depends(get_session),
    admin: User = Depends(admin_required),
):
    office = get_user_or_404(session, office_id, UserRole.office)
    deactivate_user(session, office)

    log_action(
        session,
        performed_by=admin.id,
        action=AuditAction.REMOVED_OFFICE,
        details=f"Office '{office.username}' deactivated",
    )
    return {"detail": f"Office '{office.username}' removed"}


# Citizens
@router.get("/citizens/")
def list_citizens(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    session: Session = Depends(get_session),
    admin: User = Depends(admin_required),
):
    statement = select(User).where(User.role == UserRole.citizen, User.status == UserStatus.active)
    if search:
        pattern = f"%{search}%"
        statement = statement.where(
            or_(User.name.ilike(pattern), User.email.ilike(pattern), User.phone_number.ilike(pattern))
        )

    total = session.exec(select(func.count()).select_from(statement.subquery())).one()
    citizens = session.exec(
        statement.order_by(User.created_at.desc()).offset((page - 1) * limit).limit(limit)
    ).all()

    data = []
    for citizen in citizens:
        complaints = session.exec(select(Complaint).where(Complaint.citizen_id == citizen.id)).all()
        ratings = [c.rating for c in complaints if c.rating]
        data.append({
            **CitizenRead.model_validate(citizen).model_dump(mode="json"),
            "statistics": {
                "total_complaints": len(complaints),
                "solved_complaints": sum(1 for c in complaints if c.status == ComplaintStatus.completed),
                "rejected_complaints": sum(1 for c in complaints if c.status == ComplaintStatus.rejected),
                "open_complaints": sum(
                    1 for c in complaints
                    if c.status in (ComplaintStatus.pending, *ACTIVE_STATUSES)
                ),
                "average_rating": round(sum(ratings) / len(ratings), 1) if ratings else 0,
                "rated_complaints": len(ratings),
            },
        })

    return {"data": data, "page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)}


@router.delete("/citizens/{citizen_id}")
def remove_citizen(
    citizen_id: uuid.UUID,
    session: Session = Depends(get_session),
    admin: User = Depends(admin_required),
):
    citizen = get_user_or_404(session, citizen_id, UserRole.citizen)

    # Their complaints (and stored media) go with them
    complaints = session.exec(select(Complaint).where(Complaint.citizen_id == citizen.id)).all()
    public_ids = []
    for complaint in complaints:
        public_ids += [m.public_id for m in complaint.media] + [p.public_id for p in complaint.progress_photos]
        session.delete(complaint)

    if citizen.profile_photo_public_id:
        public_ids.append(citizen.profile_photo_public_id)

    # The row stays; identifying details are scrubbed
    username = citizen.username
    citizen.username = f"removed-{citizen.id}"
    citizen.name = ""
    citizen.email = None
    citizen.phone_number = None
    citizen.address = None
    citizen.profile_photo_url = None
    citizen.profile_photo_public_id = None
    clear_otp(citizen)
    deactivate_user(session, citizen)
    delete_media(public_ids)

    log_action(
        session,
        performed_by=admin.id,
        action=AuditAction.REMOVED_CITIZEN,
        details=f"Citizen '{username}' removed with {len(complaints)} complaint(s)",
    )
    return {"detail": f"Citizen '{username}' removed"}


# Admins
@router.post("/admins/", response_model=UserRead, status_code=201)
def create_admin(
    body: AdminCreate,
    session: Session = Depends(get_session),
    superadmin: User = Depends(superadmin_required),
):
    if body.role not in ADMIN_ROLES:
        raise HTTPException(status_code=400, detail="Role must be admin or superadmin")
    ensure_unique(session, body.username)

    admin = User(
        username=body.username,
        name=body.name,
        password_hash=hash_password(body.password),
        role=body.role,
    )
    session.add(admin)
    session.commit()
    session.refresh(admin)

    log_action(
        session,
        performed_by=superadmin.id,
        action=AuditAction.CREATED_ADMIN,
        details=f"{admin.role.value} '{admin.username}' created",
    )
    return admin


# Dashboard
@router.get("/stats")
def dashboard_stats(session: Session = Depends(get_session), admin: User = Depends(admin_required)):
    def count(statement) -> int:
        return session.exec(select(func.count()).select_from(statement.subquery())).one()

    users_by_role = {
        role.value: count(select(User).where(User.role == role))
        for role in UserRole
    }
    by_status = {
        status.value: count(select(Complaint).where(Complaint.status == status))
        for status in ComplaintStatus
    }
    by_department = session.exec(
        select(Complaint.department, func.count(Complaint.id))
        .group_by(Complaint.department)
        .order_by(func.count(Complaint.id).desc())
    ).all()
    recent = session.exec(select(Complaint).order_by(Complaint.created_at.desc()).limit(10)).all()
    avg_rating, total_ratings = session.exec(
        select(func.avg(Complaint.rating), func.count(Complaint.rating)).where(Complaint.rating.is_not(None))
    ).one()

    return {
        "overview": {
            "total_citizens": users_by_role[UserRole.citizen.value],
            "total_workers": users_by_role[UserRole.worker.value],
            "total_offices": users_by_role[UserRole.office.value],
            "total_admins": users_by_role[UserRole.admin.value] + users_by_role[UserRole.superadmin.value],
            "total_complaints": sum(by_status.values()),
        },
        "complaint_status": by_status,
        "complaints_by_department": [
            {"department": department.value, "count": total} for department, total in by_department
        ],
        "recent_complaints": [
            {
                "id": str(c.id),
                "title": c.title,
                "status": c.status.value,
                "department": c.department.value,
                "created_at": c.created_at.isoformat(),
            }
            for c in recent
        ],
        "ratings": {"average": round(float(avg_rating or 0), 2), "total": total_ratings},
    }


# View audit logs
@router.get("/audit-logs/", response_model=List[AuditLog])
def view_audit_logs(
    limit: int = Query(200, ge=1, le=1000),
    session: Session = Depends(get_session),
    admin: User = Depends(admin_required),
):
    return session.exec(select(AuditLog).order_by(AuditLog.created_at.desc()).limit(limit)).all()
