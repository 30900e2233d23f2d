from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlmodel import Session
from core.database import get_session
from models.audit_log import AuditAction
from models.user import User
from schemas.users import CitizenRead, PasswordChange
from utils.audit import log_action
from utils.clock import utcnow
from utils.security import citizen_required, hash_password, verify_password
from utils.storage import delete_media, save_upload

router = APIRouter(tags=["Citizen"])

PROFILE_PHOTO_MAX_BYTES = 5 * 1024 * 1024


@router.get("/profile", response_model=CitizenRead)
def get_profile(citizen: User = Depends(citizen_required)):
    return citizen


@router.patch("/profile/password")
def change_password(
    body: PasswordChange,
    citizen: User = Depends(citizen_required),
    session: Session = Depends(get_session),
):
    if not verify_password(body.current_password, citizen.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    citizen.password_hash = hash_password(body.new_password)
    citizen.updated_at = utcnow()
    session.add(citizen)
    session.commit()

    log_action(
        session,
        performed_by=citizen.id,
        action=AuditAction.UPDATED_PASSWORD,
        details=f"Citizen '{citizen.username}' changed their password",
    )
    return {"message": "Password changed successfully"}


# Replace the citizen's profile photo; the previous file is removed
@router.post("/profile/photo", response_model=CitizenRead)
async def update_profile_photo(
    photo: UploadFile = File(...),
    citizen: User = Depends(citizen_required),
    session: Session = Depends(get_session),
):
    stored = await save_upload(photo, "citizen-profiles", images_only=True, max_bytes=PROFILE_PHOTO_MAX_BYTES)
    previous = citizen.profile_photo_public_id

    citizen.profile_photo_url = stored.url
    citizen.profile_photo_public_id = stored.public_id
    citizen.updated_at = utcnow()
    try:
        session.add(citizen)
        session.commit()
        session.refresh(citizen)
    except Exception as e:
        session.rollback()
        delete_media([stored.public_id])
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    if previous:
        delete_media([previous])

    log_action(
        session,
        performed_by=citizen.id,
        action=AuditAction.UPDATED_PROFILE_PHOTO,
        details=f"Citizen '{citizen.username}' updated their profile photo",
    )
    return citizen
