import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, or_, select
from core.config import config
from core.database import get_session
from models.audit_log import AuditAction
from models.user import STAFF_ROLES, User, UserRole, UserStatus
from schemas.users import (
    CitizenRead,
    CitizenSignin,
    CitizenSignup,
    LoginRequest,
    OTPRequest,
    OTPVerify,
    PasswordReset,
    TokenResponse,
    UserRead,
)
from utils.audit import log_action
from utils.clock import utcnow
from utils.security import (
    clear_otp,
    create_access_token,
    generate_otp,
    hash_password,
    is_otp_valid,
    otp_expiry,
    verify_password,
)
from utils.sms import notify

router = APIRouter(tags=["Auth"])
logger = logging.getLogger(__name__)


def find_citizen(session: Session, identifier: str) -> User | None:
    identifier = identifier.strip()
    return session.exec(
        select(User).where(
            User.role == UserRole.citizen,
            or_(User.email == identifier.lower(), User.phone_number == identifier),
        )
    ).first()


def issue_otp(session: Session, user: User):
    user.otp = generate_otp()
    user.otp_expiry = otp_expiry()
    session.add(user)
    session.commit()
    notify(user.phone_number, f"Your verification code is {user.otp}. It expires in {config.OTP_EXPIRE_MINUTES} minutes.")


def token_response(user: User) -> TokenResponse:
    return TokenResponse(token=create_access_token(user), user=UserRead.model_validate(user))


# Staff login (workers, offices, admins)
@router.post("/login", response_model=TokenResponse)
def login(body: LoginRequest, session: Session = Depends(get_session)):
    user = session.exec(select(User).where(User.username == body.username)).first()

    if not user or user.role not in STAFF_ROLES or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if user.status != UserStatus.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")

    logger.info("Staff login: %s (%s)", user.username, user.role.value)
    return token_response(user)


@router.post("/citizen/signup", response_model=CitizenRead, status_code=201)
def citizen_signup(body: CitizenSignup, session: Session = Depends(get_session)):
    email = body.email.lower()
    existing = session.exec(
        select(User).where(or_(User.email == email, User.phone_number == body.phone_number))
    ).first()
    if existing:
        detail = "Email already registered" if existing.email == email else "Phone number already registered"
        raise HTTPException(status_code=409, detail=detail)

    citizen = User(
        username=email,
        name=body.name,
        email=email,
        phone_number=body.phone_number,
        password_hash=hash_password(body.password),
        role=UserRole.citizen,
        address=body.address or "",
        verified=False,
    )
    session.add(citizen)
    session.commit()
    session.refresh(citizen)

    # Signup still succeeds if the SMS does not go out; the citizen can ask for a new code
    issue_otp(session, citizen)
    session.refresh(citizen)
    return citizen


@router.post("/citizen/verify-otp", response_model=TokenResponse)
def verify_citizen_otp(body: OTPVerify, session: Session = Depends(get_session)):
    citizen = find_citizen(session, body.identifier)
    if not citizen:
        raise HTTPException(status_code=404, detail="Citizen not found")
    if citizen.verified:
        raise HTTPException(status_code=400, detail="Account already verified")
    if not is_otp_valid(citizen, body.otp):
        raise HTTPException(status_code=400, detail="Invalid or expired OTP")

    citizen.verified = True
    clear_otp(citizen)
    citizen.updated_at = utcnow()
    session.add(citizen)
    session.commit()
    session.refresh(citizen)

    return token_response(citizen)


@router.post("/citizen/send-otp")
def send_citizen_otp(body: OTPRequest, session: Session = Depends(get_session)):
    citizen = find_citizen(session, body.identifier)
    if not citizen:
        raise HTTPException(status_code=404, detail="Citizen not found")

    issue_otp(session, citizen)
    return {"message": "OTP sent"}


@router.post("/citizen/signin", response_model=TokenResponse)
def citizen_signin(body: CitizenSignin, session: Session = Depends(get_session)):
    citizen = find_citizen(session, body.identifier)
    if not citizen:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not citizen.verified:
        raise HTTPException(status_code=403, detail="Please verify your phone number first")
    if citizen.status != UserStatus.active:
        raise HTTPException(status_code=403, detail="Account is inactive")

    if body.password:
        if not verify_password(body.password, citizen.password_hash):
            raise HTTPException(status_code=401, detail="Invalid credentials")
    elif body.otp:
        if not is_otp_valid(citizen, body.otp):
            raise HTTPException(status_code=401, detail="Invalid or expired OTP")
        clear_otp(citizen)
        session.add(citizen)
        session.commit()
        session.refresh(citizen)
    else:
        raise HTTPException(status_code=400, detail="Password or OTP is required")

    return token_response(citizen)


# Staff password reset by SMS code
@router.post("/forgot-password")
def forgot_password(body: OTPRequest, session: Session = Depends(get_session)):
    user = session.exec(select(User).where(User.username == body.identifier)).first()
    if not user or user.role not in STAFF_ROLES or user.status != UserStatus.active:
        raise HTTPException(status_code=404, detail="User not found")
    if not user.phone_number:
        raise HTTPException(status_code=400, detail="No phone number on file")

    issue_otp(session, user)
    return {"message": "OTP sent to the registered phone number"}


@router.post("/reset-password")
def reset_password(body: PasswordReset, session: Session = Depends(get_session)):
    user = session.exec(select(User).where(User.username == body.username)).first()
    if not user or user.role not in STAFF_ROLES:
        raise HTTPException(status_code=404, detail="User not found")
    if not is_otp_valid(user, body.otp):
        raise HTTPException(status_code=400, detail="Invalid or expired OTP")

    user.password_hash = hash_password(body.password)
    clear_otp(user)
    user.updated_at = utcnow()
    session.add(user)
    session.commit()

    log_action(
        session,
        performed_by=user.id,
        action=AuditAction.RESET_PASSWORD,
        details=f"'{user.username}' reset their password",
    )
    return {"message": "Password reset successfully"}
