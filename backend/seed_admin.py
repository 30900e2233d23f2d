import logging
import os
from sqlmodel import Session, select
from core.database import create_db_and_tables, engine
from models.user import User, UserRole, UserStatus
from utils.security import hash_password

logger = logging.getLogger(__name__)

ADMIN_USERNAME = os.getenv("SEED_ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "admin123")
ADMIN_PHONE = os.getenv("SEED_ADMIN_PHONE", "+254700000001")  # Kenyan phone number in +254 format


def seed_admin(session: Session) -> User:
    """Create the first superadmin unless it already exists."""
    existing_admin = session.exec(select(User).where(User.username == ADMIN_USERNAME)).first()
    if existing_admin:
        logger.info("Admin '%s' already exists", ADMIN_USERNAME)
        return existing_admin

    admin = User(
        username=ADMIN_USERNAME,
        name="Administrator",
        password_hash=hash_password(ADMIN_PASSWORD),
        phone_number=ADMIN_PHONE,
        role=UserRole.superadmin,
        status=UserStatus.active,
    )
    session.add(admin)
    session.commit()
    session.refresh(admin)
    logger.info("Superadmin '%s' seeded", ADMIN_USERNAME)
    return admin


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    create_db_and_tables()
    with Session(engine) as session:
        seed_admin(session)
