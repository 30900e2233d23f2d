import logging
import os
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlmodel import Session, func, select
from core.config import config
from core.database import create_db_and_tables, get_session
from models.complaints import Complaint
from models.user import User
from routes import admin, auth, citizen, complaints, sms, worker

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    yield

app = FastAPI(title="Civic Complaint Tracker", lifespan=lifespan)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Make sure the folder exists
os.makedirs(config.UPLOAD_DIR, exist_ok=True)

# Expose uploads directory at /uploads
app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR), name="uploads")
app.include_router(auth.router, prefix="/auth")
app.include_router(citizen.router, prefix="/citizen")
app.include_router(admin.router, prefix="/admin")
app.include_router(worker.router, prefix="/worker")
app.include_router(complaints.router, prefix="/complaints")
app.include_router(sms.router, prefix="/sms")


@app.get("/", tags=["Health"])
def root():
    return {"message": "Civic Complaint Tracker API running"}


@app.get("/health", tags=["Health"])
def health(session: Session = Depends(get_session)):
    users = session.exec(select(User.role, func.count(User.id)).group_by(User.role)).all()
    return {
        "status": "ok",
        "users": {role.value: total for role, total in users},
        "complaints": session.exec(select(func.count(Complaint.id))).one(),
    }
