"""
Configuration for the complaint tracker.
Loads all environment variables the API needs.
"""
import os


class Config:
    """Centralized configuration from environment variables."""

    # Database
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./civic_complaints.db")

    # Auth
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-this-secret-in-production")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_DAYS = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "7"))
    OTP_EXPIRE_MINUTES = int(os.getenv("OTP_EXPIRE_MINUTES", "10"))

    # Workers must be this close to a complaint to upload progress photos
    GEOFENCE_RADIUS_METERS = float(os.getenv("GEOFENCE_RADIUS_METERS", "10"))

    # Media
    UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS", "https://localhost:8080,http://localhost:8080"
        ).split(",")
        if origin.strip()
    ]

    # Africa's Talking SMS
    AT_USERNAME = os.getenv("AFRICASTALKING_USERNAME", "sandbox")
    AT_API_KEY = os.getenv("AFRICASTALKING_API_KEY", "")
    AT_SENDER_ID = os.getenv("AFRICASTALKING_SENDER_ID", "")

    APP_URL = os.getenv("APP_URL", "http://localhost:8080")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


config = Config()
