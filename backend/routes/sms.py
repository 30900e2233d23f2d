import logging
import requests
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from models.user import User
from utils.security import admin_required
from utils.sms import SMS_SUCCESS, send_sms

router = APIRouter(tags=["SMS"])
logger = logging.getLogger(__name__)


# --- Request Model ---
class SMSRequest(BaseModel):
    phone_number: str
    message: str


# --- Endpoint ---
@router.post("/send-sms")
def send_sms_endpoint(req: SMSRequest, admin: User = Depends(admin_required)):
    try:
        result = send_sms(req.phone_number, req.message)
    except requests.RequestException as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)
        )
    # Only "Success" means the provider accepted the message
    success = result.get("status") == SMS_SUCCESS
    logger.info("Manual SMS by %s to %s: %s", admin.username, req.phone_number, result.get("status"))
    return {"success": success, "result": result}
