import logging
from typing import Optional

import requests
from fastapi import HTTPException

from core.config import config

logger = logging.getLogger(__name__)

# Per-recipient status Africa's Talking reports for an accepted message
SMS_SUCCESS = "Success"


def base_url() -> str:
    if config.AT_USERNAME != "sandbox":
        return "https://api.africastalking.com/version1/messaging"
    return "https://api.sandbox.africastalking.com/version1/messaging"


def normalize_phone_number(phone_number: str) -> str:
    normalized = phone_number.strip()

    # Already valid international format
    if normalized.startswith("+"):
        return normalized

    # Local format (e.g. 07XXXXXXXX) → +2547XXXXXXXX
    if normalized.startswith("0"):
        return f"+254{normalized[1:]}"

    # Missing + but starts with 254 (e.g. 2547XXXXXXXX) → +2547XXXXXXXX
    if normalized.startswith("254"):
        return f"+{normalized}"

    raise HTTPException(status_code=400, detail="Invalid phone number format")


def send_sms(phone_number: str, message: str) -> dict:
    """Send one SMS through Africa's Talking. Raises on transport errors."""
    headers = {
        "apiKey": config.AT_API_KEY,
        "Accept": "application/json",
        "Content-Type": "application/x-www-form-urlencoded",
    }
    data = {
        "username": config.AT_USERNAME,
        "to": normalize_phone_number(phone_number),
        "message": message,
    }
    if config.AT_SENDER_ID:
        data["from"] = config.AT_SENDER_ID

    try:
        resp = requests.post(base_url(), headers=headers, data=data, timeout=15)
    except requests.RequestException as e:
        logger.error("AT error: %s", e)
        raise
    logger.info("AT response: %s %s", resp.status_code, resp.text)

    # Accept 200 or 201 as success
    if resp.status_code not in (200, 201):
        return {
            "status": "failed",
            "error": f"HTTP {resp.status_code}",
            "raw": resp.text,
        }

    try:
        res = resp.json()
    except ValueError:
        logger.error("AT returned a non-JSON body: %s", resp.text[:200])
        return {"status": "failed", "error": "Invalid JSON response", "raw": resp.text}

    recipients = res.get("SMSMessageData", {}).get("Recipients", [])
    return {
        "status": recipients[0].get("status") if recipients else "failed",
        "messageId": recipients[0].get("messageId") if recipients else None,
        "raw": res,
    }


def notify(phone_number: Optional[str], message: str) -> bool:
    """
    Best-effort SMS used by the workflow. Failures are logged, never raised.

    Returns True only when the provider reports the recipient as "Success".
    """
    if not phone_number:
        return False
    if not config.AT_API_KEY:
        logger.warning("SMS to %s skipped: AFRICASTALKING_API_KEY is not set", phone_number)
        return False

    try:
        result = send_sms(phone_number, message)
    except (requests.RequestException, HTTPException) as e:
        logger.warning("SMS to %s failed: %s", phone_number, e)
        return False
    if result.get("status") != SMS_SUCCESS:
        logger.warning("SMS to %s not delivered: %s", phone_number, result.get("status"))
        return False
    return True
