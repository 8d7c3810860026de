# app/api/routes/contact.py
"""🔔 POST /api/contact: форма "Связаться с нами" на сайте."""

from fastapi import APIRouter, Depends

from app.api.dependencies import require_notifier
from app.api.schemas import ContactPayload
from app.bot.services.notifications import NotificationDispatcher
from app.errors import ValidationError

import structlog

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["contact"])


@router.post("/contact")
async def contact(payload: ContactPayload, notifier: NotificationDispatcher = Depends(require_notifier)):
    try:
        image = payload.image_bytes()
    except ValueError as e:
        raise ValidationError(str(e), field="imageBase64")

    photo_sent = await notifier.relay_contact_request(payload.name, payload.phone, payload.message, image=image)

    logger.info("contact_request_received", has_image=image is not None, photo_sent=photo_sent)
    return {"success": True, "photoSent": photo_sent}
