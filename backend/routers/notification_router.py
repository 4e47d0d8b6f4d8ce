from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from notification_client import send_frame_notification
from notification_store import delete_user_notification_details, set_user_notification_details

router = APIRouter()


class NotificationDetails(BaseModel):
    url: str
    token: str


class FrameEvent(BaseModel):
    event: str
    notificationDetails: NotificationDetails | None = None


class WebhookRequest(BaseModel):
    """Request body for /api/webhook."""

    fid: int
    event: FrameEvent


def _send_welcome(fid: int, details: dict) -> dict:
    return send_frame_notification(
        fid,
        title="Welcome to Holding Period Analyzer",
        body="Notifications are enabled for your holding period analyses",
        notification_details=details,
    )


@router.post("/api/webhook")
def frame_webhook(body: WebhookRequest):
    """Track which users can receive notifications."""
    fid = body.fid
    event = body.event

    if event.event in ("frame_added", "notifications_enabled"):
        if event.notificationDetails is None:
            if event.event == "notifications_enabled":
                raise HTTPException(status_code=400, detail="notificationDetails is required")
            delete_user_notification_details(fid)
            return {"success": True}

        details = event.notificationDetails.model_dump()
        set_user_notification_details(fid, details)
        sent = _send_welcome(fid, details)
        print(f"[Notify] {event.event} for user {fid}, welcome: {sent['state']}", flush=True)
        return {"success": True, "notification": sent["state"]}

    if event.event in ("frame_removed", "notifications_disabled"):
        delete_user_notification_details(fid)
        print(f"[Notify] {event.event} for user {fid}", flush=True)
        return {"success": True}

    raise HTTPException(status_code=400, detail=f"Unknown event: {event.event}")
