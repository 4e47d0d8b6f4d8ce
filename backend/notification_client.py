import uuid

import requests

from config import APP_URL
from notification_store import get_user_notification_details


def send_frame_notification(fid: int, title: str, body: str,
                            notification_details: dict | None = None) -> dict:
    """Push a notification to a user's registered client.

    Returns a dict whose "state" is one of: no_token, success, rate_limit, error.
    """
    if not notification_details:
        notification_details = get_user_notification_details(fid)
    if not notification_details:
        return {"state": "no_token"}

    payload = {
        "notificationId": str(uuid.uuid4()),
        "title": title,
        "body": body,
        "targetUrl": APP_URL,
        "tokens": [notification_details["token"]],
    }
    try:
        response = requests.post(notification_details["url"], json=payload, timeout=15)
    except requests.RequestException as exc:
        print(f"[Notify] Delivery to user {fid} failed: {exc}", flush=True)
        return {"state": "error", "error": str(exc)}

    try:
        response_json = response.json()
    except ValueError:
        response_json = None

    if response.status_code != 200:
        return {"state": "error", "error": response_json or response.text[:500]}

    result = (response_json or {}).get("result") or {}
    if result.get("rateLimitedTokens"):
        return {"state": "rate_limit"}
    return {"state": "success"}
