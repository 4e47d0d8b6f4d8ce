"""Per-user notification delivery details (endpoint URL + token), stored as JSON files."""

import json
from pathlib import Path

from config import DATA_DIR, NOTIFICATION_SERVICE_KEY


def get_notifications_dir() -> Path:
    """Get notification details directory."""
    notifications_dir = DATA_DIR / "notifications"
    notifications_dir.mkdir(parents=True, exist_ok=True)
    return notifications_dir


def _details_file(fid: int) -> Path:
    return get_notifications_dir() / f"{NOTIFICATION_SERVICE_KEY}_user_{fid}.json"


def get_user_notification_details(fid: int) -> dict | None:
    """Load notification details for a user, or None if not registered."""
    details_file = _details_file(fid)
    if not details_file.exists():
        return None
    try:
        with open(details_file, "r", encoding="utf-8") as f:
            details = json.load(f)
    except (OSError, ValueError) as e:
        print(f"[Notify] Error reading details for user {fid}: {e}")
        return None
    if not isinstance(details, dict) or not details.get("url") or not details.get("token"):
        return None
    return details


def set_user_notification_details(fid: int, details: dict) -> None:
    """Save notification details for a user."""
    with open(_details_file(fid), "w", encoding="utf-8") as f:
        json.dump({"url": details["url"], "token": details["token"]}, f, indent=2, ensure_ascii=False)


def delete_user_notification_details(fid: int) -> None:
    """Remove notification details for a user (no-op if absent)."""
    _details_file(fid).unlink(missing_ok=True)
