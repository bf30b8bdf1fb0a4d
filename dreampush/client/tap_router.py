"""Maps a tapped notification's data payload to an in-app path."""

import logging
from typing import Any, Callable, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_DESTINATION = "/"


def _field(data: Mapping[str, Any], *names: str) -> Optional[str]:
    for name in names:
        value = data.get(name)
        if value not in (None, ""):
            return str(value)
    return None


def resolve_destination(data: Any) -> str:
    """Return the destination path for ``data``; never raises."""
    if not isinstance(data, Mapping):
        return DEFAULT_DESTINATION

    kind = data.get("type")
    if kind == "message":
        return "/messages"
    if kind in ("like", "comment"):
        dream_id = _field(data, "dream_id")
        return f"/social?dream={dream_id}" if dream_id else "/social"
    if kind in ("follow", "follow_request"):
        actor_id = _field(data, "actor_id", "requester_id")
        return f"/profile/{actor_id}" if actor_id else "/social"
    if kind == "dream_completed":
        return "/library"
    if kind == "trial_expired":
        return "/pricing"
    return DEFAULT_DESTINATION


def route_notification_tap(data: Any, navigate_to: Callable[[str], None]) -> str:
    """Resolve ``data`` and navigate exactly once. Returns the path used."""
    destination = resolve_destination(data)
    logger.debug(f"Notification tap -> {destination}")
    navigate_to(destination)
    return destination
