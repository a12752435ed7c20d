"""Service layer helpers (settings, browser bridge, session state)."""

from .bridge_types import Action, Channel, ChannelClosedError, PendingRequest
from .settings import PROFILE_PRESETS, Profile, Settings

__all__ = [
    "Action",
    "Channel",
    "ChannelClosedError",
    "PendingRequest",
    "PROFILE_PRESETS",
    "Profile",
    "Settings",
]
