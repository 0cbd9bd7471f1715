"""Domain entity representing a patient or staff user."""

from dataclasses import dataclass
from datetime import datetime

SUPPORTED_DEVICE_PLATFORMS = frozenset({"ios", "android"})


@dataclass
class DeviceRegistration:
    """The single push registration currently active for a user."""

    token: str
    platform: str


@dataclass
class User:
    """Core attributes the notification core needs from a user record.

    ``notification_settings`` and ``schedule_settings`` hold the raw JSON text
    persisted on the user row; they are only interpreted by the preference
    helpers so a corrupt blob never breaks loading the user.
    """

    id: int | None
    username: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    notification_settings: str | None = None
    schedule_settings: str | None = None
    device_token: str | None = None
    device_platform: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def device(self) -> DeviceRegistration | None:
        """Return the active push registration, if one exists."""

        if not self.device_token:
            return None
        return DeviceRegistration(
            token=self.device_token, platform=self.device_platform or ""
        )

    def register_device(self, token: str, platform: str) -> None:
        """Replace the push registration; the last registration wins."""

        self.device_token = token
        self.device_platform = platform

    @property
    def display_name(self) -> str:
        return self.first_name or self.username
