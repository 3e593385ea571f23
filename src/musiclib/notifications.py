"""Desktop notifications for musiclib commands.

Popups go through ``notify-send``. A missing binary or a failed call is
logged and ignored; a notification never changes a command's outcome.
"""

import shutil
import subprocess
from typing import List, Literal

from loguru import logger

from musiclib.core.config import NotificationsConfig

Urgency = Literal["low", "normal", "critical"]


class Notifier:
    """Sends popups according to the ``[notifications]`` config section."""

    def __init__(self, config: NotificationsConfig):
        self.config = config

    def build_command(self, title: str, message: str, urgency: Urgency) -> List[str]:
        return [
            "notify-send",
            "--urgency",
            urgency,
            "--app-name",
            self.config.app_name,
            "--expire-time",
            str(self.config.expire_ms),
            title,
            message,
        ]

    def send(self, title: str, message: str, urgency: Urgency = "normal") -> bool:
        """Show one popup.

        Returns:
            True if notify-send ran and exited 0
        """
        if not self.config.enabled:
            return False
        if not shutil.which("notify-send"):
            logger.debug("notify-send not available, skipping notification")
            return False

        try:
            completed = subprocess.run(
                self.build_command(title, message, urgency),
                check=False,
                timeout=2.0,
                capture_output=True,
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.debug(f"Notification failed: {e}")
            return False
        return completed.returncode == 0

    def success(self, message: str) -> bool:
        if not self.config.notify_success:
            return False
        return self.send(f"✓ {self.config.app_name}", message, urgency="normal")

    def deferred(self, message: str) -> bool:
        """Queued work; low urgency."""
        return self.send(f"⏳ {self.config.app_name}", message, urgency="low")

    def error(self, message: str) -> bool:
        return self.send(f"✗ {self.config.app_name}", message, urgency="critical")
