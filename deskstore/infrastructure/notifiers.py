"""Default Notifier and SoundPlayer - used when the host application supplies none.

Invariants:
    - report_error() and play() never raise
    - LoggingNotifier keeps a bounded history so a host can poll recent alerts
"""

import logging
from collections import deque

from deskstore.core.domain_types import SoundKind

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """Notifier that records alerts and logs them at warning level."""

    def __init__(self, history: int = 50):
        self.alerts: deque[tuple[str | None, str]] = deque(maxlen=history)

    def report_error(self, message: str, title: str | None = None) -> None:
        self.alerts.append((title, message))
        logger.warning(f"{title or 'Error'}: {message}")


class SilentSoundPlayer:
    """SoundPlayer that only logs at debug level."""

    def play(self, kind: SoundKind) -> None:
        logger.debug(f"sound: {kind.value}")
