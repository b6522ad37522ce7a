from typing import List, Tuple

from storefront.utils.logging import get_logger

log = get_logger(__name__)


class Notifier:
    def notify(self, kind: str, message: str):
        raise NotImplementedError


class LoggingNotifier(Notifier):
    _levels = {"success": "info", "info": "info", "warning": "warning", "error": "error"}

    def notify(self, kind: str, message: str):
        getattr(log, self._levels.get(kind, "info"))("[%s] %s", kind, message)


class RecordingNotifier(Notifier):
    def __init__(self):
        self.messages: List[Tuple[str, str]] = []

    def notify(self, kind: str, message: str):
        self.messages.append((kind, message))

    def kinds(self) -> List[str]:
        return [k for k, _ in self.messages]


def safe_notify(notifier: Notifier, kind: str, message: str):
    """Notifications are fire-and-forget; a broken notifier never changes control flow."""
    try:
        notifier.notify(kind, message)
    except Exception:
        log.exception("Notifier failed for %s message", kind)
