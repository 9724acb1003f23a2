"""User-visible notifications (toasts and banners).

Rendering is the UI's job; the offline core only says what to show.
"""
from typing import Protocol

from ukulima.core.receipt import emit_receipt


class Notifier(Protocol):
    def toast(self, title: str, message: str, level: str = "info") -> None:
        ...


class ReceiptNotifier:
    """Default notifier: every toast becomes a receipt on stdout."""

    def __init__(self, tenant_id: str = "default"):
        self.tenant_id = tenant_id

    def toast(self, title: str, message: str, level: str = "info") -> None:
        emit_receipt("toast", {
            "tenant_id": self.tenant_id,
            "title": title,
            "message": message,
            "level": level,
        })


class RecordingNotifier:
    """Keeps toasts in memory, for embedding UIs and tests."""

    def __init__(self):
        self.toasts: list[tuple[str, str, str]] = []

    def toast(self, title: str, message: str, level: str = "info") -> None:
        self.toasts.append((title, message, level))

    def titles(self) -> list[str]:
        return [t[0] for t in self.toasts]
