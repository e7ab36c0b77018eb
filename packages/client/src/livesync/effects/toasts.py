"""Severity → toast mapping.

Learn: Reducers decide *that* a toast should appear; this module decides
*which kind*. The mapping is a fixed table and `toast_kind` is a pure
function, so it can be tested without any reducer. `dispatch_toast`
makes exactly one presenter call and never lets a presenter failure
reach the reducer that asked for it.
"""

from enum import Enum
from typing import Any, Optional, Protocol

import structlog

logger = structlog.get_logger()


class ToastKind(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"


SEVERITY_TOASTS: dict[str, ToastKind] = {
    "high": ToastKind.ERROR,
    "medium": ToastKind.WARNING,
    "low": ToastKind.INFO,
    "success": ToastKind.SUCCESS,
}


class Presenter(Protocol):
    """The toast widget. Fire-and-forget."""

    def show_toast(self, kind: ToastKind, text: str) -> None: ...


def toast_kind(severity: Any) -> ToastKind:
    """Map a severity (or event type) to a toast kind. Unknown → INFO."""
    if not isinstance(severity, str):
        return ToastKind.INFO
    return SEVERITY_TOASTS.get(severity.strip().lower(), ToastKind.INFO)


def dispatch_toast(presenter: Optional[Presenter], severity: Any, text: str) -> ToastKind:
    """Show one toast for `severity`. Returns the kind that was chosen."""
    kind = toast_kind(severity)
    if presenter is None:
        return kind
    try:
        presenter.show_toast(kind, text)
    except Exception:
        logger.exception("toast.presenter_failed", kind=kind.value)
    return kind


class LogPresenter:
    """Presenter that writes toasts to the log. Default for headless use."""

    def show_toast(self, kind: ToastKind, text: str) -> None:
        logger.info("toast.shown", kind=kind.value, text=text)
