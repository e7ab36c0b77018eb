"""Side effects triggered by stream events (toasts)."""

from livesync.effects.toasts import LogPresenter, Presenter, ToastKind, dispatch_toast, toast_kind

__all__ = ["LogPresenter", "Presenter", "ToastKind", "dispatch_toast", "toast_kind"]
