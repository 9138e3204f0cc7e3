"""Error taxonomy for svm_bridge."""

from __future__ import annotations

from typing import Optional


class SvmBridgeError(Exception):
    """Base class for every error raised by this package."""


class ShapeMismatchError(SvmBridgeError, ValueError):
    """Input arrays have inconsistent dimensions."""


class InvalidParameterError(SvmBridgeError, ValueError):
    """Parameter mapping cannot be turned into an engine parameter struct."""


class InvalidModelError(SvmBridgeError, ValueError):
    """Model mapping is missing required arrays or has inconsistent lengths."""


class ModelIOError(SvmBridgeError, OSError):
    """Model file could not be loaded or saved."""

    def __init__(self, *, action: str, path: str, detail: Optional[str] = None) -> None:
        self.action = action
        self.path = path
        self.detail = detail
        message = f"Failed to {action} file '{path}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
