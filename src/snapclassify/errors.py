"""Exception hierarchy.

Startup errors are fatal: the process reports them and exits. Everything else
is recoverable and ends up as a status message for the user.
"""

from __future__ import annotations


class SnapClassifyError(Exception):
    """Base class for all SnapClassify errors."""


class StartupError(SnapClassifyError):
    """A bundled resource could not be loaded at startup."""


class LabelsError(StartupError):
    """The label file is missing, unreadable, or malformed."""


class ModelLoadError(StartupError):
    """The model artifact is missing or could not be loaded."""


class ImageDecodeError(SnapClassifyError, ValueError):
    """The picked file is not a decodable image or exceeds size limits."""


class InferenceError(SnapClassifyError):
    """A single inference call failed."""
