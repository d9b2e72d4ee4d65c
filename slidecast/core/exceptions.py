"""
Exceptions for the Slidecast video compositing engine.

ConfigurationError, ProbeError and EncodeError abort a build and surface to
the calling pipeline step. OverlayValidationError is per-overlay and is
always caught by the filter builder, which skips that overlay.
"""

from typing import Optional


class SlidecastError(Exception):
    """Base class for all engine errors"""


class ConfigurationError(SlidecastError):
    """Raised for missing/unresolvable inputs or inconsistent build settings"""

    def __init__(self, message: str, key: Optional[str] = None):
        self.message = message
        self.key = key
        if key:
            super().__init__(f"{message} (Key: {key})")
        else:
            super().__init__(message)


class ProbeError(SlidecastError):
    """Raised when the duration of a media file cannot be determined"""

    def __init__(self, message: str, file_path: Optional[str] = None):
        self.message = message
        self.file_path = file_path
        if file_path:
            super().__init__(f"{message} (File: {file_path})")
        else:
            super().__init__(message)


class EncodeError(SlidecastError):
    """
    Raised when the external encoder fails or produces no output.

    Attributes:
        returncode: Encoder exit status, if the process ran
        stderr: Captured diagnostic output from the encoder
        output_path: Path the encoder was asked to write
    """

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr: str = "",
        output_path: Optional[str] = None,
    ):
        self.message = message
        self.returncode = returncode
        self.stderr = stderr or ""
        self.output_path = output_path

        error_msg = message
        if returncode is not None:
            error_msg += f" (Exit code: {returncode})"
        if output_path:
            error_msg += f" (Output: {output_path})"
        super().__init__(error_msg)


class EncodeCancelledError(EncodeError):
    """Raised when a build is cancelled while the encoder is running"""


class OverlayValidationError(SlidecastError):
    """Raised when a text overlay is disabled, empty or malformed"""

    def __init__(self, message: str, overlay_id: Optional[str] = None):
        self.message = message
        self.overlay_id = overlay_id
        if overlay_id:
            super().__init__(f"{message} (Overlay: {overlay_id})")
        else:
            super().__init__(message)
