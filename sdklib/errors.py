"""Exception types shared by the SDK helpers and the AVD manager."""


class SdkError(Exception):
    """Base class for all SDK related errors."""


class AndroidLocationError(SdkError):
    """Raised when the Android configuration folder cannot be resolved or created."""


class InvalidTargetPathError(SdkError):
    """Raised when a target image or skin folder is not inside the SDK."""


class PropertyFileError(SdkError):
    """Raised when a property file cannot be read or parsed."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{message}: {path}")
        self.path = path


class ToolError(SdkError):
    """Raised when an external SDK tool cannot be launched."""

    def __init__(self, command, message: str):
        super().__init__(message)
        self.command = list(command)
