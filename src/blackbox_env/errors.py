"""Error types for the black-box test framework."""
from typing import Any, Dict, Optional

from blackbox_env.logging import get_logger


def log_error(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
    logger: Optional[Any] = None,
) -> None:
    """Log an error with context."""
    logger = logger or get_logger(__name__)

    error_info = {
        "event": "blackbox_error",
        "error_type": error.__class__.__name__,
        "error_message": str(error),
    }
    if context:
        error_info["context"] = context
    if isinstance(error, BlackBoxError):
        error_info["details"] = error.details

    logger.error(error_info)


class BlackBoxError(Exception):
    """Base error class for the framework."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class MisuseError(BlackBoxError, AssertionError):
    """The harness itself is used incorrectly, e.g. after ``dispose``."""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            f"{operation}: {reason}",
            details={"operation": operation, "reason": reason},
        )


class SetupError(BlackBoxError):
    """Preparing a test workspace failed."""

    def __init__(self, test_name: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Failed to prepare environment for {test_name}: {message}",
            details={"test_name": test_name, **(details or {})},
        )
        self.test_name = test_name


class ProcessRunnerError(BlackBoxError):
    """Child process finished with an unexpected result."""

    def __init__(self, name: str, message: str, exit_code: Optional[int], stdout: str, stderr: str):
        super().__init__(
            f"{name}: {message}\n"
            f"stdout: {stdout}\n"
            f"stderr: {stderr}",
            details={"process": name, "exit_code": exit_code},
        )
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr


class ProcessTimeoutError(ProcessRunnerError):
    """Child process did not finish within its timeout and was killed."""

    def __init__(self, name: str, timeout: float, stdout: str, stderr: str):
        super().__init__(name, f"timed out after {timeout}s", None, stdout, stderr)
        self.timeout = timeout
