class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class SchedulerError(AppError):
    """Raised when the scheduler is asked for something it cannot run (unknown strategy, broken state)."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class ConfigurationError(AppError):
    """Raised when catalogue data or scheduling constraints are inconsistent.

    Fatal to a generation call: nothing partial is returned.
    """
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)
