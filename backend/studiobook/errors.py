from pydantic import ValidationError


class InputError(ValueError):
    """Caller passed something the scheduling core cannot work with."""


class UnknownResourceError(InputError, LookupError):
    pass


class UpstreamFetchError(RuntimeError):
    """Reservation or operating-hours data could not be loaded."""


class SlotUnavailableError(ValueError):
    def __init__(self, message: str, conflicts: list | None = None):
        super().__init__(message)
        self.conflicts = list(conflicts or [])


def map_validation_error(error: ValidationError) -> dict[str, str]:
    return {
        "error_code": "INVALID_ARGS",
        "human_message": f"Invalid args: {error.errors()[0]['msg']}",
    }
