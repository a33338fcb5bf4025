class SwipeLeftError(Exception):
    """Base exception for the swipeleft core."""

    retryable: bool = False


# --- Selection ---


class SelectionError(SwipeLeftError):
    pass


class EmptyCandidateSet(SelectionError):
    def __init__(self, message: str = "Candidate set is empty"):
        super().__init__(message)


class Exhausted(SelectionError):
    def __init__(self, message: str = "No candidates left to select"):
        super().__init__(message)


# --- Repository ---


class StatusError(SwipeLeftError):
    pass


class SaveFailed(StatusError):
    def __init__(self, message: str = "Failed to save the photo information."):
        super().__init__(message)


class NotFound(StatusError):
    def __init__(self, message: str = "The requested photo could not be found."):
        super().__init__(message)


class PermissionDenied(StatusError):
    def __init__(self, message: str = "Permission denied."):
        super().__init__(message)


class InvalidTransition(StatusError):
    def __init__(self, item_id: str, current: str, target: str):
        self.item_id = item_id
        self.current = current
        self.target = target
        super().__init__(f"Cannot move {item_id} from {current} to {target}")


# --- Remote ---


class RemoteError(StatusError):
    pass


class NetworkError(RemoteError):
    retryable = True

    def __init__(self, cause: BaseException | None = None):
        self.cause = cause
        super().__init__(f"Network error: {cause}" if cause else "Network error")


class Unauthorized(RemoteError):
    def __init__(self, message: str = "You are not authorized to perform this action."):
        super().__init__(message)


class ServerError(RemoteError):
    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(f"Server error: {message}")

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code is not None and self.status_code >= 500


class Timeout(RemoteError):
    retryable = True

    def __init__(self, message: str = "The request timed out."):
        super().__init__(message)


class Unknown(RemoteError):
    def __init__(self, message: str = "An unknown error occurred."):
        super().__init__(message)


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, SwipeLeftError) and exc.retryable
