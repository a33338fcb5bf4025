from swipeleft.remote.auth import StaticTokenProvider
from swipeleft.remote.client import ApiClient, error_for_status

__all__ = ["ApiClient", "StaticTokenProvider", "error_for_status"]
