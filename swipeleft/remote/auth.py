from dataclasses import dataclass
from datetime import datetime

from swipeleft.models import utcnow


@dataclass
class StaticTokenProvider:
    """Bearer token handed over by the surrounding app's auth layer."""

    token: str | None = None
    expires_at: datetime | None = None

    async def get_token(self) -> str | None:
        if not self.token:
            return None
        if self.expires_at is not None and self.expires_at <= utcnow():
            return None
        return self.token

    def update(self, token: str | None, expires_at: datetime | None = None) -> None:
        self.token = token
        self.expires_at = expires_at
