from dataclasses import dataclass, field
from datetime import datetime

from swipeleft.models import utcnow


@dataclass
class Session:
    """Per-user state shared by the buffer and the decision engine.

    Passed explicitly to the components that need it; there is no module-level
    instance.
    """

    library_access: bool = True
    authenticated: bool = False
    current_id: str | None = None
    started_at: datetime = field(default_factory=utcnow)
    decisions: int = 0

    def set_current(self, item_id: str | None) -> None:
        self.current_id = item_id
