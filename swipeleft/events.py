from pydantic import BaseModel, ConfigDict

from swipeleft.models import Decision, Status


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class DecisionRecorded(Event):
    item_id: str
    decision: Decision
    status: Status


class DecisionFailed(Event):
    item_id: str
    decision: Decision
    error: str


class UploadFailed(Event):
    item_id: str
    error: str
    retryable: bool = False


class SyncCompleted(Event):
    pushed: int
    pulled: int
    unchanged: int
    failed: list[str] = []
