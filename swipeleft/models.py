from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from uuid import UUID, uuid4

PRIVATE_COLLECTION = "private"


def utcnow() -> datetime:
    return datetime.now(UTC)


def to_dt(v) -> datetime | None:
    if v is None or v == "":
        return None
    dt = datetime.fromisoformat(v) if isinstance(v, str) else v
    return dt if dt.tzinfo else dt.replace(tzinfo=UTC)


def from_dt(v: datetime | None) -> str | None:
    return v.isoformat() if v else None


class Status(StrEnum):
    UNPROCESSED = "unprocessed"
    IGNORED = "ignored"
    SAVED = "saved"
    UPLOADED = "uploaded"

    @property
    def is_processed(self) -> bool:
        return self is not Status.UNPROCESSED


PROCESSED_STATUSES = tuple(s for s in Status if s.is_processed)


class Decision(StrEnum):
    DISCARD = "discard"
    KEEP = "keep"
    PUBLISH = "publish"

    @property
    def target(self) -> Status:
        return _DECISION_TARGETS[self]


_DECISION_TARGETS = {
    Decision.DISCARD: Status.IGNORED,
    Decision.KEEP: Status.SAVED,
    Decision.PUBLISH: Status.UPLOADED,
}


@dataclass(eq=False)
class Item:
    id: str
    status: Status = Status.UNPROCESSED
    date_added: datetime = field(default_factory=utcnow)
    last_modified: datetime | None = None

    def __post_init__(self):
        self.status = Status(self.status)
        self.date_added = to_dt(self.date_added) or utcnow()
        self.last_modified = to_dt(self.last_modified)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Item):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def with_status(self, status: Status, at: datetime | None = None) -> "Item":
        return replace(self, status=status, last_modified=at or utcnow())

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "date_added": from_dt(self.date_added),
            "last_modified": from_dt(self.last_modified),
        }

    @classmethod
    def from_dict(cls, item_id: str, data: dict | str) -> "Item":
        # Older stores kept a bare status string per id
        if isinstance(data, str):
            return cls(id=item_id, status=Status(data))
        return cls(
            id=item_id,
            status=data.get("status", Status.UNPROCESSED),
            date_added=data.get("date_added"),
            last_modified=data.get("last_modified"),
        )


@dataclass
class Collection:
    """Ordered, duplicate-free set of item ids.

    `last_modified` moves only when `add`/`remove` actually change membership.
    """

    name: str
    id: UUID = field(default_factory=uuid4)
    description: str | None = None
    member_ids: list[str] = field(default_factory=list)
    date_created: datetime = field(default_factory=utcnow)
    last_modified: datetime | None = None

    def __post_init__(self):
        if isinstance(self.id, str):
            self.id = UUID(self.id)
        self.date_created = to_dt(self.date_created) or utcnow()
        self.last_modified = to_dt(self.last_modified) or self.date_created
        self.member_ids = list(dict.fromkeys(self.member_ids))

    def __len__(self) -> int:
        return len(self.member_ids)

    def contains(self, item_id: str) -> bool:
        return item_id in self.member_ids

    def add(self, item_id: str, at: datetime | None = None) -> bool:
        if item_id in self.member_ids:
            return False
        self.member_ids.append(item_id)
        self.last_modified = at or utcnow()
        return True

    def remove(self, item_id: str, at: datetime | None = None) -> bool:
        if item_id not in self.member_ids:
            return False
        self.member_ids.remove(item_id)
        self.last_modified = at or utcnow()
        return True

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "member_ids": list(self.member_ids),
            "date_created": from_dt(self.date_created),
            "last_modified": from_dt(self.last_modified),
        }

    @classmethod
    def from_dict(cls, data: dict | list) -> "Collection":
        # A bare list is the id-only layout: `collection.<name>: [id, ...]`
        if isinstance(data, list):
            return cls(name="", member_ids=[str(x) for x in data])
        return cls(
            name=data.get("name", ""),
            id=data.get("id") or uuid4(),
            description=data.get("description"),
            member_ids=[str(x) for x in data.get("member_ids", [])],
            date_created=data.get("date_created"),
            last_modified=data.get("last_modified"),
        )
