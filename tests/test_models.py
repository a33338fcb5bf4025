from datetime import UTC, datetime

import pytest

from swipeleft.errors import InvalidTransition, NetworkError, SaveFailed, ServerError, Timeout, is_retryable
from swipeleft.models import PROCESSED_STATUSES, Collection, Decision, Item, Status

AT = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)


class TestStatus:
    def test_processed_statuses(self):
        assert not Status.UNPROCESSED.is_processed
        assert set(PROCESSED_STATUSES) == {Status.IGNORED, Status.SAVED, Status.UPLOADED}

    @pytest.mark.parametrize(
        "decision,status",
        [(Decision.DISCARD, Status.IGNORED), (Decision.KEEP, Status.SAVED), (Decision.PUBLISH, Status.UPLOADED)],
    )
    def test_decision_targets(self, decision: Decision, status: Status):
        assert decision.target is status


class TestItem:
    def test_equality_by_id(self):
        assert Item("a", Status.SAVED) == Item("a", Status.IGNORED)
        assert len({Item("a"), Item("a"), Item("b")}) == 2

    def test_with_status_keeps_identity(self):
        item = Item("a", date_added=AT)
        updated = item.with_status(Status.SAVED, AT)

        assert updated.id == "a"
        assert updated.date_added == AT
        assert updated.last_modified == AT
        assert item.status is Status.UNPROCESSED

    def test_naive_timestamps_become_utc(self):
        item = Item("a", last_modified="2024-03-01T09:00:00")

        assert item.last_modified == AT

    def test_from_dict_accepts_bare_status(self):
        assert Item.from_dict("a", "saved").status is Status.SAVED

    def test_dict_round_trip(self):
        item = Item("a", Status.UPLOADED, date_added=AT, last_modified=AT)
        restored = Item.from_dict("a", item.to_dict())

        assert restored.status is Status.UPLOADED
        assert restored.last_modified == AT

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            Item("a", "sideways")


class TestCollection:
    def test_add_remove_report_changes(self):
        collection = Collection(name="private", last_modified=AT)

        assert collection.add("a")
        assert collection.last_modified > AT
        stamp = collection.last_modified
        assert not collection.add("a")
        assert collection.last_modified == stamp
        assert not collection.remove("zzz")
        assert collection.last_modified == stamp
        assert collection.remove("a")
        assert len(collection) == 0

    def test_duplicates_collapsed(self):
        assert Collection(name="x", member_ids=["a", "b", "a"]).member_ids == ["a", "b"]

    def test_from_bare_list(self):
        collection = Collection.from_dict(["a", "b"])

        assert collection.contains("b")
        assert len(collection) == 2


class TestErrors:
    def test_retryable_flags(self):
        assert is_retryable(NetworkError(OSError("reset")))
        assert is_retryable(Timeout())
        assert is_retryable(ServerError("boom", status_code=502))
        assert not is_retryable(ServerError("bad request", status_code=400))
        assert not is_retryable(SaveFailed())
        assert not is_retryable(ValueError("not ours"))

    def test_invalid_transition_message(self):
        err = InvalidTransition("a", Status.SAVED, Status.IGNORED)

        assert str(err) == "Cannot move a from saved to ignored"
