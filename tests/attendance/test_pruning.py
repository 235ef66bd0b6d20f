from datetime import date

from src.gym_attendance.gym_attendance.attendance.document_presence_repository import (
    DocumentPresenceRepository,
    to_member_presence,
)
from src.gym_attendance.gym_attendance.attendance.model import PersonRef
from src.gym_attendance.gym_attendance.attendance.service import AttendanceService
from src.gym_attendance.gym_attendance.attendance.watcher import PresenceWatcher
from src.gym_attendance.gym_attendance.core.exceptions import StoreError
from src.gym_attendance.gym_attendance.store.document_store import Document
from src.gym_attendance.gym_attendance.store.memory_document_store import InMemoryDocumentStore

DAY = date(2025, 3, 10)


class ManualFeed:
    """Delivers member snapshots by hand, in whatever order a test needs."""

    def __init__(self):
        self.callback = None

    def subscribe(self, member_id, callback):
        self.callback = callback
        return lambda: None

    def deliver(self, version, history):
        document = Document(doc_id="m1", version=version, data={"name": "Ana", "presenceHistory": history})
        self.callback(to_member_presence(document))


class BrokenStore(InMemoryDocumentStore):
    def update_document(self, collection, doc_id, fields, *, expected_version=None):
        raise StoreError("read-only replica")


def test_load_history_prunes_old_and_closed_days():
    store = InMemoryDocumentStore()
    store.put_document(
        "members",
        "m1",
        {
            "name": "Ana",
            "presenceHistory": [
                {"date": "2024-06-01", "confirmed": True},
                {"date": "2025-01-01", "confirmed": False},
                {"date": "2025-02-03", "confirmed": False},
            ],
        },
    )
    service = AttendanceService(DocumentPresenceRepository(store))

    history = service.load_history(PersonRef("m1"), today=DAY)

    assert [r.date for r in history] == [date(2025, 2, 3)]
    assert store.get_document("members", "m1").data["presenceHistory"] == [{"date": "2025-02-03", "confirmed": False}]


def test_load_history_without_changes_does_not_write():
    store = InMemoryDocumentStore()
    store.put_document("members", "m1", {"name": "Ana", "presenceHistory": [{"date": "2025-02-03", "confirmed": True}]})
    service = AttendanceService(DocumentPresenceRepository(store))

    service.load_history(PersonRef("m1"), today=DAY)

    assert store.get_document("members", "m1").version == 1


def test_legacy_entries_are_rewritten_in_current_shape():
    store = InMemoryDocumentStore()
    store.put_document("members", "m1", {"name": "Ana", "presenceHistory": ["2025-02-03"]})
    service = AttendanceService(DocumentPresenceRepository(store))

    service.load_history(PersonRef("m1"), today=DAY)

    assert store.get_document("members", "m1").data["presenceHistory"] == [{"date": "2025-02-03", "confirmed": False}]


def test_new_year_resets_history():
    store = InMemoryDocumentStore()
    store.put_document(
        "members",
        "m1",
        {
            "name": "Ana",
            "presenceHistory": [{"date": "2024-12-30", "confirmed": True}],
            "dependents": [{"id": "d1", "name": "Leo", "presenceHistory": [{"date": "2024-12-30", "confirmed": True}]}],
        },
    )
    service = AttendanceService(DocumentPresenceRepository(store))

    assert len(service.load_history(PersonRef("m1"), today=date(2025, 1, 1))) == 0
    assert len(service.load_history(PersonRef("m1", "d1"), today=date(2025, 1, 1))) == 0

    data = store.get_document("members", "m1").data
    assert data["presenceHistory"] == []
    assert data["dependents"] == [{"id": "d1", "name": "Leo", "presenceHistory": []}]


def test_failed_prune_write_still_returns_filtered_history():
    store = BrokenStore()
    store.put_document("members", "m1", {"name": "Ana", "presenceHistory": ["2024-06-01", "2025-02-03"]})
    service = AttendanceService(DocumentPresenceRepository(store))

    history = service.load_history(PersonRef("m1"), today=DAY)

    assert [r.date for r in history] == [date(2025, 2, 3)]
    assert store.get_document("members", "m1").data["presenceHistory"] == ["2024-06-01", "2025-02-03"]


def test_watcher_follows_document_changes():
    store = InMemoryDocumentStore()
    store.put_document("members", "m1", {"name": "Ana", "presenceHistory": [{"date": "2024-06-01", "confirmed": True}]})
    repo = DocumentPresenceRepository(store)
    service = AttendanceService(repo, clock=lambda: DAY)
    seen = []
    watcher = PresenceWatcher(service, repo, PersonRef("m1"), seen.append, clock=lambda: DAY).start()

    assert watcher.running
    assert watcher.view.records == ()
    assert watcher.view.status.can_check_in
    assert store.get_document("members", "m1").data["presenceHistory"] == []

    service.check_in(PersonRef("m1"))
    assert [r.date for r in watcher.view.records] == [DAY]
    assert watcher.view.status.is_checked_in_today

    watcher.stop()
    count = len(seen)
    service.confirm_all_today()
    assert len(seen) == count
    assert not watcher.view.status.is_confirmed_today


def test_watcher_on_missing_document_shows_empty_view():
    store = InMemoryDocumentStore()
    repo = DocumentPresenceRepository(store)
    service = AttendanceService(repo, clock=lambda: DAY)

    watcher = PresenceWatcher(service, repo, PersonRef("ghost"), clock=lambda: DAY).start()

    assert watcher.view.records == ()
    assert watcher.view.status.total == 0
    watcher.stop()


def test_watcher_ignores_snapshot_older_than_the_one_shown():
    service = AttendanceService(DocumentPresenceRepository(InMemoryDocumentStore()), clock=lambda: DAY)
    feed = ManualFeed()
    watcher = PresenceWatcher(service, feed, PersonRef("m1"), clock=lambda: DAY).start()
    checked_in = [{"date": "2025-03-10", "confirmed": False}]

    feed.deliver(2, checked_in)
    feed.deliver(1, [])

    assert watcher.view.status.is_checked_in_today
    assert [r.date for r in watcher.view.records] == [DAY]

    feed.deliver(3, [{"date": "2025-03-10", "confirmed": True}])
    assert watcher.view.status.is_confirmed_today


def test_watcher_resets_when_document_disappears():
    service = AttendanceService(DocumentPresenceRepository(InMemoryDocumentStore()), clock=lambda: DAY)
    feed = ManualFeed()
    watcher = PresenceWatcher(service, feed, PersonRef("m1"), clock=lambda: DAY).start()

    feed.deliver(4, [{"date": "2025-03-10", "confirmed": False}])
    feed.callback(None)
    assert watcher.view.records == ()

    feed.deliver(1, [{"date": "2025-03-07", "confirmed": False}])
    assert [r.date for r in watcher.view.records] == [date(2025, 3, 7)]
