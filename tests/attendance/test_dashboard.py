from datetime import date

from src.gym_attendance.gym_attendance.attendance.dashboard import ConfirmationDashboard, DashboardRefresher
from src.gym_attendance.gym_attendance.attendance.document_presence_repository import DocumentPresenceRepository
from src.gym_attendance.gym_attendance.attendance.service import AttendanceService
from src.gym_attendance.gym_attendance.core.exceptions import StoreError
from src.gym_attendance.gym_attendance.store.memory_document_store import InMemoryDocumentStore

DAY = date(2025, 3, 10)


class FailingRepo:
    def list_members(self):
        raise StoreError("timeout")


def _store():
    store = InMemoryDocumentStore()
    store.put_document(
        "members",
        "m2",
        {
            "name": "bruno",
            "modalities": [{"modality": "Muay Thai"}],
            "presenceHistory": [{"date": "2025-03-10", "confirmed": True}],
        },
    )
    store.put_document(
        "members",
        "m1",
        {
            "name": "Ana",
            "modalities": ["Jiu-Jitsu"],
            "presenceHistory": ["2025-03-10"],
            "dependents": [
                {"id": "d1", "name": "Leo", "modalities": ["Judo"], "presenceHistory": ["2025-03-10"]},
                {"id": "d2", "name": "Bia", "presenceHistory": ["2025-03-07"]},
            ],
        },
    )
    store.put_document("members", "m3", {"name": "Caio", "presenceHistory": ["2025-03-07"]})
    return store


def test_collect_lists_every_record_of_the_day():
    snapshot = ConfirmationDashboard(DocumentPresenceRepository(_store())).collect(DAY)

    assert [i.ref.encode() for i in snapshot.items] == [
        "member:m1:2025-03-10",
        "dependent:m1:d1:2025-03-10",
        "member:m2:2025-03-10",
    ]
    assert [i.display_name for i in snapshot.items] == ["Ana", "Leo", "bruno"]
    assert snapshot.items[1].modalities == ("Judo",)
    assert snapshot.items[2].modalities == ("Muay Thai",)
    assert (snapshot.stats.total, snapshot.stats.confirmed, snapshot.stats.pending) == (3, 1, 2)

    payload = snapshot.to_dict()
    assert payload["date"] == "2025-03-10"
    assert payload["items"][1]["kind"] == "dependent"
    assert payload["items"][1]["dependent_id"] == "d1"


def test_collect_after_confirm_all_has_nothing_pending():
    store = _store()
    repo = DocumentPresenceRepository(store)
    AttendanceService(repo, clock=lambda: DAY).confirm_all_today()

    stats = ConfirmationDashboard(repo).collect(DAY).stats

    assert (stats.total, stats.confirmed, stats.pending) == (3, 3, 0)


def test_collect_on_empty_day():
    snapshot = ConfirmationDashboard(DocumentPresenceRepository(_store())).collect(date(2025, 3, 11))

    assert snapshot.items == ()
    assert snapshot.stats.total == 0


def test_refresher_keeps_latest_snapshot():
    refresher = DashboardRefresher(ConfirmationDashboard(DocumentPresenceRepository(_store())), 30, clock=lambda: DAY)

    assert refresher.latest is None
    snapshot = refresher.refresh()

    assert refresher.latest is snapshot
    assert snapshot.day == DAY
    assert not refresher.running


def test_refresher_keeps_previous_snapshot_on_failure():
    refresher = DashboardRefresher(ConfirmationDashboard(FailingRepo()), 30, clock=lambda: DAY)

    assert refresher.refresh() is None
    assert refresher.latest is None
