"""Example: drive the attendance service directly (no Flask).

Uses the in-memory store so it runs without a database.
"""

from datetime import date

from src.gym_attendance.gym_attendance.attendance.model import PersonRef, RecordRef
from src.gym_attendance.gym_attendance.container import build_container


def main():
    container = build_container(store_config={"backend": "memory"}, dashboard_refresh_seconds=0)
    container.store.put_document(
        "members",
        "m-1",
        {"name": "Ana", "presenceHistory": [], "dependents": [{"id": "d-1", "name": "Leo", "presenceHistory": []}]},
    )

    service = container.attendance_service
    day = date(2025, 3, 10)
    member, dependent = PersonRef("m-1"), PersonRef("m-1", "d-1")

    print("member check-in:", service.check_in(member, today=day))
    print("dependent check-in:", service.check_in(dependent, today=day))
    print("confirm member:", service.confirm(RecordRef(member, day)))
    print("confirm all:", service.confirm_all_today(today=day))
    print("status:", service.status(member, today=day))


if __name__ == "__main__":
    main()
