from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from .attendance.dashboard import ConfirmationDashboard, DashboardRefresher
from .attendance.document_presence_repository import DocumentPresenceRepository
from .attendance.service import AttendanceService
from .common.datetime_utils import today as local_today
from .core.constants import DEFAULT_DASHBOARD_REFRESH_SECONDS, DEFAULT_SUBSCRIPTION_POLL_SECONDS, MEMBERS_COLLECTION
from .core.enums import StoreBackend
from .database.connection import DatabaseConnection, DBConfig
from .store.document_store import DocumentStore
from .store.memory_document_store import InMemoryDocumentStore
from .store.mysql_document_store import MySQLDocumentStore


@dataclass(frozen=True)
class Container:
    store: DocumentStore
    presence_repo: DocumentPresenceRepository

    attendance_service: AttendanceService
    dashboard: ConfirmationDashboard
    dashboard_refresher: Optional[DashboardRefresher]

    def close(self) -> None:
        if self.dashboard_refresher is not None:
            self.dashboard_refresher.stop(timeout=1.0)
        self.store.close()


def build_store(store_config: dict) -> DocumentStore:
    backend = StoreBackend(str(store_config.get("backend", StoreBackend.MYSQL.value)).lower())
    if backend == StoreBackend.MEMORY:
        return InMemoryDocumentStore()

    conn = DatabaseConnection.get_instance(DBConfig.from_dict(store_config))
    return MySQLDocumentStore(
        conn,
        poll_seconds=float(store_config.get("poll_seconds", DEFAULT_SUBSCRIPTION_POLL_SECONDS)),
    )


def build_container(
    *,
    store_config: dict,
    collection: str = MEMBERS_COLLECTION,
    dashboard_refresh_seconds: float = DEFAULT_DASHBOARD_REFRESH_SECONDS,
    store: Optional[DocumentStore] = None,
    clock: Callable[[], date] = local_today,
) -> Container:
    if store is None:
        store = build_store(store_config)

    presence_repo = DocumentPresenceRepository(store, collection=collection)
    attendance_service = AttendanceService(presence_repo, clock=clock)
    dashboard = ConfirmationDashboard(presence_repo)
    refresher = DashboardRefresher(dashboard, dashboard_refresh_seconds, clock=clock) if dashboard_refresh_seconds > 0 else None

    return Container(
        store=store,
        presence_repo=presence_repo,
        attendance_service=attendance_service,
        dashboard=dashboard,
        dashboard_refresher=refresher,
    )
