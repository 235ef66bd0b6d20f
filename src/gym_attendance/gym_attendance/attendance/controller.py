from __future__ import annotations

import logging
from typing import Optional

from flask import Flask, jsonify, request

from ..common.datetime_utils import format_date, format_display_date, parse_iso_date, parse_month
from ..common.validators import optional_text, require_non_empty
from ..container import Container
from ..core.exceptions import NotFoundError, StoreError, ValidationError
from .model import PersonRef, PresenceStatus, RecordRef

logger = logging.getLogger(__name__)


def _status_to_dict(status: PresenceStatus) -> dict:
    last = status.last_check_in_date
    return {
        "today": format_date(status.today),
        "year": status.year,
        "is_checked_in_today": status.is_checked_in_today,
        "is_confirmed_today": status.is_confirmed_today,
        "is_new_day": status.is_new_day,
        "can_check_in": status.can_check_in,
        "check_in_pending": status.check_in_pending,
        "last_check_in_date": format_date(last) if last else None,
        "last_check_in_display": format_display_date(last) if last else None,
        "total": status.total,
        "confirmed": status.confirmed,
        "percentage": status.percentage,
        "semester": status.semester_label,
        "semester_range": status.semester_range_label,
    }


def _failure(message: str, code: int):
    return jsonify({"success": False, "message": message}), code


def register(app: Flask, container: Container) -> None:
    service = container.attendance_service

    def _person(member_id: str) -> PersonRef:
        body = request.get_json(silent=True) or {}
        dependent_id = optional_text(request.args.get("dependent_id") or body.get("dependent_id"))
        return PersonRef(require_non_empty(member_id, "Member id"), dependent_id)

    @app.route("/health", methods=["GET"], endpoint="health")
    def health():
        return jsonify({"status": "ok"})

    @app.route("/api/members/<member_id>/presence/check-in", methods=["POST"], endpoint="api_presence_check_in")
    def api_presence_check_in(member_id: str):
        try:
            person = _person(member_id)
            success = service.check_in(person)
        except ValidationError as e:
            return _failure(str(e), 400)
        except NotFoundError as e:
            logger.warning("Check-in for unknown person: %s", e)
            return _failure(str(e), 404)
        except StoreError as e:
            return _failure(str(e), 503)

        # The check-in outcome stands even if the follow-up read fails.
        try:
            status = _status_to_dict(service.status(person))
        except (StoreError, NotFoundError) as e:
            logger.warning("Status after check-in for %s unavailable: %s", person, e)
            status = None
        return jsonify({"success": success, "status": status}), 200

    @app.route("/api/members/<member_id>/presence", methods=["GET"], endpoint="api_presence")
    def api_presence(member_id: str):
        try:
            person = _person(member_id)
            history = service.load_history(person)
            status = service.summarize(history, today=service.today(), pending=service.is_check_in_pending(person))
            return jsonify(
                {
                    "records": [r.to_entry() for r in history],
                    "status": _status_to_dict(status),
                }
            )
        except ValidationError as e:
            return _failure(str(e), 400)
        except NotFoundError as e:
            return _failure(str(e), 404)
        except StoreError as e:
            return _failure(str(e), 503)

    @app.route("/api/members/<member_id>/presence/calendar", methods=["GET"], endpoint="api_presence_calendar")
    def api_presence_calendar(member_id: str):
        try:
            person = _person(member_id)
            month_s: Optional[str] = request.args.get("month")
            month = parse_month(month_s) if month_s else service.today().replace(day=1)
            cells = service.month_grid(person, month)
            return jsonify({"month": month.strftime("%Y-%m"), "cells": [c.to_dict() for c in cells]})
        except ValidationError as e:
            return _failure(str(e), 400)
        except NotFoundError as e:
            return _failure(str(e), 404)
        except StoreError as e:
            return _failure(str(e), 503)

    @app.route("/api/admin/presence", methods=["GET"], endpoint="api_admin_presence")
    def api_admin_presence():
        try:
            day_s = request.args.get("date")
            day = parse_iso_date(day_s) if day_s else service.today()
            refresher = container.dashboard_refresher
            latest = refresher.latest if refresher is not None else None
            if latest is not None and latest.day == day and not request.args.get("fresh"):
                snapshot = latest
            else:
                snapshot = container.dashboard.collect(day)
            return jsonify(snapshot.to_dict())
        except ValidationError as e:
            return _failure(str(e), 400)
        except StoreError as e:
            return _failure(str(e), 503)

    @app.route("/api/admin/presence/confirm", methods=["POST"], endpoint="api_admin_presence_confirm")
    def api_admin_presence_confirm():
        try:
            body = request.get_json(silent=True) or {}
            ref = RecordRef.parse(body.get("ref") or request.form.get("ref") or "")
            success = service.confirm(ref)
            return jsonify({"success": success, "ref": ref.encode()}), 200
        except ValidationError as e:
            return _failure(str(e), 400)
        except NotFoundError as e:
            logger.warning("Confirmation of a stale reference: %s", e)
            return _failure(str(e), 404)
        except StoreError as e:
            return _failure(str(e), 503)

    @app.route("/api/admin/presence/confirm-all", methods=["POST"], endpoint="api_admin_presence_confirm_all")
    def api_admin_presence_confirm_all():
        try:
            result = service.confirm_all_today()
        except StoreError as e:
            return _failure(str(e), 503)
        if container.dashboard_refresher is not None:
            container.dashboard_refresher.refresh()
        return jsonify(
            {
                "success": result.success,
                "confirmed_count": result.confirmed_count,
                "documents_written": result.documents_written,
                "failed_member_ids": list(result.failed_member_ids),
            }
        )
