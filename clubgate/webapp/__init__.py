"""Flask application exposing the gate operations to the front-desk client."""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify, request

from clubgate.gate import config
from clubgate.gate.errors import GateError, SyncError, ValidationError
from clubgate.gate.models import to_payload
from clubgate.gate.system import GateSystem

logger = logging.getLogger(__name__)


def _member_summary(member, checked_in_ids: set[int]) -> dict[str, Any]:
    return {
        "profile_id": member.profile_id,
        "name": member.display_name,
        "membership_type": member.membership_type,
        "phone_primary": member.phone_primary,
        "vehicles": [vehicle.license_plate for vehicle in member.vehicles],
        "checked_in": member.profile_id in checked_in_ids,
    }


def create_app(database_path: str = config.GATE_DB_PATH, system: GateSystem | None = None) -> Flask:
    """Create and configure the Flask application."""

    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.SECRET_KEY

    if system is None:
        system = GateSystem(database_path)
    app.extensions["gate_system"] = system

    def guests_from_request() -> list:
        body = request.get_json(silent=True) or {}
        guests = body.get("guests", [])
        if not isinstance(guests, list):
            raise ValidationError("guests must be a list")
        return guests

    def profile_id_from_body(body: dict) -> int | None:
        value = body.get("profile_id")
        if value is None or value == "":
            return None
        if isinstance(value, bool):
            raise ValidationError("profile_id must be an integer")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError("profile_id must be an integer") from None

    def stale_roster_response() -> Any:
        return (
            jsonify(
                {
                    "success": False,
                    "title": "Outdated Data",
                    "message": "Outdated Data: Please download today's member data before checking in members.",
                }
            ),
            409,
        )

    def checkin_response(result: dict) -> Any:
        status_code = 200 if result["success"] else 409
        if result.get("reason") == system.checkins.STORAGE_ERROR:
            status_code = 500
        return jsonify(result), status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError) -> Any:
        status_code = 404 if "not found" in str(exc).lower() else 400
        return jsonify({"success": False, "message": str(exc)}), status_code

    @app.errorhandler(SyncError)
    def handle_sync_error(exc: SyncError) -> Any:
        return jsonify({"success": False, "message": str(exc)}), 502

    @app.errorhandler(GateError)
    def handle_gate_error(exc: GateError) -> Any:
        logger.error("Gate operation failed: %s", exc)
        return jsonify({"success": False, "message": "The operation could not be completed."}), 500

    @app.get("/")
    def index() -> Any:
        return jsonify(system.status())

    @app.get("/members")
    def members() -> Any:
        query = request.args.get("q")
        found = system.search_members(query) if query is not None else system.list_members()
        checked_in_ids = set(system.checked_in_ids())
        return jsonify([_member_summary(member, checked_in_ids) for member in found])

    @app.get("/members/<int:profile_id>")
    def member_detail(profile_id: int) -> Any:
        state = system.member_status(profile_id)
        return jsonify(
            {
                "member": to_payload(state["member"]),
                "checked_in": state["checked_in"],
                "guest_count": state["guest_count"],
                "checkin": to_payload(state["checkin"]) if state["checkin"] else None,
            }
        )

    @app.get("/members/<int:profile_id>/previous-guests")
    def previous_guests(profile_id: int) -> Any:
        system.get_member(profile_id)
        return jsonify(system.previous_guests(profile_id))

    @app.post("/members/<int:profile_id>/checkin")
    def check_in(profile_id: int) -> Any:
        if not system.sync.was_downloaded_today():
            return stale_roster_response()
        return checkin_response(system.check_in_member(profile_id, guests_from_request()))

    @app.post("/members/<int:profile_id>/guests")
    def add_guests(profile_id: int) -> Any:
        if not system.sync.was_downloaded_today():
            return stale_roster_response()
        return checkin_response(system.add_guests(profile_id, guests_from_request()))

    @app.get("/checkins")
    def checkins() -> Any:
        return jsonify([to_payload(checkin) for checkin in system.todays_checkins()])

    @app.route("/alerts", methods=["GET", "POST"])
    def alerts() -> Any:
        if request.method == "POST":
            body = request.get_json(silent=True) or {}
            alert = system.create_manual_alert(
                message=body.get("message", ""),
                profile_id=profile_id_from_body(body),
            )
            return jsonify(to_payload(alert)), 201
        return jsonify([to_payload(alert) for alert in system.todays_alerts()])

    @app.post("/sync/download")
    def download() -> Any:
        count = system.download()
        return jsonify({"success": True, "message": f"Downloaded data for {count} members!"})

    @app.get("/sync/upload")
    def upload_preview() -> Any:
        return jsonify(system.prepare_upload())

    @app.post("/sync/upload")
    def upload() -> Any:
        stats = system.upload()
        return jsonify({"success": True, "message": "Data uploaded successfully!", "stats": stats})

    return app
