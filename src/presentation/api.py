"""
HTTP job control surface.

Blueprint mounted at ``/admin/migration``::

    POST /validate   {accountName, apiKey, apiSecret} -> {valid}
    POST /start      {accountName, apiKey, apiSecret} -> {accepted, jobId?, reason?}
    POST /cancel     -> {accepted, reason?}
    POST /continue   -> {accepted, jobId?, reason?}
    GET  /progress   -> job counters and recent errors
    GET  /config     -> {activeAccountMasked, retiredAccounts, pendingCount}
    GET  /history    -> {jobs}

Jobs started here run on a background thread; the request returns as soon
as the job is accepted.
"""

from typing import Any, Dict

from flask import Blueprint, Flask, jsonify, request

from application.controller import MigrationController
from domain.exceptions import (
    AlreadyInProgressError,
    ConfigurationError,
    CredentialError,
    JobStateError,
)
from domain.models import DestinationCredentials
from shared.logging import get_logger

logger = get_logger(__name__)

URL_PREFIX = "/admin/migration"


def _credentials_from_request() -> DestinationCredentials:
    data = request.get_json(silent=True) or {}
    return DestinationCredentials(
        account_name=str(data.get("accountName") or "").strip(),
        api_key=str(data.get("apiKey") or "").strip(),
        api_secret=str(data.get("apiSecret") or "").strip(),
    )


def _progress_payload(job) -> Dict[str, Any]:
    data = job.to_dict()
    return {
        "jobId": data["jobId"] or None,
        "status": data["status"],
        "destinationAccount": data["destinationAccount"],
        "total": data["total"],
        "copied": data["copied"],
        "failed": data["failed"],
        "skipped": data["skipped"],
        "alreadyCompleted": data["alreadyCompleted"],
        "percentage": data["percentage"],
        "recentErrors": data["recentErrors"],
        "startedAt": data["startedAt"],
        "completedAt": data["completedAt"],
        "cancelReason": data["cancelReason"],
        "resumed": data["resumed"],
    }


def create_blueprint(controller: MigrationController) -> Blueprint:
    """Build the migration blueprint around a controller."""
    bp = Blueprint("asset_migration", __name__, url_prefix=URL_PREFIX)

    @bp.route("/validate", methods=["POST"])
    def validate():
        credentials = _credentials_from_request()
        return jsonify({"valid": controller.validate(credentials)})

    @bp.route("/start", methods=["POST"])
    def start():
        credentials = _credentials_from_request()
        try:
            job = controller.start(credentials, background=True)
        except AlreadyInProgressError as e:
            return jsonify({"accepted": False, "reason": str(e)}), 409
        except (CredentialError, ConfigurationError) as e:
            return jsonify({"accepted": False, "reason": str(e)}), 400
        logger.info(f"Job {job.job_id} accepted via HTTP")
        return jsonify({"accepted": True, "jobId": job.job_id})

    @bp.route("/cancel", methods=["POST"])
    def cancel():
        if controller.cancel():
            return jsonify({"accepted": True})
        return jsonify({"accepted": False, "reason": "No migration in progress"})

    @bp.route("/continue", methods=["POST"])
    def resume():
        try:
            job = controller.resume(background=True)
        except JobStateError as e:
            return jsonify({"accepted": False, "reason": str(e)}), 409
        except (CredentialError, ConfigurationError) as e:
            return jsonify({"accepted": False, "reason": str(e)}), 400
        return jsonify({"accepted": True, "jobId": job.job_id})

    @bp.route("/progress", methods=["GET"])
    def progress():
        return jsonify(_progress_payload(controller.status()))

    @bp.route("/config", methods=["GET"])
    def config():
        return jsonify(controller.config_view())

    @bp.route("/history", methods=["GET"])
    def history():
        limit = request.args.get("limit", default=10, type=int)
        return jsonify({"jobs": [job.to_dict() for job in controller.history(limit)]})

    return bp


def create_app(controller: MigrationController) -> Flask:
    app = Flask(__name__)
    app.register_blueprint(create_blueprint(controller))

    @app.route("/health")
    def health_check():
        return jsonify({"status": "healthy"})

    return app
