"""
Probe endpoints for the load balancer and orchestrator.

    GET /api/v1/health/ready   process is up (no I/O)
    GET /api/v1/health/live    database round-trip plus active template count
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError

from gradtrack.models import db
from gradtrack.models.milestone import MilestoneTemplate

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


def _probe_database() -> dict:
    started = time.perf_counter()
    db.session.execute(text("SELECT 1"))
    return {"status": "ok", "latency_ms": round((time.perf_counter() - started) * 1000, 1)}


def _probe_catalogue() -> dict:
    # An empty catalogue is healthy but every student feed will be empty.
    active = db.session.execute(
        select(func.count(MilestoneTemplate.id)).where(MilestoneTemplate.is_active.is_(True))
    ).scalar_one()
    return {"status": "ok" if active else "empty", "active": active}


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    checks = {}
    healthy = True
    for name, probe in (("database", _probe_database), ("templates", _probe_catalogue)):
        if not healthy:
            break
        try:
            checks[name] = probe()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Health probe %s failed: %s", name, exc)
            checks[name] = {"status": "error", "detail": str(exc)}
            healthy = False

    checks["app"] = {
        "name": "GradTrack Milestone Engine",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }
    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "checks": checks,
    }), 200 if healthy else 503
