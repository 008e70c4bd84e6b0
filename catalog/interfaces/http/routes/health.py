from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, jsonify
from sqlalchemy import text

from catalog.database.db_manager import db

health_bp = Blueprint("health_bp", __name__)


@health_bp.route("/health")
def health():
    return jsonify({"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()})


@health_bp.route("/readyz")
def readyz():
    try:
        db.session.execute(text("SELECT 1"))
    except Exception as exc:  # pragma: no cover - DB failure path
        db.session.rollback()
        return jsonify({"status": "unavailable", "checks": {"database": f"error: {exc}"}}), 503
    return jsonify({"status": "ready", "checks": {"database": "ok"}})
