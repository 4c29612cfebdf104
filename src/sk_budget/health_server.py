"""
Health endpoints for the SK Budget Tracker.

/health/live and /health/ready are probe-sized; /health adds the budget
summary and ledger consistency when a tracker is attached. Nothing here
writes: allocations and uploads go through the CLI.
"""

import sqlite3
from pathlib import Path
from typing import Any

from flask import Flask, Response, jsonify

from sk_budget.kernel.errors import StoreError
from sk_budget.kernel.logging import get_logger

logger = get_logger(__name__)

SERVICE_NAME = "sk-budget"

app = Flask(__name__)

# Set by initialize_health_server()
_db_path: Path | None = None
_skb_instance: Any = None


def initialize_health_server(db_path: str | Path, skb_instance: Any = None) -> None:
    """
    Point the endpoints at a database file and, optionally, a live tracker.

    Without a tracker /health reports on the database alone.
    """
    global _db_path, _skb_instance
    _db_path = Path(db_path)
    _skb_instance = skb_instance
    logger.info("Health server initialized", db_path=str(_db_path))


def _not_ready(reason: str, **details: Any) -> tuple[Response, int]:
    logger.error("Readiness check failed", reason=reason, **details)
    return jsonify({"status": "not_ready", "reason": reason, **details}), 503


def count_records(db_path: Path) -> int:
    """Rows in the record table; raises sqlite3.Error when it cannot be read"""
    conn = sqlite3.connect(str(db_path), timeout=1.0)
    try:
        return conn.execute("SELECT COUNT(*) FROM records").fetchone()[0]
    finally:
        conn.close()


@app.after_request
def add_security_headers(response: Response) -> Response:
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Content-Security-Policy"] = "default-src 'none'"
    return response


@app.route("/health/live", methods=["GET"])
def liveness() -> tuple[Response, int]:
    return jsonify({"status": "alive", "service": SERVICE_NAME}), 200


@app.route("/health/ready", methods=["GET"])
def readiness() -> tuple[Response, int]:
    """200 with the record count once the store answers queries, else 503"""
    if _db_path is None:
        return _not_ready("database_path_not_initialized")
    if not _db_path.exists():
        return _not_ready("database_file_not_found", db_path=str(_db_path))

    try:
        record_count = count_records(_db_path)
    except sqlite3.Error as e:
        return _not_ready("database_operational_error", error=str(e))

    logger.debug("Readiness check passed", record_count=record_count)
    return (
        jsonify({"status": "ready", "database": "accessible", "record_count": record_count}),
        200,
    )


def _budget_section(skb: Any) -> tuple[dict[str, Any], bool]:
    """Budget health plus whether it is good enough to call the service healthy"""
    try:
        # CLI commands write from other processes
        skb.refresh()
        budget = skb.health()
    except (sqlite3.Error, OSError, StoreError) as e:
        logger.warning("Could not compute budget health", error=str(e))
        return {"status": "unavailable", "error": str(e)}, False
    healthy = budget["budget_configured"] and not budget["recovered_from_corruption"]
    return budget, healthy


@app.route("/health", methods=["GET"])
def detailed_health() -> tuple[Response, int]:
    """
    Database and budget health in one document.

    "degraded" (503) when the database is missing, when no budget has been
    uploaded, or when a stored record was discarded at load time.
    """
    healthy = True
    report: dict[str, Any] = {"service": SERVICE_NAME}

    if _db_path is not None and _db_path.exists():
        report["database"] = {"status": "healthy", "path": str(_db_path)}
    else:
        report["database"] = {"status": "not_initialized"}
        healthy = False

    if _skb_instance is not None:
        report["budget"], budget_ok = _budget_section(_skb_instance)
        healthy = healthy and budget_ok

    report["status"] = "healthy" if healthy else "degraded"
    return jsonify(report), 200 if healthy else 503


def run_health_server(port: int = 8080, debug: bool = False) -> None:
    """Serve the health endpoints on all interfaces (blocking)"""
    logger.info("Starting health check server", port=port)
    app.run(host="0.0.0.0", port=port, debug=debug)
