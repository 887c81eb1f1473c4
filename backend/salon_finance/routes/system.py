# backend/salon_finance/routes/system.py
"""
System health endpoint.

Reports database connectivity and a few row counts for deployment debugging.
"""

import time

from flask import Blueprint, current_app, jsonify

from ..extensions import db
from ..models import CashRegisterSession, Company, FinancialAccount
from salon_finance.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        company_count = db.session.query(Company).count()
        account_count = db.session.query(FinancialAccount).count()
        open_sessions = db.session.query(CashRegisterSession).filter(
            CashRegisterSession.status.in_(("open", "suspended"))
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "companies": company_count,
                "accounts": account_count,
                "live_register_sessions": open_sessions,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "ok" if healthy else "error",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }), 200 if healthy else 503
