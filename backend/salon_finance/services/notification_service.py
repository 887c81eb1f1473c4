"""
Low-balance notifications.

WHY: Staff want to know when a drawer or bank account runs low, but a
failed notification must never undo the posting that triggered it. This
runs after the posting committed and swallows (and logs) its own errors.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import BalanceAlert
from salon_finance.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .errors import AlertNotFound, ValidationError


@dataclass
class BalanceChange:
    """Before/after snapshot of one account inside an atomic unit."""
    company_id: int
    account_id: int
    account_name: str
    before_cents: int
    after_cents: int
    threshold_cents: int | None

    def crossed_threshold(self) -> bool:
        if self.threshold_cents is None:
            return False
        return self.before_cents > self.threshold_cents >= self.after_cents


def notify_low_balance(changes: list[BalanceChange]) -> list[BalanceAlert]:
    """Record an alert for every change that crossed its account threshold."""
    if not current_app.config.get("LOW_BALANCE_ALERTS_ENABLED", True):
        return []

    crossed = [c for c in changes if c.crossed_threshold()]
    if not crossed:
        return []

    try:
        alerts = []
        for change in crossed:
            alert = BalanceAlert(
                company_id=change.company_id,
                account_id=change.account_id,
                balance_cents=change.after_cents,
                threshold_cents=change.threshold_cents,
            )
            db.session.add(alert)
            alerts.append(alert)
            current_app.logger.warning(
                "Low balance on account %s (%s): %s <= %s",
                change.account_id,
                change.account_name,
                change.after_cents,
                change.threshold_cents,
            )
        db.session.commit()
        return alerts
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record low balance alert")
        return []


def list_alerts(
    company_id: int,
    *,
    account_id: int | None = None,
    include_acknowledged: bool = False,
) -> list[BalanceAlert]:
    query = db.session.query(BalanceAlert).filter_by(company_id=company_id)
    if account_id is not None:
        query = query.filter_by(account_id=account_id)
    if not include_acknowledged:
        query = query.filter_by(acknowledged=False)
    return query.order_by(BalanceAlert.id.desc()).all()


def acknowledge_alert(*, company_id: int, alert_id: int, acknowledged_by: str) -> BalanceAlert:
    """Mark an alert as seen. Acknowledging twice keeps the first acknowledgement."""
    if not acknowledged_by:
        raise ValidationError("acknowledged_by is required")

    def _op():
        alert = (
            lock_for_update(db.session.query(BalanceAlert).filter_by(id=alert_id, company_id=company_id))
            .first()
        )
        if not alert:
            raise AlertNotFound("Alert not found", {"alert_id": alert_id})
        if not alert.acknowledged:
            alert.acknowledged = True
            alert.acknowledged_by = acknowledged_by
            alert.acknowledged_at = utcnow()
        db.session.commit()
        return alert

    return run_with_retry(_op)
