"""
Sale Completion Service

WHY: A salon sale touches three things at once: retail stock, the accounts
the customer's money lands in, and the sale document itself. Completion
does all three in one atomic unit so a sale is never half-posted.

LIFECYCLE:
- draft: cart and chosen payments saved, nothing posted
- completed: stock decremented, one income posting per settled payment
- voided: draft voids are a status flip; completed voids post reversing
  expenses and restock inventory in the same unit

Register logging happens after commit and is best-effort: a failure is
logged and never undoes or fails the sale.
"""

from __future__ import annotations

from datetime import date
from zoneinfo import ZoneInfoNotFoundError

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Branch, InventoryMovement, Product, Sale, SaleItem, SalePayment
from salon_finance.time_utils import day_bounds, local_today, utcnow
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_receipt_number, next_sale_number
from .errors import (
    InsufficientPayment,
    InvalidStateError,
    ProductNotFound,
    SaleNotDraft,
    SaleNotFound,
    ValidationError,
)
from .inventory_service import decrement_stock_locked, restock_locked
from .ledger_service import (
    PAYMENT_METHODS,
    get_default_account,
    lock_accounts,
    post_transaction_locked,
)
from .notification_service import notify_low_balance
from .register_service import (
    get_active_session_for_staff,
    log_sale_to_session,
    log_sale_void_to_session,
)


# =============================================================================
# CONSTANTS
# =============================================================================

SALE_SOURCES = ("pos", "appointment", "online")
DISCOUNT_TYPES = ("fixed", "percentage")

# Account type a payment method settles into when no account is given
PAYMENT_METHOD_ACCOUNT_TYPES = {
    "cash": "cash",
    "card": "credit_card",
    "bank_transfer": "bank",
    "check": "bank",
    "digital_wallet": "digital_wallet",
}

CATEGORY_SALE = "sales"
CATEGORY_SALE_VOID = "sale_void"

TOP_PRODUCTS_LIMIT = 10


def _round_half_up(numerator: int, denominator: int) -> int:
    return (numerator * 2 + denominator) // (denominator * 2)


def _int_field(value, field: str, *, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", {"field": field, "value": value})
    if value < minimum:
        raise ValidationError(f"{field} must be at least {minimum}", {"field": field, "value": value})
    return value


# =============================================================================
# CART BUILDING
# =============================================================================

def _build_items(company_id: int, items: list[dict]) -> list[SaleItem]:
    if not items:
        raise ValidationError("A sale needs at least one item")

    built = []
    for index, item in enumerate(items):
        product = None
        product_id = item.get("product_id")
        if product_id is not None:
            product = db.session.query(Product).filter_by(id=product_id, company_id=company_id).first()
            if not product:
                raise ProductNotFound("Product not found", {"product_id": product_id, "line": index})

        quantity = _int_field(item.get("quantity"), f"items[{index}].quantity", minimum=1)

        unit_price = item.get("unit_price_cents")
        if unit_price is None and product is not None:
            unit_price = product.price_cents
        if unit_price is None:
            raise ValidationError("Item has no price", {"line": index})
        unit_price = _int_field(unit_price, f"items[{index}].unit_price_cents")

        name = item.get("product_name") or (product.name if product else None)
        if not name:
            raise ValidationError("Item needs a product or a name", {"line": index})

        discount_type = item.get("discount_type") or "fixed"
        if discount_type not in DISCOUNT_TYPES:
            raise ValidationError(f"Invalid discount type: {discount_type}", {"line": index})
        discount_value = _int_field(item.get("discount_value") or 0, f"items[{index}].discount_value")

        gross = quantity * unit_price
        if discount_type == "percentage":
            if discount_value > 10000:
                raise ValidationError("Percentage discount cannot exceed 100%", {"line": index})
            discount = _round_half_up(gross * discount_value, 10000)
        else:
            discount = discount_value
        if discount > gross:
            raise ValidationError("Discount exceeds line amount", {"line": index})

        built.append(SaleItem(
            product_id=product.id if product else None,
            product_name=name,
            quantity=quantity,
            unit_price_cents=unit_price,
            discount_type=discount_type,
            discount_value=discount_value,
            discount_cents=discount,
            subtotal_cents=gross - discount,
            unit_cost_cents=product.cost_cents if product else None,
        ))
    return built


def _build_payments(payments: list[dict] | None) -> list[SalePayment]:
    built = []
    for index, payment in enumerate(payments or []):
        method = payment.get("method")
        if method not in PAYMENT_METHODS:
            raise ValidationError(f"Invalid payment method: {method}", {"line": index})
        amount = _int_field(payment.get("amount_cents"), f"payments[{index}].amount_cents", minimum=1)
        built.append(SalePayment(
            method=method,
            amount_cents=amount,
            reference=payment.get("reference"),
            account_id=payment.get("account_id"),
        ))
    return built


def _compute_totals(items: list[SaleItem], payments: list[SalePayment], tax_rate_bps: int) -> dict:
    gross = sum(i.quantity * i.unit_price_cents for i in items)
    discount = sum(i.discount_cents for i in items)
    subtotal = gross - discount
    tax = _round_half_up(subtotal * (tax_rate_bps or 0), 10000)
    total = subtotal + tax
    paid = sum(p.amount_cents for p in payments)
    cost = sum((i.unit_cost_cents or 0) * i.quantity for i in items)
    return {
        "subtotal_cents": gross,
        "discount_cents": discount,
        "tax_cents": tax,
        "total_cents": total,
        "total_paid_cents": paid,
        "change_cents": max(0, paid - total),
        "total_cost_cents": cost,
    }


def _apply_totals(sale: Sale, totals: dict) -> None:
    for field, value in totals.items():
        setattr(sale, field, value)


def _get_branch(company_id: int, branch_id: int) -> Branch:
    branch = db.session.get(Branch, branch_id)
    if not branch or branch.company_id != company_id:
        raise ValidationError("Branch not found for company", {"branch_id": branch_id})
    return branch


# =============================================================================
# CREATE
# =============================================================================

def create_sale(
    *,
    company_id: int,
    branch_id: int,
    items: list[dict],
    staff_id: str,
    payments: list[dict] | None = None,
    customer: dict | None = None,
    source: str = "pos",
    notes: str | None = None,
) -> Sale:
    """Create a draft sale with computed totals and allocated numbers."""
    if not staff_id:
        raise ValidationError("staff_id is required")
    if source not in SALE_SOURCES:
        raise ValidationError(f"Invalid sale source: {source}", {"source": source})
    customer = customer or {}

    def _op():
        branch = _get_branch(company_id, branch_id)
        sale_items = _build_items(company_id, items)
        sale_payments = _build_payments(payments)
        totals = _compute_totals(sale_items, sale_payments, branch.tax_rate_bps)

        now = utcnow()
        sale = Sale(
            company_id=company_id,
            branch_id=branch_id,
            sale_number=next_sale_number(branch_id, now),
            receipt_number=next_receipt_number(branch_id, now),
            status="draft",
            source=source,
            customer_id=customer.get("id"),
            customer_name=customer.get("name"),
            customer_phone=customer.get("phone"),
            staff_id=staff_id,
            notes=notes,
            created_at=now,
        )
        _apply_totals(sale, totals)
        sale.items.extend(sale_items)
        sale.payments.extend(sale_payments)

        db.session.add(sale)
        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info("Created sale %s (%s)", sale.id, sale.sale_number)
    return sale


# =============================================================================
# COMPLETE
# =============================================================================

def _get_sale_locked(company_id: int, sale_id: int) -> Sale:
    sale = (
        lock_for_update(db.session.query(Sale).filter_by(id=sale_id, company_id=company_id))
        .execution_options(populate_existing=True)
        .first()
    )
    if not sale:
        raise SaleNotFound("Sale not found", {"sale_id": sale_id})
    return sale


def _allocate_change(payments: list[SalePayment], change_cents: int) -> dict[int, int]:
    """
    Net change out of cash tenders, last cash payment first.

    Returns {index: posted amount}. Change without enough cash tender is
    refused: card, bank and wallet payments settle exactly.
    """
    posted = {i: p.amount_cents for i, p in enumerate(payments)}
    remaining = change_cents
    for i in reversed(range(len(payments))):
        if remaining <= 0:
            break
        if payments[i].method != "cash":
            continue
        taken = min(remaining, posted[i])
        posted[i] -= taken
        remaining -= taken
    if remaining > 0:
        raise ValidationError(
            "Change can only be given from cash payments",
            {"change_cents": change_cents, "uncovered_cents": remaining},
        )
    return posted


def _resolve_payment_account_id(sale: Sale, payment: SalePayment) -> int | None:
    if payment.account_id is not None:
        return payment.account_id
    account_type = PAYMENT_METHOD_ACCOUNT_TYPES.get(payment.method)
    if account_type is None:
        return None
    account = get_default_account(sale.company_id, sale.branch_id, account_type)
    return account.id if account else None


def complete_sale(
    *,
    company_id: int,
    sale_id: int,
    actor_id: str,
    items: list[dict] | None = None,
    payments: list[dict] | None = None,
    register_session_id: int | None = None,
) -> Sale:
    """
    Complete a draft sale.

    items/payments, when given, replace the draft's cart before completion.
    Payment sufficiency is checked before anything is posted. Inside one
    atomic unit: tracked products are decremented (floored at zero), each
    payment with a resolvable account posts an income transaction, and the
    sale flips to completed.
    """
    if not actor_id:
        raise ValidationError("actor_id is required")

    tolerance = int(current_app.config.get("PAYMENT_TOLERANCE_CENTS", 0))

    def _op():
        sale = _get_sale_locked(company_id, sale_id)
        if sale.status != "draft":
            raise SaleNotDraft(
                f"Sale is {sale.status}",
                {"sale_id": sale.id, "status": sale.status},
            )

        branch = _get_branch(company_id, sale.branch_id)
        new_items = _build_items(company_id, items) if items is not None else None
        new_payments = _build_payments(payments) if payments is not None else None

        effective_items = new_items if new_items is not None else list(sale.items)
        effective_payments = new_payments if new_payments is not None else list(sale.payments)
        if not effective_items:
            raise ValidationError("Cannot complete a sale with no items")

        totals = _compute_totals(effective_items, effective_payments, branch.tax_rate_bps)
        if totals["total_paid_cents"] < totals["total_cents"] - tolerance:
            raise InsufficientPayment(
                "Payments do not cover the sale total",
                {
                    "total_cents": totals["total_cents"],
                    "total_paid_cents": totals["total_paid_cents"],
                },
            )
        posted_amounts = _allocate_change(effective_payments, totals["change_cents"])

        if new_items is not None:
            for old in list(sale.items):
                sale.items.remove(old)
                db.session.delete(old)
            sale.items.extend(new_items)
        if new_payments is not None:
            for old in list(sale.payments):
                sale.payments.remove(old)
                db.session.delete(old)
            sale.payments.extend(new_payments)
        _apply_totals(sale, totals)
        db.session.flush()

        # (a) stock
        for item in sale.items:
            if item.product_id is None:
                continue
            product = db.session.get(Product, item.product_id)
            if not product.track_inventory:
                continue
            movement = decrement_stock_locked(
                company_id=company_id,
                branch_id=sale.branch_id,
                product_id=product.id,
                quantity=item.quantity,
                reference="sale",
                reference_id=sale.id,
                actor_id=actor_id,
                note=f"Sale {sale.sale_number}",
            )
            item.inventory_movement_id = movement.id
            if movement.quantity_delta != -item.quantity:
                current_app.logger.warning(
                    "Sale %s sold %s of product %s with only %s on hand",
                    sale.sale_number, item.quantity, product.id, -movement.quantity_delta,
                )

        # (b) ledger
        resolved = {}
        for index, payment in enumerate(sale.payments):
            account_id = _resolve_payment_account_id(sale, payment)
            if account_id is None:
                current_app.logger.info(
                    "No account for %s payment on sale %s; not posted",
                    payment.method, sale.sale_number,
                )
                continue
            resolved[index] = account_id

        locked = lock_accounts(company_id, resolved.values())
        changes = []
        for index, payment in enumerate(sale.payments):
            if index not in resolved:
                continue
            posted = posted_amounts[index]
            payment.account_id = resolved[index]
            payment.posted_amount_cents = posted
            if posted <= 0:
                continue
            txn, change = post_transaction_locked(
                locked[resolved[index]],
                type="income",
                category=CATEGORY_SALE,
                amount_cents=posted,
                description=f"Sale {sale.sale_number}",
                created_by=actor_id,
                payment_method=payment.method,
                branch_id=sale.branch_id,
                reference_type="sale",
                reference_id=sale.id,
            )
            payment.transaction_id = txn.id
            changes.append(change)

        # (c) status
        sale.status = "completed"
        sale.completed_at = utcnow()
        sale.completed_by = actor_id

        db.session.commit()
        return sale, changes

    sale, changes = run_with_retry(_op)
    current_app.logger.info("Completed sale %s (%s)", sale.id, sale.sale_number)

    notify_low_balance(changes)
    _log_sale_to_register(sale, actor_id, register_session_id)
    return sale


def _log_sale_to_register(sale: Sale, actor_id: str, register_session_id: int | None) -> None:
    try:
        session_id = register_session_id
        if session_id is None:
            session = get_active_session_for_staff(sale.company_id, actor_id, sale.branch_id)
            if session is None:
                current_app.logger.info("No open register session for %s; sale %s not logged", actor_id, sale.id)
                return
            session_id = session.id
        log_sale_to_session(
            company_id=sale.company_id,
            session_id=session_id,
            sale_id=sale.id,
            actor_id=actor_id,
        )
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to log sale %s to register session", sale.id)


# =============================================================================
# VOID
# =============================================================================

def void_sale(*, company_id: int, sale_id: int, actor_id: str, reason: str) -> Sale:
    """
    Void a sale.

    Completed sales get a reversing expense for every posted payment and
    their stock back, atomically with the status change.
    """
    if not actor_id:
        raise ValidationError("actor_id is required")
    if not reason or not reason.strip():
        raise ValidationError("A void reason is required")

    def _op():
        sale = _get_sale_locked(company_id, sale_id)
        if sale.status == "voided":
            raise InvalidStateError("Sale already voided", {"sale_id": sale.id})
        was_completed = sale.status == "completed"

        changes = []
        if was_completed:
            to_reverse = [p for p in sale.payments if p.transaction_id and not p.reversal_transaction_id]
            locked = lock_accounts(company_id, [p.account_id for p in to_reverse])
            for payment in to_reverse:
                txn, change = post_transaction_locked(
                    locked[payment.account_id],
                    type="expense",
                    category=CATEGORY_SALE_VOID,
                    amount_cents=payment.posted_amount_cents,
                    description=f"Void sale {sale.sale_number}",
                    created_by=actor_id,
                    payment_method=payment.method,
                    branch_id=sale.branch_id,
                    reference_type="sale",
                    reference_id=sale.id,
                    notes=reason,
                )
                payment.reversal_transaction_id = txn.id
                changes.append(change)

            for item in sale.items:
                if item.inventory_movement_id is None or item.product_id is None:
                    continue
                applied = _applied_quantity(item.inventory_movement_id)
                if applied <= 0:
                    continue
                restock_locked(
                    company_id=company_id,
                    branch_id=sale.branch_id,
                    product_id=item.product_id,
                    quantity=applied,
                    reference="sale_void",
                    reference_id=sale.id,
                    actor_id=actor_id,
                    note=f"Void sale {sale.sale_number}",
                )

        sale.status = "voided"
        sale.voided_at = utcnow()
        sale.voided_by = actor_id
        sale.void_reason = reason
        db.session.commit()
        return sale, changes, was_completed

    sale, changes, was_completed = run_with_retry(_op)
    current_app.logger.info("Voided sale %s (%s): %s", sale.id, sale.sale_number, reason)

    notify_low_balance(changes)
    if was_completed and sale.register_session_id is not None:
        try:
            log_sale_void_to_session(company_id=company_id, sale_id=sale.id, actor_id=actor_id)
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Failed to reverse sale %s in register session", sale.id)
    return sale


def _applied_quantity(movement_id: int) -> int:
    movement = db.session.get(InventoryMovement, movement_id)
    return -movement.quantity_delta if movement else 0


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(company_id: int, sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id, company_id=company_id).first()
    if not sale:
        raise SaleNotFound("Sale not found", {"sale_id": sale_id})
    return sale


def list_sales(
    company_id: int,
    *,
    branch_id: int | None = None,
    status: str | None = None,
    staff_id: str | None = None,
    customer_id: str | None = None,
    register_session_id: int | None = None,
    start=None,
    end=None,
    limit: int = 50,
    before_id: int | None = None,
) -> list[Sale]:
    query = db.session.query(Sale).filter(Sale.company_id == company_id)
    if branch_id is not None:
        query = query.filter(Sale.branch_id == branch_id)
    if status:
        query = query.filter(Sale.status == status)
    if staff_id:
        query = query.filter(Sale.staff_id == staff_id)
    if customer_id:
        query = query.filter(Sale.customer_id == customer_id)
    if register_session_id is not None:
        query = query.filter(Sale.register_session_id == register_session_id)
    if start:
        query = query.filter(Sale.created_at >= start)
    if end:
        query = query.filter(Sale.created_at < end)
    if before_id:
        query = query.filter(Sale.id < before_id)
    limit = max(1, min(int(limit), 500))
    return query.order_by(Sale.id.desc()).limit(limit).all()


def get_daily_summary(company_id: int, day: date | None = None, *, branch_id: int | None = None) -> dict:
    """
    Completed-sale totals for one day, with payment mix and top products.

    With a branch the day runs midnight to midnight in the branch's
    timezone (and defaults to its local today); company-wide summaries use UTC.
    """
    tz_name = "UTC"
    if branch_id is not None:
        tz_name = _get_branch(company_id, branch_id).timezone or "UTC"
    try:
        if day is None:
            day = local_today(tz_name)
        start, end = day_bounds(day, tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"Unknown branch timezone: {tz_name}", {"timezone": tz_name}) from exc

    base = db.session.query(Sale).filter(
        Sale.company_id == company_id,
        Sale.status == "completed",
        Sale.completed_at >= start,
        Sale.completed_at < end,
    )
    if branch_id is not None:
        base = base.filter(Sale.branch_id == branch_id)
    sale_ids = base.with_entities(Sale.id).subquery()

    totals = base.with_entities(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.subtotal_cents), 0),
        func.coalesce(func.sum(Sale.discount_cents), 0),
        func.coalesce(func.sum(Sale.tax_cents), 0),
        func.coalesce(func.sum(Sale.total_cents), 0),
        func.coalesce(func.sum(Sale.total_cost_cents), 0),
    ).one()
    count, gross, discount, tax, total, cost = (int(v) for v in totals)

    voided_query = db.session.query(func.count(Sale.id)).filter(
        Sale.company_id == company_id,
        Sale.status == "voided",
        Sale.voided_at >= start,
        Sale.voided_at < end,
    )
    if branch_id is not None:
        voided_query = voided_query.filter(Sale.branch_id == branch_id)
    voided_count = int(voided_query.scalar() or 0)

    settled = func.coalesce(SalePayment.posted_amount_cents, SalePayment.amount_cents)
    payment_rows = (
        db.session.query(SalePayment.method, func.count(SalePayment.id), func.coalesce(func.sum(settled), 0))
        .filter(SalePayment.sale_id.in_(db.select(sale_ids.c.id)))
        .group_by(SalePayment.method)
        .order_by(SalePayment.method)
        .all()
    )

    revenue = func.sum(SaleItem.subtotal_cents)
    product_rows = (
        db.session.query(
            SaleItem.product_id,
            SaleItem.product_name,
            func.sum(SaleItem.quantity),
            revenue,
        )
        .filter(SaleItem.sale_id.in_(db.select(sale_ids.c.id)))
        .group_by(SaleItem.product_id, SaleItem.product_name)
        .order_by(revenue.desc(), SaleItem.product_name)
        .limit(TOP_PRODUCTS_LIMIT)
        .all()
    )

    return {
        "date": day.isoformat(),
        "branch_id": branch_id,
        "timezone": tz_name,
        "sale_count": count,
        "voided_count": voided_count,
        "gross_cents": gross,
        "discount_cents": discount,
        "tax_cents": tax,
        "total_cents": total,
        "cost_cents": cost,
        "average_sale_cents": total // count if count else 0,
        "payments": [
            {"method": method, "count": int(n), "amount_cents": int(amount)}
            for method, n, amount in payment_rows
        ],
        "top_products": [
            {
                "product_id": product_id,
                "product_name": name,
                "quantity": int(quantity),
                "revenue_cents": int(amount),
            }
            for product_id, name, quantity, amount in product_rows
        ],
    }
