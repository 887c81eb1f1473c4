# Overview: Retail stock for products sold at the salon; per-branch on-hand and movement history.

from __future__ import annotations

from ..extensions import db
from ..models import Branch, BranchStock, Company, InventoryMovement, Product
from salon_finance.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .errors import ProductNotFound, ValidationError


MOVEMENT_TYPES = ("receive", "sale", "sale_void", "adjustment")


def create_product(
    *,
    company_id: int,
    sku: str,
    name: str,
    price_cents: int | None = None,
    cost_cents: int | None = None,
    track_inventory: bool = True,
) -> Product:
    sku = (sku or "").strip()
    name = (name or "").strip()
    if not sku or not name:
        raise ValidationError("sku and name are required")
    if not db.session.get(Company, company_id):
        raise ValidationError("Company not found", {"company_id": company_id})

    existing = db.session.query(Product).filter_by(company_id=company_id, sku=sku).first()
    if existing:
        raise ValidationError(f"Product with SKU '{sku}' already exists", {"product_id": existing.id})

    product = Product(
        company_id=company_id,
        sku=sku,
        name=name,
        price_cents=price_cents,
        cost_cents=cost_cents,
        track_inventory=track_inventory,
        is_active=True,
    )
    db.session.add(product)
    db.session.commit()
    return product


def get_product(company_id: int, product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, company_id=company_id).first()
    if not product:
        raise ProductNotFound("Product not found", {"product_id": product_id})
    return product


def get_quantity_on_hand(branch_id: int, product_id: int) -> int:
    """Current on-hand quantity for a product at a branch (0 if never stocked)."""
    quantity = (
        db.session.query(BranchStock.quantity)
        .filter_by(branch_id=branch_id, product_id=product_id)
        .scalar()
    )
    return int(quantity or 0)


def _get_stock_locked(branch_id: int, product_id: int) -> BranchStock:
    stock = (
        lock_for_update(
            db.session.query(BranchStock).filter_by(branch_id=branch_id, product_id=product_id)
        )
        .execution_options(populate_existing=True)
        .first()
    )
    if stock is None:
        stock = BranchStock(branch_id=branch_id, product_id=product_id, quantity=0)
        db.session.add(stock)
        db.session.flush()
    return stock


def _write_movement(
    *,
    company_id: int,
    branch_id: int,
    product_id: int,
    type: str,
    quantity_requested: int,
    quantity_delta: int,
    reference: str | None,
    reference_id,
    note: str | None,
    actor_id: str | None,
) -> InventoryMovement:
    movement = InventoryMovement(
        company_id=company_id,
        branch_id=branch_id,
        product_id=product_id,
        type=type,
        quantity_requested=quantity_requested,
        quantity_delta=quantity_delta,
        reference=reference,
        reference_id=str(reference_id) if reference_id is not None else None,
        note=note,
        created_by=actor_id,
        occurred_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def decrement_stock_locked(
    *,
    company_id: int,
    branch_id: int,
    product_id: int,
    quantity: int,
    reference: str | None = None,
    reference_id=None,
    actor_id: str | None = None,
    note: str | None = None,
) -> InventoryMovement:
    """
    Remove sold quantity from branch stock inside the caller's unit.

    Stock is floored at zero; the movement records the delta actually applied.
    """
    stock = _get_stock_locked(branch_id, product_id)
    applied = min(quantity, max(stock.quantity, 0))
    stock.quantity = stock.quantity - applied

    return _write_movement(
        company_id=company_id,
        branch_id=branch_id,
        product_id=product_id,
        type="sale",
        quantity_requested=quantity,
        quantity_delta=-applied,
        reference=reference,
        reference_id=reference_id,
        note=note,
        actor_id=actor_id,
    )


def restock_locked(
    *,
    company_id: int,
    branch_id: int,
    product_id: int,
    quantity: int,
    type: str = "sale_void",
    reference: str | None = None,
    reference_id=None,
    actor_id: str | None = None,
    note: str | None = None,
) -> InventoryMovement:
    """Add quantity back to branch stock inside the caller's unit."""
    if type not in MOVEMENT_TYPES:
        raise ValidationError(f"Invalid inventory movement type: {type}", {"type": type})
    stock = _get_stock_locked(branch_id, product_id)
    stock.quantity = stock.quantity + quantity

    return _write_movement(
        company_id=company_id,
        branch_id=branch_id,
        product_id=product_id,
        type=type,
        quantity_requested=quantity,
        quantity_delta=quantity,
        reference=reference,
        reference_id=reference_id,
        note=note,
        actor_id=actor_id,
    )


def receive_stock(
    *,
    company_id: int,
    branch_id: int,
    product_id: int,
    quantity: int,
    actor_id: str | None = None,
    note: str | None = None,
) -> InventoryMovement:
    """Receive product quantity into a branch."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer", {"quantity": quantity})

    def _op():
        product = get_product(company_id, product_id)
        branch = db.session.get(Branch, branch_id)
        if not branch or branch.company_id != company_id:
            raise ValidationError("Branch not found for company", {"branch_id": branch_id})

        movement = restock_locked(
            company_id=company_id,
            branch_id=branch_id,
            product_id=product.id,
            quantity=quantity,
            type="receive",
            reference="receive",
            actor_id=actor_id,
            note=note,
        )
        db.session.commit()
        return movement

    return run_with_retry(_op)


def list_movements(
    company_id: int,
    *,
    product_id: int | None = None,
    branch_id: int | None = None,
    limit: int = 100,
) -> list[InventoryMovement]:
    query = db.session.query(InventoryMovement).filter_by(company_id=company_id)
    if product_id is not None:
        query = query.filter_by(product_id=product_id)
    if branch_id is not None:
        query = query.filter_by(branch_id=branch_id)
    limit = max(1, min(int(limit), 500))
    return query.order_by(InventoryMovement.id.desc()).limit(limit).all()
