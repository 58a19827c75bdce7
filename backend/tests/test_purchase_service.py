"""Purchase posting: stock increments, last-cost-wins, payment status, supplier balances."""

from datetime import date, datetime

import pytest

from mypos.errors import (
    DuplicateDocumentNumberError,
    EmptyCartError,
    InvalidAmountError,
    InvalidQuantityError,
    ReferentialError,
)
from mypos.models import Product, Purchase, PurchaseItem
from mypos.services import inventory_service, purchase_service
from mypos.services.ledger_schemas import LedgerContext, PurchaseHeader, PurchaseLineInput


def _line(product, quantity, cost):
    return PurchaseLineInput(product.id, product.code, product.name, quantity, cost)


def test_scenario_d_purchase_restocks_and_updates_cost(db_session, ctx, supplier, product):
    # P starts at stock 2, cost 35
    inventory_service.adjust_stock(product.id, -8)
    db_session.commit()

    purchase_id = purchase_service.create_purchase(
        ctx, PurchaseHeader(supplier_id=supplier.id), [_line(product, 20, 40)]
    )

    p = db_session.get(Product, product.id)
    assert p.stock_qty == 22
    assert p.cost_price_cents == 40
    assert p.updated_at == datetime(2026, 1, 14, 10, 0, 0)

    purchase = purchase_service.get_purchase(purchase_id)
    assert purchase.purchase_number == "PUR-20260114-100000"
    assert purchase.subtotal_cents == 800
    assert purchase.total_cents == 800
    assert purchase.payment_status == "PENDING"
    assert purchase.items[0].product_name == "Widget"


def test_total_includes_tax_and_status_is_derived(db_session, ctx, supplier, product, second_product):
    header = PurchaseHeader(supplier_id=supplier.id, tax_cents=100, amount_paid_cents=500)
    purchase = purchase_service.get_purchase(purchase_service.create_purchase(
        ctx, header, [_line(product, 10, 40), _line(second_product, 2, 150)]
    ))

    assert purchase.subtotal_cents == 700
    assert purchase.total_cents == 800
    assert purchase.payment_status == "PARTIAL"
    assert purchase.amount_due_cents == 300


def test_last_cost_wins_within_one_purchase(db_session, ctx, supplier, product):
    purchase_service.create_purchase(
        ctx, PurchaseHeader(supplier_id=supplier.id), [_line(product, 1, 30), _line(product, 1, 45)]
    )
    p = db_session.get(Product, product.id)
    assert p.cost_price_cents == 45
    assert p.stock_qty == 12


def test_same_second_purchases_get_distinct_numbers(db_session, ctx, supplier, product):
    first = purchase_service.create_purchase(ctx, PurchaseHeader(supplier_id=supplier.id), [_line(product, 1, 40)])
    second = purchase_service.create_purchase(ctx, PurchaseHeader(supplier_id=supplier.id), [_line(product, 1, 40)])

    numbers = {purchase_service.get_purchase(pid).purchase_number for pid in (first, second)}
    assert numbers == {"PUR-20260114-100000", "PUR-20260114-100000-2"}


@pytest.mark.parametrize(
    "lines_factory,error",
    [
        (lambda p: [], EmptyCartError),
        (lambda p: [_line(p, 0, 40)], InvalidQuantityError),
        (lambda p: [_line(p, 1, -40)], InvalidAmountError),
    ],
)
def test_invalid_lines_write_nothing(db_session, ctx, supplier, product, lines_factory, error):
    with pytest.raises(error):
        purchase_service.create_purchase(ctx, PurchaseHeader(supplier_id=supplier.id), lines_factory(product))

    assert db_session.query(Purchase).count() == 0
    assert inventory_service.get_stock_level(product.id) == 10


def test_negative_payment_rejected(db_session, ctx, supplier, product):
    with pytest.raises(InvalidAmountError):
        purchase_service.create_purchase(
            ctx, PurchaseHeader(supplier_id=supplier.id, amount_paid_cents=-1), [_line(product, 1, 40)]
        )


def test_unknown_or_inactive_supplier(db_session, ctx, supplier, product):
    with pytest.raises(ReferentialError):
        purchase_service.create_purchase(ctx, PurchaseHeader(supplier_id=555_555), [_line(product, 1, 40)])

    supplier.is_active = False
    db_session.commit()
    with pytest.raises(ReferentialError):
        purchase_service.create_purchase(ctx, PurchaseHeader(supplier_id=supplier.id), [_line(product, 1, 40)])

    assert db_session.query(PurchaseItem).count() == 0
    assert inventory_service.get_stock_level(product.id) == 10


def test_duplicate_purchase_number(db_session, ctx, supplier, product):
    header = PurchaseHeader(supplier_id=supplier.id, purchase_number="PO-7")
    purchase_service.create_purchase(ctx, header, [_line(product, 1, 40)])
    with pytest.raises(DuplicateDocumentNumberError):
        purchase_service.create_purchase(ctx, header, [_line(product, 1, 40)])


def test_supplier_balances_and_listing(db_session, cashier, supplier, product):
    jan = LedgerContext(user_id=cashier.id, now=datetime(2026, 1, 14, 9, 0))
    feb = LedgerContext(user_id=cashier.id, now=datetime(2026, 2, 1, 9, 0))

    paid = purchase_service.create_purchase(
        jan, PurchaseHeader(supplier_id=supplier.id, amount_paid_cents=400), [_line(product, 10, 40)]
    )
    partial = purchase_service.create_purchase(
        feb, PurchaseHeader(supplier_id=supplier.id, amount_paid_cents=100), [_line(product, 5, 50)]
    )

    assert purchase_service.supplier_total_purchases(supplier.id) == 650
    assert purchase_service.supplier_outstanding_balance(supplier.id) == 150

    assert [p.id for p in purchase_service.list_purchases()] == [partial, paid]
    assert [p.id for p in purchase_service.list_purchases(date(2026, 1, 1), date(2026, 1, 31))] == [paid]
    assert purchase_service.list_purchases(supplier_id=supplier.id + 1) == []


def test_failure_mid_loop_rolls_back_everything(db_session, ctx, supplier, product, second_product, monkeypatch):
    real_apply_cost = inventory_service.apply_purchase_cost
    calls = []

    def failing_apply_cost(product_id, cost_price_cents, **kwargs):
        calls.append(product_id)
        if len(calls) == 2:
            raise RuntimeError("simulated crash")
        return real_apply_cost(product_id, cost_price_cents, **kwargs)

    monkeypatch.setattr(inventory_service, "apply_purchase_cost", failing_apply_cost)

    with pytest.raises(RuntimeError):
        purchase_service.create_purchase(
            ctx,
            PurchaseHeader(supplier_id=supplier.id, amount_paid_cents=100),
            [_line(product, 20, 40), _line(second_product, 5, 150)],
        )

    assert calls == [product.id, second_product.id]
    assert db_session.query(Purchase).count() == 0
    assert db_session.query(PurchaseItem).count() == 0
    # First line was restocked and re-costed before the failure
    assert inventory_service.get_stock_level(product.id) == 10
    assert inventory_service.get_stock_level(second_product.id) == 4
    assert db_session.get(Product, product.id).cost_price_cents == 35
    assert db_session.get(Product, second_product.id).cost_price_cents == 120
    assert purchase_service.supplier_total_purchases(supplier.id) == 0
