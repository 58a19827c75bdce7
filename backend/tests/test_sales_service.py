"""
Sale posting: totals, stock effects, customer balances, atomicity.

Scenarios A-C cover the core checkout flow on product P
(stock 10, min level 5, price 100 cents).
"""

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from mypos.errors import (
    DuplicateDocumentNumberError,
    EmptyCartError,
    InsufficientPaymentError,
    InsufficientStockError,
    InvalidPaymentTypeError,
    ReferentialError,
    StorageFailure,
    ValidationError,
)
from mypos.models import Customer, DocumentSequence, Product, Sale, SaleItem
from mypos.models.customers import WALK_IN_CUSTOMER_ID
from mypos.services import customer_service, inventory_service, sales_service
from mypos.services.ledger_schemas import LedgerContext, SaleHeader, SaleLineInput


def _line(product, quantity, price=100, discount=0):
    return SaleLineInput(
        product_id=product.id,
        product_code=product.code,
        product_name=product.name,
        quantity=quantity,
        price_cents=price,
        discount_cents=discount,
    )


def _cash(amount_paid, **kwargs):
    return SaleHeader(payment_type="CASH", amount_paid_cents=amount_paid, **kwargs)


def _stock(product_id):
    return inventory_service.get_stock_level(product_id)


class TestCheckoutScenarios:
    def test_scenario_a_simple_cash_sale(self, db_session, ctx, product):
        sale_id = sales_service.create_sale(ctx, _cash(300), [_line(product, 3)])

        sale = sales_service.get_sale(sale_id)
        assert sale.subtotal_cents == 300
        assert sale.total_cents == 300
        assert sale.change_cents == 0
        assert sale.payment_type == "CASH"
        assert sale.invoice_number == "INV-20260114-0001"
        assert sale.date == datetime(2026, 1, 14, 10, 0, 0)
        assert len(sale.items) == 1

        p = db_session.get(Product, product.id)
        assert p.stock_qty == 7
        assert not p.is_low_stock

    def test_scenario_b_sale_crosses_low_stock_threshold(self, db_session, ctx, product):
        sales_service.create_sale(ctx, _cash(300), [_line(product, 3)])
        second_id = sales_service.create_sale(ctx, _cash(500), [_line(product, 5)])

        p = db_session.get(Product, product.id)
        assert p.stock_qty == 2
        assert p.is_low_stock
        assert sales_service.get_sale(second_id).invoice_number == "INV-20260114-0002"

    def test_scenario_c_insufficient_payment_writes_nothing(self, db_session, ctx, product):
        with pytest.raises(InsufficientPaymentError) as exc:
            sales_service.create_sale(ctx, _cash(50), [_line(product, 3)])

        assert exc.value.code == "INSUFFICIENT_PAYMENT"
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert _stock(product.id) == 10


class TestSaleTotals:
    def test_header_totals_and_change(self, db_session, ctx, product, second_product):
        header = _cash(2000, order_discount_cents=100, tax_cents=80, notes="Counter 1")
        lines = [_line(product, 2, price=100, discount=10), _line(second_product, 3, price=250)]

        sale = sales_service.get_sale(sales_service.create_sale(ctx, header, lines))

        assert sale.subtotal_cents == 950
        assert sale.discount_cents == 120
        assert sale.tax_cents == 80
        assert sale.total_cents == sale.subtotal_cents - sale.discount_cents + sale.tax_cents == 910
        assert sale.change_cents == sale.amount_paid_cents - sale.total_cents == 1090
        assert [item.total_cents for item in sale.items] == [180, 750]
        assert sale.notes == "Counter 1"

    def test_item_snapshot_is_a_value_copy(self, db_session, ctx, product):
        sale_id = sales_service.create_sale(ctx, _cash(100), [_line(product, 1)])

        p = db_session.get(Product, product.id)
        p.name = "Renamed Widget"
        p.code = "P-NEW"
        db_session.commit()

        item = sales_service.get_sale(sale_id).items[0]
        assert item.product_name == "Widget"
        assert item.product_code == "P-001"

    def test_payment_type_is_case_insensitive(self, db_session, ctx, product):
        header = SaleHeader(payment_type="Card", amount_paid_cents=100)
        sale = sales_service.get_sale(sales_service.create_sale(ctx, header, [_line(product, 1)]))
        assert sale.payment_type == "CARD"

    def test_repeated_product_lines_each_decrement(self, db_session, ctx, product):
        sales_service.create_sale(ctx, _cash(500), [_line(product, 2), _line(product, 3)])
        assert _stock(product.id) == 5


class TestValidation:
    def test_empty_cart(self, db_session, ctx):
        with pytest.raises(EmptyCartError):
            sales_service.create_sale(ctx, _cash(0), [])

    def test_unknown_payment_type(self, db_session, ctx, product):
        header = SaleHeader(payment_type="Cheque", amount_paid_cents=100)
        with pytest.raises(InvalidPaymentTypeError):
            sales_service.create_sale(ctx, header, [_line(product, 1)])

    def test_unknown_product_rolls_back(self, db_session, ctx, product):
        ghost = SaleLineInput(987654, "GHOST", "Ghost", 1, 100)
        with pytest.raises(ReferentialError):
            sales_service.create_sale(ctx, _cash(200), [_line(product, 1), ghost])

        assert db_session.query(Sale).count() == 0
        assert _stock(product.id) == 10

    def test_missing_snapshot_rejected_before_any_write(self, db_session, ctx, product):
        blank = SaleLineInput(product.id, None, None, 3, 100)
        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale(ctx, _cash(300), [blank])

        assert exc.value.code == "MISSING_SNAPSHOT"
        assert db_session.query(Sale).count() == 0
        assert db_session.query(DocumentSequence).count() == 0
        assert _stock(product.id) == 10

    def test_unknown_user(self, db_session, product):
        with pytest.raises(ReferentialError):
            sales_service.create_sale(LedgerContext(user_id=31337), _cash(100), [_line(product, 1)])

    def test_inactive_user(self, db_session, ctx, cashier, product):
        cashier.is_active = False
        db_session.commit()
        with pytest.raises(ReferentialError):
            sales_service.create_sale(ctx, _cash(100), [_line(product, 1)])

    def test_duplicate_invoice_number(self, db_session, ctx, product):
        sales_service.create_sale(ctx, _cash(100, invoice_number="INV-MANUAL-1"), [_line(product, 1)])
        with pytest.raises(DuplicateDocumentNumberError):
            sales_service.create_sale(ctx, _cash(100, invoice_number="INV-MANUAL-1"), [_line(product, 1)])
        assert _stock(product.id) == 9


class TestStockPolicy:
    def test_oversell_allowed_by_default(self, db_session, ctx, product):
        sales_service.create_sale(ctx, _cash(1200), [_line(product, 12)])
        assert _stock(product.id) == -2

    def test_oversell_rejected_when_negative_stock_disabled(self, app, db_session, ctx, product, second_product):
        app.config["LEDGER_ALLOW_NEGATIVE_STOCK"] = False

        with pytest.raises(InsufficientStockError):
            sales_service.create_sale(
                ctx,
                _cash(5000),
                [_line(second_product, 1, price=250), _line(product, 11)],
            )

        # First line was decremented before the failure; the whole sale rolled back
        assert _stock(second_product.id) == 4
        assert _stock(product.id) == 10
        assert db_session.query(Sale).count() == 0


class TestAtomicity:
    def test_failure_mid_loop_rolls_back_everything(self, db_session, ctx, product, second_product, monkeypatch):
        real_adjust = inventory_service.adjust_stock
        calls = []

        def failing_adjust(product_id, delta, **kwargs):
            calls.append(product_id)
            if len(calls) == 2:
                raise RuntimeError("simulated crash")
            return real_adjust(product_id, delta, **kwargs)

        monkeypatch.setattr(inventory_service, "adjust_stock", failing_adjust)

        with pytest.raises(RuntimeError):
            sales_service.create_sale(ctx, _cash(1000), [_line(product, 2), _line(second_product, 1, price=250)])

        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert db_session.query(DocumentSequence).count() == 0
        assert _stock(product.id) == 10
        assert _stock(second_product.id) == 4

    def test_storage_error_is_wrapped(self, db_session, ctx, product, monkeypatch):
        def broken_adjust(product_id, delta, **kwargs):
            raise OperationalError("UPDATE products ...", {}, Exception("database is locked"))

        monkeypatch.setattr(inventory_service, "adjust_stock", broken_adjust)

        with pytest.raises(StorageFailure) as exc:
            sales_service.create_sale(ctx, _cash(100), [_line(product, 1)])

        assert isinstance(exc.value.__cause__, OperationalError)
        assert exc.value.details["operation"] == "create_sale"
        assert db_session.query(Sale).count() == 0

    def test_failed_sale_does_not_consume_invoice_number(self, db_session, ctx, product, monkeypatch):
        def crashing_adjust(product_id, delta, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(inventory_service, "adjust_stock", crashing_adjust)
        with pytest.raises(RuntimeError):
            sales_service.create_sale(ctx, _cash(100), [_line(product, 1)])
        monkeypatch.undo()

        sale_id = sales_service.create_sale(ctx, _cash(100), [_line(product, 1)])
        assert sales_service.get_sale(sale_id).invoice_number == "INV-20260114-0001"


class TestCustomerBalances:
    def test_cash_sale_updates_total_purchases_only(self, db_session, ctx, product, credit_customer):
        sales_service.create_sale(ctx, _cash(300, customer_id=credit_customer.id), [_line(product, 3)])

        customer = db_session.get(Customer, credit_customer.id)
        assert customer.total_purchases_cents == 300
        assert customer.current_credit_cents == 0

    def test_credit_sale_updates_credit(self, db_session, ctx, product, credit_customer):
        header = SaleHeader(payment_type="CREDIT", amount_paid_cents=400, customer_id=credit_customer.id)
        sales_service.create_sale(ctx, header, [_line(product, 4)])

        customer = db_session.get(Customer, credit_customer.id)
        assert customer.total_purchases_cents == 400
        assert customer.current_credit_cents == 400
        assert customer.available_credit_cents == 600

    def test_credit_limit_is_advisory(self, db_session, ctx, product, credit_customer):
        header = SaleHeader(payment_type="CREDIT", amount_paid_cents=1500, customer_id=credit_customer.id)
        customer = customer_service.get_customer(credit_customer.id)
        warnings = customer_service.credit_warnings(customer, 1500, "CREDIT")
        assert len(warnings) == 1

        sales_service.create_sale(ctx, header, [_line(product, 15)])
        assert db_session.get(Customer, credit_customer.id).current_credit_cents == 1500

    def test_credit_sale_without_named_customer_posts(self, db_session, ctx, product, walk_in):
        # Credit needs no named customer; there is simply no balance to post
        for customer_id in (None, WALK_IN_CUSTOMER_ID):
            header = SaleHeader(payment_type="Credit", amount_paid_cents=300, customer_id=customer_id)
            sale_id = sales_service.create_sale(ctx, header, [_line(product, 3)])

            sale = sales_service.get_sale(sale_id)
            assert sale.payment_type == "CREDIT"
            assert sale.customer_id == customer_id

        assert _stock(product.id) == 4
        customer = db_session.get(Customer, WALK_IN_CUSTOMER_ID)
        assert customer.total_purchases_cents == 0
        assert customer.current_credit_cents == 0

    def test_walk_in_balances_never_change(self, db_session, ctx, product, walk_in):
        sales_service.create_sale(ctx, _cash(300, customer_id=WALK_IN_CUSTOMER_ID), [_line(product, 3)])

        customer = db_session.get(Customer, WALK_IN_CUSTOMER_ID)
        assert customer.total_purchases_cents == 0
        assert customer.current_credit_cents == 0

    def test_inactive_customer_rejected(self, db_session, ctx, product, credit_customer):
        customer_service.deactivate_customer(credit_customer.id)
        with pytest.raises(ReferentialError):
            sales_service.create_sale(ctx, _cash(100, customer_id=credit_customer.id), [_line(product, 1)])
        assert _stock(product.id) == 10


class TestQueries:
    def test_list_and_total_by_day(self, db_session, cashier, product):
        day1 = LedgerContext(user_id=cashier.id, now=datetime(2026, 1, 14, 23, 59, 0))
        day2 = LedgerContext(user_id=cashier.id, now=datetime(2026, 1, 15, 0, 1, 0))
        first = sales_service.create_sale(day1, _cash(100), [_line(product, 1)])
        second = sales_service.create_sale(day2, _cash(200), [_line(product, 2)])

        assert [s.id for s in sales_service.list_sales(datetime(2026, 1, 14).date())] == [first]
        assert [s.id for s in sales_service.list_sales(
            datetime(2026, 1, 14).date(), datetime(2026, 1, 15).date()
        )] == [second, first]
        assert sales_service.total_sales_for_day(datetime(2026, 1, 15).date()) == 200
        assert sales_service.get_sale(second).invoice_number == "INV-20260115-0001"

    def test_get_sale_by_invoice(self, db_session, ctx, product):
        sale_id = sales_service.create_sale(ctx, _cash(100), [_line(product, 1)])
        assert sales_service.get_sale_by_invoice("INV-20260114-0001").id == sale_id
        assert sales_service.get_sale_by_invoice("INV-NOPE") is None
