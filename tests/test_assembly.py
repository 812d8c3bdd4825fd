"""Pricing and validation of requested order lines; nothing here writes."""

import pytest

from inventory_api.exceptions import InsufficientStockError, NotFoundError, ValidationError
from inventory_api.models.order import OrderType
from inventory_api.schemas.order import OrderItemCreate
from inventory_api.services.assembly_service import assemble_order


def _item(product, quantity, price=9.99):
    return OrderItemCreate(product_id=product.id, quantity=quantity, price=price)


class TestPricing:

    def test_sale_totals(self, db, widget):
        assembled = assemble_order(db, OrderType.SALE, [_item(widget, 4)], tax=2, discount=1)
        assert assembled.subtotal == 39.96
        assert assembled.total_amount == 40.96
        assert assembled.items[0].total == 39.96

    def test_snapshots_name_and_sku(self, db, widget):
        assembled = assemble_order(db, OrderType.SALE, [_item(widget, 1)])
        item = assembled.items[0]
        assert item.sku == "WID-1"
        assert item.product_name == "Widget"

    def test_uses_caller_price_not_catalog_price(self, db, widget):
        assembled = assemble_order(db, OrderType.PURCHASE, [_item(widget, 3, price=4.5)])
        assert assembled.subtotal == 13.5

    def test_money_rounded_to_cents(self, db, widget):
        assembled = assemble_order(db, OrderType.PURCHASE, [_item(widget, 3, price=0.1)], tax=1.234)
        assert assembled.subtotal == 0.3
        assert assembled.tax == 1.23
        assert assembled.total_amount == 1.53

    def test_purchase_skips_stock_check(self, db, widget):
        assembled = assemble_order(db, OrderType.PURCHASE, [_item(widget, 500)])
        assert assembled.stock_deltas() == {widget.id: 500}

    def test_sale_deltas_are_negative_and_merged(self, db, widget):
        assembled = assemble_order(db, OrderType.SALE, [_item(widget, 2), _item(widget, 3)])
        assert len(assembled.items) == 2
        assert assembled.stock_deltas() == {widget.id: -5}

    def test_does_not_touch_stock(self, db, widget):
        assemble_order(db, OrderType.SALE, [_item(widget, 4)])
        db.refresh(widget)
        assert widget.quantity == 10


class TestRejections:

    def test_empty_items(self, db):
        with pytest.raises(ValidationError):
            assemble_order(db, OrderType.SALE, [])

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_quantity_below_one(self, db, widget, quantity):
        with pytest.raises(ValidationError):
            assemble_order(db, OrderType.SALE, [_item(widget, quantity)])

    def test_negative_price(self, db, widget):
        with pytest.raises(ValidationError):
            assemble_order(db, OrderType.SALE, [_item(widget, 1, price=-1)])

    @pytest.mark.parametrize("tax, discount", [(-1, 0), (0, -1)])
    def test_negative_tax_or_discount(self, db, widget, tax, discount):
        with pytest.raises(ValidationError):
            assemble_order(db, OrderType.SALE, [_item(widget, 1)], tax=tax, discount=discount)

    def test_discount_larger_than_total(self, db, widget):
        with pytest.raises(ValidationError, match="exceeds"):
            assemble_order(db, OrderType.SALE, [_item(widget, 1)], tax=0, discount=20)

    def test_unknown_product(self, db):
        item = OrderItemCreate(product_id="no-such-product", quantity=1, price=1)
        with pytest.raises(NotFoundError) as exc_info:
            assemble_order(db, OrderType.SALE, [item])
        assert exc_info.value.context["product_id"] == "no-such-product"

    def test_sale_exceeding_stock(self, db, widget):
        with pytest.raises(InsufficientStockError) as exc_info:
            assemble_order(db, OrderType.SALE, [_item(widget, 11)])
        assert exc_info.value.available == 10
        assert exc_info.value.requested == 11

    def test_sale_exceeding_stock_across_lines(self, db, widget):
        with pytest.raises(InsufficientStockError) as exc_info:
            assemble_order(db, OrderType.SALE, [_item(widget, 6), _item(widget, 5)])
        assert exc_info.value.requested == 11
