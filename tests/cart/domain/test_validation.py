"""Tests for cart checkout readiness rules."""

from pharmacart.cart.cart import DeliveryTerms, PharmacyCart
from pharmacart.cart.validation import IssueKind, validate_cart


def _make_cart(**terms):
    return PharmacyCart.create("ph1", "Apollo", delivery_terms=DeliveryTerms(**terms))


def _item(**overrides):
    data = {
        "product_id": "m1",
        "name": "Amoxicillin 250mg",
        "unit_price": 120.0,
        "quantity": 1,
        "max_quantity": 10,
    }
    data.update(overrides)
    return data


def _kinds(issues):
    return [issue.kind for issue in issues]


class TestValidateCart:
    def test_clean_cart_has_no_issues(self):
        cart = _make_cart()
        cart.add_item(_item())
        assert validate_cart(cart) == []

    def test_out_of_stock_line(self):
        cart = _make_cart()
        line_id = cart.add_item(_item(in_stock=False)).line_id
        issues = validate_cart(cart)
        assert _kinds(issues) == [IssueKind.OUT_OF_STOCK]
        assert issues[0].message == "Amoxicillin 250mg is currently out of stock"
        assert issues[0].line_id == line_id

    def test_unsatisfied_approval(self):
        cart = _make_cart()
        cart.add_item(_item(requires_approval=True))
        issues = validate_cart(cart)
        assert _kinds(issues) == [IssueKind.APPROVAL_REQUIRED]
        assert issues[0].message == "Amoxicillin 250mg requires a prescription"

    def test_satisfied_approval_passes(self):
        cart = _make_cart()
        line_id = cart.add_item(_item(requires_approval=True)).line_id
        cart.record_approval(line_id)
        assert validate_cart(cart) == []

    def test_below_minimum_order(self):
        cart = _make_cart(min_order_amount=200.0)
        cart.add_item(_item())
        issues = validate_cart(cart)
        assert _kinds(issues) == [IssueKind.BELOW_MINIMUM_ORDER]
        assert issues[0].message == "Minimum order amount is ₹200.00"
        assert issues[0].line_id is None

    def test_minimum_order_met_exactly(self):
        cart = _make_cart(min_order_amount=240.0)
        cart.add_item(_item(quantity=2))
        assert validate_cart(cart) == []

    def test_delivery_unavailable(self):
        cart = _make_cart(delivery_available=False)
        cart.add_item(_item())
        issues = validate_cart(cart)
        assert _kinds(issues) == [IssueKind.DELIVERY_UNAVAILABLE]
        assert issues[0].message == "Delivery is not available for this pharmacy"

    def test_every_rule_is_reported(self):
        cart = _make_cart(min_order_amount=1000.0, delivery_available=False)
        cart.add_item(_item(product_id="m1", in_stock=False))
        cart.add_item(_item(product_id="m2", name="Insulin", requires_approval=True))
        kinds = _kinds(validate_cart(cart))
        assert IssueKind.OUT_OF_STOCK in kinds
        assert IssueKind.APPROVAL_REQUIRED in kinds
        assert IssueKind.BELOW_MINIMUM_ORDER in kinds
        assert IssueKind.DELIVERY_UNAVAILABLE in kinds
        assert len(kinds) == 4

    def test_each_offending_line_is_reported(self):
        cart = _make_cart()
        cart.add_item(_item(product_id="m1", in_stock=False))
        cart.add_item(_item(product_id="m2", name="Insulin", in_stock=False))
        assert _kinds(validate_cart(cart)) == [IssueKind.OUT_OF_STOCK, IssueKind.OUT_OF_STOCK]

    def test_validation_is_repeatable(self):
        cart = _make_cart(min_order_amount=500.0)
        cart.add_item(_item(in_stock=False))
        assert validate_cart(cart) == validate_cart(cart)

    def test_validation_does_not_touch_cart(self):
        cart = _make_cart(min_order_amount=500.0)
        cart.add_item(_item(in_stock=False))
        updated_at = cart.updated_at
        totals = cart.totals
        validate_cart(cart)
        assert cart.updated_at == updated_at
        assert cart.totals == totals
        assert cart.is_valid is True
