"""
Rewards Promotion Engine - Discount Calculator Tests
=====================================================
Gates, order-level and per-product paths, caps, per-line breakdown.
"""

from decimal import Decimal

import pytest

from core.commands.rejection import ReasonCode
from core.config.rules import PricingConfig
from core.primitives.item import LineItem
from core.primitives.money import Money
from engines.promotion.calculator import (
    PATH_ORDER,
    PATH_PER_PRODUCT,
    compute_item_discount,
    compute_item_discounts,
    compute_voucher_discount,
)
from engines.promotion.rules import (
    ApplicationScope,
    Eligibility,
    FixedAmountDiscount,
    FreeGiftDiscount,
    OutletRestriction,
    OutletRestrictionType,
    PercentDiscount,
    ProductApplicationMethod,
    VoucherRule,
)


def myr(major):
    return Money.of(str(major), "MYR")


def item(line_id, product_id, price, qty, category_id=None):
    return LineItem(
        id=line_id, product_id=product_id, unit_price=myr(price),
        quantity=qty, category_id=category_id,
    )


def percent(value, cap=None, **kw):
    return VoucherRule(
        code=kw.pop("code", "PCT"),
        discount=PercentDiscount(
            value=Decimal(str(value)),
            max_discount_cap=myr(cap) if cap is not None else None,
        ),
        **kw,
    )


def fixed(value, **kw):
    return VoucherRule(
        code=kw.pop("code", "FIX"),
        discount=FixedAmountDiscount(value=myr(value)), **kw,
    )


PER_PRODUCT = dict(
    application_scope=ApplicationScope.PRODUCT_LEVEL,
    product_application_method=ProductApplicationMethod.PER_PRODUCT,
)


# ══════════════════════════════════════════════════════════════
# EXAMPLE SCENARIOS
# ══════════════════════════════════════════════════════════════

class TestScenarios:
    def test_percent_order_total(self):
        items = [item("1", "A", 50, 2)]
        result = compute_voucher_discount(percent(20), items, "O1")
        assert result.amount == myr(20)
        assert result.path == PATH_ORDER
        assert result.applied

    def test_fixed_per_product_consumes_six_slots(self):
        items = [item("1", "X", 30, 3), item("2", "Y", 20, 5)]
        rule = fixed(5, eligibility=Eligibility.products("X", "Y"), **PER_PRODUCT)
        result = compute_voucher_discount(rule, items, "O1")
        assert result.amount == myr(30)
        assert result.path == PATH_PER_PRODUCT

        lines = compute_item_discounts(rule, items, "O1")
        assert lines[0].discounted_quantity == 3
        assert lines[1].discounted_quantity == 3
        assert lines[1].total_quantity == 5
        assert lines[1].max_reached

    @pytest.mark.parametrize("rule", [
        percent(20, min_purchase=myr(100)),
        fixed(5, min_purchase=myr(100)),
        VoucherRule(code="G", discount=FreeGiftDiscount(gift_name="Tote"),
                    min_purchase=myr(100)),
    ])
    def test_min_purchase_not_met(self, rule):
        result = compute_voucher_discount(rule, [item("1", "A", 40, 2)], "O1")
        assert result.amount.is_zero()
        assert result.trace.codes() == (ReasonCode.MIN_PURCHASE_NOT_MET,)

    def test_wrong_outlet(self):
        rule = percent(20, outlet_restriction=OutletRestriction.specific("O1"))
        result = compute_voucher_discount(rule, [item("1", "A", 50, 2)], "O2")
        assert result.amount.is_zero()
        assert result.trace.codes() == (ReasonCode.OUTLET_NOT_ELIGIBLE,)

    def test_percent_cap(self):
        result = compute_voucher_discount(
            percent(50, cap=5), [item("1", "A", 100, 1)], "O1",
        )
        assert result.amount == myr(5)
        assert result.capped


# ══════════════════════════════════════════════════════════════
# GATES
# ══════════════════════════════════════════════════════════════

class TestGates:
    def test_no_voucher(self):
        result = compute_voucher_discount(None, [item("1", "A", 10, 1)], "O1")
        assert result.amount.is_zero()
        assert result.rule is None
        assert result.trace.codes() == (ReasonCode.NO_VOUCHER,)

    def test_incomplete_record_never_discounts(self):
        record = {"code": "X", "voucher_type": "amount"}
        result = compute_voucher_discount(record, [item("1", "A", 10, 1)], "O1")
        assert result.amount.is_zero()
        assert result.trace.codes() == (ReasonCode.MISSING_REQUIRED_FIELDS,)

    @pytest.mark.parametrize("record", [
        {"code": "X", "voucher_type": "percent", "value": ""},
        {"code": "X", "voucher_type": "amount", "value": "abc"},
        {"code": "X", "voucher_type": "percent", "value": "NaN"},
        {"code": "X", "voucher_type": "amount", "value": 5, "min_purchase": "?"},
    ])
    def test_malformed_record_never_raises(self, record):
        result = compute_voucher_discount(record, [item("1", "A", 10, 1)], "O1")
        assert result.amount.is_zero()
        assert result.rule is None
        assert result.trace.codes() == (ReasonCode.MISSING_REQUIRED_FIELDS,)

    def test_blank_min_purchase_means_no_minimum(self):
        record = {"code": "X", "voucher_type": "amount", "value": 2, "min_purchase": ""}
        result = compute_voucher_discount(record, [item("1", "A", 10, 1)], "O1")
        assert result.amount == myr(2)

    def test_record_accepted(self):
        record = {"code": "X", "voucher_type": "amount", "value": "2.50"}
        result = compute_voucher_discount(record, [item("1", "A", 10, 1)], "O1")
        assert result.amount == myr("2.50")

    def test_min_purchase_exactly_met(self):
        result = compute_voucher_discount(
            fixed(5, min_purchase=myr(100)), [item("1", "A", 50, 2)], "O1",
        )
        assert result.amount == myr(5)

    def test_empty_specific_outlet_list_is_nowhere(self):
        rule = percent(10, outlet_restriction=OutletRestriction(
            kind=OutletRestrictionType.SPECIFIC_OUTLETS,
        ))
        result = compute_voucher_discount(rule, [item("1", "A", 50, 2)], "O1")
        assert result.amount.is_zero()
        assert result.trace.codes() == (ReasonCode.OUTLET_LIST_EMPTY,)

    def test_listed_outlet_passes(self):
        rule = percent(10, outlet_restriction=OutletRestriction.specific("O1", "O2"))
        assert compute_voucher_discount(
            rule, [item("1", "A", 50, 2)], "O2",
        ).amount == myr(10)

    def test_missing_outlet_id_with_restriction(self):
        rule = percent(10, outlet_restriction=OutletRestriction.specific("O1"))
        assert compute_voucher_discount(
            rule, [item("1", "A", 50, 2)], None,
        ).amount.is_zero()

    def test_min_purchase_checked_before_outlet(self):
        rule = percent(
            10, min_purchase=myr(500),
            outlet_restriction=OutletRestriction.specific("O1"),
        )
        result = compute_voucher_discount(rule, [item("1", "A", 50, 2)], "O9")
        assert result.trace.codes() == (ReasonCode.MIN_PURCHASE_NOT_MET,)


# ══════════════════════════════════════════════════════════════
# PATH A - ORDER LEVEL
# ══════════════════════════════════════════════════════════════

class TestOrderLevel:
    def test_fixed_limited_to_subtotal(self):
        result = compute_voucher_discount(fixed(50), [item("1", "A", 12, 1)], "O1")
        assert result.amount == myr(12)

    def test_free_gift_is_zero(self):
        rule = VoucherRule(code="G", discount=FreeGiftDiscount(gift_name="Tote"))
        result = compute_voucher_discount(rule, [item("1", "A", 50, 2)], "O1")
        assert result.amount.is_zero()
        assert not result.trace.has_failures
        assert ReasonCode.FREE_GIFT_NO_PRICE_REDUCTION in [
            e.code for e in result.trace.entries
        ]

    def test_total_once_uses_whole_subtotal(self):
        rule = percent(
            10, application_scope=ApplicationScope.PRODUCT_LEVEL,
            eligibility=Eligibility.products("A"),
        )
        items = [item("1", "A", 50, 1), item("2", "B", 50, 1)]
        result = compute_voucher_discount(rule, items, "O1")
        assert result.amount == myr(10)
        assert result.path == PATH_ORDER

    def test_percent_rounds_half_up(self):
        result = compute_voucher_discount(
            percent(15), [item("1", "A", "0.10", 1)], "O1",
        )
        assert result.amount.amount == 2

    def test_cap_not_binding(self):
        result = compute_voucher_discount(
            percent(10, cap=50), [item("1", "A", 100, 1)], "O1",
        )
        assert result.amount == myr(10)
        assert not result.capped

    def test_explicit_subtotal_is_used(self):
        result = compute_voucher_discount(
            percent(10), [item("1", "A", 100, 1)], "O1", subtotal=myr(200),
        )
        assert result.amount == myr(20)

    def test_empty_cart(self):
        result = compute_voucher_discount(percent(10), [], "O1")
        assert result.amount == Money.zero("MYR")


# ══════════════════════════════════════════════════════════════
# PATH B - PER PRODUCT
# ══════════════════════════════════════════════════════════════

class TestPerProduct:
    def test_percent_sums_eligible_units(self):
        rule = percent(10, eligibility=Eligibility.products("A"), **PER_PRODUCT)
        items = [item("1", "A", 20, 2), item("2", "B", 100, 1)]
        assert compute_voucher_discount(rule, items, "O1").amount == myr(4)

    def test_percent_respects_slots(self):
        rule = percent(
            50, eligibility=Eligibility.products("A"), max_products_per_use=1,
            **PER_PRODUCT,
        )
        result = compute_voucher_discount(rule, [item("1", "A", 20, 3)], "O1")
        assert result.amount == myr(10)

    def test_percent_cap_binds_per_product(self):
        rule = percent(50, cap=5, eligibility=Eligibility.products("A"), **PER_PRODUCT)
        result = compute_voucher_discount(rule, [item("1", "A", 100, 1)], "O1")
        assert result.amount == myr(5)
        assert result.capped

    def test_fixed_capped_at_subtotal(self):
        rule = fixed(10, eligibility=Eligibility.products("A"), **PER_PRODUCT)
        result = compute_voucher_discount(rule, [item("1", "A", 3, 2)], "O1")
        assert result.amount == myr(6)
        assert result.capped

    def test_no_criterion_gives_zero(self):
        rule = fixed(5, **PER_PRODUCT)
        result = compute_voucher_discount(rule, [item("1", "A", 30, 2)], "O1")
        assert result.amount.is_zero()
        assert ReasonCode.NO_ELIGIBILITY_CRITERION in result.trace.codes()

    def test_no_matching_items(self):
        rule = fixed(5, eligibility=Eligibility.categories("C"), **PER_PRODUCT)
        result = compute_voucher_discount(rule, [item("1", "A", 30, 2)], "O1")
        assert result.amount.is_zero()
        assert result.trace.codes() == (ReasonCode.ITEM_NOT_ELIGIBLE,)

    def test_ineligible_lines_do_not_fail_an_applied_voucher(self):
        rule = fixed(5, eligibility=Eligibility.products("A"), **PER_PRODUCT)
        items = [item("1", "B", 30, 1), item("2", "A", 30, 1)]
        result = compute_voucher_discount(rule, items, "O1")
        assert result.amount == myr(5)
        assert not result.trace.has_failures
        assert result.trace.reasons() == ()
        assert ReasonCode.ITEM_NOT_ELIGIBLE in [e.code for e in result.trace.entries]

    def test_exhausted_slots_are_informational(self):
        rule = fixed(
            5, eligibility=Eligibility.products("A"), max_products_per_use=1,
            **PER_PRODUCT,
        )
        items = [item("1", "A", 30, 1), item("2", "A", 20, 1)]
        result = compute_voucher_discount(rule, items, "O1")
        assert result.amount == myr(5)
        assert not result.trace.has_failures
        assert ReasonCode.PRODUCT_SLOTS_EXHAUSTED in [
            e.code for e in result.trace.entries
        ]

    def test_record_without_max_products_uses_config(self):
        record = {
            "code": "PP", "voucher_type": "amount", "value": 1,
            "application_scope": "product_level",
            "product_application_method": "per_product",
            "eligible_product_ids": ["A"],
        }
        items = [item("1", "A", 10, 5)]
        config = PricingConfig(default_max_products_per_use=2)
        assert compute_voucher_discount(
            record, items, "O1", config=config,
        ).amount == myr(2)
        assert compute_voucher_discount(record, items, "O1").amount == myr(5)

    def test_free_gift_per_product_is_zero(self):
        rule = VoucherRule(
            code="G", discount=FreeGiftDiscount(gift_name="Tote"),
            eligibility=Eligibility.products("A"), **PER_PRODUCT,
        )
        assert compute_voucher_discount(
            rule, [item("1", "A", 30, 2)], "O1",
        ).amount.is_zero()
        assert compute_item_discounts(rule, [item("1", "A", 30, 2)], "O1") == (None,)


# ══════════════════════════════════════════════════════════════
# PROPERTIES
# ══════════════════════════════════════════════════════════════

CARTS = [
    [item("1", "X", 30, 3), item("2", "Y", 20, 5)],
    [item("1", "Y", 20, 5), item("2", "X", 30, 3)],
    [item("1", "X", "0.99", 7)],
    [item("1", "Z", 1, 1)],
]
RULES = [
    percent(20),
    percent(90, cap=3),
    fixed(1000),
    fixed(5, eligibility=Eligibility.products("X", "Y"), **PER_PRODUCT),
    percent(35, eligibility=Eligibility.products("X", "Y"), **PER_PRODUCT),
    percent(100, cap=2, eligibility=Eligibility.products("X"), **PER_PRODUCT),
]


class TestProperties:
    @pytest.mark.parametrize("rule", RULES)
    @pytest.mark.parametrize("items", CARTS)
    def test_bounded_by_zero_and_subtotal(self, rule, items):
        subtotal = sum((i.line_total for i in items), Money.zero("MYR"))
        result = compute_voucher_discount(rule, items, "O1")
        assert not result.amount.is_negative()
        assert result.amount <= subtotal
        if rule.max_discount_cap is not None:
            assert result.amount <= rule.max_discount_cap

    @pytest.mark.parametrize("rule", RULES)
    def test_deterministic(self, rule):
        items = CARTS[0]
        assert compute_voucher_discount(rule, items, "O1") == (
            compute_voucher_discount(rule, items, "O1")
        )

    def test_reordering_keeps_unit_total(self):
        rule = fixed(5, eligibility=Eligibility.products("X", "Y"), **PER_PRODUCT)
        forward = compute_voucher_discount(rule, CARTS[0], "O1")
        backward = compute_voucher_discount(rule, CARTS[1], "O1")
        assert forward.amount == backward.amount == myr(30)

    def test_percent_monotone_in_subtotal_until_cap(self):
        rule = percent(10, cap=7)
        previous = Money.zero("MYR")
        for qty in range(1, 12):
            current = compute_voucher_discount(
                rule, [item("1", "A", 10, qty)], "O1",
            ).amount
            assert current >= previous
            previous = current
        assert previous == myr(7)


# ══════════════════════════════════════════════════════════════
# ITEM BREAKDOWN
# ══════════════════════════════════════════════════════════════

class TestItemDiscounts:
    def test_order_level_has_no_line_discounts(self):
        items = [item("1", "A", 50, 2)]
        assert compute_item_discounts(percent(20), items, "O1") == (None,)

    def test_percent_line(self):
        rule = percent(10, eligibility=Eligibility.products("A"), **PER_PRODUCT)
        items = [item("1", "B", 9, 1), item("2", "A", 20, 2)]
        discount = compute_item_discount(rule, items, 1, "O1")
        assert discount.kind == "percent"
        assert discount.value == Decimal("10")
        assert discount.unit_discount == myr(2)
        assert discount.amount == myr(4)
        assert not discount.max_reached
        assert compute_item_discount(rule, items, 0, "O1") is None

    def test_fixed_line(self):
        rule = fixed(5, eligibility=Eligibility.products("A"), **PER_PRODUCT)
        discount = compute_item_discount(rule, [item("1", "A", 20, 2)], 0, "O1")
        assert discount.kind == "amount"
        assert discount.unit_discount == myr(5)
        assert discount.amount == myr(10)
        assert discount.to_dict()["value"] == {"amount": 500, "currency": "MYR"}

    def test_gates_apply_to_breakdown(self):
        rule = fixed(
            5, eligibility=Eligibility.products("A"),
            outlet_restriction=OutletRestriction.specific("O1"), **PER_PRODUCT,
        )
        assert compute_item_discounts(rule, [item("1", "A", 20, 2)], "O2") == (None,)

    def test_index_out_of_range(self):
        with pytest.raises(IndexError):
            compute_item_discount(percent(10), [item("1", "A", 20, 2)], 3, "O1")
