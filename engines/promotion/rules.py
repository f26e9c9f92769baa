"""
Rewards Promotion Engine - Voucher Rules
=========================================
Immutable description of one promotional offer.

The discount is a closed tagged variant:
    PercentDiscount(value, max_discount_cap)
    FixedAmountDiscount(value)
    FreeGiftDiscount(gift_name)

Scope and eligibility are explicit enums/sets. A rule never infers
intent from a half-filled record: missing required fields raise at
construction, and catalog records that fail construction degrade to
"no voucher" through coerce_rule().
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, FrozenSet, Iterable, Mapping, Optional, Tuple, Union

from core.commands.rejection import ReasonCode
from core.config.rules import (
    DEFAULT_CURRENCY,
    DEFAULT_MAX_PRODUCTS_PER_USE,
    PricingConfig,
)
from core.policy.result import DecisionTrace
from core.primitives.money import Money, to_decimal


# ══════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════

class ApplicationScope(Enum):
    """Where a voucher's discount is computed."""
    ORDER_TOTAL = "order_total"
    PRODUCT_LEVEL = "product_level"


class ProductApplicationMethod(Enum):
    """How a PRODUCT_LEVEL voucher is applied. Ignored for ORDER_TOTAL."""
    TOTAL_ONCE = "total_once"
    PER_PRODUCT = "per_product"


class OutletRestrictionType(Enum):
    ALL_OUTLETS = "all_outlets"
    SPECIFIC_OUTLETS = "specific_outlets"


class CriterionKind(Enum):
    """Eligibility criteria in precedence order."""
    PRODUCT = "product"
    CATEGORY = "category"
    SUBCATEGORY = "subcategory"


# ══════════════════════════════════════════════════════════════
# DISCOUNT VARIANTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PercentDiscount:
    """Percent off (0-100], optionally capped in money."""
    value: Decimal
    max_discount_cap: Optional[Money] = None

    def __post_init__(self):
        if self.value is None:
            raise ValueError("PercentDiscount value is required.")
        object.__setattr__(self, "value", to_decimal(self.value, "value"))
        if self.value < 0:
            raise ValueError("PercentDiscount value cannot be negative.")
        if self.max_discount_cap is not None:
            if not isinstance(self.max_discount_cap, Money):
                raise TypeError("max_discount_cap must be Money.")
            if self.max_discount_cap.is_negative():
                raise ValueError("max_discount_cap cannot be negative.")

    @property
    def kind(self) -> str:
        return "percent"


@dataclass(frozen=True)
class FixedAmountDiscount:
    """Fixed money off (per order, or per unit on PER_PRODUCT vouchers)."""
    value: Money

    def __post_init__(self):
        if self.value is None:
            raise ValueError("FixedAmountDiscount value is required.")
        if not isinstance(self.value, Money):
            raise TypeError("FixedAmountDiscount value must be Money.")
        if self.value.is_negative():
            raise ValueError("FixedAmountDiscount value cannot be negative.")

    @property
    def kind(self) -> str:
        return "amount"


@dataclass(frozen=True)
class FreeGiftDiscount:
    """A gift handed over as a separate zero-priced line. No price reduction."""
    gift_name: str = ""

    def __post_init__(self):
        if not isinstance(self.gift_name, str):
            raise TypeError("gift_name must be a string.")

    @property
    def kind(self) -> str:
        return "free_gift"


Discount = Union[PercentDiscount, FixedAmountDiscount, FreeGiftDiscount]
DISCOUNT_TYPES = (PercentDiscount, FixedAmountDiscount, FreeGiftDiscount)


# ══════════════════════════════════════════════════════════════
# ELIGIBILITY & OUTLET RESTRICTION
# ══════════════════════════════════════════════════════════════

def _record_decimal(
    raw: Any, field_name: str, code: Any, required: bool = False,
) -> Optional[Decimal]:
    """Numeric catalog field in major units. Blank counts as missing."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        if required:
            raise ValueError(f"voucher '{code}' is missing '{field_name}'.")
        return None
    if isinstance(raw, float):
        raw = str(raw)
    return to_decimal(raw, field_name)


def _frozen_ids(values: Optional[Iterable[Any]]) -> FrozenSet[str]:
    if not values:
        return frozenset()
    return frozenset(str(v) for v in values if v is not None and str(v) != "")


@dataclass(frozen=True)
class Eligibility:
    """
    Product / category / subcategory sets a PRODUCT_LEVEL voucher targets.

    Precedence is product > category > subcategory: only the first
    non-empty set is evaluated. Authoring validation requires exactly one.
    """
    product_ids: FrozenSet[str] = frozenset()
    category_ids: FrozenSet[str] = frozenset()
    subcategory_ids: FrozenSet[str] = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "product_ids", _frozen_ids(self.product_ids))
        object.__setattr__(self, "category_ids", _frozen_ids(self.category_ids))
        object.__setattr__(
            self, "subcategory_ids", _frozen_ids(self.subcategory_ids),
        )

    def active_criterion(self) -> Optional[Tuple[CriterionKind, FrozenSet[str]]]:
        if self.product_ids:
            return CriterionKind.PRODUCT, self.product_ids
        if self.category_ids:
            return CriterionKind.CATEGORY, self.category_ids
        if self.subcategory_ids:
            return CriterionKind.SUBCATEGORY, self.subcategory_ids
        return None

    def declared_criteria(self) -> Tuple[CriterionKind, ...]:
        declared = []
        if self.product_ids:
            declared.append(CriterionKind.PRODUCT)
        if self.category_ids:
            declared.append(CriterionKind.CATEGORY)
        if self.subcategory_ids:
            declared.append(CriterionKind.SUBCATEGORY)
        return tuple(declared)

    def is_empty(self) -> bool:
        return self.active_criterion() is None

    @classmethod
    def products(cls, *ids: str) -> Eligibility:
        return cls(product_ids=frozenset(ids))

    @classmethod
    def categories(cls, *ids: str) -> Eligibility:
        return cls(category_ids=frozenset(ids))

    @classmethod
    def subcategories(cls, *ids: str) -> Eligibility:
        return cls(subcategory_ids=frozenset(ids))


@dataclass(frozen=True)
class OutletRestriction:
    """
    ALL_OUTLETS, or SPECIFIC_OUTLETS with an explicit set.

    An empty SPECIFIC_OUTLETS set means "nowhere", never "everywhere".
    """
    kind: OutletRestrictionType = OutletRestrictionType.ALL_OUTLETS
    outlet_ids: FrozenSet[str] = frozenset()

    def __post_init__(self):
        if not isinstance(self.kind, OutletRestrictionType):
            raise ValueError("kind must be OutletRestrictionType enum.")
        object.__setattr__(self, "outlet_ids", _frozen_ids(self.outlet_ids))

    @classmethod
    def all_outlets(cls) -> OutletRestriction:
        return cls()

    @classmethod
    def specific(cls, *outlet_ids: str) -> OutletRestriction:
        return cls(
            kind=OutletRestrictionType.SPECIFIC_OUTLETS,
            outlet_ids=frozenset(outlet_ids),
        )

    @property
    def is_specific(self) -> bool:
        return self.kind == OutletRestrictionType.SPECIFIC_OUTLETS


# ══════════════════════════════════════════════════════════════
# VOUCHER RULE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class VoucherRule:
    """
    One promotional offer as authored in the CMS.

    Only code, discount and the scope fields drive pricing; description,
    is_active, expires_at and usage_limit_per_user are read by selection
    gating.
    """
    code: str
    discount: Discount
    min_purchase: Optional[Money] = None
    application_scope: ApplicationScope = ApplicationScope.ORDER_TOTAL
    product_application_method: ProductApplicationMethod = (
        ProductApplicationMethod.TOTAL_ONCE
    )
    eligibility: Eligibility = Eligibility()
    max_products_per_use: int = DEFAULT_MAX_PRODUCTS_PER_USE
    outlet_restriction: OutletRestriction = OutletRestriction()
    voucher_id: Optional[str] = None
    description: str = ""
    is_active: bool = True
    expires_at: Optional[datetime] = None
    usage_limit_per_user: Optional[int] = None

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")
        if not isinstance(self.discount, DISCOUNT_TYPES):
            raise TypeError(
                f"discount must be one of "
                f"{[t.__name__ for t in DISCOUNT_TYPES]}, "
                f"got {type(self.discount).__name__}."
            )
        if self.min_purchase is not None and not isinstance(self.min_purchase, Money):
            raise TypeError("min_purchase must be Money.")
        if not isinstance(self.application_scope, ApplicationScope):
            raise ValueError("application_scope must be ApplicationScope enum.")
        if not isinstance(self.product_application_method, ProductApplicationMethod):
            raise ValueError(
                "product_application_method must be ProductApplicationMethod enum."
            )
        if not isinstance(self.eligibility, Eligibility):
            raise TypeError("eligibility must be Eligibility.")
        if not isinstance(self.outlet_restriction, OutletRestriction):
            raise TypeError("outlet_restriction must be OutletRestriction.")
        if (isinstance(self.max_products_per_use, bool)
                or not isinstance(self.max_products_per_use, int)):
            raise TypeError("max_products_per_use must be int.")
        if self.max_products_per_use < 0:
            raise ValueError("max_products_per_use cannot be negative.")

    @property
    def is_per_product(self) -> bool:
        return (
            self.application_scope == ApplicationScope.PRODUCT_LEVEL
            and self.product_application_method
            == ProductApplicationMethod.PER_PRODUCT
        )

    @property
    def max_discount_cap(self) -> Optional[Money]:
        if isinstance(self.discount, PercentDiscount):
            return self.discount.max_discount_cap
        return None

    def min_purchase_for(self, currency: str) -> Money:
        return self.min_purchase or Money.zero(currency)

    def to_dict(self) -> dict:
        d = self.discount
        return {
            "voucher_id": self.voucher_id,
            "code": self.code,
            "voucher_type": d.kind,
            "value": (
                str(d.value) if isinstance(d, PercentDiscount)
                else d.value.to_dict() if isinstance(d, FixedAmountDiscount)
                else None
            ),
            "max_discount_cap": (
                self.max_discount_cap.to_dict() if self.max_discount_cap else None
            ),
            "free_gift_name": (
                d.gift_name if isinstance(d, FreeGiftDiscount) else None
            ),
            "min_purchase": (
                self.min_purchase.to_dict() if self.min_purchase else None
            ),
            "application_scope": self.application_scope.value,
            "product_application_method": self.product_application_method.value,
            "eligible_product_ids": sorted(self.eligibility.product_ids),
            "eligible_category_ids": sorted(self.eligibility.category_ids),
            "eligible_subcategory_ids": sorted(self.eligibility.subcategory_ids),
            "max_products_per_use": self.max_products_per_use,
            "outlet_restriction_type": self.outlet_restriction.kind.value,
            "applicable_outlet_ids": sorted(self.outlet_restriction.outlet_ids),
        }

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        currency: str = DEFAULT_CURRENCY,
        config: Optional[PricingConfig] = None,
    ) -> VoucherRule:
        """
        Map a voucher catalog record (amounts in major units) to a rule.

        A missing or zero max_products_per_use takes the configured default.
        Raises ValueError when a required field is missing or not a number,
        or the voucher_type is not one the pricing engine understands.
        """
        config = config or PricingConfig(currency=currency)
        code = data.get("code")
        if not code or not str(code).strip():
            raise ValueError("voucher record is missing 'code'.")
        voucher_type = data.get("voucher_type")
        if not voucher_type:
            raise ValueError(f"voucher '{code}' is missing 'voucher_type'.")
        raw_value = data.get("value")

        if voucher_type == "percent":
            metadata = data.get("metadata") or {}
            cap = _record_decimal(
                metadata.get("max_discount_amount", data.get("max_discount_amount")),
                "max_discount_amount", code,
            )
            discount: Discount = PercentDiscount(
                value=_record_decimal(raw_value, "value", code, required=True),
                max_discount_cap=Money.of(cap, currency) if cap is not None else None,
            )
        elif voucher_type == "amount":
            discount = FixedAmountDiscount(
                value=Money.of(
                    _record_decimal(raw_value, "value", code, required=True),
                    currency,
                ),
            )
        elif voucher_type == "free_gift":
            discount = FreeGiftDiscount(gift_name=data.get("free_gift_name") or "")
        else:
            raise ValueError(
                f"voucher '{code}' has unsupported voucher_type '{voucher_type}'."
            )

        min_purchase = _record_decimal(data.get("min_purchase"), "min_purchase", code)
        max_products = data.get("max_products_per_use")
        outlet_type = data.get("outlet_restriction_type") or "all_outlets"
        expires_at = data.get("expires_at")
        if isinstance(expires_at, str):
            expires_at = datetime.fromisoformat(expires_at.replace("Z", "+00:00"))

        return cls(
            code=str(code).strip(),
            discount=discount,
            min_purchase=(
                Money.of(min_purchase, currency) if min_purchase is not None else None
            ),
            application_scope=ApplicationScope(
                data.get("application_scope") or "order_total"
            ),
            product_application_method=ProductApplicationMethod(
                data.get("product_application_method") or "total_once"
            ),
            eligibility=Eligibility(
                product_ids=data.get("eligible_product_ids") or (),
                category_ids=data.get("eligible_category_ids") or (),
                subcategory_ids=data.get("eligible_subcategory_ids") or (),
            ),
            max_products_per_use=(
                int(max_products) if max_products
                else config.default_max_products_per_use
            ),
            outlet_restriction=OutletRestriction(
                kind=OutletRestrictionType(outlet_type),
                outlet_ids=data.get("applicable_outlet_ids") or (),
            ),
            voucher_id=data.get("id"),
            description=data.get("description") or "",
            is_active=bool(data.get("is_active", True)),
            expires_at=expires_at,
            usage_limit_per_user=data.get("usage_limit_per_user"),
        )


RuleSource = Union[VoucherRule, Mapping[str, Any], None]


def coerce_rule(
    source: RuleSource,
    currency: str = DEFAULT_CURRENCY,
    config: Optional[PricingConfig] = None,
) -> Tuple[Optional[VoucherRule], DecisionTrace]:
    """
    Accept a VoucherRule, a raw catalog record, or None.

    A record that cannot be built into a rule never discounts: the
    result is (None, trace with MISSING_REQUIRED_FIELDS).
    """
    trace = DecisionTrace()
    if source is None:
        return None, trace.failed(
            "voucher_present_gate", ReasonCode.NO_VOUCHER,
            "No voucher selected.",
        )
    if isinstance(source, VoucherRule):
        return source, trace.passed(
            "required_fields_gate", "Voucher rule is complete.",
            voucher_code=source.code,
        )
    try:
        rule = VoucherRule.from_dict(source, currency=currency, config=config)
    except (ValueError, TypeError, KeyError, ArithmeticError) as exc:
        return None, trace.failed(
            "required_fields_gate", ReasonCode.MISSING_REQUIRED_FIELDS,
            f"Voucher record is not usable: {exc}",
        )
    return rule, trace.passed(
        "required_fields_gate", "Voucher rule is complete.",
        voucher_code=rule.code,
    )


# ══════════════════════════════════════════════════════════════
# APPLIED VOUCHER SELECTION
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AppliedVoucherSelection:
    """A voucher held by a user, with their usage counters."""
    rule: VoucherRule
    usage_count: int = 0
    max_usage_count: int = 1
    selection_id: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.rule, VoucherRule):
            raise TypeError("rule must be VoucherRule.")
        if self.usage_count < 0:
            raise ValueError("usage_count cannot be negative.")
        if self.max_usage_count < 0:
            raise ValueError("max_usage_count cannot be negative.")

    @property
    def has_remaining_uses(self) -> bool:
        return self.usage_count < self.max_usage_count
