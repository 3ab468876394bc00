from decimal import Decimal

import pytest

from pharmacore.errors import ValidationError
from pharmacore.models import PriceTier
from pharmacore.services.pricing import (
    PricingInput,
    calculate_product_pricing,
    is_low_margin,
    price_tier_label,
    validate_floor_price,
)


def test_discounted_product_with_vat():
    p = calculate_product_pricing(
        PricingInput(original_cost=100, discount_percent=10, has_vat=True, vat_rate=16)
    )
    assert p.has_discount is True
    assert p.discounted_cost == Decimal("90.00")
    assert p.actual_cost == Decimal("90.00")

    assert p.minimum_price_ex_vat == Decimal("119.70")
    assert p.minimum_price_with_vat == Decimal("138.85")
    assert p.minimum_price_rounded == Decimal("140")

    assert p.target_price_ex_vat == Decimal("133.00")
    assert p.target_price_with_vat == Decimal("154.28")
    assert p.target_price_rounded == Decimal("155")


def test_no_discount_has_no_minimum_tier():
    p = calculate_product_pricing(
        PricingInput(original_cost=50, discount_percent=0, has_vat=True, vat_rate=16)
    )
    assert p.has_discount is False
    assert p.discounted_cost is None
    assert p.actual_cost == Decimal("50")
    assert p.minimum_price_ex_vat is None
    assert p.minimum_price_with_vat is None
    assert p.minimum_price_rounded is None
    assert p.target_price_ex_vat == Decimal("66.50")
    assert p.target_price_with_vat == Decimal("77.14")
    assert p.target_price_rounded == Decimal("80")
    assert p.ex_vat_for(PriceTier.MINIMUM) is None
    assert p.ex_vat_for(PriceTier.TARGET) == Decimal("66.50")


def test_target_price_ignores_supplier_discount():
    full = calculate_product_pricing(PricingInput(original_cost=200))
    discounted = calculate_product_pricing(PricingInput(original_cost=200, discount_percent=25))
    assert discounted.target_price_ex_vat == full.target_price_ex_vat == Decimal("266.00")
    assert discounted.minimum_price_ex_vat == Decimal("199.50")


def test_without_vat_with_vat_equals_ex_vat():
    p = calculate_product_pricing(PricingInput(original_cost=100, discount_percent=10, vat_rate=16))
    assert p.target_price_with_vat == p.target_price_ex_vat
    assert p.minimum_price_with_vat == p.minimum_price_ex_vat
    assert p.target_price_rounded == Decimal("135")


@pytest.mark.parametrize("discount", [0, "0.5", 10, "33.3", 99, 100])
@pytest.mark.parametrize("cost", ["0.01", "1", "99.99", "1234.56"])
def test_discounted_cost_never_exceeds_original(cost, discount):
    p = calculate_product_pricing(PricingInput(original_cost=cost, discount_percent=discount))
    if Decimal(str(discount)) == 0:
        assert p.discounted_cost is None
    else:
        assert p.discounted_cost is not None
        assert p.discounted_cost <= p.original_cost


def test_missing_discount_is_treated_as_none():
    p = calculate_product_pricing(PricingInput(original_cost=10))
    assert p.discounted_cost is None
    assert p.minimum_price_ex_vat is None


@pytest.mark.parametrize(
    "kwargs,message",
    [
        (dict(original_cost=0), "Original cost must be > 0"),
        (dict(original_cost=-5), "Original cost must be > 0"),
        (dict(original_cost=10, discount_percent=101), "Discount percent must be between 0 and 100"),
        (dict(original_cost=10, discount_percent=-1), "Discount percent must be between 0 and 100"),
        (dict(original_cost=10, vat_rate=150), "VAT rate must be between 0 and 100"),
        (dict(original_cost="ten"), "must be a number"),
    ],
)
def test_invalid_input_is_rejected(kwargs, message):
    with pytest.raises(ValidationError, match=message):
        calculate_product_pricing(PricingInput(**kwargs))


def test_validate_floor_price():
    assert validate_floor_price("119.70", "119.70") is True
    assert validate_floor_price("119.69", "119.70") is False
    assert validate_floor_price("1", None) is True


def test_is_low_margin():
    # band 140..155, threshold 143
    assert is_low_margin(140, 140, 155) is True
    assert is_low_margin(143, 140, 155) is True
    assert is_low_margin(145, 140, 155) is False
    assert is_low_margin(80, None, 80) is False


def test_price_tier_label():
    assert price_tier_label(PriceTier.MINIMUM) == "Minimum Price"
    assert price_tier_label(PriceTier.TARGET) == "Target Price"
