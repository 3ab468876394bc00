from decimal import Decimal

from pharmacore.services.profit import ProfitRecord, calculate_profit_breakdown


def _target_sale_of_discounted_batch(quantity=1):
    return ProfitRecord(
        profit=Decimal("43.72"),
        actual_cost=Decimal("90.00"),
        selling_price_ex_vat=Decimal("133.00"),
        rounding_extra=Decimal("0.72"),
        quantity=quantity,
        discounted_cost=Decimal("90.00"),
        original_cost=Decimal("100"),
    )


def test_three_way_decomposition():
    b = calculate_profit_breakdown([_target_sale_of_discounted_batch()])
    assert b.total_profit == Decimal("43.72")
    assert b.rounding_driven_profit == Decimal("0.72")
    assert b.discount_driven_profit == Decimal("13.30")
    assert b.base_profit == Decimal("29.70")
    assert b.total_revenue == Decimal("133.00")
    assert b.total_cost == Decimal("90.00")
    assert b.average_margin == Decimal("32.87")
    assert b.line_count == 1
    assert b.base_profit + b.discount_driven_profit + b.rounding_driven_profit == b.total_profit


def test_undiscounted_lines_have_no_discount_component():
    rec = ProfitRecord(
        profit=Decimal("19.36"),
        actual_cost=Decimal("50"),
        selling_price_ex_vat=Decimal("66.50"),
        rounding_extra=Decimal("2.86"),
        original_cost=Decimal("50"),
    )
    b = calculate_profit_breakdown([rec])
    assert b.discount_driven_profit == 0
    assert b.rounding_driven_profit == Decimal("2.86")
    assert b.base_profit == Decimal("16.50")


def test_quantity_weights_every_component():
    single = calculate_profit_breakdown([_target_sale_of_discounted_batch()])
    triple = calculate_profit_breakdown([_target_sale_of_discounted_batch(quantity=3)])
    assert triple.total_profit == single.total_profit * 3
    assert triple.discount_driven_profit == single.discount_driven_profit * 3
    assert triple.rounding_driven_profit == single.rounding_driven_profit * 3
    assert triple.total_revenue == Decimal("399.00")
    assert triple.average_margin == single.average_margin
    assert triple.line_count == 1


def test_empty_input_has_zero_margin():
    b = calculate_profit_breakdown([])
    assert b.total_profit == 0
    assert b.total_revenue == 0
    assert b.average_margin == 0
    assert b.line_count == 0


def test_custom_multiplier_changes_discount_attribution():
    b = calculate_profit_breakdown([_target_sale_of_discounted_batch()], multiplier="1.5")
    assert b.discount_driven_profit == Decimal("15.00")
    assert b.base_profit == Decimal("28.00")


def test_each_line_uses_the_markup_its_batch_was_priced_with():
    own = ProfitRecord(
        profit=Decimal("61.00"),
        actual_cost=Decimal("90.00"),
        selling_price_ex_vat=Decimal("150.00"),
        rounding_extra=Decimal("1.00"),
        discounted_cost=Decimal("90.00"),
        original_cost=Decimal("100"),
        markup_multiplier=Decimal("1.5"),
    )
    b = calculate_profit_breakdown([own, _target_sale_of_discounted_batch()])
    # 10 x 1.5 for the first line, 10 x 1.33 (default) for the second
    assert b.discount_driven_profit == Decimal("28.30")
    assert b.base_profit == Decimal("104.72") - Decimal("28.30") - Decimal("1.72")


def test_discount_and_base_shares_are_in_cents():
    rec = ProfitRecord(
        profit=Decimal("10.00"),
        actual_cost=Decimal("9.99"),
        selling_price_ex_vat=Decimal("15.00"),
        rounding_extra=Decimal("0"),
        discounted_cost=Decimal("9.99"),
        original_cost=Decimal("10.00"),
    )
    b = calculate_profit_breakdown([rec])
    # 0.01 x 1.33 = 0.0133
    assert b.discount_driven_profit == Decimal("0.01")
    assert b.discount_driven_profit.as_tuple().exponent == -2
    assert b.base_profit.as_tuple().exponent == -2
    assert b.base_profit + b.discount_driven_profit + b.rounding_driven_profit == b.total_profit
