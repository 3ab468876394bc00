import pytest

from pharmacore.errors import NotFoundError, ValidationError
from pharmacore.services.products import (
    create_category,
    create_product,
    create_supplier,
    get_product,
    list_products,
    update_product_details,
)


def test_products_carry_no_price_or_stock(conn, ids):
    p = get_product(conn, ids["vat_product"])
    assert p.name == "Cetirizine 10mg x10"
    assert p.has_vat is True
    assert p.min_stock_level == 10
    assert not hasattr(p, "price")
    assert not hasattr(p, "stock")


def test_duplicate_master_data(conn, ids):
    with pytest.raises(ValidationError, match="already exists"):
        create_supplier(conn, "Mediplus Distributors")
    with pytest.raises(ValidationError, match="already exists"):
        create_category(conn, "Analgesics")
    with pytest.raises(ValidationError, match="required"):
        create_category(conn, " ")


def test_barcode_is_unique(conn, ids):
    create_product(conn, name="Ibuprofen 400mg", barcode="6161100000017")
    with pytest.raises(ValidationError):
        create_product(conn, name="Ibuprofen 200mg", barcode="6161100000017")


def test_update_descriptive_fields(conn, ids):
    p = update_product_details(conn, ids["plain_product"], name="Paracetamol 500mg x50", min_stock_level=8)
    assert p.name == "Paracetamol 500mg x50"
    assert p.min_stock_level == 8
    assert [x.name for x in list_products(conn)] == ["Cetirizine 10mg x10", "Paracetamol 500mg x50"]


@pytest.mark.parametrize("field", ["has_vat", "price", "stock"])
def test_non_descriptive_fields_cannot_be_edited(conn, ids, field):
    with pytest.raises(ValidationError, match="descriptive"):
        update_product_details(conn, ids["plain_product"], **{field: 1})


def test_missing_product(conn):
    with pytest.raises(NotFoundError):
        get_product(conn, 12345)
    with pytest.raises(NotFoundError):
        update_product_details(conn, 12345, name="x")


@pytest.mark.parametrize("level", ["ten", -1, 2.5])
def test_min_stock_level_must_be_a_whole_number(conn, ids, level):
    with pytest.raises(ValidationError, match="Minimum stock level"):
        create_product(conn, name="Amoxicillin 250mg", min_stock_level=level)
    with pytest.raises(ValidationError, match="Minimum stock level"):
        update_product_details(conn, ids["plain_product"], min_stock_level=level)
    assert get_product(conn, ids["plain_product"]).min_stock_level == 5
