import pytest

from storefront.data.models.product import stock_status
from storefront.domain.errors import ProductNotFoundError
from storefront.services.catalogue_service import CatalogueService


@pytest.fixture
def svc(db):
    return CatalogueService(db)


@pytest.mark.parametrize(
    "stock,expected",
    [(0, "out_of_stock"), (-1, "out_of_stock"), (1, "low_stock"), (4, "low_stock"), (5, "in_stock"), (120, "in_stock")],
)
def test_stock_status(stock, expected):
    assert stock_status(stock) == expected


def test_catalogue_groups_in_category_order(svc, make_product):
    make_product(name="Wrist Rest", category="accessory")
    make_product(name="PBT Keycaps", category="keycap")
    make_product(name="Red Switch", category="switch")
    make_product(name="LOP 65 Keyboard", category="keyboard")

    catalogue = svc.get_catalogue()

    assert [g.category for g in catalogue.groups] == ["keyboard", "switch", "keycap", "accessory"]
    assert catalogue.total == 4
    assert catalogue.total_pages == 1


def test_catalogue_pagination(svc, make_product):
    for i in range(5):
        make_product(name=f"Keyboard {i}")

    catalogue = svc.get_catalogue(page=2, page_size=2)

    assert catalogue.total == 5
    assert catalogue.total_pages == 3
    assert [p.name for p in catalogue.groups[0].products] == ["Keyboard 2", "Keyboard 3"]


def test_empty_catalogue(svc):
    catalogue = svc.get_catalogue()
    assert catalogue.groups == []
    assert catalogue.total_pages == 0


def test_page_size_is_capped(svc, make_product):
    make_product()
    catalogue = svc.get_catalogue(page_size=1000)
    assert catalogue.page_size == 100


def test_products_filtered_by_category(svc, make_product):
    make_product(name="LOP 65 Keyboard")
    make_product(name="Red Switch", category="switch")

    products, total = svc.get_products(category="switch")

    assert total == 1
    assert products[0].name == "Red Switch"


def test_product_view_has_variants_and_images(svc, make_product):
    make_product(variants=(("Black", 12900, 3), ("White", 13900, 20)))

    detail = svc.get_product("lop-65-keyboard")

    variants = detail.product.variants
    assert [v.name for v in variants] == ["Black", "White"]
    assert [v.stock_status for v in variants] == ["low_stock", "in_stock"]
    assert detail.product.images[0].url == "/images/lop-65-keyboard.webp"


def test_default_variant_is_first_in_stock(svc, make_product):
    make_product(variants=(("Black", 1000, 0), ("White", 1000, 3)))

    detail = svc.get_product("lop-65-keyboard")

    white = next(v for v in detail.product.variants if v.name == "White")
    assert detail.default_variant_id == white.id


def test_default_variant_when_all_sold_out(svc, make_product):
    _, variants = make_product(variants=(("Black", 1000, 0), ("White", 1000, 0)))

    detail = svc.get_product("lop-65-keyboard")

    assert detail.default_variant_id == variants[0].id


def test_unknown_product(svc):
    with pytest.raises(ProductNotFoundError):
        svc.get_product("nope")


def test_search_matches_name_and_description(svc, make_product):
    make_product(name="LOP 65 Keyboard")
    make_product(name="Red Switch", category="switch")

    assert [p.name for p in svc.search_products("switch")] == ["Red Switch"]
    assert [p.name for p in svc.search_products("DESCRIPTION")] == ["LOP 65 Keyboard", "Red Switch"]
    assert svc.search_products("   ") == []
