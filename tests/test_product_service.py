# Overview: Pytest coverage for product catalog and UOM rules.

from decimal import Decimal

import pytest

from posledger.services import product_service
from posledger.services.errors import NotFoundError, UnknownUOMError, ValidationError


def _create(**overrides):
    payload = dict(
        name="Orange Juice 1L",
        base_uom="Carton",
        base_price=Decimal("85.00"),
        shelf_life_days=30,
    )
    payload.update(overrides)
    return product_service.create_product(**payload)


class TestCreateProduct:

    def test_create_with_alternate_uom(self, db_session):
        product = _create(alternate_uoms=[
            {"name": "Box", "conversion_factor": 12, "selling_price": "960.00"},
        ])
        assert product.status == "active"
        assert [u.name for u in product.alternate_uoms] == ["Box"]
        assert product.alternate_uoms[0].conversion_factor == 12

    @pytest.mark.parametrize("overrides", [
        {"name": "  "},
        {"base_uom": ""},
        {"base_price": 0},
        {"shelf_life_days": 0},
        {"min_stock_level": -1},
    ])
    def test_rejects_invalid_fields(self, db_session, overrides):
        with pytest.raises(ValidationError):
            _create(**overrides)

    def test_alternate_uom_cannot_match_base(self, db_session):
        with pytest.raises(ValidationError):
            _create(alternate_uoms=[{"name": "carton", "conversion_factor": 1, "selling_price": 85}])

    def test_alternate_uoms_unique(self, db_session):
        with pytest.raises(ValidationError):
            _create(alternate_uoms=[
                {"name": "Box", "conversion_factor": 12, "selling_price": 960},
                {"name": "BOX", "conversion_factor": 6, "selling_price": 480},
            ])

    def test_non_positive_conversion_factor(self, db_session):
        with pytest.raises(ValidationError):
            _create(alternate_uoms=[{"name": "Box", "conversion_factor": 0, "selling_price": 960}])


class TestLookups:

    def test_unit_price_for(self, db_session, product):
        assert product_service.unit_price_for(product, "bottle") == Decimal("25.00")
        assert product_service.unit_price_for(product, "CASE") == Decimal("550.00")
        with pytest.raises(UnknownUOMError):
            product_service.unit_price_for(product, "Pallet")

    def test_get_missing_product(self, db_session):
        with pytest.raises(NotFoundError):
            product_service.get_product(987654)

    def test_list_products_by_status(self, db_session, product):
        _create()
        names = [p.name for p in product_service.list_products(status="active")]
        assert names == ["Cola 330ml", "Orange Juice 1L"]
