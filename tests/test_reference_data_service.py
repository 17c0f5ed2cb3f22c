# Overview: Pytest coverage for reference data maintenance.

import pytest

from posledger.services import reference_data_service as refdata
from posledger.services.errors import ConflictError, NotFoundError, ValidationError
from posledger.services.reference_data_service import ReferenceKind


class TestCreate:

    def test_create_with_defaults(self, db_session):
        item = refdata.create_item(ReferenceKind.PRODUCT_CATEGORIES, {"name": " Snacks ", "code": "SNACK"})
        assert item.name == "Snacks"
        assert item.status == "active"
        assert item.display_order == 0
        assert item.is_system_defined is False

    def test_kind_accepts_plain_string(self, db_session):
        item = refdata.create_item("units-of-measure", {"name": "Dozen", "code": "DZ"})
        assert refdata.get_item(ReferenceKind.UNITS_OF_MEASURE, item.id).code == "DZ"

    def test_unknown_kind(self, db_session):
        with pytest.raises(ValidationError):
            refdata.list_items("warehouses")

    @pytest.mark.parametrize("data,field", [
        ({"code": "X"}, "name"),
        ({"name": "Snacks"}, "code"),
        ({"name": "Snacks", "code": "lower"}, "code"),
        ({"name": "Snacks", "code": "SN", "status": "archived"}, "status"),
        ({"name": "Snacks", "code": "SN", "display_order": -1}, "display_order"),
        ({"name": "Snacks", "code": "SN", "color": "red"}, "color"),
    ])
    def test_validation_errors(self, db_session, data, field):
        with pytest.raises(ValidationError) as excinfo:
            refdata.create_item(ReferenceKind.EXPENSE_CATEGORIES, data)
        assert field in excinfo.value.details

    def test_duplicate_name_and_code(self, db_session):
        refdata.create_item(ReferenceKind.PRODUCT_CATEGORIES, {"name": "Snacks", "code": "SNACK"})

        with pytest.raises(ConflictError, match="name"):
            refdata.create_item(ReferenceKind.PRODUCT_CATEGORIES, {"name": "Snacks", "code": "OTHER"})
        with pytest.raises(ConflictError, match="code"):
            refdata.create_item(ReferenceKind.PRODUCT_CATEGORIES, {"name": "Chips", "code": "SNACK"})

    def test_same_code_allowed_across_kinds(self, db_session):
        refdata.create_item(ReferenceKind.PRODUCT_CATEGORIES, {"name": "Other", "code": "OTHER"})
        item = refdata.create_item(ReferenceKind.EXPENSE_CATEGORIES, {"name": "Other", "code": "OTHER"})
        assert item.id is not None


class TestPaymentMethods:

    def test_defaults_to_all_contexts(self, db_session):
        item = refdata.create_item(ReferenceKind.PAYMENT_METHODS, {"name": "Cash", "code": "CASH"})
        assert item.applicable_to == ["expense", "pos", "ar", "ap"]

    def test_invalid_context(self, db_session):
        with pytest.raises(ValidationError):
            refdata.create_item(
                ReferenceKind.PAYMENT_METHODS,
                {"name": "Voucher", "code": "VCH", "applicable_to": ["pos", "payroll"]},
            )

    def test_empty_contexts(self, db_session):
        with pytest.raises(ValidationError):
            refdata.create_item(ReferenceKind.PAYMENT_METHODS, {"name": "Voucher", "code": "VCH", "applicable_to": []})


class TestVendors:

    def test_vendor_has_no_code(self, db_session):
        vendor = refdata.create_item(
            ReferenceKind.EXPENSE_VENDORS,
            {"name": "City Power Company", "phone": "(02) 1234-5678", "email": "billing@citypower.example"},
        )
        assert vendor.phone == "(02) 1234-5678"

        with pytest.raises(ValidationError):
            refdata.create_item(ReferenceKind.EXPENSE_VENDORS, {"name": "Water Co", "code": "WTR"})

    def test_invalid_email(self, db_session):
        with pytest.raises(ValidationError) as excinfo:
            refdata.create_item(ReferenceKind.EXPENSE_VENDORS, {"name": "Water Co", "email": "not-an-email"})
        assert "email" in excinfo.value.details

    def test_search_by_name(self, db_session):
        refdata.create_item(ReferenceKind.EXPENSE_VENDORS, {"name": "City Power Company"})
        refdata.create_item(ReferenceKind.EXPENSE_VENDORS, {"name": "Water Co"})
        assert [v.name for v in refdata.list_items(ReferenceKind.EXPENSE_VENDORS, search="power")] == [
            "City Power Company",
        ]


class TestMaintenance:

    def test_update(self, db_session):
        item = refdata.create_item(ReferenceKind.UNITS_OF_MEASURE, {"name": "Piece", "code": "PC"})
        updated = refdata.update_item(ReferenceKind.UNITS_OF_MEASURE, item.id, {"description": "Single unit"})
        assert updated.description == "Single unit"
        assert updated.code == "PC"

    def test_update_to_taken_code(self, db_session):
        refdata.create_item(ReferenceKind.UNITS_OF_MEASURE, {"name": "Piece", "code": "PC"})
        box = refdata.create_item(ReferenceKind.UNITS_OF_MEASURE, {"name": "Box", "code": "BOX"})
        with pytest.raises(ConflictError):
            refdata.update_item(ReferenceKind.UNITS_OF_MEASURE, box.id, {"code": "PC"})

    def test_update_keeping_own_name(self, db_session):
        box = refdata.create_item(ReferenceKind.UNITS_OF_MEASURE, {"name": "Box", "code": "BOX"})
        updated = refdata.update_item(ReferenceKind.UNITS_OF_MEASURE, box.id, {"name": "Box", "display_order": 3})
        assert updated.display_order == 3

    def test_system_defined_cannot_be_deleted(self, db_session):
        item = refdata.create_item(
            ReferenceKind.PAYMENT_METHODS, {"name": "Cash", "code": "CASH", "is_system_defined": True},
        )
        with pytest.raises(ValidationError, match="system-defined"):
            refdata.delete_item(ReferenceKind.PAYMENT_METHODS, item.id)
        assert refdata.get_item(ReferenceKind.PAYMENT_METHODS, item.id) is not None

    def test_delete(self, db_session):
        item = refdata.create_item(ReferenceKind.EXPENSE_CATEGORIES, {"name": "Travel", "code": "TRAVEL"})
        refdata.delete_item(ReferenceKind.EXPENSE_CATEGORIES, item.id)
        with pytest.raises(NotFoundError):
            refdata.get_item(ReferenceKind.EXPENSE_CATEGORIES, item.id)

    def test_toggle_status_and_filter(self, db_session):
        item = refdata.create_item(ReferenceKind.PRODUCT_CATEGORIES, {"name": "Dairy", "code": "DAIRY"})
        refdata.create_item(ReferenceKind.PRODUCT_CATEGORIES, {"name": "Bakery", "code": "BAKE"})

        assert refdata.toggle_status(ReferenceKind.PRODUCT_CATEGORIES, item.id).status == "inactive"
        active = refdata.list_items(ReferenceKind.PRODUCT_CATEGORIES, status="active")
        assert [c.name for c in active] == ["Bakery"]

        assert refdata.toggle_status(ReferenceKind.PRODUCT_CATEGORIES, item.id).status == "active"

    def test_display_order(self, db_session):
        a = refdata.create_item(ReferenceKind.PRODUCT_CATEGORIES, {"name": "Alpha", "code": "A"})
        b = refdata.create_item(ReferenceKind.PRODUCT_CATEGORIES, {"name": "Beta", "code": "B"})

        refdata.update_display_order(ReferenceKind.PRODUCT_CATEGORIES, {a.id: 2, b.id: 1})

        names = [c.name for c in refdata.list_items(ReferenceKind.PRODUCT_CATEGORIES)]
        assert names == ["Beta", "Alpha"]

    def test_display_order_rejects_negative(self, db_session):
        a = refdata.create_item(ReferenceKind.PRODUCT_CATEGORIES, {"name": "Alpha", "code": "A"})
        with pytest.raises(ValidationError):
            refdata.update_display_order(ReferenceKind.PRODUCT_CATEGORIES, {a.id: -1})
