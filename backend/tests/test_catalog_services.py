"""
Catalog, branch and access-scope tests.
"""

from decimal import Decimal

import pytest

from smart_inventory.errors import ConflictError, NotFoundError, ValidationError
from smart_inventory.services import access_service, branch_service, products_service, user_service


class TestProducts:

    def test_create_product(self, db_session):
        product = products_service.create_product({
            "name": "  Lamp ",
            "sku": "LMP-1",
            "sale_price": "19.999",
            "tax_percentage": 15,
        })

        assert product.id is not None
        assert product.name == "Lamp"
        assert product.sale_price == Decimal("20.00")
        assert product.tax_percentage == Decimal("15.00")
        assert product.is_active is True

    def test_duplicate_sku_conflicts(self, db_session, product):
        with pytest.raises(ConflictError):
            products_service.create_product({"name": "Other", "sku": product.sku, "sale_price": "1"})

    def test_missing_and_unknown_fields(self, db_session):
        with pytest.raises(ValidationError):
            products_service.create_product({"name": "No price", "sku": "X-1"})
        with pytest.raises(ValidationError):
            products_service.create_product({"name": "A", "sku": "X-2", "sale_price": "1", "colour": "red"})

    @pytest.mark.parametrize("patch", [
        {"tax_percentage": "-1"},
        {"tax_percentage": "100.01"},
        {"sale_price": "-0.01"},
        {"cost_price": "abc"},
        {"sku": "   "},
        {"is_active": "yes"},
    ])
    def test_update_rejects_bad_values(self, db_session, product, patch):
        with pytest.raises(ValidationError):
            products_service.update_product(product.id, patch)

    def test_losing_sku_race_is_a_conflict(self, db_session, product, monkeypatch):
        # Both writers passed the lookup; the unique constraint decides
        monkeypatch.setattr(products_service, "_ensure_sku_free", lambda sku, **kwargs: None)

        with pytest.raises(ConflictError):
            products_service.create_product({"name": "Twin", "sku": product.sku, "sale_price": "1"})

        assert [p.id for p in products_service.list_products()] == [product.id]

    def test_status_must_be_boolean(self, db_session, product):
        with pytest.raises(ValidationError):
            products_service.set_product_active(product.id, "no")

        assert products_service.get_product(product.id).is_active is True

    def test_update_and_deactivate(self, db_session, product, make_product):
        other = make_product()

        updated = products_service.update_product(product.id, {"sale_price": "25", "sku": "WID-002"})
        assert updated.sale_price == Decimal("25.00")
        assert updated.sku == "WID-002"

        with pytest.raises(ConflictError):
            products_service.update_product(product.id, {"sku": other.sku})

        assert products_service.set_product_active(product.id, False).is_active is False
        assert products_service.get_product(product.id).to_dict()["status"] == "inactive"

    def test_lookup_and_search(self, db_session, make_product):
        make_product(name="Blue Mug", sku="MUG-B")
        make_product(name="Red Mug", sku="MUG-R")
        make_product(name="Plate", sku="PLT-1")

        assert [p.name for p in products_service.list_products("mug")] == ["Blue Mug", "Red Mug"]
        assert len(products_service.list_products()) == 3
        with pytest.raises(NotFoundError):
            products_service.get_product(99999)
        with pytest.raises(NotFoundError):
            products_service.update_product(99999, {"name": "Ghost"})


class TestBranchesAndUsers:

    def test_create_branch(self, db_session, manager):
        branch = branch_service.create_branch(" Uptown ", "5 Hill Road", manager_id=manager.id)

        assert branch.name == "Uptown"
        assert branch.manager.id == manager.id
        assert branch_service.get_branch(branch.id).address == "5 Hill Road"

    def test_branch_name_rules(self, db_session, branch_a):
        with pytest.raises(ValidationError):
            branch_service.create_branch("  ")
        with pytest.raises(ConflictError):
            branch_service.create_branch(branch_a.name)
        with pytest.raises(NotFoundError):
            branch_service.create_branch("Nowhere", manager_id=99999)

    def test_assign_manager(self, db_session, branch_b, manager):
        branch = branch_service.assign_manager(branch_b.id, manager.id)
        assert branch.manager_id == manager.id

        assert branch_service.assign_manager(branch_b.id, None).manager_id is None
        with pytest.raises(NotFoundError):
            branch_service.assign_manager(99999, manager.id)

    def test_default_roles_idempotent(self, db_session, roles):
        again = user_service.create_default_roles()
        assert sorted(r.id for r in again) == sorted(r.id for r in roles.values())

    def test_create_user(self, db_session, roles, branch_a):
        user = user_service.create_user("Sam", " Sam@Example.com ", "sales_user", branch_id=branch_a.id)

        assert user.email == "sam@example.com"
        assert user.role_name == "sales_user"
        assert user_service.get_active_user(user.id).id == user.id

        with pytest.raises(ConflictError):
            user_service.create_user("Sam 2", "sam@example.com", "sales_user")
        with pytest.raises(NotFoundError):
            user_service.create_user("X", "x@example.com", "overlord")

    def test_inactive_user_is_not_active(self, db_session, seller):
        seller.is_active = False
        db_session.commit()

        assert user_service.get_active_user(seller.id) is None
        assert user_service.get_active_user(99999) is None


class TestBranchScope:

    def test_scope_by_role(self, db_session, admin, manager, seller, branch_a, branch_b):
        assert access_service.branch_scope_for(admin) == [branch_a.id, branch_b.id]
        assert access_service.branch_scope_for(manager) == [branch_a.id]
        assert access_service.branch_scope_for(seller) == [branch_b.id]

        assert access_service.can_access_branch(manager, branch_a.id)
        assert not access_service.can_access_branch(manager, branch_b.id)
        assert not access_service.can_access_branch(seller, branch_a.id)

    def test_unassigned_sales_user_sees_nothing(self, db_session, roles):
        user = user_service.create_user("Floater", "floater@example.com", "sales_user")
        assert access_service.branch_scope_for(user) == []
