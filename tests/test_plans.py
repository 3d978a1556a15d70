"""
Tests for the plan catalog and plan-product writes
"""

import json

from fastapi import status

from tenanthub.core.redis import namespaced
from tenanthub.domain.sqlalchemy_models import Plan, PlanProduct

from helpers import bearer, login


class TestListPlans:
    """Test GET /plans and GET /plans/{plan_id}"""

    def test_active_plans_cheapest_first(self, client, seed, db_session):
        seed.basic.price = 10
        seed.pro.price = 50
        db_session.add(Plan(name="Legacy", slug="legacy", price=5, is_active=False))
        db_session.commit()
        token = login(client, "user@acme.io")

        response = client.get("/plans", headers=bearer(token))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["total"] == 2
        assert [p["slug"] for p in data["plans"]] == ["basic", "pro"]
        assert data["plans"][0]["price"] == 10.0
        assert data["plans"][0]["stats"] == {"total_tenants": 1}

    def test_list_requires_session(self, client, seed):
        response = client.get("/plans")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_detail_lists_tenants(self, client, seed):
        token = login(client, "root@hub.io")

        response = client.get(f"/plans/{seed.pro.id}", headers=bearer(token))

        assert response.status_code == status.HTTP_200_OK
        plan = response.json()["plan"]
        assert plan["slug"] == "pro"
        assert [t["slug"] for t in plan["tenants"]] == ["globex"]
        assert plan["stats"] == {"total_tenants": 1}

    def test_detail_unknown(self, client, seed):
        token = login(client, "root@hub.io")

        response = client.get("/plans/missing", headers=bearer(token))

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestCreatePlan:
    """Test POST /plans"""

    def test_create(self, client, seed):
        token = login(client, "root@hub.io")

        response = client.post(
            "/plans",
            json={
                "name": "Enterprise",
                "slug": "enterprise",
                "description": "For large teams",
                "features": ["api_access", "priority_support"],
                "price": 199.9,
                "maxUsers": 500,
            },
            headers=bearer(token),
        )

        assert response.status_code == status.HTTP_201_CREATED
        plan = response.json()["plan"]
        assert plan["slug"] == "enterprise"
        assert plan["features"] == ["api_access", "priority_support"]
        assert plan["max_users"] == 500
        assert plan["is_active"] is True

    def test_defaults(self, client, seed):
        token = login(client, "root@hub.io")

        response = client.post("/plans", json={"name": "Free", "slug": "free"}, headers=bearer(token))

        plan = response.json()["plan"]
        assert plan["max_users"] == 10
        assert plan["price"] is None

    def test_duplicate_slug(self, client, seed):
        token = login(client, "root@hub.io")

        response = client.post("/plans", json={"name": "Basic 2", "slug": "basic"}, headers=bearer(token))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["code"] == "conflict"

    def test_missing_name(self, client, seed):
        token = login(client, "root@hub.io")

        response = client.post("/plans", json={"slug": "nameless"}, headers=bearer(token))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["code"] == "validation_error"

    def test_non_super_admin_gets_401(self, client, seed):
        token = login(client, "admin@acme.io")

        response = client.post("/plans", json={"name": "Mine", "slug": "mine"}, headers=bearer(token))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestUpdatePlan:
    """Test PUT /plans/{plan_id}"""

    def test_partial_update(self, client, seed):
        token = login(client, "root@hub.io")

        response = client.put(
            f"/plans/{seed.basic.id}",
            json={"price": 19.5, "description": "Starter"},
            headers=bearer(token),
        )

        assert response.status_code == status.HTTP_200_OK
        plan = response.json()["plan"]
        assert plan["price"] == 19.5
        assert plan["description"] == "Starter"
        assert plan["name"] == "Basic"

    def test_rename_refreshes_tenant_lookup(self, client, seed, fake_redis):
        token = login(client, "root@hub.io")
        client.get("/tenants/by-slug/acme", headers=bearer(token))

        client.put(f"/plans/{seed.basic.id}", json={"name": "Basic Plus"}, headers=bearer(token))

        assert fake_redis.get(namespaced("tenant:by-slug:acme")) is None
        tenant = client.get("/tenants/by-slug/acme", headers=bearer(token)).json()["tenant"]
        assert tenant["plan"]["name"] == "Basic Plus"
        assert json.loads(fake_redis.get(namespaced("tenant:by-slug:acme")))["plan"]["name"] == "Basic Plus"

    def test_taken_slug(self, client, seed):
        token = login(client, "root@hub.io")

        response = client.put(f"/plans/{seed.basic.id}", json={"slug": "pro"}, headers=bearer(token))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["code"] == "conflict"

    def test_unknown(self, client, seed):
        token = login(client, "root@hub.io")

        response = client.put("/plans/missing", json={"name": "X"}, headers=bearer(token))

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestDeletePlan:
    """Test DELETE /plans/{plan_id}"""

    def test_plan_in_use(self, client, seed, db_session):
        token = login(client, "root@hub.io")

        response = client.delete(f"/plans/{seed.pro.id}", headers=bearer(token))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["meta"] == {"tenants_count": 1}
        db_session.expire_all()
        assert db_session.query(Plan).count() == 2

    def test_unused_plan_and_its_products(self, client, seed, db_session):
        spare = Plan(name="Spare", slug="spare")
        db_session.add(spare)
        db_session.add(PlanProduct(plan=spare, product=seed.edu))
        db_session.commit()
        spare_id = spare.id
        token = login(client, "root@hub.io")

        response = client.delete(f"/plans/{spare_id}", headers=bearer(token))

        assert response.status_code == status.HTTP_200_OK
        db_session.expire_all()
        assert db_session.query(Plan).filter_by(id=spare_id).count() == 0
        assert db_session.query(PlanProduct).filter_by(plan_id=spare_id).count() == 0

    def test_unknown(self, client, seed):
        token = login(client, "root@hub.io")

        response = client.delete("/plans/missing", headers=bearer(token))

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestPlanProductWrites:
    """Test PUT/DELETE /plans/{plan_id}/products/{product_id}"""

    def test_update_config(self, client, seed):
        token = login(client, "root@hub.io")

        response = client.put(
            f"/plans/{seed.basic.id}/products/{seed.edu.id}",
            json={"config": {"seats": 20}},
            headers=bearer(token),
        )

        assert response.status_code == status.HTTP_200_OK
        pp = response.json()["plan_product"]
        assert pp["config"] == {"seats": 20}
        assert pp["is_active"] is True
        products = client.get(f"/tenants/{seed.acme.id}/products", headers=bearer(token)).json()["products"]
        edu = next(p for p in products if p["product"]["slug"] == "educational")
        assert edu["plan_config"] == {"seats": 20}

    def test_deactivate_denies_access(self, client, seed):
        token = login(client, "root@hub.io")

        client.put(
            f"/plans/{seed.basic.id}/products/{seed.edu.id}",
            json={"isActive": False},
            headers=bearer(token),
        )

        check = client.get("/auth/validate-access", params={"product": "educational", "tenant": "acme"})
        assert check.json()["has_access"] is False

    def test_update_missing_association(self, client, seed):
        token = login(client, "root@hub.io")

        response = client.put(
            f"/plans/{seed.basic.id}/products/{seed.tele.id}",
            json={"config": {}},
            headers=bearer(token),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_remove_blocked_while_tenants_use_it(self, client, seed, db_session):
        token = login(client, "root@hub.io")

        response = client.delete(f"/plans/{seed.basic.id}/products/{seed.edu.id}", headers=bearer(token))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["meta"] == {"tenants_count": 1}
        db_session.expire_all()
        assert db_session.query(PlanProduct).filter_by(plan_id=seed.basic.id).count() == 2

    def test_remove_unused(self, client, seed, db_session):
        """acme's ecommerce activation is inactive, so the product can leave the plan"""
        token = login(client, "root@hub.io")

        response = client.delete(f"/plans/{seed.basic.id}/products/{seed.shop.id}", headers=bearer(token))

        assert response.status_code == status.HTTP_200_OK
        db_session.expire_all()
        assert db_session.query(PlanProduct).filter_by(plan_id=seed.basic.id).count() == 1

    def test_remove_missing_association(self, client, seed):
        token = login(client, "root@hub.io")

        response = client.delete(f"/plans/{seed.pro.id}/products/{seed.shop.id}", headers=bearer(token))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_requires_super_admin(self, client, seed):
        token = login(client, "admin@acme.io")

        response = client.delete(f"/plans/{seed.basic.id}/products/{seed.shop.id}", headers=bearer(token))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
