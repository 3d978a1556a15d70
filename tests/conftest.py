"""
Pytest configuration and fixtures
Shared test setup for all test modules
"""

import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("PRODUCT_LOGIN_URLS", '{"educational": "http://edu.example.com/login"}')

from types import SimpleNamespace

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tenanthub.main import app
from tenanthub.core import redis as redis_client
from tenanthub.core.db import get_db
from tenanthub.domain.sqlalchemy_models import (
    Base, Plan, PlanProduct, Product, Tenant, TenantProduct, TenantStatus, UserRole,
)

from helpers import make_user

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = sessionmaker(bind=test_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    """Redis double for the tenant lookup cache"""
    server = fakeredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr(redis_client, "rds", server)
    yield server
    server.flushall()

@pytest.fixture(scope="function")
def db_session():
    """Create clean database for each test"""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=test_engine)

@pytest.fixture(scope="function")
def client(db_session):
    """Create test client with database override"""

    def override_get_db():
        session = TestSessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture
def seed(db_session):
    """
    Two plans, three products, two tenants and their users.

    basic plan  -> educational (config A), ecommerce (config B)
    pro plan    -> educational, telemed
    acme (basic): educational active w/ override, ecommerce inactive, telemed orphan row
    globex (pro): nothing activated
    """
    db = db_session
    basic = Plan(name="Basic", slug="basic", max_users=10)
    pro = Plan(name="Pro", slug="pro", max_users=50)
    edu = Product(name="Educational", slug="educational", base_url="http://edu.example.com/sso")
    shop = Product(name="E-commerce", slug="ecommerce")
    tele = Product(name="Telemedicine", slug="telemed")
    db.add_all([basic, pro, edu, shop, tele])
    db.flush()

    db.add_all([
        PlanProduct(plan=basic, product=edu, config={"seats": 10}),
        PlanProduct(plan=basic, product=shop, config={"store": "default"}),
        PlanProduct(plan=pro, product=edu, config={"seats": 100}),
        PlanProduct(plan=pro, product=tele, config={"rooms": 5}),
    ])

    acme = Tenant(name="Acme", slug="acme", plan=basic, status=TenantStatus.ACTIVE)
    globex = Tenant(name="Globex", slug="globex", plan=pro, status=TenantStatus.ACTIVE)
    db.add_all([acme, globex])
    db.flush()

    db.add_all([
        TenantProduct(tenant=acme, product=edu, is_active=True, config={"seats": 25}),
        TenantProduct(tenant=acme, product=shop, is_active=False, config={"store": "acme"}),
        TenantProduct(tenant=acme, product=tele, is_active=True, config={"rooms": 1}),
    ])

    root = make_user(db, "root@hub.io", role=UserRole.SUPER_ADMIN, name="Root")
    acme_admin = make_user(db, "admin@acme.io", role=UserRole.ADMIN, tenant=acme)
    acme_user = make_user(db, "user@acme.io", tenant=acme)
    globex_user = make_user(db, "user@globex.io", tenant=globex)
    db.commit()

    return SimpleNamespace(
        basic=basic, pro=pro, edu=edu, shop=shop, tele=tele,
        acme=acme, globex=globex,
        root=root, acme_admin=acme_admin, acme_user=acme_user, globex_user=globex_user,
    )

