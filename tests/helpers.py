"""
Shared helpers for building test data and calling the API
"""

from tenanthub.core.security import hash_password
from tenanthub.domain.sqlalchemy_models import User, UserRole

PASSWORD = "TestPassword123!"

# bcrypt is slow on purpose; hash the shared fixture password once.
PASSWORD_HASH = hash_password(PASSWORD)


def make_user(db, email, role=UserRole.USER, tenant=None, is_active=True, name=None):
    user = User(
        email=email,
        name=name or email.split("@")[0],
        password_hash=PASSWORD_HASH,
        role=role,
        tenant=tenant,
        is_active=is_active,
    )
    db.add(user)
    return user


def login(client, email, password=PASSWORD, **extra):
    """Log in and return the raw session token"""
    response = client.post("/auth/login", json={"email": email, "password": password, **extra})
    assert response.status_code == 200, response.text
    return response.json()["token"]


def bearer(token):
    return {"Authorization": f"Bearer {token}"}
