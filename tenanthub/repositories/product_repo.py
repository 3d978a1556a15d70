# tenanthub/repositories/product_repo.py
from sqlalchemy import select, update
from sqlalchemy.orm import Session, joinedload
from tenanthub.domain.sqlalchemy_models import Product, ProductToken, Tenant, TenantProduct, User


def list_active(db: Session) -> list[Product]:
    return list(db.scalars(select(Product).where(Product.is_active.is_(True)).order_by(Product.name)).all())


def get(db: Session, product_id: str) -> Product | None:
    return db.get(Product, product_id)


def get_by_slug(db: Session, slug: str) -> Product | None:
    return db.scalars(select(Product).where(Product.slug == slug)).first()


def get_tenant_product(db: Session, tenant_id: str, product_id: str) -> TenantProduct | None:
    return db.scalars(
        select(TenantProduct).where(
            TenantProduct.tenant_id == tenant_id,
            TenantProduct.product_id == product_id,
        )
    ).first()


def bump_access(db: Session, tenant_id: str, product_id: str, when) -> None:
    db.execute(
        update(TenantProduct)
        .where(TenantProduct.tenant_id == tenant_id, TenantProduct.product_id == product_id)
        .values(last_accessed=when, access_count=TenantProduct.access_count + 1)
    )


def revoke_tenant_product_tokens(db: Session, tenant_id: str, product_id: str) -> int:
    user_ids = select(User.id).where(User.tenant_id == tenant_id)
    res = db.execute(
        update(ProductToken)
        .where(
            ProductToken.product_id == product_id,
            ProductToken.user_id.in_(user_ids),
            ProductToken.is_revoked.is_(False),
        )
        .values(is_revoked=True)
    )
    return res.rowcount


def list_tenant_products(db: Session, product_id: str) -> list[TenantProduct]:
    stmt = (
        select(TenantProduct)
        .options(joinedload(TenantProduct.tenant).joinedload(Tenant.plan))
        .where(TenantProduct.product_id == product_id)
        .order_by(TenantProduct.created_at.desc())
    )
    return list(db.scalars(stmt).all())
