# tenanthub/repositories/session_repo.py
from datetime import datetime
from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session, joinedload
from tenanthub.domain.sqlalchemy_models import SessionToken, User


def create(db: Session, user_id: str, token_hash: str, expires_at: datetime) -> SessionToken:
    row = SessionToken(user_id=user_id, token_hash=token_hash, expires_at=expires_at)
    db.add(row)
    db.flush()
    return row


def get_with_user(db: Session, token_hash: str) -> SessionToken | None:
    stmt = (
        select(SessionToken)
        .options(joinedload(SessionToken.user).joinedload(User.tenant))
        .where(SessionToken.token_hash == token_hash)
    )
    return db.scalars(stmt).first()


def mark_revoked(db: Session, token_hash: str, when: datetime) -> int:
    res = db.execute(
        update(SessionToken)
        .where(SessionToken.token_hash == token_hash, SessionToken.revoked_at.is_(None))
        .values(revoked_at=when)
    )
    return res.rowcount


def delete_expired(db: Session, now: datetime) -> int:
    res = db.execute(delete(SessionToken).where(SessionToken.expires_at < now))
    return res.rowcount
