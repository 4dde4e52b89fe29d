"""
Shared router dependencies.

Authentication is terminated upstream (API gateway / auth provider); the
gateway forwards the caller's stable id in the X-User-Id header. The first
request from an unknown id provisions its users row.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mindwell.core.errors import AuthenticationError
from mindwell.db.base import get_db
from mindwell.models.user import User

logger = logging.getLogger(__name__)

EXTERNAL_ID_MAX_LENGTH = 128


def get_or_create_user(db: Session, external_id: str) -> User:
    user = db.query(User).filter(User.external_id == external_id).first()
    if user is not None:
        return user

    user = User(external_id=external_id)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent first request for the same id
        db.rollback()
        return db.query(User).filter(User.external_id == external_id).one()
    db.refresh(user)
    logger.info("Provisioned user %s", user.id)
    return user


def get_current_user(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> User:
    external_id = (x_user_id or "").strip()
    if not external_id or len(external_id) > EXTERNAL_ID_MAX_LENGTH:
        raise AuthenticationError()
    return get_or_create_user(db, external_id)
