# medreview/services/profiles.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Generic, Optional, Type, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from medreview.models import Doctor, Patient

logger = logging.getLogger(__name__)

ProfileT = TypeVar("ProfileT", Patient, Doctor)


class ProfileService(Generic[ProfileT]):
    """
    Upsert-by-identity over one profile table (patients or doctors).
    A user_id owns at most one row; the unique constraint backs that up.
    """

    def __init__(self, session: Session, model: Type[ProfileT]):
        self.session = session
        self.model = model

    def get(self, user_id: str) -> Optional[ProfileT]:
        stmt = select(self.model).where(self.model.user_id == user_id)
        return self.session.scalars(stmt).first()

    def _update(self, user_id: str, fields: Dict[str, Any]) -> ProfileT:
        self.session.execute(
            update(self.model)
            .where(self.model.user_id == user_id)
            .values(**fields, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        self.session.expire_all()
        return self.get(user_id)

    def upsert(self, user_id: str, fields: Dict[str, Any]) -> ProfileT:
        """
        Update the caller's profile if one exists, else insert it.

        Two first-time submissions racing each other: the loser hits the
        unique constraint and falls back to an update.
        """
        fields = {k: v for k, v in fields.items() if k not in ("id", "user_id")}

        if self.get(user_id) is not None:
            return self._update(user_id, fields)

        now = datetime.now(timezone.utc)
        profile = self.model(user_id=user_id, created_at=now, updated_at=now, **fields)
        try:
            self.session.add(profile)
            self.session.flush()
        except IntegrityError:
            # The upsert is the only write in its transaction.
            self.session.rollback()
            logger.info("Concurrent %s insert for %s, updating instead", self.model.__tablename__, user_id)
            return self._update(user_id, fields)

        logger.info("Created %s profile for %s", self.model.__tablename__, user_id)
        return profile


def patient_profiles(session: Session) -> ProfileService[Patient]:
    return ProfileService(session, Patient)


def doctor_profiles(session: Session) -> ProfileService[Doctor]:
    return ProfileService(session, Doctor)
