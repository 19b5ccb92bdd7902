# medreview/api/deps.py
from __future__ import annotations

from functools import lru_cache
from typing import Iterator, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from medreview.auth import IdentityProvider
from medreview.errors import UnauthorizedError
from medreview.llm import LLMClient, OpenAILLMClient
from medreview.models import Doctor
from medreview.services import db_session, doctor_profiles


def get_db() -> Iterator[Session]:
    with db_session() as session:
        yield session


@lru_cache(maxsize=1)
def get_llm_client() -> LLMClient:
    # Raises ConfigurationError (and caches nothing) while OPENAI_API_KEY is unset.
    return OpenAILLMClient()


@lru_cache(maxsize=1)
def get_identity_provider() -> IdentityProvider:
    return IdentityProvider()


def get_current_user_id(
    authorization: Optional[str] = Header(None),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise UnauthorizedError()
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise UnauthorizedError()
    return identity.verify_session_token(token)


def get_current_doctor(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Doctor:
    doctor = doctor_profiles(db).get(user_id)
    if doctor is None:
        raise UnauthorizedError("Doctor profile required")
    return doctor
