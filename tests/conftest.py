import os

os.environ.setdefault("FINANCEIRO_DATABASE_URL", "sqlite://")
os.environ.setdefault("FINANCEIRO_ENV", "test")
os.environ["FINANCEIRO_SCHEDULER_ENABLED"] = "false"
os.environ.pop("FINANCEIRO_GEMINI_API_KEY", None)

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from database import Base, enable_sqlite_foreign_keys
from schemas import RegisterIn
from services import AuthService, Contexto


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(eng, "connect", enable_sqlite_foreign_keys)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def registered(session):
    """A fresh account: the register response (usuario, token, perfil_padrao)."""
    return AuthService(session).register(
        RegisterIn(nome="Ana Souza", email="ana@example.com", senha="Segredo123")
    )


@pytest.fixture
def ctx(registered):
    return Contexto(
        user_id=registered["usuario"]["id"],
        perfil_id=registered["perfil_padrao"]["id"],
    )
