from datetime import datetime, timedelta

import pytest

from errors import AuthError, ValidationError
from models import Configuracao, Sessao
from schemas import LoginIn, RegisterIn
from services import AuthService


def test_register_creates_default_perfil_and_configs(session, registered):
    assert registered["usuario"]["email"] == "ana@example.com"
    assert len(registered["token"]) == 64
    assert registered["perfil_padrao"]["is_perfil_padrao"] is True
    assert registered["perfil_padrao"]["nome"] == "Ana Souza"

    chaves = {c.chave: c.valor for c in session.query(Configuracao).all()}
    assert chaves == {
        "entradas_auto_recebido": False,
        "saidas_auto_pago": False,
        "mostrar_concluidos_discretos": True,
    }


def test_register_duplicate_email(session, registered):
    with pytest.raises(ValidationError, match="Este email já está cadastrado"):
        AuthService(session).register(
            RegisterIn(nome="Outra Ana", email="ANA@example.com", senha="Segredo123")
        )


def test_login_and_validate_token(session, registered):
    service = AuthService(session)
    result = service.login(LoginIn(email="ana@example.com", senha="Segredo123"))

    assert result["token"] != registered["token"]
    assert result["perfil_padrao"]["id"] == registered["perfil_padrao"]["id"]
    assert service.validate_token(result["token"]).email == "ana@example.com"


def test_login_wrong_password(session, registered):
    with pytest.raises(AuthError, match="Email ou senha incorretos"):
        AuthService(session).login(LoginIn(email="ana@example.com", senha="errada"))
    with pytest.raises(AuthError):
        AuthService(session).login(LoginIn(email="bob@example.com", senha="Segredo123"))


def test_logout_and_purge_expired(session, registered):
    service = AuthService(session)
    service.logout(registered["token"])
    assert service.validate_token(registered["token"]) is None

    token = service.login(LoginIn(email="ana@example.com", senha="Segredo123"))["token"]
    sessao = session.query(Sessao).filter_by(token=token).one()
    sessao.expires_at = datetime.utcnow() - timedelta(minutes=1)
    session.commit()

    assert service.validate_token(token) is None
    assert service.purge_expired_sessions() == 1
    assert session.query(Sessao).count() == 0


def test_password_hash_roundtrip():
    hashed = AuthService.hash_password("Segredo123")
    assert hashed != "Segredo123"
    assert AuthService.check_password("Segredo123", hashed)
    assert not AuthService.check_password("segredo123", hashed)
    assert not AuthService.check_password("Segredo123", "not-a-hash")


def test_register_password_rules():
    with pytest.raises(ValueError, match="letra maiúscula"):
        RegisterIn(nome="Ana", email="ana@example.com", senha="segredo123")
    with pytest.raises(ValueError, match="Email inválido"):
        RegisterIn(nome="Ana", email="ana", senha="Segredo123")
