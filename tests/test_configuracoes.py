import pytest

from errors import NotFoundError
from schemas import PerfilIn
from services import ConfiguracaoService, Contexto, PerfilService


def test_list_defaults(session, ctx):
    configs = ConfiguracaoService(session, ctx).list_all()
    assert {c["chave"]: c["valor"] for c in configs} == {
        "entradas_auto_recebido": False,
        "mostrar_concluidos_discretos": True,
        "saidas_auto_pago": False,
    }


def test_update_existing_key(session, ctx):
    service = ConfiguracaoService(session, ctx)
    updated = service.update("saidas_auto_pago", True)
    assert updated["valor"] is True
    assert service.get("saidas_auto_pago")["valor"] is True


def test_update_unknown_key_is_not_found(session, ctx):
    service = ConfiguracaoService(session, ctx)
    with pytest.raises(NotFoundError, match="Configuração não encontrada"):
        service.update("nao_existe", True)
    with pytest.raises(NotFoundError):
        service.get("nao_existe")


def test_configs_are_per_perfil(session, ctx):
    outro = PerfilService(session, ctx.user_id).create(PerfilIn(nome="Empresa"))
    ConfiguracaoService(session, ctx).update("saidas_auto_pago", True)

    outro_ctx = Contexto(user_id=ctx.user_id, perfil_id=outro["id"])
    assert ConfiguracaoService(session, outro_ctx).get("saidas_auto_pago")["valor"] is False
