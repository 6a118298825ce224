import pytest

from errors import NotFoundError, ValidationError
from models import Configuracao, Lancamento
from schemas import LancamentoIn, PerfilIn, PerfilUpdate
from services import MAX_PERFIS_ATIVOS, Contexto, LancamentoService, PerfilService


def test_create_perfil_gets_default_configs(session, ctx):
    service = PerfilService(session, ctx.user_id)
    perfil = service.create(PerfilIn(nome="Empresa", cor="#112233"))

    assert perfil["is_perfil_padrao"] is False
    assert perfil["cor"] == "#112233"
    configs = session.query(Configuracao).filter_by(perfil_id=perfil["id"]).count()
    assert configs == 3

    nomes = [p["nome"] for p in service.list_active()]
    assert nomes == ["Ana Souza", "Empresa"]


def test_perfil_names_are_unique_among_active(session, ctx):
    service = PerfilService(session, ctx.user_id)
    service.create(PerfilIn(nome="Casa"))
    with pytest.raises(ValidationError, match="Já existe um perfil com este nome"):
        service.create(PerfilIn(nome="casa"))


def test_active_perfil_limit(session, ctx):
    service = PerfilService(session, ctx.user_id)
    for index in range(MAX_PERFIS_ATIVOS - 1):
        service.create(PerfilIn(nome=f"Perfil {index}"))
    with pytest.raises(ValidationError, match="Limite máximo"):
        service.create(PerfilIn(nome="Excedente"))


def test_default_perfil_cannot_be_archived_or_deleted(session, ctx):
    service = PerfilService(session, ctx.user_id)
    with pytest.raises(ValidationError):
        service.archive(ctx.perfil_id)
    with pytest.raises(ValidationError):
        service.update(ctx.perfil_id, PerfilUpdate(ativo=False))
    with pytest.raises(ValidationError):
        service.delete(ctx.perfil_id)


def test_archive_reactivate_and_access(session, ctx):
    service = PerfilService(session, ctx.user_id)
    perfil_id = service.create(PerfilIn(nome="Viagem"))["id"]

    assert service.archive(perfil_id)["ativo"] is False
    assert [p["nome"] for p in service.list_active()] == ["Ana Souza"]
    assert len(service.list_all()) == 2
    with pytest.raises(ValidationError, match="arquivado"):
        service.validate_access(perfil_id)

    assert service.reactivate(perfil_id)["ativo"] is True
    assert service.validate_access(perfil_id).id == perfil_id


def test_perfil_of_other_user_is_not_found(session, ctx):
    with pytest.raises(NotFoundError, match="Perfil não encontrado"):
        PerfilService(session, "outro-usuario").validate_access(ctx.perfil_id)


def test_delete_perfil_removes_its_entries(session, ctx):
    service = PerfilService(session, ctx.user_id)
    perfil_id = service.create(PerfilIn(nome="Temporário"))["id"]
    LancamentoService(session, Contexto(ctx.user_id, perfil_id)).create(
        LancamentoIn.model_validate(
            {"tipo": "saida", "nome": "Hotel", "valor": 300, "mes": "2025-07"}
        )
    )

    service.delete(perfil_id)

    assert session.query(Lancamento).count() == 0
    with pytest.raises(NotFoundError):
        service.get(perfil_id)
