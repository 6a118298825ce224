import pytest

import default_categories as dc
from errors import NotFoundError, ValidationError
from models import TipoLancamento
from schemas import CategoriaIn, CategoriaUpdate, LancamentoIn
from services import CategoriaService, LancamentoService


def test_list_includes_builtin_categories(session, ctx):
    service = CategoriaService(session, ctx.user_id)
    todas = service.list_all()
    assert len(todas) == len(dc.DEFAULT_CATEGORIAS)
    assert all(c["is_default"] for c in todas)

    entradas = service.list_all(TipoLancamento.entrada)
    assert [c["id"] for c in entradas] == [dc.SALARIO, dc.INVESTIMENTOS, dc.OUTROS_ENTRADA]


def test_create_update_and_get_user_category(session, ctx):
    service = CategoriaService(session, ctx.user_id)
    created = service.create(
        CategoriaIn(nome="Pets", tipo=TipoLancamento.saida, icone="Dog", cor="#AA5500")
    )
    assert created["is_default"] is False
    assert created["user_id"] == ctx.user_id

    updated = service.update(created["id"], CategoriaUpdate(nome="Pet shop"))
    assert updated["nome"] == "Pet shop"
    assert updated["cor"] == "#AA5500"
    assert service.get(created["id"])["nome"] == "Pet shop"
    assert len(service.list_all(TipoLancamento.saida)) == 8


def test_builtin_categories_are_read_only(session, ctx):
    service = CategoriaService(session, ctx.user_id)
    assert service.get(dc.LAZER)["nome"] == "Lazer"
    with pytest.raises(ValidationError, match="não podem ser editadas"):
        service.update(dc.LAZER, CategoriaUpdate(nome="Diversão"))
    with pytest.raises(ValidationError, match="não podem ser excluídas"):
        service.delete(dc.LAZER)


def test_unknown_category(session, ctx):
    with pytest.raises(NotFoundError, match="Categoria não encontrada"):
        CategoriaService(session, ctx.user_id).get("nao-existe")


def test_category_of_other_user_is_hidden(session, ctx):
    created = CategoriaService(session, ctx.user_id).create(
        CategoriaIn(nome="Pets", tipo=TipoLancamento.saida)
    )
    with pytest.raises(NotFoundError):
        CategoriaService(session, "outro-usuario").get(created["id"])


def test_delete_clears_reference_on_entries(session, ctx):
    categorias = CategoriaService(session, ctx.user_id)
    pets = categorias.create(CategoriaIn(nome="Pets", tipo=TipoLancamento.saida))
    lancamentos = LancamentoService(session, ctx)
    lancamentos.create(
        LancamentoIn.model_validate(
            {
                "tipo": "saida",
                "nome": "Ração",
                "valor": 120,
                "mes": "2025-07",
                "categoria_id": pets["id"],
            }
        )
    )

    categorias.delete(pets["id"])
    session.expire_all()

    saida = lancamentos.list_month("2025-07")["saidas"][0]
    assert saida["categoria_id"] is None
    assert saida["categoria"] is None


def test_invalid_color_is_rejected():
    with pytest.raises(ValueError, match="Cor inválida"):
        CategoriaIn(nome="Pets", tipo=TipoLancamento.saida, cor="vermelho")
