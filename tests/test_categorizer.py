import pytest

import default_categories as dc
from categorizer import (
    categorize,
    correct_tipo,
    guess_tipo,
    is_known_service,
    validate_category,
)
from models import TipoLancamento


@pytest.mark.parametrize(
    "nome, expected",
    [
        ("Netflix", dc.LAZER),
        ("Gasolina posto", dc.TRANSPORTE),
        ("Conta de gás", dc.MORADIA),
        ("Fatura Nubank", dc.CARTAO),
        ("Farmácia", dc.SAUDE),
        ("iFood", dc.ALIMENTACAO),
        ("Presente tia", dc.OUTROS_SAIDA),
    ],
)
def test_categorize_expenses(nome, expected):
    assert categorize(nome, TipoLancamento.saida) == expected


def test_categorize_income():
    assert categorize("Salário", TipoLancamento.entrada) == dc.SALARIO
    assert categorize("Dividendos FII", TipoLancamento.entrada) == dc.INVESTIMENTOS
    assert categorize("Presente", TipoLancamento.entrada) == dc.OUTROS_ENTRADA


def test_short_keywords_match_whole_words_only():
    # "bb" and "xp" are banks, but not inside other words
    assert categorize("Bbq do sábado", TipoLancamento.saida) == dc.OUTROS_SAIDA
    assert categorize("Fatura BB", TipoLancamento.saida) == dc.CARTAO


def test_validate_category_checks_tipo():
    assert validate_category(dc.LAZER, TipoLancamento.saida) == dc.LAZER
    assert validate_category(dc.SALARIO, TipoLancamento.saida) is None
    assert validate_category("default-inexistente", TipoLancamento.saida) is None
    assert validate_category(None, TipoLancamento.entrada) is None


@pytest.mark.parametrize(
    "texto, expected",
    [
        ("Rafael 400.00", TipoLancamento.entrada),
        ("netflix 55", TipoLancamento.saida),
        ("recebi 300 do joão", TipoLancamento.entrada),
        ("paguei 120 de luz", TipoLancamento.saida),
        ("freela 800", TipoLancamento.entrada),
    ],
)
def test_guess_tipo(texto, expected):
    assert guess_tipo(texto) == expected


def test_correct_tipo_only_on_contradiction():
    assert (
        correct_tipo(TipoLancamento.saida, "freela 5000", "Freela")
        == TipoLancamento.entrada
    )
    assert (
        correct_tipo(TipoLancamento.entrada, "gastei 50 em pizza", "Pizza")
        == TipoLancamento.saida
    )
    assert (
        correct_tipo(TipoLancamento.entrada, "Loumar 3750", "Loumar")
        == TipoLancamento.entrada
    )


def test_known_services():
    assert is_known_service("Netflix")
    assert is_known_service("Conta de água")
    assert not is_known_service("Loumar")
