from dataclasses import asdict, dataclass
from typing import Optional

from models import TipoLancamento


SALARIO = "default-salario"
INVESTIMENTOS = "default-investimentos"
OUTROS_ENTRADA = "default-outros-entrada"
MORADIA = "default-moradia"
ALIMENTACAO = "default-alimentacao"
TRANSPORTE = "default-transporte"
SAUDE = "default-saude"
LAZER = "default-lazer"
CARTAO = "default-cartao"
OUTROS_SAIDA = "default-outros-saida"


@dataclass(frozen=True)
class DefaultCategoria:
    id: str
    nome: str
    tipo: TipoLancamento
    icone: str
    cor: str
    ordem: int

    def to_dict(self) -> dict:
        data = asdict(self)
        data["tipo"] = self.tipo.value
        data["user_id"] = None
        data["is_default"] = True
        return data


DEFAULT_CATEGORIAS: tuple[DefaultCategoria, ...] = (
    DefaultCategoria(SALARIO, "Salário", TipoLancamento.entrada, "Wallet", "#22C55E", 1),
    DefaultCategoria(
        INVESTIMENTOS, "Investimentos", TipoLancamento.entrada, "TrendingUp", "#8B5CF6", 2
    ),
    DefaultCategoria(
        OUTROS_ENTRADA, "Outros", TipoLancamento.entrada, "CircleDollarSign", "#6B7280", 3
    ),
    DefaultCategoria(MORADIA, "Moradia", TipoLancamento.saida, "Home", "#EF4444", 1),
    DefaultCategoria(
        ALIMENTACAO, "Alimentação", TipoLancamento.saida, "Utensils", "#F97316", 2
    ),
    DefaultCategoria(TRANSPORTE, "Transporte", TipoLancamento.saida, "Car", "#EAB308", 3),
    DefaultCategoria(SAUDE, "Saúde", TipoLancamento.saida, "Heart", "#EC4899", 4),
    DefaultCategoria(LAZER, "Lazer", TipoLancamento.saida, "Gamepad2", "#06B6D4", 5),
    DefaultCategoria(
        CARTAO, "Cartão de Crédito", TipoLancamento.saida, "CreditCard", "#6366F1", 6
    ),
    DefaultCategoria(
        OUTROS_SAIDA, "Outros", TipoLancamento.saida, "CircleDollarSign", "#6B7280", 7
    ),
)

_BY_ID = {categoria.id: categoria for categoria in DEFAULT_CATEGORIAS}


def is_default_id(categoria_id: Optional[str]) -> bool:
    return bool(categoria_id) and categoria_id.startswith("default-")


def get_default(categoria_id: Optional[str]) -> Optional[DefaultCategoria]:
    if not categoria_id:
        return None
    return _BY_ID.get(categoria_id)


def defaults_for(tipo: Optional[TipoLancamento] = None) -> list[DefaultCategoria]:
    if tipo is None:
        return list(DEFAULT_CATEGORIAS)
    return [c for c in DEFAULT_CATEGORIAS if c.tipo == tipo]


def fallback_for(tipo: TipoLancamento) -> str:
    return OUTROS_ENTRADA if tipo == TipoLancamento.entrada else OUTROS_SAIDA
