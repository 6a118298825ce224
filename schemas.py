import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from models import TipoLancamento, ValorModo
from text_parsing import CENTS, MAX_VALOR


MES_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
COR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

EscopoRecorrencia = Literal["apenas_este", "este_e_proximos", "todos"]
CampoRecorrencia = Literal["nome", "valor", "data_prevista", "categoria_id", "concluido"]


def validation_message(exc: ValidationError) -> str:
    """Join pydantic errors into a single readable message.

    Messages raised by our own validators are kept verbatim; built-in
    constraint messages get the offending field as prefix.
    """
    messages: list[str] = []
    for err in exc.errors():
        msg = str(err.get("msg", ""))
        if msg.startswith("Value error, "):
            messages.append(msg[len("Value error, ") :])
            continue
        loc = ".".join(str(part) for part in err.get("loc", ()))
        messages.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(messages)


def check_mes(value: str, message: str = "Formato de mês inválido (YYYY-MM)") -> str:
    if not isinstance(value, str) or not MES_RE.match(value):
        raise ValueError(message)
    return value


def _check_cor(value: Optional[str]) -> Optional[str]:
    if value is not None and not COR_RE.match(value):
        raise ValueError("Cor inválida (use #RRGGBB)")
    return value


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _check_nome(value: str, max_length: int) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError("Nome é obrigatório")
    if len(value) > max_length:
        raise ValueError("Nome muito longo")
    return value


def _positive_valor(value: Optional[Decimal]) -> Optional[Decimal]:
    if value is None:
        return None
    if not value.is_finite() or value <= 0:
        raise ValueError("Valor deve ser maior que zero")
    if value > MAX_VALOR:
        raise ValueError("Valor muito alto")
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


class LancamentoIn(BaseModel):
    tipo: TipoLancamento
    nome: str
    valor: Optional[Decimal] = None
    mes: str
    concluido: bool = False
    data_prevista: Optional[date] = None
    categoria_id: Optional[str] = Field(default=None, max_length=64)
    parent_id: Optional[str] = None
    is_agrupador: bool = False
    valor_modo: ValorModo = ValorModo.soma
    recorrencia_id: Optional[str] = None

    @field_validator("nome")
    @classmethod
    def _nome(cls, value: str) -> str:
        return _check_nome(value, 100)

    @field_validator("mes")
    @classmethod
    def _mes(cls, value: str) -> str:
        return check_mes(value)

    @field_validator(
        "data_prevista", "categoria_id", "parent_id", "recorrencia_id", mode="before"
    )
    @classmethod
    def _blank(cls, value):
        return _blank_to_none(value)

    @model_validator(mode="after")
    def _valor(self) -> "LancamentoIn":
        derived = self.is_agrupador and self.valor_modo == ValorModo.soma
        if self.valor is None or (derived and self.valor == 0):
            if not derived:
                raise ValueError("Valor é obrigatório")
            self.valor = Decimal("0.00")
            return self
        self.valor = _positive_valor(self.valor)
        return self


class LancamentoUpdate(BaseModel):
    nome: Optional[str] = None
    valor: Optional[Decimal] = None
    data_prevista: Optional[date] = None
    concluido: Optional[bool] = None
    categoria_id: Optional[str] = Field(default=None, max_length=64)
    is_agrupador: Optional[bool] = None
    valor_modo: Optional[ValorModo] = None

    @field_validator("nome")
    @classmethod
    def _nome(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_nome(value, 100)

    @field_validator("valor")
    @classmethod
    def _valor(cls, value: Optional[Decimal]) -> Optional[Decimal]:
        return _positive_valor(value)

    @field_validator("data_prevista", "categoria_id", mode="before")
    @classmethod
    def _blank(cls, value):
        return _blank_to_none(value)

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class RecorrenciaIn(BaseModel):
    tipo: Literal["mensal", "parcelas"]
    quantidade: int = Field(..., ge=2, le=60)


class LancamentoRecorrenteIn(BaseModel):
    tipo: TipoLancamento
    nome: str
    valor: Decimal
    mes_inicial: str
    dia_previsto: Optional[int] = Field(default=None, ge=1, le=31)
    concluido: bool = False
    categoria_id: Optional[str] = Field(default=None, max_length=64)
    is_agrupador: bool = False
    valor_modo: ValorModo = ValorModo.soma
    recorrencia: RecorrenciaIn

    @field_validator("nome")
    @classmethod
    def _nome(cls, value: str) -> str:
        return _check_nome(value, 100)

    @field_validator("mes_inicial")
    @classmethod
    def _mes(cls, value: str) -> str:
        return check_mes(value)

    @field_validator("categoria_id", mode="before")
    @classmethod
    def _blank(cls, value):
        return _blank_to_none(value)

    @model_validator(mode="after")
    def _valor(self) -> "LancamentoRecorrenteIn":
        if self.is_agrupador and self.valor_modo == ValorModo.soma and self.valor == 0:
            self.valor = Decimal("0.00")
            return self
        self.valor = _positive_valor(self.valor)
        return self


class LancamentoBatchIn(BaseModel):
    lancamentos: list[LancamentoIn] = Field(..., min_length=1, max_length=50)


class FilhoIn(BaseModel):
    tipo: TipoLancamento
    nome: str
    valor: Decimal
    concluido: bool = False
    data_prevista: Optional[date] = None
    categoria_id: Optional[str] = Field(default=None, max_length=64)

    @field_validator("nome")
    @classmethod
    def _nome(cls, value: str) -> str:
        return _check_nome(value, 100)

    @field_validator("valor")
    @classmethod
    def _valor(cls, value: Decimal) -> Decimal:
        return _positive_valor(value)

    @field_validator("data_prevista", "categoria_id", mode="before")
    @classmethod
    def _blank(cls, value):
        return _blank_to_none(value)


class RecorrenciaUpdateIn(BaseModel):
    escopo: EscopoRecorrencia
    dados: LancamentoUpdate
    campos: Optional[list[CampoRecorrencia]] = None


class RecorrenciaDeleteIn(BaseModel):
    escopo: EscopoRecorrencia = "apenas_este"


class CategoriaIn(BaseModel):
    nome: str
    tipo: TipoLancamento
    icone: Optional[str] = Field(default=None, max_length=50)
    cor: Optional[str] = None
    ordem: int = Field(default=0, ge=0)

    @field_validator("nome")
    @classmethod
    def _nome(cls, value: str) -> str:
        return _check_nome(value, 50)

    @field_validator("cor")
    @classmethod
    def _cor(cls, value: Optional[str]) -> Optional[str]:
        return _check_cor(value)


class CategoriaUpdate(BaseModel):
    nome: Optional[str] = None
    icone: Optional[str] = Field(default=None, max_length=50)
    cor: Optional[str] = None
    ordem: Optional[int] = Field(default=None, ge=0)

    @field_validator("nome")
    @classmethod
    def _nome(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_nome(value, 50)

    @field_validator("cor")
    @classmethod
    def _cor(cls, value: Optional[str]) -> Optional[str]:
        return _check_cor(value)


class ConfiguracaoUpdate(BaseModel):
    valor: Union[bool, int, float, str]


class RegisterIn(BaseModel):
    nome: str = Field(..., max_length=100)
    email: str
    senha: str

    @field_validator("nome")
    @classmethod
    def _nome(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Nome deve ter pelo menos 2 caracteres")
        return value

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        value = value.strip().lower()
        if not EMAIL_RE.match(value):
            raise ValueError("Email inválido")
        return value

    @field_validator("senha")
    @classmethod
    def _senha(cls, value: str) -> str:
        if len(value) < 8:
            raise ValueError("Senha deve ter pelo menos 8 caracteres")
        if len(value) > 128:
            raise ValueError("Senha deve ter no máximo 128 caracteres")
        if not re.search(r"[A-Z]", value):
            raise ValueError("Senha deve conter pelo menos uma letra maiúscula")
        if not re.search(r"[a-z]", value):
            raise ValueError("Senha deve conter pelo menos uma letra minúscula")
        if not re.search(r"[0-9]", value):
            raise ValueError("Senha deve conter pelo menos um número")
        return value


class LoginIn(BaseModel):
    email: str
    senha: str

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        value = value.strip().lower()
        if not EMAIL_RE.match(value):
            raise ValueError("Email inválido")
        return value

    @field_validator("senha")
    @classmethod
    def _senha(cls, value: str) -> str:
        if not value:
            raise ValueError("Senha é obrigatória")
        return value


class PerfilIn(BaseModel):
    nome: str
    descricao: Optional[str] = Field(default=None, max_length=500)
    cor: Optional[str] = None
    icone: Optional[str] = Field(default=None, max_length=50)

    @field_validator("nome")
    @classmethod
    def _nome(cls, value: str) -> str:
        return _check_nome(value, 100)

    @field_validator("cor")
    @classmethod
    def _cor(cls, value: Optional[str]) -> Optional[str]:
        return _check_cor(value)


class PerfilUpdate(BaseModel):
    nome: Optional[str] = None
    descricao: Optional[str] = Field(default=None, max_length=500)
    cor: Optional[str] = None
    icone: Optional[str] = Field(default=None, max_length=50)
    ativo: Optional[bool] = None

    @field_validator("nome")
    @classmethod
    def _nome(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_nome(value, 100)

    @field_validator("cor")
    @classmethod
    def _cor(cls, value: Optional[str]) -> Optional[str]:
        return _check_cor(value)


class AIParseIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    texto: str = Field(..., max_length=10_000)
    mes: str

    @model_validator(mode="before")
    @classmethod
    def _required(cls, data):
        if isinstance(data, dict):
            texto = data.get("texto")
            if not isinstance(texto, str) or not texto.strip():
                raise ValueError("Texto é obrigatório")
            mes = data.get("mes")
            if not isinstance(mes, str) or not mes.strip():
                raise ValueError("Mês é obrigatório (formato YYYY-MM)")
        return data

    @field_validator("mes")
    @classmethod
    def _mes(cls, value: str) -> str:
        return check_mes(value, "Mês é obrigatório (formato YYYY-MM)")
