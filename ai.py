import json
import logging
import math
import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from google import genai
from google.genai import types

import default_categories as dc
from categorizer import (
    categorize,
    correct_tipo,
    guess_tipo,
    has_income_name_hint,
    is_known_service,
    validate_category,
)
from config import get_settings
from models import TipoLancamento
from text_parsing import (
    CENTS,
    MAX_VALOR,
    capitalize_first,
    fix_name,
    is_month_marker,
    is_numeric_name,
    parse_line,
    preprocess_text,
)


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

MAX_LANCAMENTOS = 20
MAX_NOME = 50

SYSTEM_PROMPT = f"""Você é um assistente de finanças pessoais. Extraia lançamentos financeiros do texto.

## EXEMPLOS

INPUT: "salário 5000"
OUTPUT: {{"lancamentos":[{{"tipo":"entrada","nome":"Salário","valor":5000,"diaPrevisto":null,"categoriaId":"{dc.SALARIO}"}}]}}

INPUT: "freela 5000"
OUTPUT: {{"lancamentos":[{{"tipo":"entrada","nome":"Freelance","valor":5000,"diaPrevisto":null,"categoriaId":"{dc.OUTROS_ENTRADA}"}}]}}

INPUT: "gastei 50 em pizza"
OUTPUT: {{"lancamentos":[{{"tipo":"saida","nome":"Pizza","valor":50,"diaPrevisto":null,"categoriaId":"{dc.ALIMENTACAO}"}}]}}

INPUT: "recebi 500 do cliente"
OUTPUT: {{"lancamentos":[{{"tipo":"entrada","nome":"Cliente","valor":500,"diaPrevisto":null,"categoriaId":"{dc.OUTROS_ENTRADA}"}}]}}

INPUT: "netflix 55\\nmercado 500\\nuber 45"
OUTPUT: {{"lancamentos":[{{"tipo":"saida","nome":"Netflix","valor":55,"diaPrevisto":null,"categoriaId":"{dc.LAZER}"}},{{"tipo":"saida","nome":"Mercado","valor":500,"diaPrevisto":null,"categoriaId":"{dc.ALIMENTACAO}"}},{{"tipo":"saida","nome":"Uber","valor":45,"diaPrevisto":null,"categoriaId":"{dc.TRANSPORTE}"}}]}}

INPUT: "fatura c6 2500"
OUTPUT: {{"lancamentos":[{{"tipo":"saida","nome":"Fatura C6","valor":2500,"diaPrevisto":null,"categoriaId":"{dc.CARTAO}"}}]}}

INPUT: "Loumar\tR$ 3750.00" (planilha com TAB)
OUTPUT: {{"lancamentos":[{{"tipo":"entrada","nome":"Loumar","valor":3750,"diaPrevisto":null,"categoriaId":"{dc.OUTROS_ENTRADA}"}}]}}

## REGRAS

### TIPO
- ENTRADA = dinheiro entrando: salário, freela, dividendos, vendas, recebimentos, clientes
- SAÍDA = dinheiro saindo: contas, compras, assinaturas, faturas, despesas
- "gastei", "paguei", "comprei" = sempre saída
- "ganhei", "recebi", "vendi" = sempre entrada
- Planilha com TAB e nome que não é serviço conhecido = provavelmente entrada

### CATEGORIAS
Entradas: "{dc.SALARIO}" (salário, holerite, 13º, férias), "{dc.INVESTIMENTOS}" (dividendos, rendimentos, juros, FIIs, ações), "{dc.OUTROS_ENTRADA}" (freelance, vendas, reembolso, clientes)
Saídas: "{dc.TRANSPORTE}" (gasolina, Uber, pedágio, IPVA), "{dc.ALIMENTACAO}" (mercado, restaurante, iFood), "{dc.SAUDE}" (farmácia, médico, academia), "{dc.LAZER}" (Netflix, Spotify, cinema, viagem), "{dc.CARTAO}" (Nubank, C6, Inter, Itaú, fatura), "{dc.MORADIA}" (aluguel, condomínio, luz, água, internet), "{dc.OUTROS_SAIDA}" (outros gastos)

### NOME
- Extraia O QUE é: "gastei 50 em pizza" -> "Pizza"
- Preserve nomes completos: "Fatura C6", "Stant 1"
- Primeira letra maiúscula

### DIA
- "diaPrevisto" é o dia do mês (1 a 31) quando informado, senão null

## RESPOSTA
APENAS JSON, sem markdown: {{"lancamentos":[...]}}
Máximo {MAX_LANCAMENTOS} lançamentos."""


@dataclass
class ParsedLancamento:
    tipo: TipoLancamento
    nome: str
    valor: Decimal
    dia_previsto: Optional[int]
    categoria_id: Optional[str]

    def to_dict(self) -> dict:
        return {
            "tipo": self.tipo.value,
            "nome": self.nome,
            "valor": float(self.valor),
            "diaPrevisto": self.dia_previsto,
            "categoriaId": self.categoria_id,
        }


@dataclass
class ParseResult:
    lancamentos: list[ParsedLancamento] = field(default_factory=list)
    erro: Optional[str] = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"lancamentos": [l.to_dict() for l in self.lancamentos]}
        if self.erro:
            data["erro"] = self.erro
        return data


def _strip_fences(text: str) -> str:
    return re.sub(r"```(?:json)?\n?", "", text).strip()


def _as_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount <= 0 or amount > MAX_VALOR:
        return None
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def _as_day(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if not 1 <= value <= 31 or value != int(value):
        return None
    return int(value)


class AIService:
    def __init__(self, client=None, model: Optional[str] = None) -> None:
        settings = get_settings()
        self.model = model or settings.gemini_model
        if client is None and settings.gemini_api_key:
            client = genai.Client(api_key=settings.gemini_api_key)
        self.client = client

    def parse_lancamentos(self, texto: str, mes: str) -> ParseResult:
        processed = preprocess_text(texto)
        if self.client is None:
            logger.info(f"ai_parse: mes={mes} mode=fallback reason=no_client")
            return self.parse_basic(processed, texto)
        try:
            raw = self._ask(processed)
            result = self._from_model(raw, texto)
        except Exception as exc:
            logger.warning(f"ai_parse: mes={mes} mode=fallback reason={exc!r}")
            return self.parse_basic(processed, texto)
        logger.info(
            f"ai_parse: mes={mes} mode=model lancamentos={len(result.lancamentos)}"
        )
        return result

    def _ask(self, processed: str) -> dict:
        prompt = f'{SYSTEM_PROMPT}\n\nTexto do usuário: "{processed}"\n\nJSON:'
        response = self.client.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(temperature=0.1),
        )
        payload = json.loads(_strip_fences(getattr(response, "text", "") or ""))
        if not isinstance(payload, dict):
            raise ValueError("Resposta da IA não é um objeto JSON")
        return payload

    def _from_model(self, payload: dict, texto: str) -> ParseResult:
        items = payload.get("lancamentos") or []
        if not isinstance(items, list):
            raise ValueError("Campo lancamentos inválido na resposta da IA")
        tem_tab = "\t" in texto
        lancamentos: list[ParsedLancamento] = []
        for item in items:
            if len(lancamentos) >= MAX_LANCAMENTOS:
                break
            if not isinstance(item, dict) or not item.get("nome"):
                continue
            valor = _as_decimal(item.get("valor"))
            if valor is None:
                continue

            nome = re.sub(r"^[\"']|[\"']$", "", str(item["nome"]).strip()).strip()
            nome = nome[:MAX_NOME]
            if not nome or is_numeric_name(nome) or is_month_marker(nome.lower()):
                continue
            nome = capitalize_first(fix_name(nome, texto))

            tipo_modelo = (
                TipoLancamento.entrada
                if item.get("tipo") == "entrada"
                else TipoLancamento.saida
            )
            tipo = correct_tipo(tipo_modelo, texto, nome)
            if tipo == TipoLancamento.saida and has_income_name_hint(nome):
                tipo = TipoLancamento.entrada
            if tem_tab and tipo == TipoLancamento.saida and not is_known_service(nome):
                tipo = TipoLancamento.entrada

            lancamentos.append(
                ParsedLancamento(
                    tipo=tipo,
                    nome=nome,
                    valor=valor,
                    dia_previsto=_as_day(item.get("diaPrevisto")),
                    categoria_id=self._pick_category(item.get("categoriaId"), nome, tipo),
                )
            )
        erro = payload.get("erro")
        return ParseResult(lancamentos=lancamentos, erro=str(erro) if erro else None)

    @staticmethod
    def _pick_category(sugerida: Any, nome: str, tipo: TipoLancamento) -> str:
        """Model's category when valid for tipo, unless a keyword names a specific one."""
        categoria_id = validate_category(
            sugerida if isinstance(sugerida, str) else None, tipo
        )
        por_keyword = categorize(nome, tipo)
        if categoria_id is None:
            return por_keyword
        if por_keyword != dc.fallback_for(tipo):
            return por_keyword
        return categoria_id

    def parse_basic(self, processed: str, texto_original: str) -> ParseResult:
        """Line-by-line parsing used when the model is unavailable or fails."""
        lancamentos: list[ParsedLancamento] = []
        for linha in processed.split("\n"):
            if len(lancamentos) >= MAX_LANCAMENTOS:
                break
            parsed = parse_line(linha)
            if parsed is None:
                continue
            nome = fix_name(capitalize_first(parsed.nome), texto_original)
            tipo = guess_tipo(f"{parsed.nome} {parsed.valor:f}")
            lancamentos.append(
                ParsedLancamento(
                    tipo=tipo,
                    nome=nome,
                    valor=parsed.valor,
                    dia_previsto=parsed.dia_previsto,
                    categoria_id=categorize(nome, tipo),
                )
            )
        return ParseResult(lancamentos=lancamentos)


def get_ai_service() -> AIService:
    return AIService()
