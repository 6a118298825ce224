"""Text helpers for turning free-form Brazilian money notes into entries.

Everything here is plain string work: currency normalization
("R$ 1.234,56" -> "1234.56"), splitting a paragraph into one item per
line, cleaning the name that precedes an amount, and recognising lines
that are only month or section headers.
"""

import re
import unicodedata
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional


CENTS = Decimal("0.01")
MAX_VALOR = Decimal("9999999999.99")

MONTH_NAMES = (
    "janeiro|fevereiro|março|marco|abril|maio|junho|julho|agosto|setembro|"
    "outubro|novembro|dezembro|jan|fev|mar|abr|mai|jun|jul|ago|set|out|nov|dez"
)

_MONTH_MARKERS = (
    re.compile(rf"^tudo\s+de\s+({MONTH_NAMES})", re.I),
    re.compile(rf"^({MONTH_NAMES})\s+(de\s*)?\d{{0,4}}$", re.I),
    re.compile(rf"^({MONTH_NAMES})$", re.I),
    re.compile(rf"^(?:referente|ref\.?)\s+(?:a\s+)?({MONTH_NAMES})", re.I),
    re.compile(rf"^m[êe]s\s*[:de]+\s*({MONTH_NAMES})", re.I),
    re.compile(rf"^(?:para|pra)\s+({MONTH_NAMES})", re.I),
    re.compile(r"^cart[õo]es$", re.I),
    re.compile(r"^despesas?\s*(fixas?)?$", re.I),
    re.compile(r"^entradas?$", re.I),
    re.compile(r"^sa[íi]das?$", re.I),
    re.compile(r"^receitas?$", re.I),
)

_BR_WITH_SYMBOL = re.compile(r"R\$\s*(\d{1,3}(?:\.\d{3})+),(\d{2})")
_BR_GROUPED_TAB = re.compile(r"(\d{1,3}(?:\.\d{3})+),(\d{2})\b")
_BR_GROUPED = re.compile(r"\b(\d{1,3}(?:\.\d{3})+),(\d{2})\b")
_COMMA_DECIMAL = re.compile(r"\b(\d+),(\d{2})(?=\s|$|[a-zA-Z])")
_MULTIPLE_ITEMS = re.compile(r"(?<!\w)\w+\s+\d+(?:[.,]\d+)?\s*,\s*\w+")
_AND_VERB = re.compile(
    r"(?<!\d)(\d+(?:[.,]\d+)?)\s+e\s+(gastei|paguei|comprei|recebi|ganhei)", re.I
)
_THOUSANDS_K = re.compile(r"(?<![\d.])(\d{1,12}(?:\.\d{1,6})?)\s*k\b", re.I)
_THOUSANDS_MIL = re.compile(r"(?<![\d.])(\d{1,12})\s*mil\b", re.I)

_AMOUNT_BR_AT_END = re.compile(r"(?:R\$)?\s*(?<!\d)(\d+(?:\.\d{3})*,\d{2})\s*$")
_AMOUNT_AT_END = re.compile(r"(?<!\d)(\d+(?:\.\d{1,2})?)\s*$")
_DAY_BEFORE_AMOUNT = re.compile(r"\s(\d{1,2})[\s\t]+\d+(?:\.\d{1,2})?\s*$")
_NUMERIC_NAME = re.compile(r"^\d+(\.\d+)?$")

_ACTION_VERBS = (
    "gastei", "gasto", "paguei", "pago", "comprei", "compra", "recebi", "recebido",
)
_NAME_FROM_SENTENCE = (
    re.compile(
        r"(?:gastei|paguei|comprei|gasto|pago|compra)\s+\d+(?:[.,]\d+)?\s*"
        r"(?:reais|real|r\$)?\s*(?:numa?|em|de|com|no|na|pro|pra|para)\s+(.+)$",
        re.I,
    ),
    re.compile(
        r"(?:gastei|paguei|comprei)\s+\d+(?:[.,]\d+)?\s*(?:com|de|em|no|na)\s+(.+)$",
        re.I,
    ),
    re.compile(r"(?:recebi|recebido)\s+\d+(?:[.,]\d+)?\s*(?:do|da|de)\s+(.+)$", re.I),
)


def normalize_for_comparison(texto: str) -> str:
    """Lowercase and strip accents so "Farmácia" and "farmacia" compare equal."""
    decomposed = unicodedata.normalize("NFD", texto.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def parse_amount(raw: str) -> Decimal:
    """Parse a Brazilian or plain currency string into a 2-place Decimal.

    Accepts "R$ 1.234,56", "1234,56", "1.234", "1234.56" and "400".
    A dot followed by exactly three digits with no comma anywhere is a
    thousands separator. A dot after the comma ("1,234.56") is rejected.
    """
    text = (raw or "").strip()
    text = re.sub(r"^R\$", "", text, flags=re.I).replace(" ", "").replace("\u00a0", "")
    if not text:
        raise ValueError("Valor vazio")
    if "," in text:
        if "." in text and text.rfind(".") > text.find(","):
            raise ValueError(f"Valor inválido: {raw}")
        text = text.replace(".", "").replace(",", ".")
    elif re.fullmatch(r"\d{1,3}(?:\.\d{3})+", text):
        text = text.replace(".", "")
    if not re.fullmatch(r"\d+(?:\.\d+)?", text):
        raise ValueError(f"Valor inválido: {raw}")
    try:
        value = Decimal(text)
    except InvalidOperation as exc:
        raise ValueError(f"Valor inválido: {raw}") from exc
    if value > MAX_VALOR:
        raise ValueError(f"Valor muito alto: {raw}")
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def normalize_amount(raw: str) -> str:
    return str(parse_amount(raw))


def _drop_thousands(match: re.Match, prefix: str = "") -> str:
    return f"{prefix}{match.group(1).replace('.', '')}.{match.group(2)}"


def _plain_number(value: Decimal) -> str:
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), "f")


def preprocess_text(texto: str) -> str:
    """Normalize amounts and put one item per line.

    Tab-separated (spreadsheet) text only gets its grouped amounts
    rewritten; its layout is left untouched.
    """
    result = _BR_WITH_SYMBOL.sub(lambda m: _drop_thousands(m, "R$ "), texto)
    if "\t" in texto:
        return _BR_GROUPED_TAB.sub(_drop_thousands, result)

    result = _BR_GROUPED.sub(_drop_thousands, result)
    result = _COMMA_DECIMAL.sub(r"\1.\2", result)

    if "," in result and _MULTIPLE_ITEMS.search(result):
        result = re.sub(r",\s+", "\n", result)

    result = _AND_VERB.sub(r"\1\n\2", result)
    result = _THOUSANDS_K.sub(
        lambda m: _plain_number(Decimal(m.group(1)) * 1000), result
    )
    result = _THOUSANDS_MIL.sub(lambda m: str(int(m.group(1)) * 1000), result)
    return result


def is_month_marker(nome: str) -> bool:
    """True for headers such as "julho de 2025", "tudo de março" or "Despesas fixas"."""
    value = nome.strip()
    return any(pattern.search(value) for pattern in _MONTH_MARKERS)


def is_numeric_name(nome: str) -> bool:
    return bool(_NUMERIC_NAME.match(nome.strip()))


def capitalize_first(nome: str) -> str:
    return nome[:1].upper() + nome[1:] if nome else nome


def fix_name(nome: str, texto_original: str) -> str:
    """Replace a bare verb ("Gastei") with the object of the sentence."""
    if nome.lower().strip() not in _ACTION_VERBS:
        return nome
    texto = texto_original.lower()
    for pattern in _NAME_FROM_SENTENCE:
        match = pattern.search(texto)
        if not match:
            continue
        candidate = re.sub(
            r"\s*\d+(?:[.,]\d+)?\s*(?:reais|real|r\$)?$", "", match.group(1), flags=re.I
        ).strip()
        candidate = re.sub(r"^(?:um|uma|o|a|os|as)\s+", "", candidate, flags=re.I).strip()
        if len(candidate) > 1:
            return capitalize_first(candidate)
    return nome


@dataclass(frozen=True)
class ParsedLine:
    nome: str
    valor: Decimal
    dia_previsto: Optional[int] = None


def parse_line(linha: str) -> Optional[ParsedLine]:
    """Split one line into name, amount and optional day column.

    Returns None for blank lines, lines without a positive trailing
    amount, and lines whose name is a number or a month/section header.
    """
    linha = linha.strip()
    if not linha:
        return None

    match = _AMOUNT_BR_AT_END.search(linha)
    if match:
        try:
            valor = parse_amount(match.group(1))
        except ValueError:
            return None
    else:
        match = _AMOUNT_AT_END.search(linha)
        if not match:
            return None
        valor = Decimal(match.group(1))
        if valor > MAX_VALOR:
            return None
        valor = valor.quantize(CENTS, rounding=ROUND_HALF_UP)
    if valor <= 0:
        return None

    dia_previsto = None
    day_match = _DAY_BEFORE_AMOUNT.search(linha)
    if day_match and 1 <= int(day_match.group(1)) <= 31:
        dia_previsto = int(day_match.group(1))

    resto = re.sub(r"\s*(?:R\$)?\s*(?<!\d)\d+(?:\.\d{3})*,\d{2}\s*$", "", linha)
    resto = re.sub(r"\s*R\$\s*(?<!\d)\d+(?:\.\d{1,2})?\s*$", "", resto)
    resto = re.sub(r"\s*(?<!\d)\d+(?:\.\d{1,2})?\s*$", "", resto).strip()
    resto = re.sub(r"\s+", " ", resto.replace("\t", " ")).strip()
    resto = re.sub(r"R\$\s*$", "", resto, flags=re.I).strip()
    resto = re.sub(r"\s+\d{1,2}$", "", resto).strip()

    if not resto or is_numeric_name(resto) or is_month_marker(resto.lower()):
        return None
    return ParsedLine(nome=resto, valor=valor, dia_previsto=dia_previsto)
