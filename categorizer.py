import re
from typing import Optional

import default_categories as dc
from models import TipoLancamento
from text_parsing import normalize_for_comparison


KEYWORDS: dict[str, tuple[str, ...]] = {
    dc.SALARIO: (
        "salário", "salario", "sal", "holerite", "clt", "13º", "décimo terceiro",
        "décimo", "ferias", "férias", "pagamento trabalho", "folha",
    ),
    dc.INVESTIMENTOS: (
        "dividendo", "dividendos", "rendimento", "rendimentos", "juros", "juro",
        "resgate", "ações", "acoes", "fii", "fiis", "cdb", "poupança", "poupanca",
        "tesouro", "lci", "lca", "debenture", "investimento",
    ),
    dc.MORADIA: (
        "aluguel", "condomínio", "condominio", "iptu", "luz", "energia", "elétrica",
        "água", "agua", "gás", "gas", "internet", "wifi", "manutenção casa",
        "conserto casa", "móveis", "moveis", "eletrodoméstico", "eletrodomestico",
        "geladeira", "fogão", "microondas", "máquina lavar", "tv", "televisão",
    ),
    dc.ALIMENTACAO: (
        "mercado", "supermercado", "feira", "açougue", "acougue", "padaria",
        "restaurante", "ifood", "rappi", "delivery", "lanche", "café", "cafe",
        "almoço", "almoco", "jantar", "comida", "pizza", "hamburguer", "sushi",
        "mcdonald", "burger", "subway", "starbucks", "hortifruti",
    ),
    dc.TRANSPORTE: (
        "combustível", "combustivel", "gasolina", "álcool", "alcool", "etanol",
        "uber", "99", "táxi", "taxi", "ônibus", "onibus", "metrô", "metro",
        "estacionamento", "pedágio", "pedagio", "ipva", "seguro auto",
        "seguro carro", "manutenção carro", "oficina", "mecânico", "mecanico",
        "parcela carro", "parcela moto", "moto", "sem parar", "conectcar", "veloe",
    ),
    dc.SAUDE: (
        "farmácia", "farmacia", "remédio", "remedio", "medicamento", "médico",
        "medico", "consulta", "exame", "plano de saúde", "plano saude", "unimed",
        "bradesco saúde", "sulamerica", "dentista", "odonto", "psicólogo",
        "psicologo", "academia", "smartfit", "suplemento", "whey", "vitamina",
        "hospital", "clínica", "clinica", "fisioterapia", "drogaria", "droga raia",
        "drogasil", "pague menos",
    ),
    dc.LAZER: (
        "netflix", "spotify", "disney", "hbo", "amazon prime", "prime video",
        "youtube premium", "twitch", "deezer", "apple music", "xbox", "playstation",
        "steam", "jogos", "game", "cinema", "teatro", "show", "viagem", "hotel",
        "airbnb", "bar", "festa", "hobby", "streaming", "globoplay", "paramount",
        "crunchyroll", "max", "apple tv",
    ),
    dc.CARTAO: (
        "nubank", "nu bank", "roxinho", "c6", "c6 bank", "inter", "banco inter",
        "itaú", "itau", "bradesco", "santander", "bb", "banco do brasil", "caixa",
        "original", "banco original", "next", "picpay", "pic pay", "mercado pago",
        "will bank", "willbank", "will", "neon", "pagbank", "pagseguro", "btg",
        "btg pactual", "xp", "modal", "banco modal", "sofisa", "banco sofisa",
        "pan", "banco pan", "bv", "banco bv", "digio", "credicard", "ourocard",
        "elo", "mastercard", "master card", "master", "visa", "amex",
        "american express", "hipercard", "hiper", "cartão de crédito",
        "cartao de credito", "cartão crédito", "cartao credito", "fatura",
        "cartão", "cartao", "anuidade",
    ),
}

ENTRADA_CATEGORIES = (dc.SALARIO, dc.INVESTIMENTOS)

# transporte before moradia so "gasolina" never lands on "gas"
SAIDA_CATEGORIES = (
    dc.TRANSPORTE,
    dc.ALIMENTACAO,
    dc.SAUDE,
    dc.LAZER,
    dc.CARTAO,
    dc.MORADIA,
)

VALID_IDS = frozenset(c.id for c in dc.DEFAULT_CATEGORIAS)


def _compile(keyword: str) -> re.Pattern:
    normalized = re.escape(normalize_for_comparison(keyword))
    # short tokens ("bb", "xp", "sal") only count as whole words
    if len(keyword) <= 3:
        return re.compile(rf"(?<!\w){normalized}(?!\w)")
    return re.compile(normalized)


_PATTERNS: dict[str, tuple[re.Pattern, ...]] = {
    categoria_id: tuple(_compile(k) for k in keywords)
    for categoria_id, keywords in KEYWORDS.items()
}


def _matches(categoria_id: str, normalized: str) -> bool:
    return any(p.search(normalized) for p in _PATTERNS[categoria_id])


def categorize(nome: str, tipo: TipoLancamento) -> str:
    """Pick a built-in category id for ``nome`` by keyword, or the tipo's "Outros"."""
    normalized = normalize_for_comparison(nome)
    order = ENTRADA_CATEGORIES if tipo == TipoLancamento.entrada else SAIDA_CATEGORIES
    for categoria_id in order:
        if _matches(categoria_id, normalized):
            return categoria_id
    return dc.fallback_for(tipo)


def validate_category(
    categoria_id: Optional[str], tipo: TipoLancamento
) -> Optional[str]:
    if not categoria_id or categoria_id not in VALID_IDS:
        return None
    default = dc.get_default(categoria_id)
    if default is None or default.tipo != tipo:
        return None
    return categoria_id


INCOME_KEYWORDS = (
    "salario", "holerite", "13o", "decimo terceiro", "ferias", "freela",
    "freelance", "freelancer", "dividendo", "dividendos", "rendimento",
    "rendimentos", "juros", "resgate", "investimento", "investimentos", "acoes",
    "fii", "fiis", "cdb", "poupanca", "lucro", "comissao", "bonus", "reembolso",
)

# wider list used only when no AI answer is available
INCOME_KEYWORDS_FALLBACK = INCOME_KEYWORDS + (
    "cliente", "projeto", "venda", "recebimento", "pagamento recebido",
    "servicos", "servico", "honorarios", "hora extra", "horas extras",
    "manutencao",
)

INCOME_NAME_HINTS = (
    "salario", "freela", "freelance", "dividendo", "dividendos", "projeto", "cliente",
)

INCOME_VERBS = (
    "ganhei", "ganha", "ganhar", "ganhou", "recebi", "receber", "recebeu",
    "vendi", "vender", "vendeu",
)

EXPENSE_VERBS = (
    "paguei", "pagar", "pagou", "gastei", "gastar", "gastou", "comprei",
    "comprar", "comprou",
)

KNOWN_SERVICES = (
    "netflix", "aluguel", "mercado", "farmacia", "uber", "ifood", "nubank",
    "cartao", "fatura", "luz", "agua", "gas", "internet",
)

_COMPANY_PATTERNS = (
    re.compile(r"^[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*"),
    re.compile(r"\bltda\b", re.I),
    re.compile(r"\bs\.?a\.?\b", re.I),
    re.compile(r"\bme\b$", re.I),
    re.compile(r"\bepp\b$", re.I),
    re.compile(r"\beireli\b", re.I),
    re.compile(r"\bservicos?\b", re.I),
    re.compile(r"\b(?:projeto|proj\.?)\b", re.I),
    re.compile(r"\b\d+/\d+\b"),
    re.compile(r"^[A-Z]{2,}"),
)

_FIRST_NUMBER = re.compile(r"(\d+(?:[.,]\d+)?)")


def _first_number(texto: str) -> Optional[float]:
    match = _FIRST_NUMBER.search(texto)
    if not match:
        return None
    return float(match.group(1).replace(",", "."))


def _contains_any(normalized: str, words: tuple[str, ...]) -> bool:
    return any(word in normalized for word in words)


def guess_tipo(texto: str) -> TipoLancamento:
    """Decide entrada or saida for a line without help from the model.

    Order: income keywords, company/project names with a value of at
    least 500, income verbs, expense verbs, a single capitalised first
    name with at least 200, any capitalised text with a 4+ digit value.
    Everything else is an expense.
    """
    normalized = normalize_for_comparison(texto)
    if _contains_any(normalized, INCOME_KEYWORDS_FALLBACK):
        return TipoLancamento.entrada

    if any(p.search(texto) for p in _COMPANY_PATTERNS):
        valor = _first_number(texto)
        if valor is not None and valor >= 500:
            return TipoLancamento.entrada

    if _contains_any(normalized, INCOME_VERBS):
        return TipoLancamento.entrada
    if _contains_any(normalized, EXPENSE_VERBS):
        return TipoLancamento.saida

    first_word = re.split(r"\s", texto.strip())[0] if texto.strip() else ""
    if re.fullmatch(r"[A-Z][a-z]+", first_word):
        valor = _first_number(texto)
        if valor is not None and valor >= 200:
            return TipoLancamento.entrada

    if re.search(r"\d{4,}(?:[.,]\d+)?", texto) and re.match(r"[A-Z]", texto.strip()):
        return TipoLancamento.entrada

    return TipoLancamento.saida


def correct_tipo(
    tipo: TipoLancamento, texto: str, nome: Optional[str] = None
) -> TipoLancamento:
    """Override the model's tipo only when keywords or verbs contradict it."""
    texto_n = normalize_for_comparison(texto)
    nome_n = normalize_for_comparison(nome) if nome else ""

    if _contains_any(texto_n, INCOME_KEYWORDS) or (
        nome_n and _contains_any(nome_n, INCOME_KEYWORDS)
    ):
        return TipoLancamento.entrada
    if _contains_any(texto_n, INCOME_VERBS):
        return TipoLancamento.entrada
    if _contains_any(texto_n, EXPENSE_VERBS):
        return TipoLancamento.saida
    return tipo


def is_known_service(nome: str) -> bool:
    return _contains_any(normalize_for_comparison(nome), KNOWN_SERVICES)


def has_income_name_hint(nome: str) -> bool:
    return _contains_any(normalize_for_comparison(nome), INCOME_NAME_HINTS)
