import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import main
from ai import ParseResult
from database import get_db
from main import app


@pytest.fixture
def client(engine):
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth(client):
    response = client.post(
        "/api/auth/register",
        json={"nome": "Ana Souza", "email": "ana@example.com", "senha": "Segredo123"},
    )
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['token']}"}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["ai"] is False
    assert body["google_calendar"] is False


@pytest.mark.parametrize(
    "method, path",
    [
        ("get", "/api/lancamentos?mes=2025-07"),
        ("post", "/api/lancamentos"),
        ("put", "/api/configuracoes/saidas_auto_pago"),
        ("get", "/api/dashboard"),
        ("get", "/api/categorias"),
        ("get", "/api/perfis"),
        ("post", "/api/ai/parse-lancamentos"),
    ],
)
def test_protected_routes_require_token(client, method, path):
    response = client.request(method, path, json={"valor": "lixo", "mes": "x"})
    assert response.status_code == 401
    assert response.json() == {"error": "Token não fornecido"}


def test_invalid_token(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer abc"})
    assert response.status_code == 401
    assert response.json() == {"error": "Sessão inválida ou expirada"}


def test_register_login_me_logout(client, auth):
    assert client.get("/api/auth/me", headers=auth).json()["usuario"]["nome"] == "Ana Souza"

    login = client.post(
        "/api/auth/login", json={"email": "ana@example.com", "senha": "Segredo123"}
    )
    assert login.status_code == 200

    bad = client.post("/api/auth/login", json={"email": "ana@example.com", "senha": "x"})
    assert bad.status_code == 401
    assert bad.json() == {"error": "Email ou senha incorretos"}

    assert client.post("/api/auth/logout", headers=auth).status_code == 200
    assert client.get("/api/auth/me", headers=auth).status_code == 401


def test_register_validation_and_duplicate(client, auth):
    weak = client.post(
        "/api/auth/register",
        json={"nome": "Bob", "email": "bob@example.com", "senha": "curta"},
    )
    assert weak.status_code == 400
    assert "Senha deve ter pelo menos 8 caracteres" in weak.json()["error"]

    dup = client.post(
        "/api/auth/register",
        json={"nome": "Ana", "email": "ana@example.com", "senha": "Segredo123"},
    )
    assert dup.status_code == 400
    assert dup.json() == {"error": "Este email já está cadastrado"}


def test_create_and_list_lancamentos(client, auth):
    response = client.post(
        "/api/lancamentos",
        headers=auth,
        json={"tipo": "saida", "nome": "Mercado", "valor": 450.5, "mes": "2025-07"},
    )
    assert response.status_code == 201
    assert response.json()["totais"]["saidas"] == 450.5

    month = client.get("/api/lancamentos?mes=2025-07", headers=auth).json()
    assert [l["nome"] for l in month["saidas"]] == ["Mercado"]


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"tipo": "saida", "nome": "X", "valor": 0, "mes": "2025-07"}, "Valor deve ser maior que zero"),
        ({"tipo": "saida", "nome": "X", "valor": -10, "mes": "2025-07"}, "Valor deve ser maior que zero"),
        ({"tipo": "saida", "nome": "X", "valor": 1e11, "mes": "2025-07"}, "Valor muito alto"),
        ({"tipo": "saida", "nome": "X", "valor": 10, "mes": "2025-13"}, "Formato de mês inválido"),
        ({"tipo": "saida", "nome": "X", "valor": 10, "mes": "07/2025"}, "Formato de mês inválido"),
        ({"tipo": "saida", "nome": "", "valor": 10, "mes": "2025-07"}, "Nome é obrigatório"),
    ],
)
def test_invalid_lancamento_is_rejected(client, auth, payload, message):
    response = client.post("/api/lancamentos", headers=auth, json=payload)
    assert response.status_code == 400
    assert message in response.json()["error"]


def test_invalid_json_body(client, auth):
    response = client.post(
        "/api/lancamentos",
        headers={**auth, "Content-Type": "application/json"},
        content="{nope",
    )
    assert response.status_code == 400
    assert response.json() == {"error": "JSON inválido"}


def test_invalid_month_query(client, auth):
    response = client.get("/api/lancamentos?mes=2025-7", headers=auth)
    assert response.status_code == 400


def test_unknown_lancamento_is_404(client, auth):
    response = client.patch("/api/lancamentos/nao-existe/concluido", headers=auth)
    assert response.status_code == 404
    assert response.json() == {"error": "Lançamento não encontrado"}


def test_delete_agrupador_needs_force(client, auth):
    month = client.post(
        "/api/lancamentos",
        headers=auth,
        json={"tipo": "saida", "nome": "Cartão", "mes": "2025-07", "is_agrupador": True},
    ).json()
    parent_id = month["agrupadores"][0]["id"]
    filho = client.post(
        f"/api/lancamentos/{parent_id}/filhos",
        headers=auth,
        json={"tipo": "saida", "nome": "Uber", "valor": 30},
    )
    assert filho.status_code == 201

    assert client.delete(f"/api/lancamentos/{parent_id}", headers=auth).status_code == 400
    response = client.delete(f"/api/lancamentos/{parent_id}?force=true", headers=auth)
    assert response.status_code == 200
    assert response.json()["saidas"] == []


def test_configuracoes(client, auth):
    assert len(client.get("/api/configuracoes", headers=auth).json()) == 3

    ok = client.put(
        "/api/configuracoes/saidas_auto_pago", headers=auth, json={"valor": True}
    )
    assert ok.status_code == 200
    assert ok.json()["valor"] is True

    missing = client.put(
        "/api/configuracoes/nao_existe", headers=auth, json={"valor": True}
    )
    assert missing.status_code == 404
    assert missing.json() == {"error": "Configuração não encontrada"}


def test_perfil_header_selects_workspace(client, auth):
    perfil = client.post("/api/perfis", headers=auth, json={"nome": "Empresa"})
    assert perfil.status_code == 201
    perfil_id = perfil.json()["id"]
    empresa = {**auth, "x-perfil-id": perfil_id}

    client.post(
        "/api/lancamentos",
        headers=empresa,
        json={"tipo": "entrada", "nome": "Cliente", "valor": 800, "mes": "2025-07"},
    )
    assert client.get("/api/lancamentos?mes=2025-07", headers=auth).json()["entradas"] == []
    assert len(
        client.get("/api/lancamentos?mes=2025-07", headers=empresa).json()["entradas"]
    ) == 1

    assert client.patch(f"/api/perfis/{perfil_id}/arquivar", headers=auth).status_code == 200
    archived = client.get("/api/lancamentos?mes=2025-07", headers=empresa)
    assert archived.status_code == 400

    unknown = client.get(
        "/api/dashboard", headers={**auth, "x-perfil-id": "nao-existe"}
    )
    assert unknown.status_code == 404
    assert unknown.json() == {"error": "Perfil não encontrado"}


def test_perfis_routes(client, auth):
    padrao = client.get("/api/perfis/padrao", headers=auth).json()
    assert padrao["is_perfil_padrao"] is True
    assert client.delete(f"/api/perfis/{padrao['id']}", headers=auth).status_code == 400
    assert len(client.get("/api/perfis/todos", headers=auth).json()) == 1


def test_categorias_routes(client, auth):
    saidas = client.get("/api/categorias/tipo/saida", headers=auth).json()
    assert len(saidas) == 7
    assert client.get("/api/categorias/tipo/outro", headers=auth).status_code == 400

    created = client.post(
        "/api/categorias", headers=auth, json={"nome": "Pets", "tipo": "saida"}
    )
    assert created.status_code == 201
    categoria_id = created.json()["id"]
    assert client.delete(f"/api/categorias/{categoria_id}", headers=auth).status_code == 204
    assert client.get(f"/api/categorias/{categoria_id}", headers=auth).status_code == 404


def test_dashboard_route(client, auth):
    response = client.get("/api/dashboard", headers=auth)
    assert response.status_code == 200
    assert set(response.json()) == {
        "mesAtual",
        "totais",
        "recentLancamentos",
        "historico",
        "pendentesEntrada",
        "pendentesSaida",
        "proximosVencimentos",
        "gastosPorCategoria",
    }


def test_ai_parse_without_key_uses_line_parsing(client, auth):
    response = client.post(
        "/api/ai/parse-lancamentos",
        headers=auth,
        json={"texto": "Rafael\tR$ 400,00", "mes": "2025-07"},
    )
    assert response.status_code == 200
    assert response.json()["lancamentos"] == [
        {
            "tipo": "entrada",
            "nome": "Rafael",
            "valor": 400.0,
            "diaPrevisto": None,
            "categoriaId": "default-outros-entrada",
        }
    ]


def test_ai_parse_requires_texto_and_mes(client, auth):
    missing = client.post(
        "/api/ai/parse-lancamentos", headers=auth, json={"mes": "2025-07"}
    )
    assert missing.status_code == 400
    assert missing.json() == {"error": "Texto é obrigatório"}

    bad_mes = client.post(
        "/api/ai/parse-lancamentos", headers=auth, json={"texto": "uber 45", "mes": "julho"}
    )
    assert bad_mes.status_code == 400
    assert bad_mes.json() == {"error": "Mês é obrigatório (formato YYYY-MM)"}


def test_ai_parse_runs_off_the_event_loop(client, auth, monkeypatch):
    seen = {}

    class ThreadCheckingService:
        def parse_lancamentos(self, texto, mes):
            try:
                asyncio.get_running_loop()
                seen["in_loop"] = True
            except RuntimeError:
                seen["in_loop"] = False
            return ParseResult()

    monkeypatch.setattr(main, "get_ai_service", ThreadCheckingService)
    response = client.post(
        "/api/ai/parse-lancamentos",
        headers=auth,
        json={"texto": "uber 45", "mes": "2025-07"},
    )
    assert response.status_code == 200
    assert response.json() == {"lancamentos": []}
    assert seen == {"in_loop": False}


def test_ai_parse_with_huge_numbers_is_not_a_server_error(client, auth):
    response = client.post(
        "/api/ai/parse-lancamentos",
        headers=auth,
        json={"texto": "9" * 4400 + " mil", "mes": "2025-07"},
    )
    assert response.status_code == 200
    assert response.json() == {"lancamentos": []}
