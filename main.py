import asyncio
import json
import logging
from typing import Any, Optional, Type, TypeVar

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from ai import get_ai_service
from auth import get_context, get_current_user, get_token
from config import get_settings
from database import get_db
from errors import AppError, status_for
from models import TipoLancamento, Usuario
from scheduler import SchedulerManager
from schemas import (
    AIParseIn,
    CategoriaIn,
    CategoriaUpdate,
    ConfiguracaoUpdate,
    FilhoIn,
    LancamentoBatchIn,
    LancamentoIn,
    LancamentoRecorrenteIn,
    LancamentoUpdate,
    LoginIn,
    PerfilIn,
    PerfilUpdate,
    RecorrenciaDeleteIn,
    RecorrenciaUpdateIn,
    RegisterIn,
    check_mes,
    validation_message,
)
from services import (
    AuthService,
    CategoriaService,
    ConfiguracaoService,
    Contexto,
    DashboardService,
    LancamentoService,
    PerfilService,
    serialize_usuario,
)
from periods import current_month


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

settings = get_settings()
app = FastAPI(title="Financeiro API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url] if settings.frontend_url else ["*"],
    allow_credentials=bool(settings.frontend_url),
    allow_methods=["*"],
    allow_headers=["*"],
)


def _load_app_version() -> str:
    try:
        import tomllib
    except Exception:
        return "unknown"
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except Exception:
        return "unknown"


APP_VERSION = _load_app_version()

scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    if get_settings().scheduler_enabled:
        scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        messages.append(f"{loc}: {err.get('msg', '')}")
    return JSONResponse(status_code=400, content={"error": "; ".join(messages)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"unhandled_error: {request.method} {request.url.path}")
    message = "Erro interno do servidor" if settings.is_production else str(exc)
    return JSONResponse(status_code=500, content={"error": message})


async def _read_json(request: Request) -> dict:
    body = await request.body()
    if not body:
        return {}
    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="JSON inválido") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="JSON deve ser um objeto")
    return payload


async def parse_body(request: Request, schema: Type[SchemaT]) -> SchemaT:
    payload = await _read_json(request)
    try:
        return schema.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=validation_message(exc)) from exc


def _raise_app_error(exc: AppError) -> None:
    raise HTTPException(status_code=status_for(exc), detail=str(exc)) from exc


def mes_from_request(request: Request, default_current: bool = True) -> Optional[str]:
    mes = request.query_params.get("mes")
    if not mes:
        return current_month() if default_current else None
    try:
        return check_mes(mes)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _flag(request: Request, name: str) -> bool:
    return request.query_params.get(name, "").lower() in ("1", "true", "yes")


@app.get("/health")
def health():
    current = get_settings()
    return {
        "status": "ok",
        "version": APP_VERSION,
        "ai": current.ai_enabled,
        "google_calendar": current.google_calendar_enabled,
    }


# Auth


@app.post("/api/auth/register", status_code=201)
async def register(request: Request, db: Session = Depends(get_db)):
    data = await parse_body(request, RegisterIn)
    try:
        return AuthService(db).register(data)
    except AppError as exc:
        _raise_app_error(exc)


@app.post("/api/auth/login")
async def login(request: Request, db: Session = Depends(get_db)):
    data = await parse_body(request, LoginIn)
    try:
        return AuthService(db).login(data)
    except AppError as exc:
        _raise_app_error(exc)


@app.post("/api/auth/logout")
def logout(
    token: str = Depends(get_token),
    usuario: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    AuthService(db).logout(token)
    return {"message": "Logout realizado com sucesso"}


@app.get("/api/auth/me")
def me(usuario: Usuario = Depends(get_current_user)):
    return {"usuario": serialize_usuario(usuario)}


# Lançamentos


@app.get("/api/lancamentos")
def list_lancamentos(
    request: Request,
    ctx: Contexto = Depends(get_context),
    db: Session = Depends(get_db),
):
    mes = mes_from_request(request)
    return LancamentoService(db, ctx).list_month(mes)


@app.post("/api/lancamentos", status_code=201)
async def create_lancamento(
    request: Request,
    ctx: Contexto = Depends(get_context),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, LancamentoIn)
    try:
        return LancamentoService(db, ctx).create(data)
    except AppError as exc:
        _raise_app_error(exc)


@app.post("/api/lancamentos/batch", status_code=201)
async def create_lancamentos_batch(
    request: Request,
    ctx: Contexto = Depends(get_context),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, LancamentoBatchIn)
    try:
        return LancamentoService(db, ctx).create_batch(data)
    except AppError as exc:
        _raise_app_error(exc)


@app.post("/api/lancamentos/recorrente", status_code=201)
async def create_lancamento_recorrente(
    request: Request,
    ctx: Contexto = Depends(get_context),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, LancamentoRecorrenteIn)
    try:
        return LancamentoService(db, ctx).create_recurring(data)
    except AppError as exc:
        _raise_app_error(exc)


@app.put("/api/lancamentos/{lancamento_id}")
async def update_lancamento(
    lancamento_id: str,
    request: Request,
    ctx: Contexto = Depends(get_context),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, LancamentoUpdate)
    try:
        return LancamentoService(db, ctx).update(lancamento_id, data)
    except AppError as exc:
        _raise_app_error(exc)


@app.patch("/api/lancamentos/{lancamento_id}/concluido")
def toggle_lancamento(
    lancamento_id: str,
    ctx: Contexto = Depends(get_context),
    db: Session = Depends(get_db),
):
    try:
        return LancamentoService(db, ctx).toggle_concluido(lancamento_id)
    except AppError as exc:
        _raise_app_error(exc)


@app.delete("/api/lancamentos/{lancamento_id}")
def delete_lancamento(
    lancamento_id: str,
    request: Request,
    ctx: Contexto = Depends(get_context),
    db: Session = Depends(get_db),
):
    try:
        return LancamentoService(db, ctx).delete(
            lancamento_id, force=_flag(request, "force")
        )
    except AppError as exc:
        _raise_app_error(exc)


@app.get("/api/lancamentos/{lancamento_id}/filhos")
def list_filhos(
    lancamento_id: str,
    ctx: Contexto = Depends(get_context),
    db: Session = Depends(get_db),
):
    try:
        return LancamentoService(db, ctx).list_filhos(lancamento_id)
    except AppError as exc:
        _raise_app_error(exc)


@app.post("/api/lancamentos/{lancamento_id}/filhos", status_code=201)
async def create_filho(
    lancamento_id: str,
    request: Request,
    ctx: Contexto = Depends(get_context),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, FilhoIn)
    try:
        return LancamentoService(db, ctx).create_filho(lancamento_id, data)
    except AppError as exc:
        _raise_app_error(exc)


@app.get("/api/lancamentos/{lancamento_id}/agrupador")
def get_agrupador(
    lancamento_id: str,
    ctx: Contexto = Depends(get_context),
    db: Session = Depends(get_db),
):
    try:
        return LancamentoService(db, ctx).get_agrupador(lancamento_id)
    except AppError as exc:
        _raise_app_error(exc)


@app.put("/api/lancamentos/{filho_id}/mover/{novo_parent_id}")
def move_filho(
    filho_id: str,
    novo_parent_id: str,
    ctx: Contexto = Depends(get_context),
    db: Session = Depends(get_db),
):
    try:
        return LancamentoService(db, ctx).move_filho(filho_id, novo_parent_id)
    except AppError as exc:
        _raise_app_error(exc)


@app.get("/api/lancamentos/{lancamento_id}/recorrencia")
def recurrence_info(
    lancamento_id: str,
    ctx: Contexto = Depends(get_context),
    db: Session = Depends(get_db),
):
    try:
        return LancamentoService(db, ctx).recurrence_info(lancamento_id)
    except AppError as exc:
        _raise_app_error(exc)


@app.put("/api/lancamentos/{lancamento_id}/recorrencia")
async def update_recurrence(
    lancamento_id: str,
    request: Request,
    ctx: Contexto = Depends(get_context),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, RecorrenciaUpdateIn)
    try:
        return LancamentoService(db, ctx).update_recurrence(lancamento_id, data)
    except AppError as exc:
        _raise_app_error(exc)


@app.delete("/api/lancamentos/{lancamento_id}/recorrencia")
async def delete_recurrence(
    lancamento_id: str,
    request: Request,
    ctx: Contexto = Depends(get_context),
    db: Session = Depends(get_db),
):
    escopo = request.query_params.get("escopo")
    if escopo:
        payload: dict[str, Any] = {"escopo": escopo}
        try:
            data = RecorrenciaDeleteIn.model_validate(payload)
        except ValidationError as exc:
            raise HTTPException(
                status_code=400, detail=validation_message(exc)
            ) from exc
    else:
        data = await parse_body(request, RecorrenciaDeleteIn)
    try:
        return LancamentoService(db, ctx).delete_recurrence(lancamento_id, data.escopo)
    except AppError as exc:
        _raise_app_error(exc)


# Categorias


def _tipo_from_path(tipo: str) -> TipoLancamento:
    try:
        return TipoLancamento(tipo)
    except ValueError as exc:
        raise HTTPException(
            status_code=400, detail="Tipo inválido (entrada ou saida)"
        ) from exc


@app.get("/api/categorias")
def list_categorias(
    usuario: Usuario = Depends(get_current_user), db: Session = Depends(get_db)
):
    return CategoriaService(db, usuario.id).list_all()


@app.get("/api/categorias/tipo/{tipo}")
def list_categorias_by_tipo(
    tipo: str,
    usuario: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return CategoriaService(db, usuario.id).list_all(_tipo_from_path(tipo))


@app.get("/api/categorias/{categoria_id}")
def get_categoria(
    categoria_id: str,
    usuario: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return CategoriaService(db, usuario.id).get(categoria_id)
    except AppError as exc:
        _raise_app_error(exc)


@app.post("/api/categorias", status_code=201)
async def create_categoria(
    request: Request,
    usuario: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, CategoriaIn)
    try:
        return CategoriaService(db, usuario.id).create(data)
    except AppError as exc:
        _raise_app_error(exc)


@app.put("/api/categorias/{categoria_id}")
async def update_categoria(
    categoria_id: str,
    request: Request,
    usuario: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, CategoriaUpdate)
    try:
        return CategoriaService(db, usuario.id).update(categoria_id, data)
    except AppError as exc:
        _raise_app_error(exc)


@app.delete("/api/categorias/{categoria_id}", status_code=204)
def delete_categoria(
    categoria_id: str,
    usuario: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        CategoriaService(db, usuario.id).delete(categoria_id)
    except AppError as exc:
        _raise_app_error(exc)
    return Response(status_code=204)


# Configurações


@app.get("/api/configuracoes")
def list_configuracoes(
    ctx: Contexto = Depends(get_context), db: Session = Depends(get_db)
):
    return ConfiguracaoService(db, ctx).list_all()


@app.get("/api/configuracoes/{chave}")
def get_configuracao(
    chave: str, ctx: Contexto = Depends(get_context), db: Session = Depends(get_db)
):
    try:
        return ConfiguracaoService(db, ctx).get(chave)
    except AppError as exc:
        _raise_app_error(exc)


@app.put("/api/configuracoes/{chave}")
async def update_configuracao(
    chave: str,
    request: Request,
    ctx: Contexto = Depends(get_context),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, ConfiguracaoUpdate)
    try:
        return ConfiguracaoService(db, ctx).update(chave, data.valor)
    except AppError as exc:
        _raise_app_error(exc)


# Dashboard


@app.get("/api/dashboard")
def dashboard(
    request: Request,
    ctx: Contexto = Depends(get_context),
    db: Session = Depends(get_db),
):
    mes = mes_from_request(request, default_current=False)
    return DashboardService(db, ctx).get(mes)


# Perfis


@app.get("/api/perfis")
def list_perfis(
    usuario: Usuario = Depends(get_current_user), db: Session = Depends(get_db)
):
    return PerfilService(db, usuario.id).list_active()


@app.get("/api/perfis/todos")
def list_all_perfis(
    usuario: Usuario = Depends(get_current_user), db: Session = Depends(get_db)
):
    return PerfilService(db, usuario.id).list_all()


@app.get("/api/perfis/padrao")
def get_default_perfil(
    usuario: Usuario = Depends(get_current_user), db: Session = Depends(get_db)
):
    return PerfilService(db, usuario.id).get_default()


@app.get("/api/perfis/{perfil_id}")
def get_perfil(
    perfil_id: str,
    usuario: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return PerfilService(db, usuario.id).get(perfil_id)
    except AppError as exc:
        _raise_app_error(exc)


@app.post("/api/perfis", status_code=201)
async def create_perfil(
    request: Request,
    usuario: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, PerfilIn)
    try:
        return PerfilService(db, usuario.id).create(data)
    except AppError as exc:
        _raise_app_error(exc)


@app.put("/api/perfis/{perfil_id}")
async def update_perfil(
    perfil_id: str,
    request: Request,
    usuario: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, PerfilUpdate)
    try:
        return PerfilService(db, usuario.id).update(perfil_id, data)
    except AppError as exc:
        _raise_app_error(exc)


@app.patch("/api/perfis/{perfil_id}/arquivar")
def archive_perfil(
    perfil_id: str,
    usuario: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return PerfilService(db, usuario.id).archive(perfil_id)
    except AppError as exc:
        _raise_app_error(exc)


@app.patch("/api/perfis/{perfil_id}/reativar")
def reactivate_perfil(
    perfil_id: str,
    usuario: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return PerfilService(db, usuario.id).reactivate(perfil_id)
    except AppError as exc:
        _raise_app_error(exc)


@app.delete("/api/perfis/{perfil_id}")
def delete_perfil(
    perfil_id: str,
    usuario: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        PerfilService(db, usuario.id).delete(perfil_id)
    except AppError as exc:
        _raise_app_error(exc)
    return {"message": "Perfil excluído com sucesso"}


# AI


@app.post("/api/ai/parse-lancamentos")
async def parse_lancamentos(
    request: Request, usuario: Usuario = Depends(get_current_user)
):
    data = await parse_body(request, AIParseIn)
    result = await asyncio.to_thread(
        get_ai_service().parse_lancamentos, data.texto, data.mes
    )
    return result.to_dict()


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=settings.port, reload=False)


if __name__ == "__main__":
    main()
