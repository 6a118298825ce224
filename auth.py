from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from database import get_db
from errors import AppError, status_for
from models import Usuario
from services import AuthService, Contexto, PerfilService


PERFIL_HEADER = "x-perfil-id"


def get_token(request: Request) -> str:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Token não fornecido")
    return token.strip()


def get_current_user(
    token: str = Depends(get_token), db: Session = Depends(get_db)
) -> Usuario:
    usuario = AuthService(db).validate_token(token)
    if usuario is None:
        raise HTTPException(status_code=401, detail="Sessão inválida ou expirada")
    return usuario


def get_context(
    request: Request,
    usuario: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Contexto:
    """Workspace of the request: the ``x-perfil-id`` header or the default perfil."""
    service = PerfilService(db, usuario.id)
    perfil_id = request.headers.get(PERFIL_HEADER)
    try:
        if perfil_id:
            perfil = service.validate_access(perfil_id)
        else:
            perfil = service.ensure_default(usuario)
            db.commit()
    except AppError as exc:
        raise HTTPException(status_code=status_for(exc), detail=str(exc)) from exc
    return Contexto(user_id=usuario.id, perfil_id=perfil.id)
