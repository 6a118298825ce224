from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, selectinload

from models import (
    Categoria,
    Configuracao,
    Lancamento,
    Perfil,
    Sessao,
    TipoLancamento,
    Usuario,
)


DEFAULT_CONFIGURACOES: dict[str, Any] = {
    "entradas_auto_recebido": False,
    "saidas_auto_pago": False,
    "mostrar_concluidos_discretos": True,
}


class AuthRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find_user_by_email(self, email: str) -> Optional[Usuario]:
        return self.session.scalar(
            select(Usuario).where(func.lower(Usuario.email) == email.strip().lower())
        )

    def get_user(self, user_id: str) -> Optional[Usuario]:
        return self.session.get(Usuario, user_id)

    def create_user(self, nome: str, email: str, senha_hash: str) -> Usuario:
        usuario = Usuario(nome=nome, email=email.strip().lower(), senha_hash=senha_hash)
        self.session.add(usuario)
        self.session.flush()
        return usuario

    def create_session(self, user_id: str, token: str, expires_at: datetime) -> Sessao:
        sessao = Sessao(user_id=user_id, token=token, expires_at=expires_at)
        self.session.add(sessao)
        self.session.flush()
        return sessao

    def find_valid_session(self, token: str, now: datetime) -> Optional[Sessao]:
        return self.session.scalar(
            select(Sessao).where(Sessao.token == token, Sessao.expires_at > now)
        )

    def delete_session(self, token: str) -> None:
        self.session.execute(delete(Sessao).where(Sessao.token == token))

    def delete_expired_sessions(self, now: datetime) -> int:
        result = self.session.execute(delete(Sessao).where(Sessao.expires_at <= now))
        return result.rowcount or 0


class PerfilRepository:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def _base(self):
        return select(Perfil).where(Perfil.usuario_id == self.user_id)

    def list_active(self) -> list[Perfil]:
        stmt = (
            self._base()
            .where(Perfil.ativo.is_(True))
            .order_by(Perfil.is_perfil_padrao.desc(), Perfil.nome)
        )
        return list(self.session.scalars(stmt).all())

    def list_all(self) -> list[Perfil]:
        stmt = self._base().order_by(
            Perfil.ativo.desc(), Perfil.is_perfil_padrao.desc(), Perfil.nome
        )
        return list(self.session.scalars(stmt).all())

    def get(self, perfil_id: str) -> Optional[Perfil]:
        return self.session.scalar(self._base().where(Perfil.id == perfil_id))

    def get_default(self) -> Optional[Perfil]:
        return self.session.scalar(
            self._base().where(Perfil.is_perfil_padrao.is_(True))
        )

    def find_active_by_name(
        self, nome: str, exclude_id: Optional[str] = None
    ) -> Optional[Perfil]:
        stmt = self._base().where(
            Perfil.ativo.is_(True), func.lower(Perfil.nome) == nome.strip().lower()
        )
        if exclude_id:
            stmt = stmt.where(Perfil.id != exclude_id)
        return self.session.scalar(stmt)

    def create(self, **fields: Any) -> Perfil:
        perfil = Perfil(usuario_id=self.user_id, **fields)
        self.session.add(perfil)
        self.session.flush()
        return perfil

    def delete(self, perfil: Perfil) -> None:
        self.session.delete(perfil)
        self.session.flush()


class CategoriaRepository:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def list(self, tipo: Optional[TipoLancamento] = None) -> list[Categoria]:
        stmt = (
            select(Categoria)
            .where(Categoria.user_id == self.user_id)
            .order_by(Categoria.ordem, Categoria.nome)
        )
        if tipo is not None:
            stmt = stmt.where(Categoria.tipo == tipo)
        return list(self.session.scalars(stmt).all())

    def get(self, categoria_id: str) -> Optional[Categoria]:
        return self.session.scalar(
            select(Categoria).where(
                Categoria.id == categoria_id, Categoria.user_id == self.user_id
            )
        )

    def create(self, **fields: Any) -> Categoria:
        categoria = Categoria(user_id=self.user_id, is_default=False, **fields)
        self.session.add(categoria)
        self.session.flush()
        return categoria

    def delete(self, categoria: Categoria) -> None:
        self.session.execute(
            update(Lancamento)
            .where(
                Lancamento.user_id == self.user_id,
                Lancamento.categoria_id == categoria.id,
            )
            .values(categoria_id=None)
        )
        self.session.delete(categoria)
        self.session.flush()


class LancamentoRepository:
    def __init__(self, session: Session, user_id: str, perfil_id: str) -> None:
        self.session = session
        self.user_id = user_id
        self.perfil_id = perfil_id

    def _base(self):
        return select(Lancamento).where(Lancamento.perfil_id == self.perfil_id)

    def find_by_mes(self, mes: str) -> list[Lancamento]:
        """Root entries of a month, children preloaded under their grouping entry."""
        stmt = (
            self._base()
            .options(selectinload(Lancamento.filhos))
            .where(Lancamento.mes == mes, Lancamento.parent_id.is_(None))
            .order_by(Lancamento.created_at, Lancamento.nome)
        )
        return list(self.session.scalars(stmt).all())

    def get(self, lancamento_id: str) -> Optional[Lancamento]:
        return self.session.scalar(self._base().where(Lancamento.id == lancamento_id))

    def find_filhos(self, parent_id: str) -> list[Lancamento]:
        stmt = (
            self._base()
            .where(Lancamento.parent_id == parent_id)
            .order_by(Lancamento.created_at, Lancamento.nome)
        )
        return list(self.session.scalars(stmt).all())

    def find_series(
        self, recorrencia_id: str, from_mes: Optional[str] = None
    ) -> list[Lancamento]:
        stmt = self._base().where(Lancamento.recorrencia_id == recorrencia_id)
        if from_mes:
            stmt = stmt.where(Lancamento.mes >= from_mes)
        return list(self.session.scalars(stmt.order_by(Lancamento.mes)).all())

    def create(self, **fields: Any) -> Lancamento:
        lancamento = Lancamento(
            user_id=self.user_id, perfil_id=self.perfil_id, **fields
        )
        self.session.add(lancamento)
        self.session.flush()
        return lancamento

    def create_many(self, rows: Iterable[dict[str, Any]]) -> list[Lancamento]:
        created = [
            Lancamento(user_id=self.user_id, perfil_id=self.perfil_id, **fields)
            for fields in rows
        ]
        self.session.add_all(created)
        self.session.flush()
        return created

    def delete(self, lancamento: Lancamento) -> None:
        self.session.delete(lancamento)
        self.session.flush()


class ConfiguracaoRepository:
    def __init__(self, session: Session, user_id: str, perfil_id: str) -> None:
        self.session = session
        self.user_id = user_id
        self.perfil_id = perfil_id

    def list(self) -> list[Configuracao]:
        stmt = (
            select(Configuracao)
            .where(Configuracao.perfil_id == self.perfil_id)
            .order_by(Configuracao.chave)
        )
        return list(self.session.scalars(stmt).all())

    def get(self, chave: str) -> Optional[Configuracao]:
        return self.session.scalar(
            select(Configuracao).where(
                Configuracao.perfil_id == self.perfil_id, Configuracao.chave == chave
            )
        )

    def update(self, configuracao: Configuracao, valor: Any) -> Configuracao:
        configuracao.valor = valor
        configuracao.updated_at = datetime.utcnow()
        self.session.flush()
        return configuracao

    def create_defaults(self) -> list[Configuracao]:
        existing = {c.chave for c in self.list()}
        created = [
            Configuracao(
                user_id=self.user_id, perfil_id=self.perfil_id, chave=chave, valor=valor
            )
            for chave, valor in DEFAULT_CONFIGURACOES.items()
            if chave not in existing
        ]
        self.session.add_all(created)
        self.session.flush()
        return created


class DashboardRepository:
    def __init__(self, session: Session, perfil_id: str) -> None:
        self.session = session
        self.perfil_id = perfil_id

    def _base(self):
        return select(Lancamento).where(Lancamento.perfil_id == self.perfil_id)

    def find_by_months(self, meses: list[str]) -> list[Lancamento]:
        stmt = self._base().where(Lancamento.mes.in_(meses))
        return list(self.session.scalars(stmt).all())

    def find_recent(self, mes: str, limit: int = 5) -> list[Lancamento]:
        stmt = (
            self._base()
            .where(Lancamento.mes == mes)
            .order_by(Lancamento.created_at.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

    def _pending_expenses(self):
        return self._base().where(
            Lancamento.tipo == TipoLancamento.saida,
            Lancamento.concluido.is_(False),
            Lancamento.parent_id.is_(None),
            Lancamento.data_prevista.is_not(None),
        )

    def find_upcoming(self, start: date, end: date, limit: int = 5) -> list[Lancamento]:
        stmt = (
            self._pending_expenses()
            .where(Lancamento.data_prevista >= start, Lancamento.data_prevista <= end)
            .order_by(Lancamento.data_prevista)
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

    def find_pending_by_mes(self, mes: str, limit: int = 5) -> list[Lancamento]:
        stmt = (
            self._pending_expenses()
            .where(Lancamento.mes == mes)
            .order_by(Lancamento.data_prevista)
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())
