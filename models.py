import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class TipoLancamento(str, Enum):
    entrada = "entrada"
    saida = "saida"


class ValorModo(str, Enum):
    soma = "soma"
    fixo = "fixo"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Usuario(Base, TimestampMixin):
    __tablename__ = "usuarios"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    nome: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    senha_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    sessoes: Mapped[list["Sessao"]] = relationship(
        back_populates="usuario", cascade="all, delete-orphan"
    )
    perfis: Mapped[list["Perfil"]] = relationship(
        back_populates="usuario", cascade="all, delete-orphan"
    )


class Sessao(Base):
    __tablename__ = "sessoes"
    __table_args__ = (Index("ix_sessoes_expires_at", "expires_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("usuarios.id", ondelete="CASCADE"), nullable=False
    )
    token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    usuario: Mapped[Usuario] = relationship(back_populates="sessoes")


class Perfil(Base, TimestampMixin):
    __tablename__ = "perfis"
    __table_args__ = (Index("ix_perfis_usuario_id", "usuario_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    usuario_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("usuarios.id", ondelete="CASCADE"), nullable=False
    )
    nome: Mapped[str] = mapped_column(String(100), nullable=False)
    descricao: Mapped[Optional[str]] = mapped_column(Text)
    cor: Mapped[Optional[str]] = mapped_column(String(7))
    icone: Mapped[Optional[str]] = mapped_column(String(50))
    is_perfil_padrao: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    ativo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    usuario: Mapped[Usuario] = relationship(back_populates="perfis")


class Categoria(Base, TimestampMixin):
    __tablename__ = "categorias"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("usuarios.id", ondelete="CASCADE")
    )
    nome: Mapped[str] = mapped_column(String(50), nullable=False)
    tipo: Mapped[TipoLancamento] = mapped_column(
        SAEnum(TipoLancamento, name="tipolancamento"), nullable=False
    )
    icone: Mapped[Optional[str]] = mapped_column(String(50))
    cor: Mapped[Optional[str]] = mapped_column(String(7))
    ordem: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Lancamento(Base, TimestampMixin):
    __tablename__ = "lancamentos"
    __table_args__ = (
        CheckConstraint(
            "valor > 0 OR (is_agrupador AND valor >= 0)",
            name="ck_lancamento_valor_positivo",
        ),
        CheckConstraint("mes LIKE '____-__'", name="ck_lancamento_mes_formato"),
        Index("ix_lancamentos_perfil_mes", "perfil_id", "mes"),
        Index("ix_lancamentos_recorrencia", "recorrencia_id"),
        Index("ix_lancamentos_parent", "parent_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("usuarios.id", ondelete="CASCADE"), nullable=False
    )
    perfil_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("perfis.id", ondelete="CASCADE"), nullable=False
    )
    tipo: Mapped[TipoLancamento] = mapped_column(
        SAEnum(TipoLancamento, name="tipolancamento"), nullable=False
    )
    nome: Mapped[str] = mapped_column(String(100), nullable=False)
    valor: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    mes: Mapped[str] = mapped_column(String(7), nullable=False)
    concluido: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    data_prevista: Mapped[Optional[date]] = mapped_column(Date)
    categoria_id: Mapped[Optional[str]] = mapped_column(String(64))
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("lancamentos.id", ondelete="CASCADE")
    )
    is_agrupador: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    valor_modo: Mapped[ValorModo] = mapped_column(
        SAEnum(ValorModo, name="valormodo"), nullable=False, default=ValorModo.soma
    )
    recorrencia_id: Mapped[Optional[str]] = mapped_column(String(36))

    parent: Mapped[Optional["Lancamento"]] = relationship(
        back_populates="filhos", remote_side="Lancamento.id"
    )
    filhos: Mapped[list["Lancamento"]] = relationship(
        back_populates="parent",
        cascade="all, delete-orphan",
        order_by="Lancamento.created_at",
    )


class Configuracao(Base):
    __tablename__ = "configuracoes"
    __table_args__ = (
        UniqueConstraint("perfil_id", "chave", name="uq_configuracao_perfil_chave"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("usuarios.id", ondelete="CASCADE"), nullable=False
    )
    perfil_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("perfis.id", ondelete="CASCADE"), nullable=False
    )
    chave: Mapped[str] = mapped_column(String(100), nullable=False)
    valor: Mapped[Any] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )
