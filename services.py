from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

import bcrypt
from sqlalchemy.orm import Session

import default_categories as dc
from config import get_settings
from errors import AuthError, NotFoundError, ValidationError
from models import (
    Categoria,
    Configuracao,
    Lancamento,
    Perfil,
    TipoLancamento,
    Usuario,
    ValorModo,
    new_id,
)
from periods import (
    add_months,
    current_month,
    day_in_month,
    last_months,
    month_label,
    today,
)
from repositories import (
    AuthRepository,
    CategoriaRepository,
    ConfiguracaoRepository,
    DashboardRepository,
    LancamentoRepository,
    PerfilRepository,
)
from schemas import (
    CategoriaIn,
    CategoriaUpdate,
    FilhoIn,
    LancamentoBatchIn,
    LancamentoIn,
    LancamentoRecorrenteIn,
    LancamentoUpdate,
    LoginIn,
    PerfilIn,
    PerfilUpdate,
    RecorrenciaUpdateIn,
    RegisterIn,
)


MAX_PERFIS_ATIVOS = 10
DEFAULT_PERFIL_COR = "#6366F1"
DEFAULT_PERFIL_ICONE = "User"
SEM_CATEGORIA_COR = "#6B7280"
ZERO = Decimal("0.00")

_PARCELA_SUFFIX = re.compile(r"^(.*) \((\d+)/(\d+)\)$")


@dataclass(frozen=True)
class Contexto:
    user_id: str
    perfil_id: str


def money(value: Optional[Decimal]) -> float:
    return float(value or 0)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def serialize_usuario(usuario: Usuario) -> dict:
    return {
        "id": usuario.id,
        "nome": usuario.nome,
        "email": usuario.email,
        "created_at": _iso(usuario.created_at),
        "updated_at": _iso(usuario.updated_at),
    }


def serialize_perfil(perfil: Perfil) -> dict:
    return {
        "id": perfil.id,
        "nome": perfil.nome,
        "descricao": perfil.descricao,
        "cor": perfil.cor,
        "icone": perfil.icone,
        "usuario_id": perfil.usuario_id,
        "is_perfil_padrao": perfil.is_perfil_padrao,
        "ativo": perfil.ativo,
        "created_at": _iso(perfil.created_at),
        "updated_at": _iso(perfil.updated_at),
    }


def serialize_categoria(categoria: Categoria) -> dict:
    return {
        "id": categoria.id,
        "nome": categoria.nome,
        "tipo": categoria.tipo.value,
        "icone": categoria.icone,
        "cor": categoria.cor,
        "ordem": categoria.ordem,
        "user_id": categoria.user_id,
        "is_default": False,
        "created_at": _iso(categoria.created_at),
        "updated_at": _iso(categoria.updated_at),
    }


def serialize_configuracao(configuracao: Configuracao) -> dict:
    return {
        "id": configuracao.id,
        "chave": configuracao.chave,
        "valor": configuracao.valor,
        "updated_at": _iso(configuracao.updated_at),
    }


def calculated_value(lancamento: Lancamento) -> Decimal:
    """Value a root entry contributes: its children's sum in soma mode, else its own."""
    if lancamento.is_agrupador and lancamento.valor_modo == ValorModo.soma:
        return sum((f.valor for f in lancamento.filhos), ZERO)
    return lancamento.valor


def settled_value(lancamento: Lancamento) -> Decimal:
    if lancamento.is_agrupador and lancamento.valor_modo == ValorModo.soma:
        return sum((f.valor for f in lancamento.filhos if f.concluido), ZERO)
    return lancamento.valor if lancamento.concluido else ZERO


def compute_totais(roots: list[Lancamento]) -> dict:
    entradas = [l for l in roots if l.tipo == TipoLancamento.entrada]
    saidas = [l for l in roots if l.tipo == TipoLancamento.saida]
    total_entradas = sum((calculated_value(l) for l in entradas), ZERO)
    ja_entrou = sum((settled_value(l) for l in entradas), ZERO)
    total_saidas = sum((calculated_value(l) for l in saidas), ZERO)
    ja_paguei = sum((settled_value(l) for l in saidas), ZERO)
    return {
        "entradas": money(total_entradas),
        "jaEntrou": money(ja_entrou),
        "faltaEntrar": money(total_entradas - ja_entrou),
        "saidas": money(total_saidas),
        "jaPaguei": money(ja_paguei),
        "faltaPagar": money(total_saidas - ja_paguei),
        "saldo": money(total_entradas - total_saidas),
    }


class CategoriaLookup:
    """Resolves category ids (built-in or user-owned) to their wire form."""

    def __init__(self, session: Session, user_id: str) -> None:
        self._user = {c.id: c for c in CategoriaRepository(session, user_id).list()}

    def get(self, categoria_id: Optional[str]) -> Optional[dict]:
        default = dc.get_default(categoria_id)
        if default is not None:
            return default.to_dict()
        categoria = self._user.get(categoria_id) if categoria_id else None
        return serialize_categoria(categoria) if categoria else None

    def tipo_of(self, categoria_id: str) -> Optional[TipoLancamento]:
        default = dc.get_default(categoria_id)
        if default is not None:
            return default.tipo
        categoria = self._user.get(categoria_id)
        return categoria.tipo if categoria else None


def serialize_lancamento(
    lancamento: Lancamento, categorias: CategoriaLookup, with_filhos: bool = True
) -> dict:
    data = {
        "id": lancamento.id,
        "tipo": lancamento.tipo.value,
        "nome": lancamento.nome,
        "valor": money(lancamento.valor),
        "mes": lancamento.mes,
        "concluido": lancamento.concluido,
        "data_prevista": _iso(lancamento.data_prevista),
        "categoria_id": lancamento.categoria_id,
        "categoria": categorias.get(lancamento.categoria_id),
        "parent_id": lancamento.parent_id,
        "is_agrupador": lancamento.is_agrupador,
        "valor_modo": lancamento.valor_modo.value,
        "recorrencia_id": lancamento.recorrencia_id,
        "created_at": _iso(lancamento.created_at),
        "updated_at": _iso(lancamento.updated_at),
    }
    if lancamento.is_agrupador and with_filhos:
        data["valor_calculado"] = money(calculated_value(lancamento))
        data["filhos"] = [
            serialize_lancamento(f, categorias, with_filhos=False)
            for f in lancamento.filhos
        ]
    return data


class AuthService:
    def __init__(self, session: Session) -> None:
        self.session = session
        self.repo = AuthRepository(session)

    @staticmethod
    def _secret(senha: str) -> bytes:
        # bcrypt only looks at the first 72 bytes
        return senha.encode("utf-8")[:72]

    @classmethod
    def hash_password(cls, senha: str) -> str:
        return bcrypt.hashpw(cls._secret(senha), bcrypt.gensalt()).decode("utf-8")

    @classmethod
    def check_password(cls, senha: str, senha_hash: str) -> bool:
        try:
            return bcrypt.checkpw(cls._secret(senha), senha_hash.encode("utf-8"))
        except ValueError:
            return False

    def _open_session(self, usuario: Usuario) -> str:
        token = secrets.token_hex(32)
        expires_at = datetime.utcnow() + timedelta(days=get_settings().session_days)
        self.repo.create_session(usuario.id, token, expires_at)
        return token

    def _response(self, usuario: Usuario, token: str, perfil: Perfil) -> dict:
        return {
            "usuario": serialize_usuario(usuario),
            "token": token,
            "perfil_padrao": {
                "id": perfil.id,
                "nome": perfil.nome,
                "cor": perfil.cor,
                "icone": perfil.icone,
                "is_perfil_padrao": perfil.is_perfil_padrao,
            },
        }

    def register(self, data: RegisterIn) -> dict:
        if self.repo.find_user_by_email(data.email):
            raise ValidationError("Este email já está cadastrado")
        usuario = self.repo.create_user(
            data.nome, data.email, self.hash_password(data.senha)
        )
        perfil = PerfilService(self.session, usuario.id).ensure_default(usuario)
        token = self._open_session(usuario)
        self.session.commit()
        return self._response(usuario, token, perfil)

    def login(self, data: LoginIn) -> dict:
        usuario = self.repo.find_user_by_email(data.email)
        if not usuario or not self.check_password(data.senha, usuario.senha_hash):
            raise AuthError("Email ou senha incorretos")
        perfil = PerfilService(self.session, usuario.id).ensure_default(usuario)
        token = self._open_session(usuario)
        self.session.commit()
        return self._response(usuario, token, perfil)

    def logout(self, token: str) -> None:
        self.repo.delete_session(token)
        self.session.commit()

    def validate_token(self, token: str) -> Optional[Usuario]:
        sessao = self.repo.find_valid_session(token, datetime.utcnow())
        if not sessao:
            return None
        return self.repo.get_user(sessao.user_id)

    def purge_expired_sessions(self) -> int:
        count = self.repo.delete_expired_sessions(datetime.utcnow())
        self.session.commit()
        return count


class PerfilService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id
        self.repo = PerfilRepository(session, user_id)

    def _get(self, perfil_id: str) -> Perfil:
        perfil = self.repo.get(perfil_id)
        if not perfil:
            raise NotFoundError("Perfil não encontrado")
        return perfil

    def _create_configs(self, perfil: Perfil) -> None:
        ConfiguracaoRepository(self.session, self.user_id, perfil.id).create_defaults()

    def ensure_default(self, usuario: Usuario) -> Perfil:
        """Default perfil of the user, created on the fly for older accounts."""
        perfil = self.repo.get_default()
        if perfil:
            return perfil
        perfil = self.repo.create(
            nome=usuario.nome,
            cor=DEFAULT_PERFIL_COR,
            icone=DEFAULT_PERFIL_ICONE,
            is_perfil_padrao=True,
            ativo=True,
        )
        self._create_configs(perfil)
        return perfil

    def list_active(self) -> list[dict]:
        return [serialize_perfil(p) for p in self.repo.list_active()]

    def list_all(self) -> list[dict]:
        return [serialize_perfil(p) for p in self.repo.list_all()]

    def get(self, perfil_id: str) -> dict:
        return serialize_perfil(self._get(perfil_id))

    def get_default(self) -> dict:
        usuario = self.session.get(Usuario, self.user_id)
        perfil = self.ensure_default(usuario)
        self.session.commit()
        return serialize_perfil(perfil)

    def create(self, data: PerfilIn) -> dict:
        if len(self.repo.list_active()) >= MAX_PERFIS_ATIVOS:
            raise ValidationError(
                f"Limite máximo de {MAX_PERFIS_ATIVOS} perfis atingido"
            )
        if self.repo.find_active_by_name(data.nome):
            raise ValidationError("Já existe um perfil com este nome")
        perfil = self.repo.create(
            nome=data.nome,
            descricao=data.descricao,
            cor=data.cor or DEFAULT_PERFIL_COR,
            icone=data.icone or DEFAULT_PERFIL_ICONE,
            is_perfil_padrao=False,
            ativo=True,
        )
        self._create_configs(perfil)
        self.session.commit()
        return serialize_perfil(perfil)

    def update(self, perfil_id: str, data: PerfilUpdate) -> dict:
        perfil = self._get(perfil_id)
        changes = data.model_dump(exclude_unset=True)
        nome = changes.get("nome")
        if nome and nome.lower() != perfil.nome.lower():
            if self.repo.find_active_by_name(nome, exclude_id=perfil.id):
                raise ValidationError("Já existe um perfil com este nome")
        if changes.get("ativo") is False and perfil.is_perfil_padrao:
            raise ValidationError("Não é possível arquivar o perfil padrão")
        if changes.get("ativo") is True and not perfil.ativo:
            self._check_reactivation(perfil)
        for field, value in changes.items():
            if field in ("nome", "ativo") and value is None:
                continue
            setattr(perfil, field, value)
        self.session.commit()
        return serialize_perfil(perfil)

    def _check_reactivation(self, perfil: Perfil) -> None:
        if len(self.repo.list_active()) >= MAX_PERFIS_ATIVOS:
            raise ValidationError(
                f"Limite máximo de {MAX_PERFIS_ATIVOS} perfis atingido"
            )
        if self.repo.find_active_by_name(perfil.nome, exclude_id=perfil.id):
            raise ValidationError("Já existe um perfil ativo com este nome")

    def archive(self, perfil_id: str) -> dict:
        perfil = self._get(perfil_id)
        if perfil.is_perfil_padrao:
            raise ValidationError("Não é possível arquivar o perfil padrão")
        perfil.ativo = False
        self.session.commit()
        return serialize_perfil(perfil)

    def reactivate(self, perfil_id: str) -> dict:
        perfil = self._get(perfil_id)
        if not perfil.ativo:
            self._check_reactivation(perfil)
            perfil.ativo = True
            self.session.commit()
        return serialize_perfil(perfil)

    def delete(self, perfil_id: str) -> None:
        perfil = self._get(perfil_id)
        if perfil.is_perfil_padrao:
            raise ValidationError("Não é possível excluir o perfil padrão")
        self.repo.delete(perfil)
        self.session.commit()

    def validate_access(self, perfil_id: str) -> Perfil:
        perfil = self._get(perfil_id)
        if not perfil.ativo:
            raise ValidationError("Perfil está arquivado e não pode ser usado")
        return perfil


class CategoriaService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id
        self.repo = CategoriaRepository(session, user_id)

    def list_all(self, tipo: Optional[TipoLancamento] = None) -> list[dict]:
        defaults = [c.to_dict() for c in dc.defaults_for(tipo)]
        return defaults + [serialize_categoria(c) for c in self.repo.list(tipo)]

    def get(self, categoria_id: str) -> dict:
        default = dc.get_default(categoria_id)
        if default is not None:
            return default.to_dict()
        return serialize_categoria(self._get_own(categoria_id))

    def _get_own(self, categoria_id: str) -> Categoria:
        categoria = self.repo.get(categoria_id)
        if not categoria:
            raise NotFoundError("Categoria não encontrada")
        return categoria

    def _reject_default(self, categoria_id: str, action: str) -> None:
        if dc.is_default_id(categoria_id):
            raise ValidationError(f"Categorias padrão não podem ser {action}")

    def create(self, data: CategoriaIn) -> dict:
        categoria = self.repo.create(
            nome=data.nome,
            tipo=data.tipo,
            icone=data.icone,
            cor=data.cor,
            ordem=data.ordem,
        )
        self.session.commit()
        return serialize_categoria(categoria)

    def update(self, categoria_id: str, data: CategoriaUpdate) -> dict:
        self._reject_default(categoria_id, "editadas")
        categoria = self._get_own(categoria_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if field in ("nome", "ordem") and value is None:
                continue
            setattr(categoria, field, value)
        self.session.commit()
        return serialize_categoria(categoria)

    def delete(self, categoria_id: str) -> None:
        self._reject_default(categoria_id, "excluídas")
        categoria = self._get_own(categoria_id)
        self.repo.delete(categoria)
        self.session.commit()


class ConfiguracaoService:
    def __init__(self, session: Session, ctx: Contexto) -> None:
        self.session = session
        self.repo = ConfiguracaoRepository(session, ctx.user_id, ctx.perfil_id)

    def list_all(self) -> list[dict]:
        return [serialize_configuracao(c) for c in self.repo.list()]

    def get(self, chave: str) -> dict:
        configuracao = self.repo.get(chave)
        if not configuracao:
            raise NotFoundError("Configuração não encontrada")
        return serialize_configuracao(configuracao)

    def update(self, chave: str, valor: Any) -> dict:
        configuracao = self.repo.get(chave)
        if not configuracao:
            raise NotFoundError("Configuração não encontrada")
        self.repo.update(configuracao, valor)
        self.session.commit()
        return serialize_configuracao(configuracao)


class LancamentoService:
    def __init__(self, session: Session, ctx: Contexto) -> None:
        self.session = session
        self.ctx = ctx
        self.repo = LancamentoRepository(session, ctx.user_id, ctx.perfil_id)

    def _categorias(self) -> CategoriaLookup:
        return CategoriaLookup(self.session, self.ctx.user_id)

    def _get(self, lancamento_id: str) -> Lancamento:
        lancamento = self.repo.get(lancamento_id)
        if not lancamento:
            raise NotFoundError("Lançamento não encontrado")
        return lancamento

    def _get_agrupador(self, lancamento_id: str) -> Lancamento:
        lancamento = self.repo.get(lancamento_id)
        if not lancamento:
            raise NotFoundError("Agrupador não encontrado")
        if not lancamento.is_agrupador:
            raise ValidationError("Lançamento não é um agrupador")
        return lancamento

    def _check_categoria(
        self,
        categoria_id: Optional[str],
        tipo: TipoLancamento,
        categorias: Optional[CategoriaLookup] = None,
    ) -> None:
        if not categoria_id:
            return
        categorias = categorias or self._categorias()
        categoria_tipo = categorias.tipo_of(categoria_id)
        if categoria_tipo is None:
            raise ValidationError("Categoria não encontrada")
        if categoria_tipo != tipo:
            raise ValidationError("Categoria incompatível com o tipo do lançamento")

    def _check_child_of(self, parent: Lancamento, tipo: TipoLancamento, mes: str) -> None:
        if not parent.is_agrupador:
            raise ValidationError("Lançamento não é um agrupador")
        if parent.parent_id is not None:
            raise ValidationError("Agrupador não pode estar dentro de outro agrupador")
        if parent.mes != mes:
            raise ValidationError("Mês do filho deve ser igual ao mês do agrupador")
        if parent.tipo != tipo:
            raise ValidationError("Tipo do filho deve ser igual ao tipo do agrupador")

    def _fields(self, data: LancamentoIn, categorias: CategoriaLookup) -> dict:
        self._check_categoria(data.categoria_id, data.tipo, categorias)
        if data.parent_id:
            if data.is_agrupador:
                raise ValidationError("Agrupador não pode estar dentro de outro agrupador")
            parent = self.repo.get(data.parent_id)
            if not parent:
                raise NotFoundError("Agrupador não encontrado")
            self._check_child_of(parent, data.tipo, data.mes)
        return {
            "tipo": data.tipo,
            "nome": data.nome,
            "valor": data.valor,
            "mes": data.mes,
            "concluido": data.concluido,
            "data_prevista": data.data_prevista,
            "categoria_id": data.categoria_id,
            "parent_id": data.parent_id,
            "is_agrupador": data.is_agrupador,
            "valor_modo": data.valor_modo,
            "recorrencia_id": data.recorrencia_id,
        }

    def list_month(self, mes: str) -> dict:
        roots = self.repo.find_by_mes(mes)
        categorias = self._categorias()
        entradas = [l for l in roots if l.tipo == TipoLancamento.entrada]
        saidas = [l for l in roots if l.tipo == TipoLancamento.saida]
        return {
            "mes": mes,
            "entradas": [serialize_lancamento(l, categorias) for l in entradas],
            "saidas": [serialize_lancamento(l, categorias) for l in saidas],
            "agrupadores": [
                serialize_lancamento(l, categorias) for l in roots if l.is_agrupador
            ],
            "totais": compute_totais(roots),
        }

    def _month_after_commit(self, mes: str) -> dict:
        self.session.commit()
        self.session.expire_all()
        return self.list_month(mes)

    def create(self, data: LancamentoIn) -> dict:
        self.repo.create(**self._fields(data, self._categorias()))
        return self._month_after_commit(data.mes)

    def create_batch(self, data: LancamentoBatchIn) -> dict:
        categorias = self._categorias()
        rows = [self._fields(item, categorias) for item in data.lancamentos]
        created = self.repo.create_many(rows)
        self.session.commit()
        return {"criados": len(created)}

    def create_recurring(self, data: LancamentoRecorrenteIn) -> dict:
        self._check_categoria(data.categoria_id, data.tipo)
        quantidade = data.recorrencia.quantidade
        parcelas = data.recorrencia.tipo == "parcelas"
        recorrencia_id = new_id()
        rows = []
        for index in range(quantidade):
            mes = add_months(data.mes_inicial, index)
            nome = f"{data.nome} ({index + 1}/{quantidade})" if parcelas else data.nome
            rows.append(
                {
                    "tipo": data.tipo,
                    "nome": nome,
                    "valor": data.valor,
                    "mes": mes,
                    "concluido": data.concluido,
                    "data_prevista": (
                        day_in_month(mes, data.dia_previsto)
                        if data.dia_previsto
                        else None
                    ),
                    "categoria_id": data.categoria_id,
                    "is_agrupador": data.is_agrupador,
                    "valor_modo": data.valor_modo,
                    "recorrencia_id": recorrencia_id,
                }
            )
        self.repo.create_many(rows)
        self.session.commit()
        return {"criados": quantidade, "recorrencia_id": recorrencia_id}

    def _apply_update(self, lancamento: Lancamento, changes: dict) -> None:
        if "is_agrupador" in changes and changes["is_agrupador"] is False:
            if lancamento.filhos:
                raise ValidationError(
                    "Não é possível desfazer um agrupador que possui filhos"
                )
        if changes.get("is_agrupador") and lancamento.parent_id:
            raise ValidationError("Agrupador não pode estar dentro de outro agrupador")
        if "categoria_id" in changes:
            self._check_categoria(changes["categoria_id"], lancamento.tipo)
        for field, value in changes.items():
            if field in ("nome", "valor", "concluido", "is_agrupador", "valor_modo"):
                if value is None:
                    continue
            setattr(lancamento, field, value)
        derived = lancamento.is_agrupador and lancamento.valor_modo == ValorModo.soma
        if lancamento.valor <= 0 and not derived:
            raise ValidationError("Valor deve ser maior que zero")

    def update(self, lancamento_id: str, data: LancamentoUpdate) -> dict:
        lancamento = self._get(lancamento_id)
        self._apply_update(lancamento, data.changes())
        return self._month_after_commit(lancamento.mes)

    def toggle_concluido(self, lancamento_id: str) -> dict:
        lancamento = self._get(lancamento_id)
        lancamento.concluido = not lancamento.concluido
        if lancamento.is_agrupador:
            for filho in lancamento.filhos:
                filho.concluido = lancamento.concluido
        return self._month_after_commit(lancamento.mes)

    def delete(self, lancamento_id: str, force: bool = False) -> dict:
        lancamento = self._get(lancamento_id)
        filhos = len(lancamento.filhos) if lancamento.is_agrupador else 0
        if filhos and not force:
            raise ValidationError(
                f"Agrupador possui {filhos} filhos. "
                "Confirme a exclusão com force=true"
            )
        mes = lancamento.mes
        self.repo.delete(lancamento)
        return self._month_after_commit(mes)

    def list_filhos(self, parent_id: str) -> list[dict]:
        self._get_agrupador(parent_id)
        categorias = self._categorias()
        return [
            serialize_lancamento(f, categorias, with_filhos=False)
            for f in self.repo.find_filhos(parent_id)
        ]

    def create_filho(self, parent_id: str, data: FilhoIn) -> dict:
        parent = self._get_agrupador(parent_id)
        self._check_child_of(parent, data.tipo, parent.mes)
        self._check_categoria(data.categoria_id, data.tipo)
        self.repo.create(
            tipo=data.tipo,
            nome=data.nome,
            valor=data.valor,
            mes=parent.mes,
            concluido=data.concluido,
            data_prevista=data.data_prevista,
            categoria_id=data.categoria_id,
            parent_id=parent.id,
            is_agrupador=False,
            valor_modo=ValorModo.soma,
        )
        return self._month_after_commit(parent.mes)

    def get_agrupador(self, lancamento_id: str) -> dict:
        lancamento = self.repo.get(lancamento_id)
        if not lancamento or not lancamento.is_agrupador:
            raise NotFoundError("Agrupador não encontrado")
        return serialize_lancamento(lancamento, self._categorias())

    def move_filho(self, filho_id: str, novo_parent_id: str) -> dict:
        filho = self._get(filho_id)
        if filho.parent_id is None:
            raise ValidationError("Lançamento não pertence a um agrupador")
        novo_parent = self.repo.get(novo_parent_id)
        if not novo_parent:
            raise NotFoundError("Agrupador não encontrado")
        self._check_child_of(novo_parent, filho.tipo, filho.mes)
        if novo_parent.id != filho.parent_id:
            filho.parent = novo_parent
        return self._month_after_commit(filho.mes)

    def _series(self, lancamento: Lancamento, escopo: str) -> list[Lancamento]:
        if escopo == "apenas_este" or not lancamento.recorrencia_id:
            return [lancamento]
        from_mes = lancamento.mes if escopo == "este_e_proximos" else None
        return self.repo.find_series(lancamento.recorrencia_id, from_mes)

    def recurrence_info(self, lancamento_id: str) -> dict:
        lancamento = self._get(lancamento_id)
        todos = self._series(lancamento, "todos")
        proximos = [l for l in todos if l.mes >= lancamento.mes]
        concluidos = sum(1 for l in todos if l.concluido)
        return {
            "recorrenciaId": lancamento.recorrencia_id,
            "total": len(todos),
            "concluidos": concluidos,
            "pendentes": len(todos) - concluidos,
            "primeiroMes": todos[0].mes,
            "ultimoMes": todos[-1].mes,
            "mesAtual": lancamento.mes,
            "contagemPorEscopo": {
                "apenas_este": 1,
                "este_e_proximos": len(proximos),
                "todos": len(todos),
            },
        }

    @staticmethod
    def _propagated_name(nome: str, current: str) -> str:
        base_match = _PARCELA_SUFFIX.match(nome)
        base = base_match.group(1) if base_match else nome
        current_match = _PARCELA_SUFFIX.match(current)
        if current_match:
            return f"{base} ({current_match.group(2)}/{current_match.group(3)})"
        return base

    def update_recurrence(self, lancamento_id: str, data: RecorrenciaUpdateIn) -> dict:
        lancamento = self._get(lancamento_id)
        changes = data.dados.changes()
        campos = set(data.campos) if data.campos is not None else None
        targets = self._series(lancamento, data.escopo)
        for target in targets:
            if target.id == lancamento.id:
                self._apply_update(target, changes)
                continue
            propagated: dict[str, Any] = {}
            for field, value in changes.items():
                if field in ("is_agrupador", "valor_modo"):
                    continue
                if campos is not None and field not in campos:
                    continue
                if field == "nome" and value:
                    value = self._propagated_name(value, target.nome)
                elif field == "data_prevista" and value is not None:
                    value = day_in_month(target.mes, value.day)
                propagated[field] = value
            self._apply_update(target, propagated)
        self.session.commit()
        return {"atualizados": len(targets)}

    def delete_recurrence(self, lancamento_id: str, escopo: str) -> dict:
        lancamento = self._get(lancamento_id)
        targets = self._series(lancamento, escopo)
        for target in targets:
            self.repo.delete(target)
        self.session.commit()
        return {"excluidos": len(targets)}


class DashboardService:
    def __init__(self, session: Session, ctx: Contexto) -> None:
        self.session = session
        self.ctx = ctx
        self.repo = DashboardRepository(session, ctx.perfil_id)

    @staticmethod
    def _contributions(rows: list[Lancamento]) -> list[Lancamento]:
        """Rows whose own valor counts toward reports, each amount once."""
        by_id = {row.id: row for row in rows}
        result = []
        for row in rows:
            if row.is_agrupador and row.valor_modo == ValorModo.soma:
                continue
            if row.parent_id is not None:
                parent = by_id.get(row.parent_id)
                if parent is None or parent.valor_modo == ValorModo.fixo:
                    continue
            result.append(row)
        return result

    @staticmethod
    def _vencimento(row: Lancamento) -> dict:
        return {
            "id": row.id,
            "nome": row.nome,
            "valor": money(calculated_value(row)),
            "data_prevista": _iso(row.data_prevista),
        }

    def get(self, mes: Optional[str] = None) -> dict:
        hoje = today()
        mes_atual = current_month(hoje)
        mes_selecionado = mes or mes_atual
        meses = last_months(6, hoje)

        roots = LancamentoRepository(
            self.session, self.ctx.user_id, self.ctx.perfil_id
        ).find_by_mes(mes_selecionado)
        categorias = CategoriaLookup(self.session, self.ctx.user_id)

        historico_rows = self._contributions(self.repo.find_by_months(meses))
        historico_map = {m: {"entradas": ZERO, "saidas": ZERO} for m in meses}
        gastos: dict[Optional[str], Decimal] = {}
        for row in historico_rows:
            key = "entradas" if row.tipo == TipoLancamento.entrada else "saidas"
            historico_map[row.mes][key] += row.valor
            if row.tipo == TipoLancamento.saida:
                categoria_id = row.categoria_id if categorias.get(row.categoria_id) else None
                gastos[categoria_id] = gastos.get(categoria_id, ZERO) + row.valor

        if mes_selecionado == mes_atual:
            vencimentos = self.repo.find_upcoming(hoje, hoje + timedelta(days=7), 5)
        else:
            vencimentos = self.repo.find_pending_by_mes(mes_selecionado, 5)

        total_gastos = sum(gastos.values(), ZERO)
        gastos_por_categoria = []
        for categoria_id, total in sorted(gastos.items(), key=lambda kv: kv[1], reverse=True):
            categoria = categorias.get(categoria_id)
            gastos_por_categoria.append(
                {
                    "categoria_id": categoria_id,
                    "categoria_nome": categoria["nome"] if categoria else "Sem categoria",
                    "categoria_icone": categoria["icone"] if categoria else None,
                    "categoria_cor": categoria["cor"] if categoria else SEM_CATEGORIA_COR,
                    "total": money(total),
                    "percentual": (
                        float(total / total_gastos * 100) if total_gastos > 0 else 0.0
                    ),
                }
            )

        return {
            "mesAtual": mes_selecionado,
            "totais": compute_totais(roots),
            "recentLancamentos": [
                serialize_lancamento(l, categorias, with_filhos=False)
                for l in self.repo.find_recent(mes_selecionado, 5)
            ],
            "historico": [
                {
                    "mes": m,
                    "label": month_label(m),
                    "entradas": money(historico_map[m]["entradas"]),
                    "saidas": money(historico_map[m]["saidas"]),
                }
                for m in meses
            ],
            "pendentesEntrada": sum(
                1 for l in roots if l.tipo == TipoLancamento.entrada and not l.concluido
            ),
            "pendentesSaida": sum(
                1 for l in roots if l.tipo == TipoLancamento.saida and not l.concluido
            ),
            "proximosVencimentos": [self._vencimento(v) for v in vencimentos],
            "gastosPorCategoria": gastos_por_categoria,
        }
