"""initial schema

Revision ID: 202610190900
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "202610190900"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return (
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )


def upgrade():
    op.create_table(
        "usuarios",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("nome", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("senha_hash", sa.String(length=255), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "sessoes",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("usuarios.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("token", sa.String(length=64), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_sessoes_expires_at", "sessoes", ["expires_at"])

    op.create_table(
        "perfis",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "usuario_id",
            sa.String(length=36),
            sa.ForeignKey("usuarios.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("nome", sa.String(length=100), nullable=False),
        sa.Column("descricao", sa.Text()),
        sa.Column("cor", sa.String(length=7)),
        sa.Column("icone", sa.String(length=50)),
        sa.Column(
            "is_perfil_padrao", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("ativo", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_perfis_usuario_id", "perfis", ["usuario_id"])

    op.create_table(
        "categorias",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("usuarios.id", ondelete="CASCADE"),
        ),
        sa.Column("nome", sa.String(length=50), nullable=False),
        sa.Column(
            "tipo", sa.Enum("entrada", "saida", name="tipolancamento"), nullable=False
        ),
        sa.Column("icone", sa.String(length=50)),
        sa.Column("cor", sa.String(length=7)),
        sa.Column("ordem", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )

    op.create_table(
        "lancamentos",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("usuarios.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "perfil_id",
            sa.String(length=36),
            sa.ForeignKey("perfis.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "tipo",
            postgresql.ENUM(
                "entrada", "saida", name="tipolancamento", create_type=False
            ),
            nullable=False,
        ),
        sa.Column("nome", sa.String(length=100), nullable=False),
        sa.Column("valor", sa.Numeric(12, 2), nullable=False),
        sa.Column("mes", sa.String(length=7), nullable=False),
        sa.Column("concluido", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("data_prevista", sa.Date()),
        sa.Column("categoria_id", sa.String(length=64)),
        sa.Column(
            "parent_id",
            sa.String(length=36),
            sa.ForeignKey("lancamentos.id", ondelete="CASCADE"),
        ),
        sa.Column(
            "is_agrupador", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "valor_modo",
            sa.Enum("soma", "fixo", name="valormodo"),
            nullable=False,
            server_default="soma",
        ),
        sa.Column("recorrencia_id", sa.String(length=36)),
        *_timestamps(),
        sa.CheckConstraint(
            "valor > 0 OR (is_agrupador AND valor >= 0)",
            name="ck_lancamento_valor_positivo",
        ),
        sa.CheckConstraint("mes LIKE '____-__'", name="ck_lancamento_mes_formato"),
    )
    op.create_index("ix_lancamentos_perfil_mes", "lancamentos", ["perfil_id", "mes"])
    op.create_index("ix_lancamentos_recorrencia", "lancamentos", ["recorrencia_id"])
    op.create_index("ix_lancamentos_parent", "lancamentos", ["parent_id"])

    op.create_table(
        "configuracoes",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("usuarios.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "perfil_id",
            sa.String(length=36),
            sa.ForeignKey("perfis.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("chave", sa.String(length=100), nullable=False),
        sa.Column("valor", sa.JSON()),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("perfil_id", "chave", name="uq_configuracao_perfil_chave"),
    )


def downgrade():
    op.drop_table("configuracoes")
    op.drop_index("ix_lancamentos_parent", table_name="lancamentos")
    op.drop_index("ix_lancamentos_recorrencia", table_name="lancamentos")
    op.drop_index("ix_lancamentos_perfil_mes", table_name="lancamentos")
    op.drop_table("lancamentos")
    op.drop_table("categorias")
    op.drop_index("ix_perfis_usuario_id", table_name="perfis")
    op.drop_table("perfis")
    op.drop_index("ix_sessoes_expires_at", table_name="sessoes")
    op.drop_table("sessoes")
    op.drop_table("usuarios")
    sa.Enum(name="valormodo").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="tipolancamento").drop(op.get_bind(), checkfirst=True)
