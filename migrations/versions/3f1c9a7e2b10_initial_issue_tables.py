"""initial_issue_tables

Creates the issue workflow schema:
  - issue_categories   - issue classification (reference data)
  - areas              - shopfloor areas (reference data)
  - users              - users with a numeric role level
  - issues             - shopfloor issues, L1-L4 escalation tier
  - issue_escalations  - append-only escalation history
  - issue_resolutions  - one closure record per issue
  - ai_suggestions     - rule-based suggestion captured on creation

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: 3f1c9a7e2b10
Revises:
Create Date: 2026-10-19 09:12:44.118402
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '3f1c9a7e2b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Reference data ────────────────────────────────────────────────────
    if "issue_categories" not in existing:
        op.create_table(
            "issue_categories",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )

    if "areas" not in existing:
        op.create_table(
            "areas",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )

    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("username", sa.String(length=80), nullable=False),
            sa.Column("display_name", sa.String(length=150), nullable=True),
            sa.Column("role", sa.String(length=30), nullable=True),
            sa.Column("role_level", sa.Integer(), nullable=False,
                      comment="1 operator | 2 team lead | 3 manager | 99 admin"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("username"),
        )

    # ── Issues ────────────────────────────────────────────────────────────
    if "issues" not in existing:
        op.create_table(
            "issues",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("issue_number", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False,
                      comment="OPEN | ESCALATED | RESOLVED"),
            sa.Column("level", sa.Integer(), nullable=False, comment="1-4"),
            sa.Column("priority", sa.String(length=10), nullable=False,
                      comment="LOW | MEDIUM | HIGH"),
            sa.Column("source", sa.String(length=20), nullable=False,
                      comment="manual | gemba | production"),
            sa.Column("category_id", sa.String(length=36), nullable=True),
            sa.Column("area_id", sa.String(length=36), nullable=True),
            sa.Column("created_by", sa.String(length=36), nullable=True,
                      comment="users.id of the reporter"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["category_id"], ["issue_categories.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["area_id"], ["areas.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_issues_issue_number", "issues", ["issue_number"], unique=True)
        op.create_index("ix_issues_status", "issues", ["status"])
        op.create_index("ix_issues_level", "issues", ["level"])
        op.create_index("ix_issues_category_id", "issues", ["category_id"])
        op.create_index("ix_issues_area_id", "issues", ["area_id"])
        op.create_index("ix_issues_created_at", "issues", ["created_at"])

    # ── Escalation history ────────────────────────────────────────────────
    if "issue_escalations" not in existing:
        op.create_table(
            "issue_escalations",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("issue_id", sa.String(length=36), nullable=False),
            sa.Column("from_level", sa.Integer(), nullable=False),
            sa.Column("to_level", sa.Integer(), nullable=False),
            sa.Column("reason", sa.Text(), nullable=False),
            sa.Column("escalated_by", sa.String(length=36), nullable=True, comment="users.id"),
            sa.Column("escalated_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("to_level > from_level", name="ck_issue_escalations_upward"),
            sa.ForeignKeyConstraint(["issue_id"], ["issues.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_issue_escalations_issue_id", "issue_escalations", ["issue_id"])
        op.create_index("ix_issue_escalations_escalated_at", "issue_escalations", ["escalated_at"])

    # ── Resolutions ───────────────────────────────────────────────────────
    if "issue_resolutions" not in existing:
        op.create_table(
            "issue_resolutions",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("issue_id", sa.String(length=36), nullable=False),
            sa.Column("resolution", sa.Text(), nullable=False),
            sa.Column("resolved_by", sa.String(length=36), nullable=True, comment="users.id"),
            sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("downtime_prevented", sa.Float(), nullable=True, comment="minutes"),
            sa.Column("defects_reduced", sa.Float(), nullable=True),
            sa.Column("cost_savings", sa.Float(), nullable=True),
            sa.ForeignKeyConstraint(["issue_id"], ["issues.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("issue_id"),
        )
        op.create_index("ix_issue_resolutions_resolved_at", "issue_resolutions", ["resolved_at"])

    # ── AI suggestions ────────────────────────────────────────────────────
    if "ai_suggestions" not in existing:
        op.create_table(
            "ai_suggestions",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("issue_id", sa.String(length=36), nullable=False),
            sa.Column("suggested_level", sa.Integer(), nullable=False),
            sa.Column("reason", sa.Text(), nullable=False),
            sa.Column("confidence", sa.Float(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["issue_id"], ["issues.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("issue_id"),
        )


def downgrade():
    op.drop_table("ai_suggestions")
    op.drop_index("ix_issue_resolutions_resolved_at", table_name="issue_resolutions")
    op.drop_table("issue_resolutions")
    op.drop_index("ix_issue_escalations_escalated_at", table_name="issue_escalations")
    op.drop_index("ix_issue_escalations_issue_id", table_name="issue_escalations")
    op.drop_table("issue_escalations")
    for index in ("created_at", "area_id", "category_id", "level", "status", "issue_number"):
        op.drop_index(f"ix_issues_{index}", table_name="issues")
    op.drop_table("issues")
    op.drop_table("users")
    op.drop_table("areas")
    op.drop_table("issue_categories")
