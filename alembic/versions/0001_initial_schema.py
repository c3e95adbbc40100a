"""Tracked packages, download stats, download history and ingestion runs.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19
"""
import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

PACKAGE_MANAGERS = ("npm", "docker", "nuget", "pypi", "maven", "cargo")
REFRESH_MODES = ("pending", "daily")
INGESTION_MODES = ("daily", "bootstrap")
RUN_STATUSES = ("running", "success", "partial", "failed")

JSON_PAYLOAD = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "tracked_packages",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(36), nullable=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("package_name", sa.String(500), nullable=False),
        sa.Column("package_url", sa.String(2048), nullable=True),
        sa.Column(
            "package_manager",
            sa.Enum(*PACKAGE_MANAGERS, name="package_manager_type"),
            nullable=False,
            server_default="npm",
        ),
        sa.Column(
            "stats_refresh_mode",
            sa.Enum(*REFRESH_MODES, name="stats_refresh_mode"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("stats_bootstrapped_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_tracked_packages_organization_id", "tracked_packages", ["organization_id"])
    op.create_index(
        "idx_tracked_packages_manager_mode",
        "tracked_packages",
        ["package_manager", "stats_refresh_mode"],
    )

    op.create_table(
        "download_stats",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column(
            "package_id",
            sa.String(36),
            sa.ForeignKey("tracked_packages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("downloads_day", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("downloads_week", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("downloads_month", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("downloads_year", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("cumulative_baseline", sa.BigInteger, nullable=True),
        sa.Column("raw_data", JSON_PAYLOAD, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("package_id", "date", name="uq_download_stats_package_date"),
    )
    op.create_index("ix_download_stats_package_id", "download_stats", ["package_id"])
    op.create_index("idx_download_stats_package_date", "download_stats", ["package_id", "date"])

    op.create_table(
        "download_history",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column(
            "package_id",
            sa.String(36),
            sa.ForeignKey("tracked_packages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("downloads", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "package_id", "start_date", "end_date",
            name="uq_download_history_package_range",
        ),
    )
    op.create_index("ix_download_history_package_id", "download_history", ["package_id"])
    op.create_index("idx_download_history_package_start", "download_history", ["package_id", "start_date"])

    op.create_table(
        "ingestion_runs",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("run_id", sa.String(36), nullable=False, unique=True),
        sa.Column("mode", sa.Enum(*INGESTION_MODES, name="ingestion_mode"), nullable=False),
        sa.Column("package_id", sa.String(36), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*RUN_STATUSES, name="ingestion_run_status"),
            nullable=False,
            server_default="running",
        ),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_seconds", sa.Float, nullable=True),
        sa.Column("packages_processed", sa.Integer, nullable=True, server_default="0"),
        sa.Column("packages_succeeded", sa.Integer, nullable=True, server_default="0"),
        sa.Column("packages_failed", sa.Integer, nullable=True, server_default="0"),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("results", JSON_PAYLOAD, nullable=True),
    )
    op.create_index("ix_ingestion_runs_run_id", "ingestion_runs", ["run_id"])
    op.create_index("ix_ingestion_runs_status", "ingestion_runs", ["status"])
    op.create_index("idx_ingestion_runs_mode_started", "ingestion_runs", ["mode", "started_at"])


def downgrade() -> None:
    op.drop_index("idx_ingestion_runs_mode_started", table_name="ingestion_runs")
    op.drop_index("ix_ingestion_runs_status", table_name="ingestion_runs")
    op.drop_index("ix_ingestion_runs_run_id", table_name="ingestion_runs")
    op.drop_table("ingestion_runs")

    op.drop_index("idx_download_history_package_start", table_name="download_history")
    op.drop_index("ix_download_history_package_id", table_name="download_history")
    op.drop_table("download_history")

    op.drop_index("idx_download_stats_package_date", table_name="download_stats")
    op.drop_index("ix_download_stats_package_id", table_name="download_stats")
    op.drop_table("download_stats")

    op.drop_index("idx_tracked_packages_manager_mode", table_name="tracked_packages")
    op.drop_index("ix_tracked_packages_organization_id", table_name="tracked_packages")
    op.drop_table("tracked_packages")

    bind = op.get_bind()
    for name in ("ingestion_run_status", "ingestion_mode", "stats_refresh_mode", "package_manager_type"):
        sa.Enum(name=name).drop(bind, checkfirst=True)
