"""001 – Initial schema: directory, policies, balances, requests, events.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 10:00:00.000000+05:30
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("leave_status", ["pending", "approved", "rejected"]),
    ("half_day_period", ["morning", "afternoon"]),
]

TABLES = [
    "leave_events",
    "leave_requests",
    "leave_balances",
    "leave_policies",
    "employees",
    "departments",
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. directory (shared with the HR directory service) ─────────────
    op.execute("""
        CREATE TABLE IF NOT EXISTS departments (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name VARCHAR(150) NOT NULL UNIQUE,
            code VARCHAR(20) UNIQUE,
            is_active BOOLEAN DEFAULT TRUE,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS employees (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code VARCHAR(20) NOT NULL UNIQUE,
            first_name VARCHAR(100) NOT NULL,
            last_name VARCHAR(100) NOT NULL,
            email VARCHAR(255) NOT NULL UNIQUE,
            department_id UUID REFERENCES departments(id),
            is_active BOOLEAN DEFAULT TRUE,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. leave_policies ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_policies (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            leave_type VARCHAR(50) NOT NULL,
            name VARCHAR(100),
            description TEXT,
            total_days_per_year NUMERIC(7,2) NOT NULL DEFAULT 0,
            can_carry_forward BOOLEAN DEFAULT FALSE,
            max_carry_forward_days NUMERIC(7,2) NOT NULL DEFAULT 0,
            requires_approval BOOLEAN DEFAULT TRUE,
            allow_half_day BOOLEAN DEFAULT TRUE,
            allow_negative_balance BOOLEAN DEFAULT FALSE,
            min_notice_days INTEGER DEFAULT 0,
            max_days_per_request NUMERIC(7,2),
            is_active BOOLEAN DEFAULT TRUE,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_policy_total_days CHECK (total_days_per_year >= 0),
            CONSTRAINT ck_policy_carry_forward
                CHECK (max_carry_forward_days <= total_days_per_year)
        )
    """)
    op.create_index("ix_leave_policies_leave_type", "leave_policies", ["leave_type"])
    op.create_index(
        "uq_leave_policies_active_type",
        "leave_policies",
        ["leave_type"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    # ── 3. leave_balances ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            leave_type VARCHAR(50) NOT NULL,
            year INTEGER NOT NULL,
            policy_id UUID NOT NULL REFERENCES leave_policies(id),
            base_entitlement NUMERIC(7,2) NOT NULL DEFAULT 0,
            carried_forward NUMERIC(7,2) NOT NULL DEFAULT 0,
            adjusted NUMERIC(7,2) NOT NULL DEFAULT 0,
            used NUMERIC(7,2) NOT NULL DEFAULT 0,
            version INTEGER NOT NULL DEFAULT 1,
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_balances_employee_type_year
                UNIQUE (employee_id, leave_type, year),
            CONSTRAINT ck_leave_balances_used CHECK (used >= 0)
        )
    """)
    op.create_index("ix_leave_balances_employee_id", "leave_balances", ["employee_id"])
    op.create_index("ix_leave_balances_policy_id", "leave_balances", ["policy_id"])

    # ── 4. leave_requests ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id UUID NOT NULL REFERENCES employees(id),
            leave_type VARCHAR(50) NOT NULL,
            policy_id UUID NOT NULL REFERENCES leave_policies(id),
            start_date DATE NOT NULL,
            end_date DATE NOT NULL,
            total_days NUMERIC(7,2) NOT NULL,
            is_half_day BOOLEAN DEFAULT FALSE,
            half_day_period half_day_period,
            status leave_status NOT NULL DEFAULT 'pending',
            is_paid BOOLEAN,
            paid_days NUMERIC(7,2),
            unpaid_days NUMERIC(7,2),
            charged_days NUMERIC(7,2) NOT NULL DEFAULT 0,
            paid_status_overridden BOOLEAN DEFAULT FALSE,
            balance_shortfall NUMERIC(7,2) NOT NULL DEFAULT 0,
            reason TEXT,
            submitted_at TIMESTAMPTZ DEFAULT NOW(),
            reviewed_at TIMESTAMPTZ,
            reviewed_by UUID,
            reviewer_comments TEXT,
            revoked_at TIMESTAMPTZ,
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_requests_dates CHECK (end_date >= start_date),
            CONSTRAINT ck_leave_requests_total_days CHECK (total_days > 0)
        )
    """)
    op.create_index("ix_leave_requests_leave_type", "leave_requests", ["leave_type"])
    op.create_index(
        "ix_leave_requests_employee_status", "leave_requests", ["employee_id", "status"],
    )
    op.create_index("ix_leave_requests_dates", "leave_requests", ["start_date", "end_date"])

    # ── 5. leave_events (outbox) ────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_events (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            event_type VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id UUID NOT NULL,
            employee_id UUID,
            actor_id UUID,
            payload JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            delivered_at TIMESTAMPTZ
        )
    """)
    op.create_index("ix_leave_events_entity", "leave_events", ["entity_type", "entity_id"])
    op.create_index("ix_leave_events_delivered_at", "leave_events", ["delivered_at"])


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    for table in TABLES:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)
