"""001 – Initial schema: employees, leave requests, approval steps, audit trail.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 10:00:00.000000+00:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("user_role", ["employee", "hod", "hr", "ged", "admin"]),
    (
        "department",
        [
            "VAS",
            "VOICE",
            "ACCOUNTS",
            "NOC",
            "OSP",
            "ADMIN",
            "CUSTOMER SERVICE",
            "FIELD",
            "MARKETING",
        ],
    ),
    ("leave_type", ["Annual Leave", "Sick Leave", "Casual Leave", "Other"]),
    (
        "leave_status",
        ["Pending", "Active", "Approved", "Rejected", "Over", "Cancelled"],
    ),
    ("approval_role", ["HOD", "HR", "GED"]),
    ("stage_decision", ["pending", "approved", "rejected"]),
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
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            staff_id        VARCHAR(20) UNIQUE NOT NULL,
            email           VARCHAR(255) UNIQUE NOT NULL,
            first_name      VARCHAR(100) NOT NULL,
            last_name       VARCHAR(100) NOT NULL,
            department      department NOT NULL,
            role            user_role NOT NULL DEFAULT 'employee',
            is_hod          BOOLEAN NOT NULL DEFAULT FALSE,
            leave_total     INTEGER NOT NULL,
            leave_available INTEGER NOT NULL,
            leave_used      INTEGER NOT NULL DEFAULT 0,
            is_active       BOOLEAN NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_employee_leave_balance
                CHECK (leave_total = leave_available + leave_used),
            CONSTRAINT ck_employee_leave_available CHECK (leave_available >= 0),
            CONSTRAINT ck_employee_leave_used CHECK (leave_used >= 0)
        )
    """)
    op.execute("CREATE INDEX ix_employees_department ON employees(department)")

    # ── 2. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id      UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            leave_type       leave_type NOT NULL,
            other_leave_type VARCHAR(100),
            from_date        DATE NOT NULL,
            to_date          DATE NOT NULL,
            total_days       INTEGER NOT NULL,
            reason           TEXT,
            reliever_id      UUID REFERENCES employees(id) ON DELETE SET NULL,
            status           leave_status NOT NULL DEFAULT 'Pending',
            stage            INTEGER NOT NULL DEFAULT 1,
            is_editable      BOOLEAN NOT NULL DEFAULT TRUE,
            is_active        BOOLEAN NOT NULL DEFAULT FALSE,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_stage CHECK (stage BETWEEN 1 AND 3),
            CONSTRAINT ck_leave_date_range CHECK (to_date >= from_date)
        )
    """)
    op.execute("CREATE INDEX ix_leave_requests_employee ON leave_requests(employee_id)")
    op.execute(
        "CREATE INDEX ix_leave_requests_status_stage ON leave_requests(status, stage)"
    )

    # ── 3. approval_steps ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE approval_steps (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            leave_id    UUID NOT NULL REFERENCES leave_requests(id) ON DELETE CASCADE,
            approver_id UUID REFERENCES employees(id) ON DELETE SET NULL,
            role        approval_role NOT NULL,
            stage       INTEGER NOT NULL,
            decision    stage_decision NOT NULL,
            comments    TEXT,
            decided_at  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_approval_step_stage UNIQUE (leave_id, stage)
        )
    """)

    # ── 4. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id    UUID REFERENCES employees(id) ON DELETE SET NULL,
            action      VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id   UUID NOT NULL,
            old_values  JSONB,
            new_values  JSONB,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail(actor_id)")
    op.execute(
        "CREATE INDEX ix_audit_trail_entity ON audit_trail(entity_type, entity_id)"
    )
    op.execute("CREATE INDEX ix_audit_trail_action ON audit_trail(action)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "approval_steps",
        "leave_requests",
        "employees",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)
