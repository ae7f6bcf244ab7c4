"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def _user_fk(name: str) -> sa.Column:
    return sa.Column(name, sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)


def upgrade() -> None:
    """Create the full SafeWorkCA schema."""
    conn = op.get_bind()
    existing_tables = set(sa.inspect(conn).get_table_names())

    # users/organizations reference each other; the users -> organizations FK is added afterwards
    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("first_name", sa.String(128), nullable=True),
            sa.Column("last_name", sa.String(128), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("organization_id", sa.Integer(), nullable=True),
            sa.Column("invite_token_hash", sa.String(64), nullable=True, unique=True),
            sa.Column("invite_expires_at", sa.DateTime(), nullable=True),
            sa.Column("last_login_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_users_organization_id", "users", ["organization_id"])

    if "roles" not in existing_tables:
        op.create_table(
            "roles",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(64), nullable=False, unique=True),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "permissions" not in existing_tables:
        op.create_table(
            "permissions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(128), nullable=False, unique=True),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "user_roles" not in existing_tables:
        op.create_table(
            "user_roles",
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        )

    if "role_permissions" not in existing_tables:
        op.create_table(
            "role_permissions",
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
            sa.Column(
                "permission_id", sa.Integer(), sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
            ),
        )

    if "organizations" not in existing_tables:
        op.create_table(
            "organizations",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("public_id", sa.String(32), nullable=False, unique=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("dba", sa.String(255), nullable=True),
            sa.Column("street", sa.String(255), nullable=False),
            sa.Column("city", sa.String(128), nullable=False),
            sa.Column("state", sa.String(2), nullable=False, server_default="CA"),
            sa.Column("zip", sa.String(16), nullable=False),
            sa.Column("phone", sa.String(64), nullable=False),
            sa.Column("email", sa.String(320), nullable=False),
            sa.Column("industry", sa.String(64), nullable=False),
            sa.Column("employee_count", sa.Integer(), nullable=False),
            sa.Column("workplace_types", JSON, nullable=False),
            sa.Column("stripe_customer_id", sa.String(128), nullable=True),
            sa.Column("stripe_subscription_id", sa.String(128), nullable=True),
            sa.Column("plan", sa.String(32), nullable=False, server_default="free"),
            sa.Column("plan_expires_at", sa.DateTime(), nullable=True),
            sa.Column("settings", JSON, nullable=False),
            sa.Column("wvpp_created_at", sa.DateTime(), nullable=True),
            sa.Column("last_training_date", sa.DateTime(), nullable=True),
            sa.Column("next_training_due_date", sa.DateTime(), nullable=True),
            sa.Column("last_plan_review_date", sa.DateTime(), nullable=True),
            sa.Column("next_plan_review_due_date", sa.DateTime(), nullable=True),
            sa.Column("compliance_score", sa.Integer(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            *_timestamps(),
            _user_fk("created_by_user_id"),
        )
        op.create_index("idx_organizations_stripe_customer", "organizations", ["stripe_customer_id"])

    if "users" not in existing_tables:
        with op.batch_alter_table("users") as batch:
            batch.create_foreign_key(
                "fk_users_organization_id", "organizations", ["organization_id"], ["id"], ondelete="SET NULL"
            )

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column(
                "organization_id", sa.Integer(), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True
            ),
            _user_fk("actor_user_id"),
            sa.Column("actor_user_email", sa.String(320), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("reason", sa.String(512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.Column("client_ip", sa.String(64), nullable=True),
            sa.UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
        )
        op.create_index("idx_audit_org_created", "audit_events", ["organization_id", "created_at"])

    if "employees" not in existing_tables:
        op.create_table(
            "employees",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "organization_id", sa.Integer(), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column(
                "user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, unique=True
            ),
            sa.Column("first_name", sa.String(128), nullable=False),
            sa.Column("last_name", sa.String(128), nullable=False),
            sa.Column("email", sa.String(320), nullable=False),
            sa.Column("phone", sa.String(64), nullable=True),
            sa.Column("department", sa.String(128), nullable=True),
            sa.Column("job_title", sa.String(128), nullable=True),
            sa.Column("role", sa.String(32), nullable=False, server_default="employee"),
            sa.Column("hire_date", sa.Date(), nullable=True),
            sa.Column("termination_date", sa.DateTime(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("invite_status", sa.String(16), nullable=False, server_default="pending"),
            sa.Column("invite_sent_at", sa.DateTime(), nullable=True),
            sa.Column("invite_accepted_at", sa.DateTime(), nullable=True),
            sa.Column("last_portal_login", sa.DateTime(), nullable=True),
            sa.Column("initial_training_completed_at", sa.DateTime(), nullable=True),
            sa.Column("last_annual_training_completed_at", sa.DateTime(), nullable=True),
            sa.Column("next_training_due_date", sa.DateTime(), nullable=True),
            sa.Column("training_started_at", sa.DateTime(), nullable=True),
            sa.Column("training_completed_at", sa.DateTime(), nullable=True),
            sa.Column("current_module_order", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("has_completed_qa", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("qa_completed_at", sa.DateTime(), nullable=True),
            sa.Column("wvpp_acknowledged_at", sa.DateTime(), nullable=True),
            sa.Column("wvpp_acknowledged_version", sa.Integer(), nullable=True),
            *_timestamps(),
            sa.UniqueConstraint("organization_id", "email", name="uq_employees_org_email"),
        )
        op.create_index("idx_employees_org_active", "employees", ["organization_id", "is_active"])
        op.create_index("idx_employees_next_training_due", "employees", ["next_training_due_date"])

    if "plans" not in existing_tables:
        op.create_table(
            "plans",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "organization_id", sa.Integer(), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
            sa.Column("responsible_persons", JSON, nullable=False),
            sa.Column("employee_involvement", JSON, nullable=False),
            sa.Column("compliance_procedures", JSON, nullable=False),
            sa.Column("communication_system", JSON, nullable=False),
            sa.Column("emergency_response", JSON, nullable=False),
            sa.Column("hazard_assessments", JSON, nullable=False),
            sa.Column("hazard_correction_procedures", JSON, nullable=False),
            sa.Column("post_incident_procedures", JSON, nullable=False),
            sa.Column("training_program", JSON, nullable=False),
            sa.Column("recordkeeping_procedures", JSON, nullable=False),
            sa.Column("plan_accessibility", JSON, nullable=False),
            sa.Column("review_schedule", JSON, nullable=False),
            sa.Column("authorization", JSON, nullable=False),
            sa.Column("published_at", sa.DateTime(), nullable=True),
            sa.Column("archived_at", sa.DateTime(), nullable=True),
            *_timestamps(),
            _user_fk("created_by_user_id"),
            _user_fk("updated_by_user_id"),
        )
        op.create_index("idx_plans_org_status", "plans", ["organization_id", "status"])

    if "incidents" not in existing_tables:
        op.create_table(
            "incidents",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "organization_id", sa.Integer(), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("plan_id", sa.Integer(), sa.ForeignKey("plans.id", ondelete="RESTRICT"), nullable=False),
            sa.Column("incident_date", sa.Date(), nullable=False),
            sa.Column("incident_time", sa.String(5), nullable=False),
            sa.Column("location_type", sa.String(32), nullable=False),
            sa.Column("location_description", sa.Text(), nullable=False),
            sa.Column("workplace_violence_types", JSON, nullable=False),
            sa.Column("incident_types", JSON, nullable=False),
            sa.Column("detailed_description", sa.Text(), nullable=False),
            sa.Column("perpetrator_classification", sa.String(64), nullable=False),
            sa.Column("circumstances", JSON, nullable=False),
            sa.Column("consequences", JSON, nullable=False),
            sa.Column("injuries", JSON, nullable=False),
            sa.Column("emergency_medical", JSON, nullable=False),
            sa.Column("cal_osha_reporting", JSON, nullable=False),
            sa.Column("completed_by_name", sa.String(255), nullable=False),
            sa.Column("completed_by_title", sa.String(255), nullable=False),
            sa.Column("completed_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("investigation_status", sa.String(16), nullable=False, server_default="pending"),
            sa.Column("investigation_notes", sa.Text(), nullable=True),
            sa.Column("corrective_actions_taken", JSON, nullable=False),
            *_timestamps(),
            _user_fk("created_by_user_id"),
            _user_fk("updated_by_user_id"),
        )
        op.create_index("idx_incidents_org_date", "incidents", ["organization_id", "incident_date"])
        op.create_index("idx_incidents_org_status", "incidents", ["organization_id", "investigation_status"])

    if "training_modules" not in existing_tables:
        op.create_table(
            "training_modules",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("module_key", sa.String(64), nullable=False, unique=True),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("order", sa.Integer(), nullable=False),
            sa.Column("type", sa.String(16), nullable=False, server_default="video"),
            sa.Column("video_url", sa.Text(), nullable=True),
            sa.Column("video_duration_minutes", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("thumbnail_url", sa.Text(), nullable=True),
            sa.Column("transcript", sa.Text(), nullable=True),
            sa.Column("category", sa.String(64), nullable=False),
            sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("has_quiz", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("passing_score", sa.Integer(), nullable=False, server_default="70"),
            sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("total_completions", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("avg_quiz_score", sa.Float(), nullable=False, server_default="0"),
            *_timestamps(),
        )
        op.create_index("idx_training_modules_active_order", "training_modules", ["is_active", "order"])

    if "training_questions" not in existing_tables:
        op.create_table(
            "training_questions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "module_id", sa.Integer(), sa.ForeignKey("training_modules.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("question_text", sa.Text(), nullable=False),
            sa.Column("question_type", sa.String(32), nullable=False, server_default="multiple_choice"),
            sa.Column("options", JSON, nullable=False),
            sa.Column("explanation", sa.Text(), nullable=True),
            sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("points", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        )
        op.create_index("idx_training_questions_module", "training_questions", ["module_id", "is_active"])

    if "training_progress" not in existing_tables:
        op.create_table(
            "training_progress",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "organization_id", sa.Integer(), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False),
            sa.Column(
                "module_id", sa.Integer(), sa.ForeignKey("training_modules.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("video_progress", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("video_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("video_completed_at", sa.DateTime(), nullable=True),
            sa.Column("last_watched_position", sa.Float(), nullable=False, server_default="0"),
            sa.Column("quiz_passed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("quiz_passed_at", sa.DateTime(), nullable=True),
            sa.Column("best_score", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("status", sa.String(16), nullable=False, server_default="not_started"),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            sa.Column("assigned_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("due_date", sa.DateTime(), nullable=True),
            *_timestamps(),
            sa.UniqueConstraint("employee_id", "module_id", name="uq_training_progress_employee_module"),
        )
        op.create_index("idx_training_progress_org", "training_progress", ["organization_id"])

    if "quiz_attempts" not in existing_tables:
        op.create_table(
            "quiz_attempts",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "progress_id", sa.Integer(), sa.ForeignKey("training_progress.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("attempt_number", sa.Integer(), nullable=False),
            sa.Column("score", sa.Integer(), nullable=False),
            sa.Column("passed", sa.Boolean(), nullable=False),
            sa.Column("answers", JSON, nullable=False),
            sa.Column("completed_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint("progress_id", "attempt_number", name="uq_quiz_attempts_progress_number"),
        )

    if "training_records" not in existing_tables:
        op.create_table(
            "training_records",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "organization_id", sa.Integer(), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False),
            sa.Column("training_date", sa.DateTime(), nullable=False),
            sa.Column("training_type", sa.String(16), nullable=False),
            sa.Column("module_key", sa.String(64), nullable=False),
            sa.Column("module_name", sa.String(255), nullable=False),
            sa.Column("content_summary", sa.Text(), nullable=True),
            sa.Column("trainer_name", sa.String(255), nullable=True),
            sa.Column("trainer_qualifications", sa.Text(), nullable=True),
            sa.Column("started_at", sa.DateTime(), nullable=True),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            sa.Column("duration_minutes", sa.Integer(), nullable=True),
            sa.Column("quiz_score", sa.Integer(), nullable=True),
            sa.Column("quiz_passed", sa.Boolean(), nullable=True),
            sa.Column("employee_acknowledged", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("acknowledged_at", sa.DateTime(), nullable=True),
            *_timestamps(),
            _user_fk("created_by_user_id"),
        )
        op.create_index("idx_training_records_org_date", "training_records", ["organization_id", "training_date"])
        op.create_index("idx_training_records_employee", "training_records", ["employee_id"])

    if "anonymous_reports" not in existing_tables:
        op.create_table(
            "anonymous_reports",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "organization_id", sa.Integer(), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("anonymous_id", sa.String(32), nullable=False, unique=True),
            sa.Column("access_token_hash", sa.String(64), nullable=False),
            sa.Column("report_type", sa.String(32), nullable=False),
            sa.Column("title", sa.String(200), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("incident_date", sa.Date(), nullable=True),
            sa.Column("incident_location", sa.String(255), nullable=True),
            sa.Column("witnesses_present", sa.Boolean(), nullable=True),
            sa.Column("status", sa.String(16), nullable=False, server_default="new"),
            sa.Column("priority", sa.String(16), nullable=False, server_default="medium"),
            sa.Column("assigned_to", sa.String(255), nullable=True),
            sa.Column("resolution", sa.Text(), nullable=True),
            sa.Column("resolved_at", sa.DateTime(), nullable=True),
            sa.Column(
                "linked_incident_id", sa.Integer(), sa.ForeignKey("incidents.id", ondelete="SET NULL"), nullable=True
            ),
            sa.Column("submitted_via", sa.String(16), nullable=False, server_default="web"),
            sa.Column("ip_hash", sa.String(64), nullable=True),
            *_timestamps(),
        )
        op.create_index("idx_anonymous_reports_org_status", "anonymous_reports", ["organization_id", "status"])
        op.create_index("idx_anonymous_reports_ip_hash", "anonymous_reports", ["ip_hash", "created_at"])

    if "anonymous_report_notes" not in existing_tables:
        op.create_table(
            "anonymous_report_notes",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "report_id", sa.Integer(), sa.ForeignKey("anonymous_reports.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("content", sa.Text(), nullable=False),
            _user_fk("added_by_user_id"),
            sa.Column("added_by_name", sa.String(255), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "anonymous_thread_messages" not in existing_tables:
        op.create_table(
            "anonymous_thread_messages",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "report_id", sa.Integer(), sa.ForeignKey("anonymous_reports.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("message_type", sa.String(32), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            _user_fk("admin_user_id"),
            sa.Column("admin_name", sa.String(255), nullable=True),
            sa.Column("read_by_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("read_by_reporter", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_anonymous_thread_report", "anonymous_thread_messages", ["report_id", "created_at"])

    if "generated_documents" not in existing_tables:
        op.create_table(
            "generated_documents",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "organization_id", sa.Integer(), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("type", sa.String(32), nullable=False),
            sa.Column("file_name", sa.String(255), nullable=False),
            sa.Column("storage_key", sa.String(512), nullable=False, unique=True),
            sa.Column("content_type", sa.String(128), nullable=False, server_default="application/pdf"),
            sa.Column("size_bytes", sa.BigInteger(), nullable=False),
            sa.Column("sha256", sa.String(64), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("plan_version", sa.Integer(), nullable=True),
            _user_fk("generated_by_user_id"),
            sa.Column("generated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("date_range_start", sa.Date(), nullable=True),
            sa.Column("date_range_end", sa.Date(), nullable=True),
            sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
            sa.Column("metadata", JSON, nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_generated_documents_org_type", "generated_documents", ["organization_id", "type"])
        op.create_index("idx_generated_documents_org_created", "generated_documents", ["organization_id", "created_at"])


def downgrade() -> None:
    for table in (
        "generated_documents",
        "anonymous_thread_messages",
        "anonymous_report_notes",
        "anonymous_reports",
        "training_records",
        "quiz_attempts",
        "training_progress",
        "training_questions",
        "training_modules",
        "incidents",
        "plans",
        "employees",
        "audit_events",
    ):
        op.drop_table(table)
    with op.batch_alter_table("users") as batch:
        batch.drop_constraint("fk_users_organization_id", type_="foreignkey")
    for table in ("organizations", "role_permissions", "user_roles", "permissions", "roles", "users"):
        op.drop_table(table)
