"""create audit credits schema

Revision ID: 20261001_000001
Revises:
Create Date: 2026-10-01 00:00:01.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261001_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("wallet_address", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_wallet_address"), "users", ["wallet_address"], unique=True)

    op.create_table(
        "whitelist_users",
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("note", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "credit_accounts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("owner_kind", sa.String(), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("balance", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("balance >= 0", name="ck_credit_accounts_balance_non_negative"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_kind", "owner_id", name="uq_credit_accounts_owner"),
    )
    op.create_index(op.f("ix_credit_accounts_owner_id"), "credit_accounts", ["owner_id"], unique=False)

    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("account_id", sa.String(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("transaction_type", sa.String(), nullable=False),
        sa.Column("reference_id", sa.String(), nullable=True),
        sa.Column("counterparty_account_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["account_id"], ["credit_accounts.id"]),
        sa.ForeignKeyConstraint(["counterparty_account_id"], ["credit_accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_credit_transactions_account_id"), "credit_transactions", ["account_id"], unique=False)
    op.create_index(op.f("ix_credit_transactions_reference_id"), "credit_transactions", ["reference_id"], unique=False)
    op.create_index(op.f("ix_credit_transactions_created_at"), "credit_transactions", ["created_at"], unique=False)

    op.create_table(
        "credit_grant_claims",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("account_id", sa.String(), nullable=False),
        sa.Column("reference_id", sa.String(), nullable=False),
        sa.Column("transaction_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["account_id"], ["credit_accounts.id"]),
        sa.ForeignKeyConstraint(["transaction_id"], ["credit_transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("account_id", "reference_id", name="uq_credit_grant_claims_account_reference"),
    )
    op.create_index(op.f("ix_credit_grant_claims_account_id"), "credit_grant_claims", ["account_id"], unique=False)

    op.create_table(
        "audit_dates",
        sa.Column("date_code", sa.String(length=8), nullable=False),
        sa.Column("formatted_date", sa.String(), nullable=False),
        sa.Column("total_repos", sa.Integer(), nullable=False),
        sa.Column("critical_issues", sa.Integer(), nullable=False),
        sa.Column("high_issues", sa.Integer(), nullable=False),
        sa.Column("total_issues", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("date_code"),
    )
    op.create_index(op.f("ix_audit_dates_formatted_date"), "audit_dates", ["formatted_date"], unique=False)

    op.create_table(
        "audit_reports",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("date_code", sa.String(length=8), nullable=False),
        sa.Column("user_name", sa.String(), nullable=False),
        sa.Column("repo_name", sa.String(), nullable=False),
        sa.Column("risk_score", sa.Integer(), nullable=False),
        sa.Column("total_issues", sa.Integer(), nullable=False),
        sa.Column("critical_issues", sa.Integer(), nullable=False),
        sa.Column("high_issues", sa.Integer(), nullable=False),
        sa.Column("medium_issues", sa.Integer(), nullable=False),
        sa.Column("low_issues", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("submitter_user_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["date_code"], ["audit_dates.date_code"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_audit_reports_date_code"), "audit_reports", ["date_code"], unique=False)
    op.create_index(op.f("ix_audit_reports_submitter_user_id"), "audit_reports", ["submitter_user_id"], unique=False)

    op.create_table(
        "audit_issues",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("report_id", sa.Integer(), nullable=False),
        sa.Column("severity", sa.String(), nullable=False),
        sa.Column("issue_type", sa.String(), nullable=False),
        sa.Column("file_path", sa.String(), nullable=True),
        sa.Column("line_number", sa.Integer(), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("code_snippet", sa.Text(), nullable=True),
        sa.Column("feedback", sa.String(), nullable=True),
        sa.Column("false_positive", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["report_id"], ["audit_reports.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_audit_issues_report_id"), "audit_issues", ["report_id"], unique=False)

    op.create_table(
        "report_view_grants",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("report_id", sa.Integer(), nullable=False),
        sa.Column("charged", sa.Integer(), nullable=False),
        sa.Column("transaction_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["report_id"], ["audit_reports.id"]),
        sa.ForeignKeyConstraint(["transaction_id"], ["credit_transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "report_id", name="uq_report_view_grants_session_report"),
    )
    op.create_index(op.f("ix_report_view_grants_session_id"), "report_view_grants", ["session_id"], unique=False)
    op.create_index(op.f("ix_report_view_grants_user_id"), "report_view_grants", ["user_id"], unique=False)

    op.create_table(
        "airdrop_allocations",
        sa.Column("wallet_address", sa.String(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("claimed_by_user_id", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("wallet_address"),
    )
    op.create_index(
        op.f("ix_airdrop_allocations_claimed_by_user_id"), "airdrop_allocations", ["claimed_by_user_id"], unique=False
    )

    op.create_table(
        "burn_requests",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("wallet_address", sa.String(), nullable=False),
        sa.Column("burn_amount", sa.Integer(), nullable=False),
        sa.Column("token_amount", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("transaction_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["transaction_id"], ["credit_transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_burn_requests_user_id"), "burn_requests", ["user_id"], unique=False)
    op.create_index(op.f("ix_burn_requests_created_at"), "burn_requests", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_burn_requests_created_at"), table_name="burn_requests")
    op.drop_index(op.f("ix_burn_requests_user_id"), table_name="burn_requests")
    op.drop_table("burn_requests")
    op.drop_index(op.f("ix_airdrop_allocations_claimed_by_user_id"), table_name="airdrop_allocations")
    op.drop_table("airdrop_allocations")
    op.drop_index(op.f("ix_report_view_grants_user_id"), table_name="report_view_grants")
    op.drop_index(op.f("ix_report_view_grants_session_id"), table_name="report_view_grants")
    op.drop_table("report_view_grants")
    op.drop_index(op.f("ix_audit_issues_report_id"), table_name="audit_issues")
    op.drop_table("audit_issues")
    op.drop_index(op.f("ix_audit_reports_submitter_user_id"), table_name="audit_reports")
    op.drop_index(op.f("ix_audit_reports_date_code"), table_name="audit_reports")
    op.drop_table("audit_reports")
    op.drop_index(op.f("ix_audit_dates_formatted_date"), table_name="audit_dates")
    op.drop_table("audit_dates")
    op.drop_index(op.f("ix_credit_grant_claims_account_id"), table_name="credit_grant_claims")
    op.drop_table("credit_grant_claims")
    op.drop_index(op.f("ix_credit_transactions_created_at"), table_name="credit_transactions")
    op.drop_index(op.f("ix_credit_transactions_reference_id"), table_name="credit_transactions")
    op.drop_index(op.f("ix_credit_transactions_account_id"), table_name="credit_transactions")
    op.drop_table("credit_transactions")
    op.drop_index(op.f("ix_credit_accounts_owner_id"), table_name="credit_accounts")
    op.drop_table("credit_accounts")
    op.drop_table("whitelist_users")
    op.drop_index(op.f("ix_users_wallet_address"), table_name="users")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
