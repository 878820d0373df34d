"""Models package."""

from .user import User
from .credit_account import CreditAccount, OwnerKind
from .credit_transaction import CreditTransaction, TransactionType
from .credit_grant_claim import CreditGrantClaim
from .whitelist_user import WhitelistUser
from .audit_date import AuditDate
from .audit_report import AuditReport, ReportStatus
from .audit_issue import AuditIssue, Feedback, Severity
from .report_view_grant import ReportViewGrant
from .airdrop_allocation import AirdropAllocation
from .burn_request import BurnRequest
