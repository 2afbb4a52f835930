"""Abstract database interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional, Sequence
from datetime import date
from decimal import Decimal

# Services import this module, so only entities may be imported here
from finledger.domain.entities import (
    Account,
    AccountType,
    Bill,
    BillSourceType,
    CandidateTransaction,
    Category,
    CategoryNature,
    Flow,
    ImportedStatement,
    InsurancePolicy,
    LedgerSnapshot,
    Loan,
    LoanStatus,
    OperationType,
    StandardizationRule,
    StatementFormat,
    StatementStatus,
    Transaction,
    TransactionLink,
    TransactionSource,
)


class Database(ABC):
    """Abstract database interface for finledger.

    Every committed mutation increments `version`. Readers that derive state
    from the ledger (such as the balance cache) compare versions to know when
    to rebuild.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @property
    @abstractmethod
    def version(self) -> int:
        """Counter incremented by every committed mutation."""
        pass

    @abstractmethod
    def atomic(self) -> AbstractContextManager[None]:
        """Group mutations into one all-or-nothing commit.

        Inside the block, mutations are flushed but not committed; leaving the
        block normally commits them once, an exception rolls all of them back.
        """
        pass

    # Account operations
    @abstractmethod
    def create_account(
        self, name: str, account_type: AccountType, institution: str = "", hidden: bool = False
    ) -> int:
        """Create a new account. Returns account ID."""
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by ID."""
        pass

    @abstractmethod
    def list_accounts(self) -> list[Account]:
        """List all accounts, hidden ones included."""
        pass

    @abstractmethod
    def update_account(
        self,
        account_id: int,
        name: Optional[str] = None,
        institution: Optional[str] = None,
        hidden: Optional[bool] = None,
    ) -> None:
        """Update account fields that are not None."""
        pass

    @abstractmethod
    def get_account_transaction_count(self, account_id: int) -> int:
        """Get count of transactions associated with an account."""
        pass

    @abstractmethod
    def delete_account(self, account_id: int) -> None:
        """Delete an account."""
        pass

    # Category operations
    @abstractmethod
    def create_category(
        self,
        name: str,
        parent_id: Optional[int] = None,
        nature: CategoryNature = CategoryNature.EXPENSE,
    ) -> int:
        """Create a category. Returns category ID."""
        pass

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[Category]:
        """Get category by ID."""
        pass

    @abstractmethod
    def list_categories(self) -> list[Category]:
        """List all categories."""
        pass

    # Transaction operations
    @abstractmethod
    def create_transaction(
        self,
        date: date,
        account_id: int,
        flow: Flow,
        operation_type: OperationType,
        amount: Decimal,
        description: Optional[str] = None,
        category_id: Optional[int] = None,
        link: Optional[TransactionLink] = None,
        conciliated: bool = False,
        source: TransactionSource = TransactionSource.MANUAL,
        original_description: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        """Create a transaction. Returns transaction ID."""
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Get transaction by ID."""
        pass

    @abstractmethod
    def list_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        account_id: Optional[int] = None,
        operation_type: Optional[OperationType] = None,
        loan_ref: Optional[str] = None,
    ) -> list[Transaction]:
        """List transactions with optional filters, ordered by date then ID."""
        pass

    @abstractmethod
    def list_transfer_group(self, group_id: str) -> list[Transaction]:
        """List every leg sharing a transfer or investment group ID."""
        pass

    @abstractmethod
    def update_transaction_conciliated(self, transaction_id: int, conciliated: bool) -> None:
        """Set the conciliation flag of a transaction."""
        pass

    @abstractmethod
    def delete_transaction(self, transaction_id: int) -> None:
        """Delete a transaction."""
        pass

    # Loan operations
    @abstractmethod
    def create_loan(
        self,
        contract: str,
        principal: Decimal,
        installment: Decimal = Decimal("0"),
        monthly_rate: Decimal = Decimal("0"),
        term_months: int = 0,
        start_date: Optional[date] = None,
        status: LoanStatus = LoanStatus.PENDING_CONFIGURATION,
        account_id: Optional[int] = None,
        disbursement_transaction_id: Optional[int] = None,
    ) -> int:
        """Create a loan. Returns loan ID."""
        pass

    @abstractmethod
    def get_loan(self, loan_id: int) -> Optional[Loan]:
        """Get loan by ID."""
        pass

    @abstractmethod
    def list_loans(self, status: Optional[LoanStatus] = None) -> list[Loan]:
        """List loans, optionally filtered by status."""
        pass

    @abstractmethod
    def update_loan(
        self,
        loan_id: int,
        contract: Optional[str] = None,
        principal: Optional[Decimal] = None,
        installment: Optional[Decimal] = None,
        monthly_rate: Optional[Decimal] = None,
        term_months: Optional[int] = None,
        start_date: Optional[date] = None,
        status: Optional[LoanStatus] = None,
        disbursement_transaction_id: Optional[int] = None,
    ) -> None:
        """Update loan fields that are not None."""
        pass

    # Insurance operations
    @abstractmethod
    def create_insurance_policy(
        self,
        description: str,
        vehicle_ref: Optional[str],
        installments: Sequence[tuple[int, date, Decimal]],
    ) -> int:
        """Create a policy with (number, due_date, amount) installments. Returns policy ID."""
        pass

    @abstractmethod
    def get_insurance_policy(self, policy_id: int) -> Optional[InsurancePolicy]:
        """Get insurance policy by ID."""
        pass

    @abstractmethod
    def list_insurance_policies(self) -> list[InsurancePolicy]:
        """List all insurance policies."""
        pass

    @abstractmethod
    def set_insurance_installment_paid(
        self, policy_id: int, number: int, paid: bool, transaction_id: Optional[int]
    ) -> None:
        """Set the paid flag and paying transaction of one installment."""
        pass

    # Bill operations
    @abstractmethod
    def create_bill(
        self,
        description: str,
        due_date: date,
        expected_amount: Decimal,
        source_type: BillSourceType,
        source_ref: Optional[str] = None,
        installment_number: Optional[int] = None,
        suggested_account_id: Optional[int] = None,
        suggested_category_id: Optional[int] = None,
    ) -> int:
        """Create a tracked bill. Returns bill ID."""
        pass

    @abstractmethod
    def get_bill(self, bill_id: int) -> Optional[Bill]:
        """Get bill by ID."""
        pass

    @abstractmethod
    def list_bills(self) -> list[Bill]:
        """List all bills ordered by due date then ID."""
        pass

    @abstractmethod
    def update_bill_payment(
        self,
        bill_id: int,
        is_paid: bool,
        payment_date: Optional[date],
        transaction_id: Optional[int],
    ) -> None:
        """Set the payment state of a bill (None values clear the fields)."""
        pass

    @abstractmethod
    def update_bill_excluded(self, bill_id: int, is_excluded: bool) -> None:
        """Set the soft-exclusion flag of a bill."""
        pass

    @abstractmethod
    def delete_bill(self, bill_id: int) -> None:
        """Delete a bill."""
        pass

    # Standardization rule operations
    @abstractmethod
    def create_rule(
        self,
        pattern: str,
        operation_type: OperationType,
        category_id: Optional[int],
        description_template: str,
    ) -> int:
        """Append a rule after the existing ones. Returns rule ID."""
        pass

    @abstractmethod
    def list_rules(self) -> list[StandardizationRule]:
        """List rules in declaration order."""
        pass

    @abstractmethod
    def delete_rule(self, rule_id: int) -> None:
        """Delete a rule."""
        pass

    # Imported statement operations
    @abstractmethod
    def create_statement(
        self,
        account_id: int,
        file_name: Optional[str],
        source_format: StatementFormat,
        skipped_rows: int,
        candidates: Sequence[CandidateTransaction],
    ) -> int:
        """Store a parsed statement and its candidates. Returns statement ID."""
        pass

    @abstractmethod
    def get_statement(self, statement_id: int) -> Optional[ImportedStatement]:
        """Get imported statement by ID."""
        pass

    @abstractmethod
    def list_statements(
        self, account_id: Optional[int] = None, status: Optional[StatementStatus] = None
    ) -> list[ImportedStatement]:
        """List imported statements with optional filters."""
        pass

    @abstractmethod
    def update_candidate(self, candidate: CandidateTransaction) -> None:
        """Persist the classification fields of a reviewed candidate."""
        pass

    @abstractmethod
    def mark_candidates_contabilized(self, candidate_ids: Sequence[int]) -> None:
        """Flag candidates as committed into the ledger."""
        pass

    @abstractmethod
    def update_statement_status(self, statement_id: int, status: StatementStatus) -> None:
        """Set the review status of a statement."""
        pass

    # Whole-ledger operations
    @abstractmethod
    def replace_contents(self, snapshot: LedgerSnapshot) -> None:
        """Replace every stored entity with the snapshot, keeping its IDs."""
        pass
