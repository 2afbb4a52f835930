"""Domain model entities for finledger.

These are pure data classes representing business concepts, independent of
database schema. The ORM layer converts to and from them in
finledger.database.mappers.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional, Union


class AccountType(str, Enum):
    """Kinds of account the ledger knows about."""

    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT_CARD = "credit_card"
    FIXED_INCOME = "fixed_income"
    CRYPTO = "crypto"
    EMERGENCY_RESERVE = "emergency_reserve"
    GOAL_FUND = "goal_fund"


INVESTMENT_ACCOUNT_TYPES = frozenset(
    {
        AccountType.SAVINGS,
        AccountType.FIXED_INCOME,
        AccountType.CRYPTO,
        AccountType.EMERGENCY_RESERVE,
        AccountType.GOAL_FUND,
    }
)


class Flow(str, Enum):
    """Direction of a transaction relative to its account."""

    IN = "in"
    OUT = "out"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"

    @property
    def is_inflow(self) -> bool:
        return self in (Flow.IN, Flow.TRANSFER_IN)


class OperationType(str, Enum):
    """Business meaning of a transaction."""

    RECEIPT = "receipt"
    EXPENSE = "expense"
    TRANSFER = "transfer"
    INVESTMENT_CONTRIBUTION = "investment_contribution"
    INVESTMENT_REDEMPTION = "investment_redemption"
    LOAN_PAYMENT = "loan_payment"
    LOAN_DISBURSEMENT = "loan_disbursement"
    VEHICLE_PURCHASE = "vehicle_purchase"
    VEHICLE_SALE = "vehicle_sale"
    YIELD = "yield"
    INITIAL_BALANCE = "initial_balance"


INFLOW_OPERATIONS = frozenset(
    {
        OperationType.RECEIPT,
        OperationType.YIELD,
        OperationType.LOAN_DISBURSEMENT,
        OperationType.INVESTMENT_REDEMPTION,
        OperationType.VEHICLE_SALE,
        OperationType.INITIAL_BALANCE,
    }
)


def flow_for_operation(operation_type: OperationType) -> Flow:
    """Return the flow of the primary leg for an operation type."""
    if operation_type == OperationType.TRANSFER:
        return Flow.TRANSFER_OUT
    if operation_type in INFLOW_OPERATIONS:
        return Flow.IN
    return Flow.OUT


class CategoryNature(str, Enum):
    """Whether a category classifies income, expenses or neither."""

    INCOME = "income"
    EXPENSE = "expense"
    NEUTRAL = "neutral"


class TransactionSource(str, Enum):
    """Where a ledger transaction came from."""

    MANUAL = "manual"
    IMPORT = "import"
    BILL_TRACKER = "bill_tracker"


class LoanStatus(str, Enum):
    """Lifecycle of a loan contract."""

    PENDING_CONFIGURATION = "pending_configuration"
    ACTIVE = "active"
    SETTLED = "settled"


class BillSourceType(str, Enum):
    """Origin of a tracked bill."""

    LOAN_INSTALLMENT = "loan_installment"
    INSURANCE_INSTALLMENT = "insurance_installment"
    FIXED_EXPENSE = "fixed_expense"
    VARIABLE_EXPENSE = "variable_expense"
    AD_HOC = "ad_hoc"
    PURCHASE_INSTALLMENT = "purchase_installment"


SCHEDULED_SOURCES = frozenset(
    {BillSourceType.LOAN_INSTALLMENT, BillSourceType.INSURANCE_INSTALLMENT}
)


class BillStatus(str, Enum):
    """Display status of a bill."""

    PAID = "paid"
    PENDING = "pending"
    OVERDUE = "overdue"


class StatementFormat(str, Enum):
    """Supported bank export formats."""

    CSV = "csv"
    OFX = "ofx"


class StatementStatus(str, Enum):
    """Review state of an imported statement."""

    PENDING_REVIEW = "pending_review"
    CONTABILIZED = "contabilized"


class VehicleOperation(str, Enum):
    """Direction of a vehicle transaction."""

    PURCHASE = "purchase"
    SALE = "sale"


# Transaction links: one variant per operation family


@dataclass(frozen=True)
class TransferLink:
    """Pairs the two legs of a transfer."""

    group_id: str


@dataclass(frozen=True)
class LoanLink:
    """Links a payment or disbursement to a loan ("loan_<id>")."""

    loan_ref: str
    installment_number: Optional[int] = None

    @property
    def loan_id(self) -> Optional[int]:
        return parse_loan_ref(self.loan_ref)


@dataclass(frozen=True)
class InvestmentLink:
    """Links one leg of an investment move to the opposite account."""

    counterpart_account_id: int
    group_id: str


@dataclass(frozen=True)
class InsuranceLink:
    """Links a payment to an insurance installment."""

    policy_id: int
    installment_number: int


@dataclass(frozen=True)
class VehicleLink:
    """Links a purchase or sale to a vehicle record."""

    vehicle_ref: str


TransactionLink = Union[TransferLink, LoanLink, InvestmentLink, InsuranceLink, VehicleLink]


def loan_ref(loan_id: int) -> str:
    """Return the external reference used by transactions to point at a loan."""
    return f"loan_{loan_id}"


def parse_loan_ref(ref: Optional[str]) -> Optional[int]:
    """Return the loan id encoded in a "loan_<id>" reference, or None."""
    if not ref or not ref.startswith("loan_"):
        return None
    try:
        return int(ref[len("loan_"):])
    except ValueError:
        return None


@dataclass(frozen=True)
class Account:
    """Account domain entity."""

    id: int
    name: str
    account_type: AccountType
    institution: str
    hidden: bool
    created_at: datetime

    @property
    def is_credit_card(self) -> bool:
        return self.account_type == AccountType.CREDIT_CARD


@dataclass(frozen=True)
class Category:
    """Category domain entity with optional parent."""

    id: int
    name: str
    parent_id: Optional[int]
    nature: CategoryNature
    created_at: datetime


@dataclass(frozen=True)
class Transaction:
    """Ledger transaction domain entity.

    The amount is always non-negative; direction comes from `flow`.
    """

    id: int
    date: date
    account_id: int
    flow: Flow
    operation_type: OperationType
    amount: Decimal
    description: Optional[str]
    category_id: Optional[int]
    link: Optional[TransactionLink]
    conciliated: bool
    source: TransactionSource
    original_description: Optional[str]
    notes: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class Loan:
    """Loan contract domain entity. The schedule is derived, never stored."""

    id: int
    contract: str
    principal: Decimal
    installment: Decimal
    monthly_rate: Decimal
    term_months: int
    start_date: Optional[date]
    status: LoanStatus
    account_id: Optional[int]
    disbursement_transaction_id: Optional[int]
    created_at: datetime

    @property
    def ref(self) -> str:
        return loan_ref(self.id)


@dataclass(frozen=True)
class ScheduleRow:
    """One row of a PRICE amortization schedule."""

    installment_number: int
    interest: Decimal
    principal_paid: Decimal
    remaining_balance: Decimal


@dataclass(frozen=True)
class LoanInstallment:
    """A schedule row enriched with its due date and payment status."""

    installment_number: int
    due_date: date
    amount: Decimal
    interest: Decimal
    principal_paid: Decimal
    remaining_balance: Decimal
    status: BillStatus
    payment_date: Optional[date] = None
    paid_amount: Optional[Decimal] = None


@dataclass(frozen=True)
class InsuranceInstallment:
    """One installment of an insurance policy."""

    policy_id: int
    number: int
    due_date: date
    amount: Decimal
    paid: bool
    paid_transaction_id: Optional[int]


@dataclass(frozen=True)
class InsurancePolicy:
    """Insurance policy with its stored installment list."""

    id: int
    description: str
    vehicle_ref: Optional[str]
    installments: tuple[InsuranceInstallment, ...]
    created_at: datetime


@dataclass(frozen=True)
class Bill:
    """Tracked obligation domain entity."""

    id: int
    description: str
    due_date: date
    expected_amount: Decimal
    source_type: BillSourceType
    source_ref: Optional[str]
    installment_number: Optional[int]
    suggested_account_id: Optional[int]
    suggested_category_id: Optional[int]
    is_paid: bool
    payment_date: Optional[date]
    transaction_id: Optional[int]
    is_excluded: bool
    created_at: datetime

    @property
    def source_key(self) -> tuple[BillSourceType, Optional[str], Optional[int]]:
        return (self.source_type, self.source_ref, self.installment_number)


@dataclass(frozen=True)
class PotentialBill:
    """A projected loan/insurance installment not necessarily tracked yet."""

    source_type: BillSourceType
    source_ref: str
    installment_number: int
    description: str
    due_date: date
    expected_amount: Decimal
    is_paid: bool
    is_included: bool

    @property
    def source_key(self) -> tuple[BillSourceType, Optional[str], Optional[int]]:
        return (self.source_type, self.source_ref, self.installment_number)


@dataclass(frozen=True)
class BillDisplayItem:
    """One line of the monthly bills view.

    Either a tracked bill (`bill_id` set) or a paid ledger expense that no
    bill accounts for (`transaction_id` set, `is_external` True).
    """

    description: str
    due_date: date
    amount: Decimal
    status: BillStatus
    source_type: Optional[BillSourceType]
    is_external: bool
    bill_id: Optional[int] = None
    transaction_id: Optional[int] = None
    suggested_account_id: Optional[int] = None


@dataclass(frozen=True)
class StandardizationRule:
    """Pattern to classification mapping applied to imported descriptions."""

    id: int
    pattern: str
    operation_type: OperationType
    category_id: Optional[int]
    description_template: str
    position: int


@dataclass(frozen=True)
class CandidateTransaction:
    """A parsed statement row waiting for review, outside the ledger."""

    id: Optional[int]
    statement_id: Optional[int]
    account_id: int
    date: date
    amount: Decimal
    original_description: str
    description: str
    operation_type: Optional[OperationType]
    category_id: Optional[int] = None
    destination_account_id: Optional[int] = None
    investment_account_id: Optional[int] = None
    loan_ref: Optional[str] = None
    installment_number: Optional[int] = None
    vehicle_operation: Optional[VehicleOperation] = None
    is_potential_duplicate: bool = False
    duplicate_of_transaction_id: Optional[int] = None
    is_contabilized: bool = False

    @property
    def flow(self) -> Optional[Flow]:
        if self.operation_type is None:
            return None
        return flow_for_operation(self.operation_type)


@dataclass(frozen=True)
class ImportedStatement:
    """A bank statement file held for review before committing."""

    id: int
    account_id: int
    file_name: Optional[str]
    source_format: StatementFormat
    status: StatementStatus
    imported_at: datetime
    skipped_rows: int
    candidates: tuple[CandidateTransaction, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ParsedStatement:
    """Result of parsing one raw statement file."""

    source_format: StatementFormat
    candidates: tuple[CandidateTransaction, ...]
    skipped_rows: int


@dataclass(frozen=True)
class LedgerSnapshot:
    """Every entity collection of the ledger, as exported or restored."""

    accounts: tuple[Account, ...] = ()
    categories: tuple[Category, ...] = ()
    transactions: tuple[Transaction, ...] = ()
    loans: tuple[Loan, ...] = ()
    insurance_policies: tuple[InsurancePolicy, ...] = ()
    bills: tuple[Bill, ...] = ()
    rules: tuple[StandardizationRule, ...] = ()
    statements: tuple[ImportedStatement, ...] = ()


@dataclass(frozen=True)
class PeriodSummary:
    """Movement of one account over a date range."""

    account_id: int
    start_date: date
    end_date: date
    opening_balance: Decimal
    total_in: Decimal
    total_out: Decimal
    closing_balance: Decimal
    transaction_count: int
    conciliated_count: int

    @property
    def fully_conciliated(self) -> bool:
        return self.conciliated_count == self.transaction_count


@dataclass(frozen=True)
class ReviewCounts:
    """Classification progress of an imported statement."""

    ready: int
    pending: int
    duplicates: int
    contabilized: int


@dataclass(frozen=True)
class MonthTotals:
    """Paid and still-open obligation totals of one month."""

    paid: Decimal
    pending: Decimal

    @property
    def total(self) -> Decimal:
        return self.paid + self.pending
