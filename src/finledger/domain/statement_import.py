"""Bank statement import and reconciliation pipeline.

Raw exports are parsed into candidate transactions, classified by the
standardization rules, checked for duplicates and stored as an imported
statement waiting for review. Committing a statement turns its ready
candidates into ledger transactions in a single database transaction.
"""

import csv
import io
import re
import unicodedata
from dataclasses import replace
from datetime import timedelta
from typing import Optional

from finledger.database.base import Database
from finledger.domain.entities import (
    Account,
    CandidateTransaction,
    ImportedStatement,
    InvestmentLink,
    LoanLink,
    OperationType,
    ParsedStatement,
    ReviewCounts,
    StatementFormat,
    StatementStatus,
    Transaction,
    TransactionSource,
    TransferLink,
    VehicleLink,
    VehicleOperation,
    parse_loan_ref,
)
from finledger.domain.errors import (
    NotFoundError,
    ValidationError,
    account_not_found,
    category_not_found,
    loan_not_found,
    statement_not_found,
)
from finledger.domain.loan import LoanService
from finledger.domain.matching import (
    DuplicateMatcher,
    WindowDuplicateMatcher,
    key_for_candidate,
    key_for_transaction,
)
from finledger.domain.rules import RuleService
from finledger.domain.transaction import TransactionService
from finledger.logging import get_logger
from finledger.utils.amount_parser import parse_amount
from finledger.utils.date_parser import parse_statement_date
from finledger.utils.money import quantize_money

logger = get_logger(__name__)

_OFX_BLOCK = re.compile(r"<STMTTRN>(.*?)</STMTTRN>", re.IGNORECASE | re.DOTALL)
_SPLIT_DECIMALS = re.compile(r"^\d{1,2}$")

# Header fragments, Portuguese first, matched after accent stripping
_DATE_KEYS = ("data", "date")
_AMOUNT_KEYS = ("valor", "amount", "value")
_DESCRIPTION_KEYS = ("descri", "memo", "historico")

INVESTMENT_OPERATIONS = frozenset(
    {OperationType.INVESTMENT_CONTRIBUTION, OperationType.INVESTMENT_REDEMPTION}
)
VEHICLE_OPERATIONS = frozenset({OperationType.VEHICLE_PURCHASE, OperationType.VEHICLE_SALE})


def normalize_header(header: str) -> str:
    """Lowercase a header and strip its diacritics ("Descrição" -> "descricao")."""
    decomposed = unicodedata.normalize("NFD", header)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.strip().strip('"').lower()


def _find_column(headers: list[str], keys: tuple[str, ...]) -> Optional[int]:
    for key in keys:
        for index, header in enumerate(headers):
            if key in header:
                return index
    return None


def detect_format(content: str) -> StatementFormat:
    """Detect whether raw content is OFX or delimited text.

    Raises:
        ValidationError: If the content is empty or matches neither format
    """
    if not content or not content.strip():
        raise ValidationError("Statement file is empty")
    if "<STMTTRN>" in content.upper():
        return StatementFormat.OFX
    first_line = content.strip().splitlines()[0]
    if any(sep in first_line for sep in ("\t", ";", ",")):
        return StatementFormat.CSV
    raise ValidationError("Unrecognized statement format: expected OFX or delimited text")


def _new_candidate(account_id: int, row_date, amount, description: str) -> CandidateTransaction:
    return CandidateTransaction(
        id=None,
        statement_id=None,
        account_id=account_id,
        date=row_date,
        amount=quantize_money(abs(amount)),
        original_description=description,
        description=description,
        operation_type=OperationType.EXPENSE if amount < 0 else OperationType.RECEIPT,
    )


def _rejoin_split_amount(row: list[str], width: int, amount_index: int) -> list[str]:
    """Glue back an unquoted decimal-comma amount ("-89", "90") split by the reader."""
    row = list(row)
    while (
        len(row) > width
        and amount_index + 1 < len(row)
        and _SPLIT_DECIMALS.match(row[amount_index + 1].strip())
    ):
        row[amount_index] = f"{row[amount_index].strip()},{row[amount_index + 1].strip()}"
        del row[amount_index + 1]
    return row


def parse_delimited(content: str, account_id: int) -> ParsedStatement:
    """Parse a delimited text export with a Date/Amount/Description header.

    Raises:
        ValidationError: If required columns are missing
    """
    lines = content.strip().splitlines()
    header_line = lines[0]
    if "\t" in header_line:
        separator = "\t"
    elif ";" in header_line:
        separator = ";"
    else:
        separator = ","

    rows = list(csv.reader(io.StringIO("\n".join(lines)), delimiter=separator))
    headers = [normalize_header(h) for h in rows[0]]

    date_index = _find_column(headers, _DATE_KEYS)
    amount_index = _find_column(headers, _AMOUNT_KEYS)
    description_index = _find_column(headers, _DESCRIPTION_KEYS)
    if date_index is None or amount_index is None or description_index is None:
        raise ValidationError(
            "Invalid statement: 'Date', 'Amount' and 'Description' columns are required "
            f"(separator detected: {separator!r})"
        )

    candidates = []
    skipped = 0
    last_index = max(date_index, amount_index, description_index)

    for row in rows[1:]:
        if not any(cell.strip() for cell in row):
            continue
        if separator == ",":
            row = _rejoin_split_amount(row, len(headers), amount_index)
        if len(row) <= last_index or any(cell.strip() for cell in row[len(headers):]):
            skipped += 1
            continue

        description = row[description_index].strip()
        try:
            row_date = parse_statement_date(row[date_index])
            amount = parse_amount(row[amount_index])
        except ValueError as e:
            logger.debug("Skipping statement row %r: %s", row, e)
            skipped += 1
            continue
        if not description or quantize_money(amount) == 0:
            skipped += 1
            continue

        candidates.append(_new_candidate(account_id, row_date, amount, description))

    return ParsedStatement(
        source_format=StatementFormat.CSV, candidates=tuple(candidates), skipped_rows=skipped
    )


def _ofx_field(block: str, tag: str) -> Optional[str]:
    match = re.search(rf"<{tag}>\s*([^<\r\n]*)", block, re.IGNORECASE)
    if match is None:
        return None
    value = match.group(1).strip()
    return value or None


def parse_ofx(content: str, account_id: int) -> ParsedStatement:
    """Parse the <STMTTRN> blocks of an OFX (SGML or XML) export."""
    candidates = []
    skipped = 0

    for block in _OFX_BLOCK.findall(content):
        posted = _ofx_field(block, "DTPOSTED")
        amount_str = _ofx_field(block, "TRNAMT")
        description = _ofx_field(block, "MEMO") or _ofx_field(block, "NAME")
        if posted is None or amount_str is None or description is None:
            skipped += 1
            continue
        try:
            row_date = parse_statement_date(posted)
            amount = parse_amount(amount_str)
        except ValueError as e:
            logger.debug("Skipping OFX block: %s", e)
            skipped += 1
            continue
        if quantize_money(amount) == 0:
            skipped += 1
            continue
        candidates.append(_new_candidate(account_id, row_date, amount, description))

    return ParsedStatement(
        source_format=StatementFormat.OFX, candidates=tuple(candidates), skipped_rows=skipped
    )


def parse_statement(content: str, account_id: int) -> ParsedStatement:
    """Parse raw statement content into unclassified candidates.

    Rows with an unparseable date, a zero amount, or more cells than the
    header are dropped and counted in `skipped_rows`.

    Raises:
        ValidationError: If the format is unrecognized or columns are missing
    """
    content = content.lstrip("\ufeff")
    if detect_format(content) == StatementFormat.OFX:
        return parse_ofx(content, account_id)
    return parse_delimited(content, account_id)


def is_ready(candidate: CandidateTransaction) -> bool:
    """Return True when a candidate is classified enough to be committed."""
    if candidate.is_potential_duplicate or candidate.is_contabilized or candidate.amount <= 0:
        return False
    operation = candidate.operation_type
    if operation is None:
        return False
    if operation == OperationType.TRANSFER:
        return candidate.destination_account_id is not None
    if operation in INVESTMENT_OPERATIONS:
        return candidate.investment_account_id is not None
    if operation == OperationType.LOAN_PAYMENT:
        return candidate.loan_ref is not None
    if operation in VEHICLE_OPERATIONS or operation == OperationType.LOAN_DISBURSEMENT:
        return True
    return candidate.category_id is not None


class StatementImportService:
    """Service running the import pipeline and committing reviewed statements."""

    def __init__(self, db: Database, matcher: Optional[DuplicateMatcher] = None):
        """Initialize statement import service.

        Args:
            db: Database instance
            matcher: Duplicate detection policy (defaults to a one-day window)
        """
        self.db = db
        self.matcher = matcher or WindowDuplicateMatcher()
        self.rules = RuleService(db)
        self.transactions = TransactionService(db)
        self.loans = LoanService(db)

    def _require_account(self, account_id: int) -> Account:
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        return account

    def get_statement(self, statement_id: int) -> Optional[ImportedStatement]:
        """Get imported statement by ID."""
        return self.db.get_statement(statement_id)

    def require_statement(self, statement_id: int) -> ImportedStatement:
        """Get imported statement by ID, raising NotFoundError when it is missing."""
        statement = self.db.get_statement(statement_id)
        if statement is None:
            raise NotFoundError(statement_not_found(statement_id))
        return statement

    def list_statements(
        self, account_id: Optional[int] = None, status: Optional[StatementStatus] = None
    ) -> list[ImportedStatement]:
        """List imported statements."""
        return self.db.list_statements(account_id=account_id, status=status)

    # Pipeline

    def preview(self, content: str, account_id: int) -> ParsedStatement:
        """Parse, classify and flag duplicates without storing anything.

        Raises:
            NotFoundError: If the account doesn't exist
            ValidationError: If the file cannot be parsed
        """
        account = self._require_account(account_id)
        parsed = parse_statement(content, account_id)
        candidates = self.rules.apply_rules(parsed.candidates)
        candidates = self.flag_duplicates(candidates, account)
        return replace(parsed, candidates=tuple(candidates))

    def import_statement(
        self, content: str, account_id: int, file_name: Optional[str] = None
    ) -> int:
        """Run the pipeline and store the result as a statement pending review.

        Returns:
            Imported statement ID

        Raises:
            NotFoundError: If the account doesn't exist
            ValidationError: If the file cannot be parsed; nothing is stored
        """
        parsed = self.preview(content, account_id)
        statement_id = self.db.create_statement(
            account_id=account_id,
            file_name=file_name,
            source_format=parsed.source_format,
            skipped_rows=parsed.skipped_rows,
            candidates=parsed.candidates,
        )
        logger.info(
            "Imported statement %s (%s): %d rows, %d duplicates, %d skipped",
            statement_id,
            parsed.source_format.value,
            len(parsed.candidates),
            sum(1 for c in parsed.candidates if c.is_potential_duplicate),
            parsed.skipped_rows,
        )
        return statement_id

    def flag_duplicates(
        self, candidates: list[CandidateTransaction], account: Account
    ) -> list[CandidateTransaction]:
        """Flag candidates that repeat ledger entries or rows of pending statements.

        A candidate matching a ledger transaction inherits its classification.
        """
        if not candidates:
            return []

        window = timedelta(days=self.matcher.day_window)
        ledger = self.db.list_transactions(
            start_date=min(c.date for c in candidates) - window,
            end_date=max(c.date for c in candidates) + window,
            account_id=account.id,
        )
        ledger_keys = [(key_for_transaction(t), t) for t in ledger]
        pending_keys = [
            key_for_candidate(c, account)
            for statement in self.db.list_statements(account_id=account.id)
            for c in statement.candidates
            if not c.is_contabilized and c.operation_type is not None
        ]

        result = []
        for candidate in candidates:
            key = key_for_candidate(candidate, account)
            match = next(
                (t for existing, t in ledger_keys if self.matcher.is_duplicate(key, existing)),
                None,
            )
            if match is not None:
                result.append(self._inherit_classification(candidate, match))
            elif any(self.matcher.is_duplicate(key, existing) for existing in pending_keys):
                result.append(replace(candidate, is_potential_duplicate=True))
            else:
                result.append(candidate)
        return result

    def _inherit_classification(
        self, candidate: CandidateTransaction, transaction: Transaction
    ) -> CandidateTransaction:
        fields = {
            "is_potential_duplicate": True,
            "duplicate_of_transaction_id": transaction.id,
            "operation_type": transaction.operation_type,
            "category_id": transaction.category_id,
            "description": transaction.description or candidate.description,
        }
        link = transaction.link
        if isinstance(link, LoanLink):
            fields["loan_ref"] = link.loan_ref
            fields["installment_number"] = link.installment_number
        elif isinstance(link, InvestmentLink):
            fields["investment_account_id"] = link.counterpart_account_id
        elif isinstance(link, TransferLink):
            other = [t for t in self.db.list_transfer_group(link.group_id) if t.id != transaction.id]
            if other:
                fields["destination_account_id"] = other[0].account_id
        elif isinstance(link, VehicleLink):
            fields["vehicle_operation"] = (
                VehicleOperation.SALE
                if transaction.operation_type == OperationType.VEHICLE_SALE
                else VehicleOperation.PURCHASE
            )
        return replace(candidate, **fields)

    # Review

    def _require_candidate(self, statement_id: int, candidate_id: int) -> CandidateTransaction:
        statement = self.require_statement(statement_id)
        for candidate in statement.candidates:
            if candidate.id == candidate_id:
                return candidate
        raise NotFoundError(f"Candidate {candidate_id} not found in statement {statement_id}")

    def classify_candidate(self, statement_id: int, candidate_id: int, **changes) -> CandidateTransaction:
        """Update the classification of one candidate during review.

        Accepts the candidate's classification fields: operation_type,
        category_id, description, destination_account_id,
        investment_account_id, loan_ref, installment_number,
        vehicle_operation and is_potential_duplicate.

        Raises:
            NotFoundError: If the statement, candidate or category doesn't exist
            ValidationError: If the candidate is already committed or a field is unknown
        """
        allowed = {
            "operation_type",
            "category_id",
            "description",
            "destination_account_id",
            "investment_account_id",
            "loan_ref",
            "installment_number",
            "vehicle_operation",
            "is_potential_duplicate",
        }
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Unknown candidate fields: {', '.join(sorted(unknown))}")

        candidate = self._require_candidate(statement_id, candidate_id)
        if candidate.is_contabilized:
            raise ValidationError(f"Candidate {candidate_id} is already committed")
        category_id = changes.get("category_id")
        if category_id is not None and self.db.get_category(category_id) is None:
            raise NotFoundError(category_not_found(category_id))

        updated = replace(candidate, **changes)
        self.db.update_candidate(updated)
        return updated

    def review_counts(self, statement_id: int) -> ReviewCounts:
        """Count ready, pending, duplicate and committed candidates of a statement."""
        candidates = self.require_statement(statement_id).candidates
        open_rows = [c for c in candidates if not c.is_contabilized]
        ready = sum(1 for c in open_rows if is_ready(c))
        duplicates = sum(1 for c in open_rows if c.is_potential_duplicate)
        return ReviewCounts(
            ready=ready,
            pending=len(open_rows) - ready - duplicates,
            duplicates=duplicates,
            contabilized=len(candidates) - len(open_rows),
        )

    # Commit

    def _validate_for_commit(self, candidate: CandidateTransaction) -> None:
        if candidate.category_id is not None and self.db.get_category(candidate.category_id) is None:
            raise NotFoundError(category_not_found(candidate.category_id))
        for account_id in (candidate.destination_account_id, candidate.investment_account_id):
            if account_id is not None:
                self._require_account(account_id)
        if candidate.operation_type == OperationType.LOAN_PAYMENT:
            loan_id = parse_loan_ref(candidate.loan_ref)
            if loan_id is None or self.db.get_loan(loan_id) is None:
                raise NotFoundError(loan_not_found(loan_id) if loan_id else f"Loan '{candidate.loan_ref}' not found")

    def _commit_candidate(self, candidate: CandidateTransaction) -> list[int]:
        operation = candidate.operation_type
        common = dict(source=TransactionSource.IMPORT, conciliated=True)

        if operation == OperationType.TRANSFER:
            group_id = self.transactions.create_transfer(
                candidate.account_id,
                candidate.destination_account_id,
                candidate.date,
                candidate.amount,
                description=candidate.description,
                **common,
            )
            return [t.id for t in self.db.list_transfer_group(group_id)]

        if operation in INVESTMENT_OPERATIONS:
            group_id = self.transactions.create_investment_move(
                candidate.account_id,
                candidate.investment_account_id,
                candidate.date,
                candidate.amount,
                redemption=operation == OperationType.INVESTMENT_REDEMPTION,
                description=candidate.description,
                category_id=candidate.category_id,
                original_description=candidate.original_description,
                **common,
            )
            return [t.id for t in self.db.list_transfer_group(group_id)]

        link = None
        if operation == OperationType.LOAN_PAYMENT:
            link = LoanLink(loan_ref=candidate.loan_ref, installment_number=candidate.installment_number)
        elif operation in VEHICLE_OPERATIONS:
            link = VehicleLink(vehicle_ref=f"vehicle_{candidate.id}")

        transaction_id = self.transactions.create_transaction(
            account_id=candidate.account_id,
            date=candidate.date,
            operation_type=operation,
            amount=candidate.amount,
            description=candidate.description,
            category_id=candidate.category_id,
            link=link,
            original_description=candidate.original_description,
            **common,
        )

        if operation == OperationType.LOAN_DISBURSEMENT:
            self.loans.create_loan(
                contract=candidate.description,
                principal=candidate.amount,
                account_id=candidate.account_id,
                start_date=candidate.date,
                disbursement_transaction_id=transaction_id,
            )
        return [transaction_id]

    def commit_statement(self, statement_id: int) -> list[int]:
        """Turn every ready candidate of a statement into ledger transactions.

        Transfers and investment moves produce two legs, loan payments link
        their loan, and a loan disbursement also creates a loan awaiting
        configuration. The statement is marked contabilized once no open,
        non-duplicate candidate is left. Everything happens in one commit.

        Returns:
            IDs of the created transactions

        Raises:
            NotFoundError: If the statement or a referenced entity doesn't exist
        """
        statement = self.require_statement(statement_id)
        self._require_account(statement.account_id)

        ready = [c for c in statement.candidates if is_ready(c)]
        for candidate in ready:
            self._validate_for_commit(candidate)

        created: list[int] = []
        with self.db.atomic():
            for candidate in ready:
                created.extend(self._commit_candidate(candidate))
            self.db.mark_candidates_contabilized([c.id for c in ready])

            committed = {c.id for c in ready}
            still_open = [
                c
                for c in statement.candidates
                if not c.is_contabilized and c.id not in committed and not c.is_potential_duplicate
            ]
            if not still_open:
                self.db.update_statement_status(statement_id, StatementStatus.CONTABILIZED)

        logger.info(
            "Committed %d of %d candidates from statement %s into %d transactions",
            len(ready),
            len(statement.candidates),
            statement_id,
            len(created),
        )
        return created
