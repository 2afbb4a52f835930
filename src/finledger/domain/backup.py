"""Versioned JSON backup of the whole ledger.

Document shape::

    {"schemaVersion": 1, "exportedAt": "...", "data": {"accounts": [...], ...}}

Money is written as decimal strings and dates as ISO strings so that an
export followed by an import reconstructs identical entities.
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from finledger.database.base import Database
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
    InsuranceInstallment,
    InsuranceLink,
    InsurancePolicy,
    InvestmentLink,
    LedgerSnapshot,
    Loan,
    LoanLink,
    LoanStatus,
    OperationType,
    StandardizationRule,
    StatementFormat,
    StatementStatus,
    Transaction,
    TransactionLink,
    TransactionSource,
    TransferLink,
    VehicleLink,
    VehicleOperation,
)
from finledger.domain.errors import ValidationError
from finledger.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1


def _d(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value is not None else None


def _datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _money(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def _decimal(value: Optional[str]) -> Optional[Decimal]:
    return Decimal(value) if value is not None else None


def _enum_value(value) -> Optional[str]:
    return value.value if value is not None else None


def link_to_dict(link: Optional[TransactionLink]) -> Optional[dict[str, Any]]:
    """Serialize a transaction link with a `kind` tag."""
    if link is None:
        return None
    if isinstance(link, TransferLink):
        return {"kind": "transfer", "groupId": link.group_id}
    if isinstance(link, LoanLink):
        return {
            "kind": "loan",
            "loanId": link.loan_ref,
            "installmentNumber": link.installment_number,
        }
    if isinstance(link, InvestmentLink):
        return {
            "kind": "investment",
            "counterpartAccountId": link.counterpart_account_id,
            "groupId": link.group_id,
        }
    if isinstance(link, InsuranceLink):
        return {
            "kind": "insurance",
            "policyId": link.policy_id,
            "installmentNumber": link.installment_number,
        }
    if isinstance(link, VehicleLink):
        return {"kind": "vehicle", "vehicleRef": link.vehicle_ref}
    raise TypeError(f"Unsupported transaction link: {link!r}")


def link_from_dict(data: Optional[dict[str, Any]]) -> Optional[TransactionLink]:
    """Rebuild a transaction link from its tagged form."""
    if data is None:
        return None
    kind = data["kind"]
    if kind == "transfer":
        return TransferLink(group_id=data["groupId"])
    if kind == "loan":
        return LoanLink(loan_ref=data["loanId"], installment_number=data.get("installmentNumber"))
    if kind == "investment":
        return InvestmentLink(
            counterpart_account_id=data["counterpartAccountId"], group_id=data["groupId"]
        )
    if kind == "insurance":
        return InsuranceLink(policy_id=data["policyId"], installment_number=data["installmentNumber"])
    if kind == "vehicle":
        return VehicleLink(vehicle_ref=data["vehicleRef"])
    raise ValueError(f"Unknown link kind '{kind}'")


# Entity -> dict


def account_to_dict(a: Account) -> dict[str, Any]:
    return {
        "id": a.id,
        "name": a.name,
        "accountType": a.account_type.value,
        "institution": a.institution,
        "hidden": a.hidden,
        "createdAt": a.created_at.isoformat(),
    }


def category_to_dict(c: Category) -> dict[str, Any]:
    return {
        "id": c.id,
        "name": c.name,
        "parentId": c.parent_id,
        "nature": c.nature.value,
        "createdAt": c.created_at.isoformat(),
    }


def transaction_to_dict(t: Transaction) -> dict[str, Any]:
    return {
        "id": t.id,
        "date": _d(t.date),
        "accountId": t.account_id,
        "flow": t.flow.value,
        "operationType": t.operation_type.value,
        "amount": _money(t.amount),
        "description": t.description,
        "categoryId": t.category_id,
        "links": link_to_dict(t.link),
        "conciliated": t.conciliated,
        "source": t.source.value,
        "originalDescription": t.original_description,
        "notes": t.notes,
        "createdAt": t.created_at.isoformat(),
    }


def loan_to_dict(l: Loan) -> dict[str, Any]:
    return {
        "id": l.id,
        "contract": l.contract,
        "principal": _money(l.principal),
        "installment": _money(l.installment),
        "monthlyRate": _money(l.monthly_rate),
        "termMonths": l.term_months,
        "startDate": _d(l.start_date),
        "status": l.status.value,
        "accountId": l.account_id,
        "disbursementTransactionId": l.disbursement_transaction_id,
        "createdAt": l.created_at.isoformat(),
    }


def policy_to_dict(p: InsurancePolicy) -> dict[str, Any]:
    return {
        "id": p.id,
        "description": p.description,
        "vehicleRef": p.vehicle_ref,
        "installments": [
            {
                "number": i.number,
                "dueDate": _d(i.due_date),
                "amount": _money(i.amount),
                "paid": i.paid,
                "paidTransactionId": i.paid_transaction_id,
            }
            for i in p.installments
        ],
        "createdAt": p.created_at.isoformat(),
    }


def bill_to_dict(b: Bill) -> dict[str, Any]:
    return {
        "id": b.id,
        "description": b.description,
        "dueDate": _d(b.due_date),
        "expectedAmount": _money(b.expected_amount),
        "sourceType": b.source_type.value,
        "sourceRef": b.source_ref,
        "installmentNumber": b.installment_number,
        "suggestedAccountId": b.suggested_account_id,
        "suggestedCategoryId": b.suggested_category_id,
        "isPaid": b.is_paid,
        "paymentDate": _d(b.payment_date),
        "transactionId": b.transaction_id,
        "isExcluded": b.is_excluded,
        "createdAt": b.created_at.isoformat(),
    }


def rule_to_dict(r: StandardizationRule) -> dict[str, Any]:
    return {
        "id": r.id,
        "pattern": r.pattern,
        "operationType": r.operation_type.value,
        "categoryId": r.category_id,
        "descriptionTemplate": r.description_template,
        "position": r.position,
    }


def candidate_to_dict(c: CandidateTransaction) -> dict[str, Any]:
    return {
        "id": c.id,
        "accountId": c.account_id,
        "date": _d(c.date),
        "amount": _money(c.amount),
        "originalDescription": c.original_description,
        "description": c.description,
        "operationType": _enum_value(c.operation_type),
        "categoryId": c.category_id,
        "destinationAccountId": c.destination_account_id,
        "investmentAccountId": c.investment_account_id,
        "loanId": c.loan_ref,
        "installmentNumber": c.installment_number,
        "vehicleOperation": _enum_value(c.vehicle_operation),
        "isPotentialDuplicate": c.is_potential_duplicate,
        "duplicateOfTransactionId": c.duplicate_of_transaction_id,
        "isContabilized": c.is_contabilized,
    }


def statement_to_dict(s: ImportedStatement) -> dict[str, Any]:
    return {
        "id": s.id,
        "accountId": s.account_id,
        "fileName": s.file_name,
        "sourceFormat": s.source_format.value,
        "status": s.status.value,
        "importedAt": s.imported_at.isoformat(),
        "skippedRows": s.skipped_rows,
        "rawTransactions": [candidate_to_dict(c) for c in s.candidates],
    }


# dict -> Entity


def account_from_dict(d: dict[str, Any]) -> Account:
    return Account(
        id=d["id"],
        name=d["name"],
        account_type=AccountType(d["accountType"]),
        institution=d.get("institution", ""),
        hidden=d.get("hidden", False),
        created_at=_datetime(d["createdAt"]),
    )


def category_from_dict(d: dict[str, Any]) -> Category:
    return Category(
        id=d["id"],
        name=d["name"],
        parent_id=d.get("parentId"),
        nature=CategoryNature(d.get("nature", "expense")),
        created_at=_datetime(d["createdAt"]),
    )


def transaction_from_dict(d: dict[str, Any]) -> Transaction:
    return Transaction(
        id=d["id"],
        date=_date(d["date"]),
        account_id=d["accountId"],
        flow=Flow(d["flow"]),
        operation_type=OperationType(d["operationType"]),
        amount=_decimal(d["amount"]),
        description=d.get("description"),
        category_id=d.get("categoryId"),
        link=link_from_dict(d.get("links")),
        conciliated=d.get("conciliated", False),
        source=TransactionSource(d.get("source", "manual")),
        original_description=d.get("originalDescription"),
        notes=d.get("notes"),
        created_at=_datetime(d["createdAt"]),
    )


def loan_from_dict(d: dict[str, Any]) -> Loan:
    return Loan(
        id=d["id"],
        contract=d["contract"],
        principal=_decimal(d["principal"]),
        installment=_decimal(d["installment"]),
        monthly_rate=_decimal(d["monthlyRate"]),
        term_months=d["termMonths"],
        start_date=_date(d.get("startDate")),
        status=LoanStatus(d["status"]),
        account_id=d.get("accountId"),
        disbursement_transaction_id=d.get("disbursementTransactionId"),
        created_at=_datetime(d["createdAt"]),
    )


def policy_from_dict(d: dict[str, Any]) -> InsurancePolicy:
    return InsurancePolicy(
        id=d["id"],
        description=d["description"],
        vehicle_ref=d.get("vehicleRef"),
        installments=tuple(
            InsuranceInstallment(
                policy_id=d["id"],
                number=i["number"],
                due_date=_date(i["dueDate"]),
                amount=_decimal(i["amount"]),
                paid=i.get("paid", False),
                paid_transaction_id=i.get("paidTransactionId"),
            )
            for i in d.get("installments", [])
        ),
        created_at=_datetime(d["createdAt"]),
    )


def bill_from_dict(d: dict[str, Any]) -> Bill:
    return Bill(
        id=d["id"],
        description=d["description"],
        due_date=_date(d["dueDate"]),
        expected_amount=_decimal(d["expectedAmount"]),
        source_type=BillSourceType(d["sourceType"]),
        source_ref=d.get("sourceRef"),
        installment_number=d.get("installmentNumber"),
        suggested_account_id=d.get("suggestedAccountId"),
        suggested_category_id=d.get("suggestedCategoryId"),
        is_paid=d.get("isPaid", False),
        payment_date=_date(d.get("paymentDate")),
        transaction_id=d.get("transactionId"),
        is_excluded=d.get("isExcluded", False),
        created_at=_datetime(d["createdAt"]),
    )


def rule_from_dict(d: dict[str, Any]) -> StandardizationRule:
    return StandardizationRule(
        id=d["id"],
        pattern=d["pattern"],
        operation_type=OperationType(d["operationType"]),
        category_id=d.get("categoryId"),
        description_template=d.get("descriptionTemplate", ""),
        position=d.get("position", d["id"]),
    )


def candidate_from_dict(d: dict[str, Any], statement_id: int) -> CandidateTransaction:
    operation_type = d.get("operationType")
    vehicle_operation = d.get("vehicleOperation")
    return CandidateTransaction(
        id=d["id"],
        statement_id=statement_id,
        account_id=d["accountId"],
        date=_date(d["date"]),
        amount=_decimal(d["amount"]),
        original_description=d["originalDescription"],
        description=d.get("description", d["originalDescription"]),
        operation_type=OperationType(operation_type) if operation_type else None,
        category_id=d.get("categoryId"),
        destination_account_id=d.get("destinationAccountId"),
        investment_account_id=d.get("investmentAccountId"),
        loan_ref=d.get("loanId"),
        installment_number=d.get("installmentNumber"),
        vehicle_operation=VehicleOperation(vehicle_operation) if vehicle_operation else None,
        is_potential_duplicate=d.get("isPotentialDuplicate", False),
        duplicate_of_transaction_id=d.get("duplicateOfTransactionId"),
        is_contabilized=d.get("isContabilized", False),
    )


def statement_from_dict(d: dict[str, Any]) -> ImportedStatement:
    return ImportedStatement(
        id=d["id"],
        account_id=d["accountId"],
        file_name=d.get("fileName"),
        source_format=StatementFormat(d["sourceFormat"]),
        status=StatementStatus(d["status"]),
        imported_at=_datetime(d["importedAt"]),
        skipped_rows=d.get("skippedRows", 0),
        candidates=tuple(candidate_from_dict(c, d["id"]) for c in d.get("rawTransactions", [])),
    )


class BackupService:
    """Exports and restores the whole ledger as a versioned JSON document."""

    def __init__(self, db: Database):
        """Initialize backup service.

        Args:
            db: Database instance
        """
        self.db = db

    def snapshot(self) -> LedgerSnapshot:
        """Read every entity collection from the database."""
        return LedgerSnapshot(
            accounts=tuple(self.db.list_accounts()),
            categories=tuple(self.db.list_categories()),
            transactions=tuple(self.db.list_transactions()),
            loans=tuple(self.db.list_loans()),
            insurance_policies=tuple(self.db.list_insurance_policies()),
            bills=tuple(self.db.list_bills()),
            rules=tuple(self.db.list_rules()),
            statements=tuple(self.db.list_statements()),
        )

    def export_document(self, exported_at: Optional[datetime] = None) -> dict[str, Any]:
        """Build the backup document for the current ledger."""
        snap = self.snapshot()
        exported_at = exported_at or datetime.now(timezone.utc)
        return {
            "schemaVersion": SCHEMA_VERSION,
            "exportedAt": exported_at.isoformat(),
            "data": {
                "accounts": [account_to_dict(a) for a in sorted(snap.accounts, key=lambda a: a.id)],
                "categories": [category_to_dict(c) for c in sorted(snap.categories, key=lambda c: c.id)],
                "transactions": [transaction_to_dict(t) for t in sorted(snap.transactions, key=lambda t: t.id)],
                "loans": [loan_to_dict(l) for l in snap.loans],
                "insurancePolicies": [policy_to_dict(p) for p in snap.insurance_policies],
                "bills": [bill_to_dict(b) for b in sorted(snap.bills, key=lambda b: b.id)],
                "standardizationRules": [rule_to_dict(r) for r in snap.rules],
                "importedStatements": [statement_to_dict(s) for s in snap.statements],
            },
        }

    def import_document(self, document: dict[str, Any]) -> LedgerSnapshot:
        """Replace the whole ledger with the contents of a backup document.

        The document is fully decoded before anything is written.

        Returns:
            The restored snapshot

        Raises:
            ValidationError: If the schema version is unsupported or the
                document is malformed
        """
        if not isinstance(document, dict):
            raise ValidationError("Backup document must be a JSON object")
        version = document.get("schemaVersion")
        if version != SCHEMA_VERSION:
            raise ValidationError(
                f"Unsupported backup schema version {version!r} (expected {SCHEMA_VERSION})"
            )
        data = document.get("data")
        if not isinstance(data, dict):
            raise ValidationError("Backup document has no 'data' section")

        try:
            snap = LedgerSnapshot(
                accounts=tuple(account_from_dict(d) for d in data.get("accounts", [])),
                categories=tuple(category_from_dict(d) for d in data.get("categories", [])),
                transactions=tuple(transaction_from_dict(d) for d in data.get("transactions", [])),
                loans=tuple(loan_from_dict(d) for d in data.get("loans", [])),
                insurance_policies=tuple(policy_from_dict(d) for d in data.get("insurancePolicies", [])),
                bills=tuple(bill_from_dict(d) for d in data.get("bills", [])),
                rules=tuple(rule_from_dict(d) for d in data.get("standardizationRules", [])),
                statements=tuple(statement_from_dict(d) for d in data.get("importedStatements", [])),
            )
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            raise ValidationError(f"Malformed backup document: {e}") from e

        self.db.replace_contents(snap)
        logger.info(
            "Restored backup: %d accounts, %d transactions, %d bills",
            len(snap.accounts),
            len(snap.transactions),
            len(snap.bills),
        )
        return snap

    def dumps(self, indent: Optional[int] = 2) -> str:
        """Export the ledger as a JSON string."""
        return json.dumps(self.export_document(), indent=indent, ensure_ascii=False)

    def loads(self, text: str) -> LedgerSnapshot:
        """Restore the ledger from a JSON string.

        Raises:
            ValidationError: If the text is not valid JSON or not a valid backup
        """
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Backup is not valid JSON: {e}") from e
        return self.import_document(document)
