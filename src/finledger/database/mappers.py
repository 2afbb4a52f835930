"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, including flattening the
transaction link union into columns and rebuilding it on the way out.
"""

from typing import Any, Optional

from finledger.domain import entities as domain
from finledger.database.models import (
    Account as ORMAccount,
    Category as ORMCategory,
    Transaction as ORMTransaction,
    Loan as ORMLoan,
    InsurancePolicy as ORMInsurancePolicy,
    InsuranceInstallment as ORMInsuranceInstallment,
    Bill as ORMBill,
    StandardizationRule as ORMStandardizationRule,
    ImportedStatement as ORMImportedStatement,
    CandidateTransaction as ORMCandidateTransaction,
)

LINK_COLUMNS = (
    "link_kind",
    "transfer_group_id",
    "loan_ref",
    "installment_number",
    "counterpart_account_id",
    "policy_id",
    "vehicle_ref",
)


def _enum_or_none(enum_cls, value: Optional[str]):
    return enum_cls(value) if value is not None else None


def link_to_columns(link: Optional[domain.TransactionLink]) -> dict[str, Any]:
    """Flatten a transaction link into ORM column values."""
    columns: dict[str, Any] = {name: None for name in LINK_COLUMNS}
    if link is None:
        return columns

    if isinstance(link, domain.TransferLink):
        columns.update(link_kind="transfer", transfer_group_id=link.group_id)
    elif isinstance(link, domain.LoanLink):
        columns.update(
            link_kind="loan",
            loan_ref=link.loan_ref,
            installment_number=link.installment_number,
        )
    elif isinstance(link, domain.InvestmentLink):
        columns.update(
            link_kind="investment",
            counterpart_account_id=link.counterpart_account_id,
            transfer_group_id=link.group_id,
        )
    elif isinstance(link, domain.InsuranceLink):
        columns.update(
            link_kind="insurance",
            policy_id=link.policy_id,
            installment_number=link.installment_number,
        )
    elif isinstance(link, domain.VehicleLink):
        columns.update(link_kind="vehicle", vehicle_ref=link.vehicle_ref)
    else:
        raise TypeError(f"Unsupported transaction link: {link!r}")
    return columns


def link_from_columns(orm_transaction: ORMTransaction) -> Optional[domain.TransactionLink]:
    """Rebuild the link union from ORM columns."""
    kind = orm_transaction.link_kind
    if kind == "transfer":
        return domain.TransferLink(group_id=orm_transaction.transfer_group_id)
    if kind == "loan":
        return domain.LoanLink(
            loan_ref=orm_transaction.loan_ref,
            installment_number=orm_transaction.installment_number,
        )
    if kind == "investment":
        return domain.InvestmentLink(
            counterpart_account_id=orm_transaction.counterpart_account_id,
            group_id=orm_transaction.transfer_group_id,
        )
    if kind == "insurance":
        return domain.InsuranceLink(
            policy_id=orm_transaction.policy_id,
            installment_number=orm_transaction.installment_number,
        )
    if kind == "vehicle":
        return domain.VehicleLink(vehicle_ref=orm_transaction.vehicle_ref)
    return None


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        id=orm_account.id,
        name=orm_account.name,
        account_type=domain.AccountType(orm_account.account_type),
        institution=orm_account.institution,
        hidden=orm_account.hidden,
        created_at=orm_account.created_at,
    )


def category_to_domain(orm_category: ORMCategory) -> domain.Category:
    """Convert SQLAlchemy Category model to domain Category entity."""
    return domain.Category(
        id=orm_category.id,
        name=orm_category.name,
        parent_id=orm_category.parent_id,
        nature=domain.CategoryNature(orm_category.nature),
        created_at=orm_category.created_at,
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    return domain.Transaction(
        id=orm_transaction.id,
        date=orm_transaction.date,
        account_id=orm_transaction.account_id,
        flow=domain.Flow(orm_transaction.flow),
        operation_type=domain.OperationType(orm_transaction.operation_type),
        amount=orm_transaction.amount,
        description=orm_transaction.description,
        category_id=orm_transaction.category_id,
        link=link_from_columns(orm_transaction),
        conciliated=orm_transaction.conciliated,
        source=domain.TransactionSource(orm_transaction.source),
        original_description=orm_transaction.original_description,
        notes=orm_transaction.notes,
        created_at=orm_transaction.created_at,
    )


def loan_to_domain(orm_loan: ORMLoan) -> domain.Loan:
    """Convert SQLAlchemy Loan model to domain Loan entity."""
    return domain.Loan(
        id=orm_loan.id,
        contract=orm_loan.contract,
        principal=orm_loan.principal,
        installment=orm_loan.installment,
        monthly_rate=orm_loan.monthly_rate,
        term_months=orm_loan.term_months,
        start_date=orm_loan.start_date,
        status=domain.LoanStatus(orm_loan.status),
        account_id=orm_loan.account_id,
        disbursement_transaction_id=orm_loan.disbursement_transaction_id,
        created_at=orm_loan.created_at,
    )


def insurance_installment_to_domain(
    orm_installment: ORMInsuranceInstallment,
) -> domain.InsuranceInstallment:
    """Convert SQLAlchemy InsuranceInstallment model to domain entity."""
    return domain.InsuranceInstallment(
        policy_id=orm_installment.policy_id,
        number=orm_installment.number,
        due_date=orm_installment.due_date,
        amount=orm_installment.amount,
        paid=orm_installment.paid,
        paid_transaction_id=orm_installment.paid_transaction_id,
    )


def insurance_policy_to_domain(orm_policy: ORMInsurancePolicy) -> domain.InsurancePolicy:
    """Convert SQLAlchemy InsurancePolicy model to domain entity."""
    return domain.InsurancePolicy(
        id=orm_policy.id,
        description=orm_policy.description,
        vehicle_ref=orm_policy.vehicle_ref,
        installments=tuple(
            insurance_installment_to_domain(i) for i in orm_policy.installments
        ),
        created_at=orm_policy.created_at,
    )


def bill_to_domain(orm_bill: ORMBill) -> domain.Bill:
    """Convert SQLAlchemy Bill model to domain Bill entity."""
    return domain.Bill(
        id=orm_bill.id,
        description=orm_bill.description,
        due_date=orm_bill.due_date,
        expected_amount=orm_bill.expected_amount,
        source_type=domain.BillSourceType(orm_bill.source_type),
        source_ref=orm_bill.source_ref,
        installment_number=orm_bill.installment_number,
        suggested_account_id=orm_bill.suggested_account_id,
        suggested_category_id=orm_bill.suggested_category_id,
        is_paid=orm_bill.is_paid,
        payment_date=orm_bill.payment_date,
        transaction_id=orm_bill.transaction_id,
        is_excluded=orm_bill.is_excluded,
        created_at=orm_bill.created_at,
    )


def rule_to_domain(orm_rule: ORMStandardizationRule) -> domain.StandardizationRule:
    """Convert SQLAlchemy StandardizationRule model to domain entity."""
    return domain.StandardizationRule(
        id=orm_rule.id,
        pattern=orm_rule.pattern,
        operation_type=domain.OperationType(orm_rule.operation_type),
        category_id=orm_rule.category_id,
        description_template=orm_rule.description_template,
        position=orm_rule.position,
    )


def candidate_to_domain(orm_candidate: ORMCandidateTransaction) -> domain.CandidateTransaction:
    """Convert SQLAlchemy CandidateTransaction model to domain entity."""
    return domain.CandidateTransaction(
        id=orm_candidate.id,
        statement_id=orm_candidate.statement_id,
        account_id=orm_candidate.account_id,
        date=orm_candidate.date,
        amount=orm_candidate.amount,
        original_description=orm_candidate.original_description,
        description=orm_candidate.description,
        operation_type=_enum_or_none(domain.OperationType, orm_candidate.operation_type),
        category_id=orm_candidate.category_id,
        destination_account_id=orm_candidate.destination_account_id,
        investment_account_id=orm_candidate.investment_account_id,
        loan_ref=orm_candidate.loan_ref,
        installment_number=orm_candidate.installment_number,
        vehicle_operation=_enum_or_none(domain.VehicleOperation, orm_candidate.vehicle_operation),
        is_potential_duplicate=orm_candidate.is_potential_duplicate,
        duplicate_of_transaction_id=orm_candidate.duplicate_of_transaction_id,
        is_contabilized=orm_candidate.is_contabilized,
    )


def candidate_to_columns(candidate: domain.CandidateTransaction) -> dict[str, Any]:
    """Return ORM column values for a candidate (without ids)."""
    return {
        "account_id": candidate.account_id,
        "date": candidate.date,
        "amount": candidate.amount,
        "original_description": candidate.original_description,
        "description": candidate.description,
        "operation_type": candidate.operation_type.value if candidate.operation_type else None,
        "category_id": candidate.category_id,
        "destination_account_id": candidate.destination_account_id,
        "investment_account_id": candidate.investment_account_id,
        "loan_ref": candidate.loan_ref,
        "installment_number": candidate.installment_number,
        "vehicle_operation": candidate.vehicle_operation.value if candidate.vehicle_operation else None,
        "is_potential_duplicate": candidate.is_potential_duplicate,
        "duplicate_of_transaction_id": candidate.duplicate_of_transaction_id,
        "is_contabilized": candidate.is_contabilized,
    }


def statement_to_domain(orm_statement: ORMImportedStatement) -> domain.ImportedStatement:
    """Convert SQLAlchemy ImportedStatement model to domain entity."""
    return domain.ImportedStatement(
        id=orm_statement.id,
        account_id=orm_statement.account_id,
        file_name=orm_statement.file_name,
        source_format=domain.StatementFormat(orm_statement.source_format),
        status=domain.StatementStatus(orm_statement.status),
        imported_at=orm_statement.imported_at,
        skipped_rows=orm_statement.skipped_rows,
        candidates=tuple(candidate_to_domain(c) for c in orm_statement.candidates),
    )
