"""SQLAlchemy models for finledger database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


def _now() -> datetime:
    return datetime.now(UTC)


class Account(Base):
    """Account model."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    account_type = Column(String, nullable=False)
    institution = Column(String, nullable=False, default="")
    hidden = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    transactions = relationship(
        "Transaction", back_populates="account", foreign_keys="Transaction.account_id"
    )


class Category(Base):
    """Category model with optional parent."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    parent_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    nature = Column(String, nullable=False, default="expense")
    created_at = Column(DateTime, default=_now, nullable=False)

    parent = relationship("Category", remote_side=[id], backref="children")


class Transaction(Base):
    """Ledger transaction model.

    Link variants are stored flat; `link_kind` says which columns are used.
    """

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    date = Column(Date, nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    flow = Column(String, nullable=False)
    operation_type = Column(String, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    description = Column(String, nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    conciliated = Column(Boolean, default=False, nullable=False)
    source = Column(String, nullable=False, default="manual")
    original_description = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    link_kind = Column(String, nullable=True)
    transfer_group_id = Column(String, nullable=True, index=True)
    loan_ref = Column(String, nullable=True, index=True)
    installment_number = Column(Integer, nullable=True)
    counterpart_account_id = Column(Integer, nullable=True)
    policy_id = Column(Integer, nullable=True)
    vehicle_ref = Column(String, nullable=True)

    account = relationship("Account", back_populates="transactions", foreign_keys=[account_id])
    category = relationship("Category")


class Loan(Base):
    """Loan contract model."""

    __tablename__ = "loans"

    id = Column(Integer, primary_key=True)
    contract = Column(String, nullable=False)
    principal = Column(Numeric(14, 2), nullable=False)
    installment = Column(Numeric(14, 2), nullable=False, default=0)
    monthly_rate = Column(Numeric(10, 6), nullable=False, default=0)
    term_months = Column(Integer, nullable=False, default=0)
    start_date = Column(Date, nullable=True)
    status = Column(String, nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    disbursement_transaction_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)


class InsurancePolicy(Base):
    """Insurance policy model."""

    __tablename__ = "insurance_policies"

    id = Column(Integer, primary_key=True)
    description = Column(String, nullable=False)
    vehicle_ref = Column(String, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    installments = relationship(
        "InsuranceInstallment",
        back_populates="policy",
        cascade="all, delete-orphan",
        order_by="InsuranceInstallment.number",
    )


class InsuranceInstallment(Base):
    """One installment of an insurance policy."""

    __tablename__ = "insurance_installments"

    id = Column(Integer, primary_key=True)
    policy_id = Column(Integer, ForeignKey("insurance_policies.id"), nullable=False)
    number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    paid = Column(Boolean, default=False, nullable=False)
    paid_transaction_id = Column(Integer, nullable=True)

    __table_args__ = (UniqueConstraint("policy_id", "number", name="uq_policy_installment"),)

    policy = relationship("InsurancePolicy", back_populates="installments")


class Bill(Base):
    """Tracked obligation model."""

    __tablename__ = "bills"

    id = Column(Integer, primary_key=True)
    description = Column(String, nullable=False)
    due_date = Column(Date, nullable=False)
    expected_amount = Column(Numeric(14, 2), nullable=False)
    source_type = Column(String, nullable=False)
    source_ref = Column(String, nullable=True)
    installment_number = Column(Integer, nullable=True)
    suggested_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    suggested_category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    is_paid = Column(Boolean, default=False, nullable=False)
    payment_date = Column(Date, nullable=True)
    transaction_id = Column(Integer, nullable=True)
    is_excluded = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)


class StandardizationRule(Base):
    """Standardization rule model."""

    __tablename__ = "standardization_rules"

    id = Column(Integer, primary_key=True)
    pattern = Column(String, nullable=False)
    operation_type = Column(String, nullable=False)
    category_id = Column(Integer, nullable=True)
    description_template = Column(String, nullable=False)
    position = Column(Integer, nullable=False, default=0)


class ImportedStatement(Base):
    """Imported statement model."""

    __tablename__ = "imported_statements"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    file_name = Column(String, nullable=True)
    source_format = Column(String, nullable=False)
    status = Column(String, nullable=False)
    skipped_rows = Column(Integer, default=0, nullable=False)
    imported_at = Column(DateTime, default=_now, nullable=False)

    candidates = relationship(
        "CandidateTransaction",
        back_populates="statement",
        cascade="all, delete-orphan",
        order_by="CandidateTransaction.id",
    )


class CandidateTransaction(Base):
    """Candidate transaction model (a reviewed statement row)."""

    __tablename__ = "candidate_transactions"

    id = Column(Integer, primary_key=True)
    statement_id = Column(Integer, ForeignKey("imported_statements.id"), nullable=False)
    account_id = Column(Integer, nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    original_description = Column(String, nullable=False)
    description = Column(String, nullable=False)
    operation_type = Column(String, nullable=True)
    category_id = Column(Integer, nullable=True)
    destination_account_id = Column(Integer, nullable=True)
    investment_account_id = Column(Integer, nullable=True)
    loan_ref = Column(String, nullable=True)
    installment_number = Column(Integer, nullable=True)
    vehicle_operation = Column(String, nullable=True)
    is_potential_duplicate = Column(Boolean, default=False, nullable=False)
    duplicate_of_transaction_id = Column(Integer, nullable=True)
    is_contabilized = Column(Boolean, default=False, nullable=False)

    statement = relationship("ImportedStatement", back_populates="candidates")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
