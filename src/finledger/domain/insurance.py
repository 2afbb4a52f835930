"""Insurance policy domain service."""

from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from finledger.database.base import Database
from finledger.domain.entities import InsuranceInstallment, InsurancePolicy
from finledger.domain.errors import NotFoundError, ValidationError, policy_not_found
from finledger.domain.loan import due_date
from finledger.utils.money import quantize_money


class InsuranceService:
    """Service for insurance policies and their installment lists."""

    def __init__(self, db: Database):
        """Initialize insurance service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_policy(
        self,
        description: str,
        installments: Sequence[tuple[date, Decimal]],
        vehicle_ref: Optional[str] = None,
    ) -> int:
        """Create a policy from its (due_date, amount) installments, numbered from 1.

        Raises:
            ValidationError: If there are no installments or an amount is not positive
        """
        if not installments:
            raise ValidationError("An insurance policy needs at least one installment")

        numbered = []
        for number, (due, amount) in enumerate(installments, start=1):
            amount = quantize_money(amount)
            if amount <= 0:
                raise ValidationError(f"Installment {number} amount must be positive")
            numbered.append((number, due, amount))

        return self.db.create_insurance_policy(
            description=description, vehicle_ref=vehicle_ref, installments=numbered
        )

    def create_monthly_policy(
        self,
        description: str,
        first_due_date: date,
        installment_amount: Decimal,
        count: int,
        vehicle_ref: Optional[str] = None,
    ) -> int:
        """Create a policy paid in `count` equal monthly installments."""
        if count <= 0:
            raise ValidationError("Installment count must be positive")
        return self.create_policy(
            description,
            [(due_date(first_due_date, n), installment_amount) for n in range(1, count + 1)],
            vehicle_ref=vehicle_ref,
        )

    def get_policy(self, policy_id: int) -> Optional[InsurancePolicy]:
        """Get policy by ID."""
        return self.db.get_insurance_policy(policy_id)

    def require_policy(self, policy_id: int) -> InsurancePolicy:
        """Get policy by ID, raising NotFoundError when it is missing."""
        policy = self.db.get_insurance_policy(policy_id)
        if policy is None:
            raise NotFoundError(policy_not_found(policy_id))
        return policy

    def list_policies(self) -> list[InsurancePolicy]:
        """List all policies."""
        return self.db.list_insurance_policies()

    def get_installment(self, policy_id: int, number: int) -> Optional[InsuranceInstallment]:
        """Return one installment of a policy, or None."""
        policy = self.db.get_insurance_policy(policy_id)
        if policy is None:
            return None
        return next((i for i in policy.installments if i.number == number), None)
