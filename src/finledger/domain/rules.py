"""Standardization rules: pattern to classification mapping for imports."""

from dataclasses import replace
from typing import Iterable, Optional

from finledger.database.base import Database
from finledger.domain.entities import CandidateTransaction, OperationType, StandardizationRule
from finledger.domain.errors import NotFoundError, ValidationError, category_not_found

ORIGINAL_PLACEHOLDER = "{original}"


def match_rule(
    description: str, rules: Iterable[StandardizationRule]
) -> Optional[StandardizationRule]:
    """Return the first rule whose pattern occurs in the description (case-insensitive)."""
    lowered = description.lower()
    for rule in rules:
        if rule.pattern and rule.pattern.lower() in lowered:
            return rule
    return None


def apply_rule(
    candidate: CandidateTransaction,
    rule: StandardizationRule,
    known_category_ids: set[int],
) -> CandidateTransaction:
    """Overwrite a candidate's classification with a rule's targets.

    A rule whose category no longer exists leaves the category empty.
    `{original}` in the template is replaced with the bank description.
    """
    category_id = rule.category_id if rule.category_id in known_category_ids else None
    description = candidate.description
    if rule.description_template:
        description = rule.description_template.replace(
            ORIGINAL_PLACEHOLDER, candidate.original_description
        )
    return replace(
        candidate,
        operation_type=rule.operation_type,
        category_id=category_id,
        description=description,
    )


class RuleService:
    """Service for managing standardization rules."""

    def __init__(self, db: Database):
        """Initialize rule service.

        Args:
            db: Database instance
        """
        self.db = db

    def add_rule(
        self,
        pattern: str,
        operation_type: OperationType,
        category_id: Optional[int] = None,
        description_template: str = "",
    ) -> int:
        """Append a rule; rules are tried in the order they were added.

        Raises:
            ValidationError: If the pattern is blank
            NotFoundError: If the category doesn't exist
        """
        pattern = pattern.strip()
        if not pattern:
            raise ValidationError("Rule pattern cannot be empty")
        if category_id is not None and self.db.get_category(category_id) is None:
            raise NotFoundError(category_not_found(category_id))
        return self.db.create_rule(
            pattern=pattern,
            operation_type=operation_type,
            category_id=category_id,
            description_template=description_template,
        )

    def list_rules(self) -> list[StandardizationRule]:
        """List rules in declaration order."""
        return self.db.list_rules()

    def delete_rule(self, rule_id: int) -> None:
        """Delete a rule.

        Raises:
            NotFoundError: If the rule doesn't exist
        """
        if all(rule.id != rule_id for rule in self.db.list_rules()):
            raise NotFoundError(f"Standardization rule {rule_id} not found")
        self.db.delete_rule(rule_id)

    def apply_rules(self, candidates: Iterable[CandidateTransaction]) -> list[CandidateTransaction]:
        """Classify candidates with the first matching rule each."""
        rules = self.db.list_rules()
        category_ids = {c.id for c in self.db.list_categories()}
        result = []
        for candidate in candidates:
            rule = match_rule(candidate.original_description, rules)
            result.append(apply_rule(candidate, rule, category_ids) if rule else candidate)
        return result
