"""Account domain service."""

from typing import Optional
from finledger.database.base import Database
from finledger.domain.entities import Account as AccountEntity, AccountType
from finledger.domain.errors import (
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
    account_delete_blocked,
    account_not_found,
)
from finledger.logging import get_logger

logger = get_logger(__name__)


class AccountService:
    """Service for managing accounts."""

    def __init__(self, db: Database):
        """Initialize account service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_account(
        self,
        name: str,
        account_type: AccountType = AccountType.CHECKING,
        institution: str = "",
    ) -> int:
        """Create a new account.

        Args:
            name: Account name
            account_type: Kind of account
            institution: Bank or broker holding the account

        Returns:
            Account ID

        Raises:
            ValidationError: If the name is blank
            ConflictError: If account name already exists
        """
        name = name.strip()
        if not name:
            raise ValidationError("Account name cannot be empty")

        for acc in self.db.list_accounts():
            if acc.name == name:
                raise ConflictError(f"Account with name '{name}' already exists")

        account_id = self.db.create_account(
            name=name, account_type=account_type, institution=institution
        )
        logger.info("Created %s account %s (%s)", account_type.value, account_id, name)
        return account_id

    def get_account(self, account_id: int) -> Optional[AccountEntity]:
        """Get account by ID.

        Args:
            account_id: Account ID

        Returns:
            Account entity or None if not found
        """
        return self.db.get_account(account_id)

    def require_account(self, account_id: int) -> AccountEntity:
        """Get account by ID, raising NotFoundError when it is missing."""
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        return account

    def list_accounts(self, include_hidden: bool = False) -> list[AccountEntity]:
        """List accounts.

        Args:
            include_hidden: Whether soft-hidden accounts are included

        Returns:
            List of account entities
        """
        accounts = self.db.list_accounts()
        if include_hidden:
            return accounts
        return [acc for acc in accounts if not acc.hidden]

    def rename_account(
        self, account_id: int, name: str, institution: Optional[str] = None
    ) -> None:
        """Rename an account.

        Args:
            account_id: Account ID to rename
            name: New account name
            institution: Optional new institution (if None, it is not updated)

        Raises:
            NotFoundError: If account not found
            ConflictError: If name already exists
        """
        self.require_account(account_id)

        for acc in self.db.list_accounts():
            if acc.id != account_id and acc.name == name:
                raise ConflictError(f"Account with name '{name}' already exists")

        self.db.update_account(account_id=account_id, name=name, institution=institution)

    def set_hidden(self, account_id: int, hidden: bool = True) -> None:
        """Soft-hide or unhide an account.

        Hidden accounts keep their transactions and balances; they are only
        left out of default listings.

        Raises:
            NotFoundError: If account not found
        """
        self.require_account(account_id)
        self.db.update_account(account_id=account_id, hidden=hidden)

    def delete_account(self, account_id: int) -> None:
        """Delete an account that no transaction references.

        Args:
            account_id: Account ID to delete

        Raises:
            NotFoundError: If account not found
            DependencyError: If the account has transactions
        """
        self.require_account(account_id)

        transaction_count = self.db.get_account_transaction_count(account_id)
        if transaction_count > 0:
            raise DependencyError(account_delete_blocked(account_id, transaction_count))

        self.db.delete_account(account_id)
