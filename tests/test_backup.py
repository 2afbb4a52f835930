"""Tests for JSON backup export and restore."""

import json
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from finledger.cli.main import cli
from finledger.database.factories import create_memory_database
from finledger.domain.account import AccountService
from finledger.domain.backup import (
    SCHEMA_VERSION,
    BackupService,
    link_from_dict,
    link_to_dict,
)
from finledger.domain.balance import BalanceService
from finledger.domain.entities import (
    AccountType,
    InsuranceLink,
    LoanLink,
    OperationType,
    TransferLink,
    VehicleLink,
)
from finledger.domain.errors import ValidationError

EXPORTED_AT = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def populated_ledger(
    transaction_service,
    insurance_service,
    bill_service,
    rule_service,
    import_service,
    sample_account,
    savings_account,
    sample_categories,
    sample_loan,
):
    """Fill the temporary database with one of every entity."""
    transaction_service.create_transaction(
        account_id=sample_account.id,
        date=date(2024, 1, 5),
        operation_type=OperationType.RECEIPT,
        amount=Decimal("5000.00"),
        description="Salary",
        category_id=sample_categories["salary"],
    )
    transaction_service.create_transaction(
        account_id=sample_account.id,
        date=date(2024, 1, 10),
        operation_type=OperationType.LOAN_PAYMENT,
        amount=Decimal("1127.44"),
        link=LoanLink(loan_ref=f"loan_{sample_loan.id}", installment_number=1),
    )
    transaction_service.create_transfer(
        sample_account.id, savings_account.id, date(2024, 1, 15), Decimal("300.00"), description="Save"
    )
    insurance_service.create_policy(
        "Car insurance",
        [(date(2024, 2, 1), Decimal("150.00")), (date(2024, 3, 1), Decimal("150.00"))],
        vehicle_ref="vehicle_1",
    )
    bill_service.add_bill(
        "Plumber",
        date(2024, 2, 20),
        Decimal("250.00"),
        suggested_account_id=sample_account.id,
        suggested_category_id=sample_categories["housing"],
    )
    rule_service.add_rule("MERCADO", OperationType.EXPENSE, category_id=sample_categories["groceries"])
    import_service.import_statement(
        'Data,Valor,Descrição\n15/03/2024,-89,90,"MERCADO XYZ"\n', sample_account.id, file_name="march.csv"
    )


class TestBackupService:
    """Tests for BackupService."""

    def test_document_shape(self, backup_service, populated_ledger):
        """The export carries its version, timestamp and every collection."""
        document = backup_service.export_document(exported_at=EXPORTED_AT)

        assert document["schemaVersion"] == SCHEMA_VERSION
        assert document["exportedAt"] == "2024-06-01T12:00:00+00:00"
        data = document["data"]
        assert len(data["accounts"]) == 2
        assert len(data["transactions"]) == 4
        assert len(data["loans"]) == 1
        assert len(data["insurancePolicies"][0]["installments"]) == 2
        assert len(data["bills"]) == 1
        assert len(data["standardizationRules"]) == 1
        assert len(data["importedStatements"][0]["rawTransactions"]) == 1
        # Amounts are kept as exact decimal strings
        amounts = {t["amount"] for t in data["transactions"]}
        assert "1127.44" in amounts

    def test_round_trip_into_fresh_database(self, temp_db, backup_service, populated_ledger):
        """Restoring an export into an empty ledger reproduces it exactly."""
        original = backup_service.export_document(exported_at=EXPORTED_AT)

        fresh = create_memory_database()
        fresh.connect()
        fresh.initialize_schema()
        try:
            restored_service = BackupService(fresh)
            restored_service.import_document(json.loads(json.dumps(original)))
            again = restored_service.export_document(exported_at=EXPORTED_AT)

            assert again == original
            on = date(2024, 12, 31)
            for account in AccountService(temp_db).list_accounts(include_hidden=True):
                assert BalanceService(fresh).balance_as_of(account.id, on) == BalanceService(
                    temp_db
                ).balance_as_of(account.id, on)
        finally:
            fresh.disconnect()

    def test_import_replaces_existing_data(self, backup_service, account_service, populated_ledger):
        """A restore drops whatever the ledger held before."""
        document = backup_service.export_document()
        account_service.create_account(name="Temporary", account_type=AccountType.CHECKING)
        assert len(account_service.list_accounts(include_hidden=True)) == 3

        backup_service.import_document(document)

        names = sorted(a.name for a in account_service.list_accounts(include_hidden=True))
        assert names == ["Main Checking", "Reserve"]

    @pytest.mark.parametrize("version", [None, 0, 2, "1"])
    def test_unsupported_version(self, backup_service, version):
        """Documents with another schema version are rejected."""
        with pytest.raises(ValidationError, match="schema version"):
            backup_service.import_document({"schemaVersion": version, "data": {}})

    def test_malformed_document_leaves_ledger_untouched(self, backup_service, account_service, sample_account):
        """A document that fails to decode writes nothing."""
        document = {
            "schemaVersion": SCHEMA_VERSION,
            "data": {"accounts": [{"name": "No id"}]},
        }

        with pytest.raises(ValidationError, match="Malformed backup"):
            backup_service.import_document(document)

        assert [a.name for a in account_service.list_accounts()] == ["Main Checking"]

    @pytest.mark.parametrize("text", ["not json", "[1, 2]", '{"schemaVersion": 1}'])
    def test_loads_rejects_invalid_text(self, backup_service, text):
        """Invalid JSON and non-backup documents raise ValidationError."""
        with pytest.raises(ValidationError):
            backup_service.loads(text)

    @pytest.mark.parametrize(
        "link",
        [
            TransferLink(group_id="abc"),
            LoanLink(loan_ref="loan_7", installment_number=3),
            InsuranceLink(policy_id=2, installment_number=1),
            VehicleLink(vehicle_ref="vehicle_9"),
        ],
    )
    def test_link_encoding(self, link):
        """Every link kind survives encoding."""
        assert link_from_dict(link_to_dict(link)) == link

    def test_unknown_link_kind(self):
        """An unknown link kind is rejected."""
        with pytest.raises(ValueError, match="Unknown link kind"):
            link_from_dict({"kind": "boat"})


class TestBackupCLI:
    """Tests for backup commands."""

    def test_export_and_import(self, cli_runner, temp_db, tmp_path, populated_ledger):
        """A backup written by export can be restored by import."""
        backup_file = tmp_path / "ledger.json"
        db_args = ["--db-path", temp_db.database_path]

        result = cli_runner.invoke(cli, db_args + ["backup", "export", str(backup_file)])
        assert result.exit_code == 0, result.output
        assert "Exported backup" in result.output
        document = json.loads(backup_file.read_text(encoding="utf-8"))
        assert document["schemaVersion"] == SCHEMA_VERSION

        result = cli_runner.invoke(cli, db_args + ["backup", "import", str(backup_file), "--yes"])
        assert result.exit_code == 0, result.output
        assert "Restored 2 accounts, 4 transactions and 1 bills" in result.output

    def test_export_to_stdout(self, cli_runner, temp_db, sample_account):
        """Without an output file the document goes to stdout."""
        result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "backup", "export"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["data"]["accounts"][0]["name"] == "Main Checking"

    def test_import_cancelled(self, cli_runner, temp_db, tmp_path, sample_account):
        """Declining the confirmation leaves the ledger alone."""
        backup_file = tmp_path / "empty.json"
        backup_file.write_text(json.dumps({"schemaVersion": SCHEMA_VERSION, "data": {}}), encoding="utf-8")

        result = cli_runner.invoke(
            cli, ["--db-path", temp_db.database_path, "backup", "import", str(backup_file)], input="n\n"
        )

        assert result.exit_code == 0, result.output
        assert "Import cancelled." in result.output

    def test_import_invalid_file(self, cli_runner, temp_db, tmp_path):
        """A corrupt backup reports an error."""
        backup_file = tmp_path / "broken.json"
        backup_file.write_text("{oops", encoding="utf-8")

        result = cli_runner.invoke(
            cli, ["--db-path", temp_db.database_path, "backup", "import", str(backup_file), "--yes"]
        )

        assert result.exit_code == 1
        assert "not valid JSON" in result.output
