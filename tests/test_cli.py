"""Tests for the talentpay command-line interface."""

import json
from decimal import Decimal

import pytest

from talentpay.cli import __main__ as cli
from talentpay.ledger.models import Transaction, TransactionCategory


@pytest.fixture
def audit_storage(storage, monkeypatch):
    """Point audit commands at the in-memory storage."""
    monkeypatch.setattr(cli, "build_storage", lambda: storage)
    return storage


class TestPriceCommand:
    def test_single_price(self, capsys):
        cli.main(["price", "--rate-level", "2", "--duration", "30sec"])

        out = capsys.readouterr().out
        assert "Price:          RM100.00" in out
        assert "Admin fee:      RM10.00" in out
        assert "Founder charge: RM110.00" in out

    def test_single_price_json(self, capsys):
        cli.main(["price", "--rate-level", "3", "--duration", "3min", "--json"])

        data = json.loads(capsys.readouterr().out)
        assert data == {
            "rate_level": 3,
            "duration": "3min",
            "price": "600.00",
            "admin_fee": "60.00",
            "founder_charge": "660.00",
        }

    def test_table_json(self, capsys):
        cli.main(["price", "--table", "--json"])

        rows = json.loads(capsys.readouterr().out)
        assert len(rows) == 9
        assert rows[0]["price"] == "50.00"

    def test_table_text(self, capsys):
        cli.main(["price", "--table"])

        lines = capsys.readouterr().out.strip().splitlines()
        assert lines[0].startswith("Level")
        assert len(lines) == 10

    def test_missing_arguments(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["price", "--rate-level", "1"])

        assert exc_info.value.code == 1
        assert "Error:" in capsys.readouterr().err

    def test_unknown_rate_level(self):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["price", "--rate-level", "4", "--duration", "30sec"])

        assert exc_info.value.code == 2


class TestAuditCommand:
    def test_platform_consistent(self, audit_storage, capsys):
        cli.main(["audit", "platform", "--json"])

        report = json.loads(capsys.readouterr().out)
        assert report["consistent"] is True

    def test_platform_mismatch_exits(self, audit_storage, config, capsys):
        audit_storage.save_transaction(
            Transaction.credit(config.platform_account_id, Decimal("3.00"), TransactionCategory.ADMIN_FEE, "Manual")
        )

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["audit", "platform"])

        assert exc_info.value.code == 2
        assert "MISMATCH" in capsys.readouterr().out

    def test_balance_drift_exits(self, audit_storage, founder, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["audit", "balance", founder.id, "--json"])

        assert exc_info.value.code == 2
        data = json.loads(capsys.readouterr().out)
        assert data["drift"] == "110.00"
        assert data["derived"] == "0.00"

    def test_balance_without_drift(self, audit_storage, talent, capsys):
        cli.main(["audit", "balance", talent.id])

        assert "Drift:           RM0.00" in capsys.readouterr().out

    def test_unknown_profile(self, audit_storage, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["audit", "balance", "nobody"])

        assert exc_info.value.code == 1

    def test_missing_supabase_settings(self, monkeypatch, capsys):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_SECRET_KEY", raising=False)
        monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["audit", "platform"])

        assert exc_info.value.code == 1
        assert "SUPABASE_URL" in capsys.readouterr().err
