"""Tests for the command line interface."""

from sqlalchemy import text

from statutory_payroll.cli import StatutoryPayrollCli
from statutory_payroll.services.constraint_reconciler import (
    BONUS_ACTIVE_INDEX,
    BONUS_LEGACY_INDEX,
    list_indexes,
)


def bonus_index_names(engine):
    with engine.connect() as conn:
        return {index.name for index in list_indexes(conn, "bonus_record")}


class TestReconcileConstraints:
    def test_dry_run_reports_plan(self, sync_engine, settings, capsys):
        with sync_engine.begin() as conn:
            conn.execute(
                text(
                    f"CREATE UNIQUE INDEX {BONUS_LEGACY_INDEX} "
                    "ON bonus_record (employee_id, financial_year)"
                )
            )

        code = StatutoryPayrollCli(settings).run(["reconcile-constraints", "--dry-run"])

        out = capsys.readouterr().out
        assert code == 0
        assert "[DRY RUN] Actions:" in out
        assert f"drop bonus_record.{BONUS_LEGACY_INDEX}" in out
        assert BONUS_LEGACY_INDEX in bonus_index_names(sync_engine)

    def test_applies_and_reports(self, sync_engine, settings, capsys):
        code = StatutoryPayrollCli(settings).run(
            ["reconcile-constraints", "--database-url", settings.database_url_sync]
        )

        out = capsys.readouterr().out
        assert code == 0
        assert f"create bonus_record.{BONUS_ACTIVE_INDEX}" in out
        assert BONUS_ACTIVE_INDEX in bonus_index_names(sync_engine)

    def test_mismatch_exits_nonzero(self, sync_engine, settings, capsys):
        with sync_engine.begin() as conn:
            conn.execute(
                text("CREATE UNIQUE INDEX mystery ON bonus_record (employee_id, financial_year)")
            )

        code = StatutoryPayrollCli(settings).run(["reconcile-constraints"])

        assert code == 2
        assert "Refusing to reconcile bonus_record.mystery" in capsys.readouterr().out


class TestInitDb:
    def test_creates_schema_and_indexes(self, settings, capsys):
        code = StatutoryPayrollCli(settings).run(["init-db"])

        assert code == 0
        assert "Schema ready" in capsys.readouterr().out

        code = StatutoryPayrollCli(settings).run(["reconcile-constraints"])
        assert code == 0
        assert "No changes required." in capsys.readouterr().out


def test_no_command_prints_help(settings, capsys):
    assert StatutoryPayrollCli(settings).run([]) == 1
    assert "reconcile-constraints" in capsys.readouterr().out
