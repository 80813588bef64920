"""Command line interface.

Provides operational tools for:
- Schema creation
- Active-record index reconciliation (run once per deployment)
- Serving the API

Usage:
    python -m statutory_payroll init-db
    python -m statutory_payroll reconcile-constraints --dry-run
    python -m statutory_payroll reconcile-constraints --database-url postgresql://...
    python -m statutory_payroll serve --port 8000
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable

from sqlalchemy import create_engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from statutory_payroll.config import Settings, get_settings
from statutory_payroll.errors import ReconciliationMismatchError
from statutory_payroll.models import Base
from statutory_payroll.services.constraint_reconciler import (
    ConstraintReconciler,
    ReconcileReport,
    default_targets,
)

logger = logging.getLogger(__name__)


def _display_url(url: str) -> str:
    return make_url(url).render_as_string(hide_password=True)


class StatutoryPayrollCli:
    """Statutory payroll command line interface."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m statutory_payroll",
            description="Statutory payroll record engine tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        reconcile = subparsers.add_parser(
            "reconcile-constraints",
            help="Migrate unique indexes to one-active-record-per-key form",
        )
        reconcile.add_argument(
            "--database-url",
            default=self.settings.database_url_sync,
            help="Synchronous database URL (default: DATABASE_URL_SYNC)",
        )
        reconcile.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would change without executing",
        )

        init_db = subparsers.add_parser(
            "init-db",
            help="Create tables and active-record indexes",
        )
        init_db.add_argument(
            "--database-url",
            default=self.settings.database_url_sync,
            help="Synchronous database URL (default: DATABASE_URL_SYNC)",
        )

        serve = subparsers.add_parser("serve", help="Run the HTTP API")
        serve.add_argument("--host", default=self.settings.host)
        serve.add_argument("--port", type=int, default=self.settings.port)

        return parser

    def run(self, argv: list[str] | None = None) -> int:
        """Run CLI with arguments."""
        args = self.parser.parse_args(argv)

        if not args.command:
            self.parser.print_help()
            return 1

        handlers: dict[str, Callable[[argparse.Namespace], int]] = {
            "reconcile-constraints": self.cmd_reconcile_constraints,
            "init-db": self.cmd_init_db,
            "serve": self.cmd_serve,
        }
        return handlers[args.command](args)

    def _reconcile(self, database_url: str, dry_run: bool, create_tables: bool) -> ReconcileReport:
        engine = create_engine(database_url)
        try:
            with engine.begin() as conn:
                if create_tables:
                    Base.metadata.create_all(conn)
                reconciler = ConstraintReconciler(conn, default_targets(self.settings))
                return reconciler.reconcile(dry_run=dry_run)
        finally:
            engine.dispose()

    def cmd_reconcile_constraints(self, args: argparse.Namespace) -> int:
        """Reconcile active-record unique indexes."""
        print("Active-record index reconciliation")
        print("=" * 50)
        print(f"Database: {_display_url(args.database_url)}")
        print()

        try:
            report = self._reconcile(args.database_url, args.dry_run, create_tables=False)
        except ReconciliationMismatchError as e:
            print(f"ERROR: {e}")
            print("No changes were made. Inspect the index and re-run.")
            return 2
        except SQLAlchemyError as e:
            logger.exception("Reconciliation failed")
            print(f"FAILED: {e}")
            return 1

        print(report.format())
        return 0

    def cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create tables, then reconcile indexes."""
        try:
            report = self._reconcile(args.database_url, dry_run=False, create_tables=True)
        except ReconciliationMismatchError as e:
            print(f"ERROR: {e}")
            return 2
        except SQLAlchemyError as e:
            logger.exception("Schema initialization failed")
            print(f"FAILED: {e}")
            return 1

        print(f"Schema ready on {_display_url(args.database_url)}")
        print(report.format())
        return 0

    def cmd_serve(self, args: argparse.Namespace) -> int:
        """Run the API with uvicorn."""
        import uvicorn

        uvicorn.run(
            "statutory_payroll.api.app:create_app",
            factory=True,
            host=args.host,
            port=args.port,
            reload=self.settings.debug,
        )
        return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    return StatutoryPayrollCli(settings).run(argv)


if __name__ == "__main__":
    sys.exit(main())
