"""Entry point for ``python -m statutory_payroll``."""

import sys

from statutory_payroll.cli import main

if __name__ == "__main__":
    sys.exit(main())
