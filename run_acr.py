"""Convenience launcher for the ACR workflow.

Usage:
  python run_acr.py [--step N | --from N --to N] [--skip N] [--dry-run]

Equivalent to the ``acr-workflow`` console script, for checkouts that are not
pip-installed.
"""

import sys

from acr_app.cli import workflow_main

if __name__ == "__main__":
    sys.exit(workflow_main())
