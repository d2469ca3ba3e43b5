#!/usr/bin/env python3
"""Bootstrap the local PostgreSQL instance (see ``pgbootstrap.cli``)."""
from __future__ import annotations

import os
import sys

# Allow running from a checkout without installing the package.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pgbootstrap.cli import main  # noqa: E402


if __name__ == "__main__":  # pragma: no cover - exercised via subprocess
    sys.exit(main())
