#!/usr/bin/env python3
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from achievement_core.db.postgres import PostgresTxRunner
from achievement_core.db.schema import apply_schema


def main() -> int:
    parser = argparse.ArgumentParser(description="Create achievement reference and directory tables")
    parser.add_argument("--dsn", default=os.environ.get("POSTGRES_DSN", ""), help="postgres dsn")
    parser.add_argument("--timeout-ms", type=int, default=30000, help="statement timeout in milliseconds")
    args = parser.parse_args()

    runner = PostgresTxRunner(args.dsn, timeout_ms=args.timeout_ms)
    for statement in apply_schema(runner):
        print(f"applied: {statement}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
