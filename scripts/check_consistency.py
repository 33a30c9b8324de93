#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from achievement_core.backends import create_backends_from_env
from achievement_core.ops.consistency import check_backends


def main() -> int:
    parser = argparse.ArgumentParser(description="Report orphaned achievement details and corrupt references")
    parser.add_argument("--log-level", default="WARNING", help="python logging level")
    parser.add_argument("--summary-only", action="store_true", help="print counts instead of full listings")
    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")

    backends = create_backends_from_env()
    try:
        result = check_backends(
            references_repository=backends.references,
            details_repository=backends.details,
        )
    finally:
        backends.close()
    if args.summary_only:
        result = {
            "consistent": result["consistent"],
            "reference_count": result["reference_count"],
            "detail_count": result["detail_count"],
            "orphan_detail_count": len(result["orphan_details"]),
            "corrupt_reference_count": len(result["corrupt_references"]),
        }
    print(json.dumps(result, ensure_ascii=True, sort_keys=True, indent=2))
    return 0 if result["consistent"] else 2


if __name__ == "__main__":
    raise SystemExit(main())
