"""
Run the golden parcel cases.

Normalizes each stored fixture and compares it with the expected values.
Exits non-zero when any case fails.
"""
import argparse
import sys
from pathlib import Path

# Add parent directory to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.parcels.golden.cases import ALL_GOLDEN_CASES, run_golden_case
from src.parcels.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate normalization against golden parcel fixtures.")
    parser.add_argument("--source", help="Only run cases for this source key")
    parser.add_argument("--case", dest="case_id", help="Only run the case with this id")
    return parser.parse_args()


def main() -> int:
    setup_logging()
    args = parse_args()

    cases = [
        case for case in ALL_GOLDEN_CASES
        if (not args.source or case.source_key == args.source)
        and (not args.case_id or case.id == args.case_id)
    ]
    if not cases:
        print("No matching golden cases")
        return 1

    failed = 0
    print(f"\n{'='*70}")
    print("GOLDEN PARCEL CASES")
    print(f"{'='*70}\n")

    for case in cases:
        try:
            result = run_golden_case(case)
        except Exception as e:
            failed += 1
            logger.error("golden_case_error", case_id=case.id, error=str(e))
            print(f"ERROR {case.id}: {e}")
            continue

        if result.passed:
            print(f"PASS  {case.id:<28} confidence={result.normalized.confidence:.2f}")
        else:
            failed += 1
            print(f"FAIL  {case.id:<28}")
            for failure in result.failures:
                print(f"        - {failure}")

    print(f"\n{len(cases) - failed}/{len(cases)} cases passed")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
