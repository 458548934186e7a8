import argparse
import json

from backend.coverage import compute_coverage


def _format_row(row: dict) -> str:
    return (
        f"{row.get('active', 0):>6}  "
        f"{row.get('high_quality', 0):>6}  "
        f"{row.get('topic',''):<24}  "
        f"{'Y' if row.get('enabled') else 'N':<2}  "
        f"{(row.get('last_refresh_at') or '-'):>32}  "
        f"{(row.get('last_status') or '-'):<8}  "
        f"{(row.get('notes') or '')}"
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Topic content coverage report.")
    parser.add_argument("--json", action="store_true")
    args = parser.parse_args(argv)

    payload = compute_coverage()

    if args.json:
        print(json.dumps(payload, ensure_ascii=False))
        return 0

    print(
        "active  hq>=.4  topic                     en  last_refresh_at                   "
        "status    notes"
    )
    for row in payload.get("topics", []):
        print(_format_row(row))
    totals = payload.get("totals") or {}
    print(
        f"\ntotal active={totals.get('active', 0)} high_quality={totals.get('high_quality', 0)} "
        f"topics_with_content={totals.get('topics_with_content', 0)}/{totals.get('topics', 0)}"
    )
    last_run = payload.get("last_run")
    if last_run:
        print(
            f"last run cycle={last_run.get('refresh_cycle')} at={last_run.get('refresh_date')} "
            f"status={last_run.get('status')} {last_run.get('error_message') or ''}".rstrip()
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
