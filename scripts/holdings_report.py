from __future__ import annotations

import argparse
import sys
from pathlib import Path

import pandas as pd

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from lecaps.core.config.settings import configure_logging, load_settings  # noqa: E402
from lecaps.core.errors import LecapsError  # noqa: E402
from lecaps.core.identity.identity_provider import Session  # noqa: E402
from lecaps.core.orchestration.holdings_service import HoldingsService  # noqa: E402
from lecaps.core.store.holdings_store import JsonHoldingsStore  # noqa: E402
from lecaps.ui.utils.exports import rows_to_csv_bytes  # noqa: E402
from lecaps.ui.viewmodels.holdings_vm import (  # noqa: E402
    DISPLAY_COLUMNS,
    FRAME_COLUMNS,
    build_holdings_frame,
    build_holdings_table_vm,
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Print a LECAP holdings report for one owner and portfolio")
    parser.add_argument("--user-id", required=True)
    parser.add_argument("--portfolio-id", default=None, help="defaults to the owner's first portfolio")
    parser.add_argument("--store", default=None, help="holdings store path (overrides LECAPS_STORE_PATH)")
    parser.add_argument("--config", default=None, help="YAML settings file")
    parser.add_argument("--csv", default=None, help="also write the numeric table to this CSV file")
    args = parser.parse_args()

    settings = load_settings(path=args.config)
    configure_logging(settings.log_level)
    store = JsonHoldingsStore(args.store or settings.store_path)
    service = HoldingsService(store, default_portfolio_name=settings.default_portfolio_name)
    session = Session(user_id=args.user_id, email="", access_token="")

    try:
        portfolio_id = args.portfolio_id or service.ensure_default_portfolio(session).id
        holdings = service.list_holdings(session, portfolio_id)
    except LecapsError as exc:
        print(f"ERROR | {exc}", file=sys.stderr)
        return 1

    table = build_holdings_table_vm(holdings)
    print(f"portfolio={portfolio_id} | lots={len(holdings)}")
    if table["empty"]:
        print("no holdings yet")
    else:
        print(pd.DataFrame(table["rows"], columns=DISPLAY_COLUMNS).to_string(index=False))
    print("---")
    for label, value in table["totals"].items():
        print(f"{label}: {value}")

    if args.csv:
        frame = build_holdings_frame(holdings)
        out_path = Path(args.csv)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_bytes(rows_to_csv_bytes(frame.to_dict(orient="records"), FRAME_COLUMNS))
        print(f"csv={out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
