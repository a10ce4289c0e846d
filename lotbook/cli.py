# lotbook/cli.py
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import pandas as pd

from .core import Inventory
from .dates import format_key, parse_date
from .metrics import orders_frame, report_frame, summarize_inventory, summarize_latency_ns
from .models import LotBookError, LotSnapshot
from .sim import SimConfig, Simulator, save_artifacts
from .viz import plot_latency_hist, plot_stock_by_expiry

DEFAULT_DATA_FILE = "inventory.dat"

logger = logging.getLogger(__name__)


def _lot_json(s: LotSnapshot) -> Dict[str, Any]:
    d = asdict(s)
    d["expiry"] = format_key(s.expiry_date)
    d["reserved"] = s.reserved
    return d


def _open(args: argparse.Namespace) -> Inventory:
    inv = Inventory()
    inv.load(args.data)
    return inv


def _emit(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2))


def run_receive(args: argparse.Namespace) -> None:
    inv = _open(args)
    lot = inv.insert_lot(parse_date(args.date), args.product, args.stock)
    inv.save(args.data)
    _emit({"received": _lot_json(lot)})


def run_receive_many(args: argparse.Namespace) -> None:
    df = pd.read_csv(args.csv, dtype={"date": str, "product": str})
    missing = [c for c in ("date", "product", "stock") if c not in df.columns]
    if missing:
        raise ValueError(f"{args.csv} is missing columns: {', '.join(missing)}")
    rows = [(parse_date(d), p, int(s)) for d, p, s in df[["date", "product", "stock"]].itertuples(index=False)]
    inv = _open(args)
    inserted, skipped = inv.receive_many(rows)
    inv.save(args.data)
    _emit({"received": [_lot_json(s) for s in inserted], "skipped": [format_key(k) for k in skipped]})


def run_dispatch(args: argparse.Namespace) -> None:
    inv = _open(args)
    lot = inv.dispatch(args.to, args.qty)
    inv.save(args.data)
    _emit({"dispatched": {"destination": args.to, "quantity": args.qty}, "lot": _lot_json(lot)})


def run_cancel(args: argparse.Namespace) -> None:
    inv = _open(args)
    lot = inv.cancel_order(parse_date(args.date), args.to, args.qty)
    inv.save(args.data)
    _emit({"cancelled": {"destination": args.to, "quantity": args.qty}, "lot": _lot_json(lot)})


def run_remove(args: argparse.Namespace) -> None:
    inv = _open(args)
    lot = inv.remove_lot(parse_date(args.date))
    inv.save(args.data)
    _emit({"removed": _lot_json(lot)})


def run_show(args: argparse.Namespace) -> None:
    inv = _open(args)
    _emit({"lot": _lot_json(inv.lot(parse_date(args.date)))})


def run_report(args: argparse.Namespace) -> None:
    lots = _open(args).report()
    out: Dict[str, Any] = {"lots": [_lot_json(s) for s in lots]}
    if args.csv:
        csv = Path(args.csv)
        csv.parent.mkdir(parents=True, exist_ok=True)
        report_frame(lots).to_csv(csv, index=False)
        orders_csv = csv.with_name(csv.stem + "_orders.csv")
        orders_frame(lots).to_csv(orders_csv, index=False)
        out["csv"] = {"lots": str(csv), "orders": str(orders_csv)}
    if args.plot:
        out["figures"] = plot_stock_by_expiry(report_frame(lots), args.plot)
    _emit(out)


def run_stats(args: argparse.Namespace) -> None:
    inv = _open(args)
    summary = summarize_inventory(inv.report())
    summary["height"] = inv.index.height
    _emit({"stats": summary})


def run_sim(args: argparse.Namespace) -> None:
    cfg = SimConfig(
        seed=args.seed,
        n_events=args.n_events,
        p_receive=args.p_receive,
        p_dispatch=args.p_dispatch,
        p_cancel=args.p_cancel,
        p_remove=args.p_remove,
        snapshot_every=args.snapshot_every,
    )
    art = Simulator(cfg).run()
    out_dir = args.report
    paths = save_artifacts(art, out_dir)
    fig_paths = plot_stock_by_expiry(art.report, out_dir)
    lat_png = plot_latency_hist(art.latencies_ns, out_dir)
    summary = summarize_latency_ns(art.latencies_ns)
    _emit({"saved": {**paths, **fig_paths, "latency_hist": lat_png}, "counts": art.counts, "latency_summary": summary})


def run_bench(args: argparse.Namespace) -> None:
    cfg = SimConfig(seed=args.seed, n_events=args.n_events, snapshot_every=max(args.n_events // 50, 1))
    art = Simulator(cfg).run()
    out_dir = args.report
    Path(out_dir).mkdir(parents=True, exist_ok=True)
    lat_png = plot_latency_hist(art.latencies_ns, out_dir)
    summary = summarize_latency_ns(art.latencies_ns)
    df = pd.DataFrame([summary])
    csv = Path(out_dir) / "benchmark_summary.csv"
    df.to_csv(csv, index=False)
    _emit({"benchmark": summary, "latency_hist": lat_png, "csv": str(csv)})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lotbook", description="Perishable lot inventory with expiry-first dispatch")
    parser.add_argument("--data", type=str, default=os.environ.get("LOTBOOK_DATA", DEFAULT_DATA_FILE),
                        help="inventory file (env LOTBOOK_DATA)")
    parser.add_argument("--log-level", type=str, default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_recv = sub.add_parser("receive", help="Receive a new lot")
    p_recv.add_argument("--date", required=True, help="expiry date, DD/MM/YYYY or YYYYMMDD")
    p_recv.add_argument("--product", required=True)
    p_recv.add_argument("--stock", type=int, required=True)
    p_recv.set_defaults(func=run_receive)

    p_many = sub.add_parser("receive-many", help="Receive lots from a CSV with date,product,stock columns")
    p_many.add_argument("--csv", required=True)
    p_many.set_defaults(func=run_receive_many)

    p_disp = sub.add_parser("dispatch", help="Queue an order on the nearest-expiry lot")
    p_disp.add_argument("--to", required=True, help="destination")
    p_disp.add_argument("--qty", type=int, required=True)
    p_disp.set_defaults(func=run_dispatch)

    p_cancel = sub.add_parser("cancel", help="Cancel a pending order by exact destination and quantity")
    p_cancel.add_argument("--date", required=True)
    p_cancel.add_argument("--to", required=True)
    p_cancel.add_argument("--qty", type=int, required=True)
    p_cancel.set_defaults(func=run_cancel)

    p_remove = sub.add_parser("remove", help="Remove a lot and its pending orders")
    p_remove.add_argument("--date", required=True)
    p_remove.set_defaults(func=run_remove)

    p_show = sub.add_parser("show", help="Show one lot")
    p_show.add_argument("--date", required=True)
    p_show.set_defaults(func=run_show)

    p_report = sub.add_parser("report", help="List lots from nearest to farthest expiry")
    p_report.add_argument("--csv", type=str, default=None)
    p_report.add_argument("--plot", type=str, default=None, help="directory for figures")
    p_report.set_defaults(func=run_report)

    p_stats = sub.add_parser("stats", help="Inventory totals")
    p_stats.set_defaults(func=run_stats)

    p_sim = sub.add_parser("sim", help="Run a random workload and save artifacts")
    p_sim.add_argument("--seed", type=int, default=30)
    p_sim.add_argument("--n-events", type=int, default=20_000)
    p_sim.add_argument("--p-receive", type=float, default=0.30)
    p_sim.add_argument("--p-dispatch", type=float, default=0.45)
    p_sim.add_argument("--p-cancel", type=float, default=0.15)
    p_sim.add_argument("--p-remove", type=float, default=0.10)
    p_sim.add_argument("--snapshot-every", type=int, default=250)
    p_sim.add_argument("--report", type=str, default="results")
    p_sim.set_defaults(func=run_sim)

    p_bench = sub.add_parser("bench", help="Run microbenchmark")
    p_bench.add_argument("--seed", type=int, default=30)
    p_bench.add_argument("--n-events", type=int, default=100_000)
    p_bench.add_argument("--report", type=str, default="results")
    p_bench.set_defaults(func=run_bench)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")
    try:
        args.func(args)
    except (LotBookError, ValueError) as exc:
        logger.debug("command %s failed", args.cmd, exc_info=True)
        print(json.dumps({"error": type(exc).__name__, "message": str(exc)}), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
