# bench/benchmark.py
from __future__ import annotations

import json
from pathlib import Path
import pandas as pd

from lotbook.sim import SimConfig, Simulator
from lotbook.metrics import summarize_latency_ns
from lotbook.viz import plot_latency_hist, plot_stock_by_expiry

OUT_DIR = Path("results")


def lot_summary(art) -> dict:
    """Final inventory shape after the run: lots, units on hand and units held by pending orders."""
    report, snaps, counts = art.report, art.snapshots, art.counts
    attempts = counts["dispatched"] + counts["rejected"]
    return {
        "final_lots": int(len(report)),
        "final_available_units": int(report["available_stock"].sum()),
        "final_reserved_units": int(report["reserved"].sum()),
        "final_pending_orders": int(report["orders"].sum()),
        "peak_lots": int(snaps["lots"].max()) if len(snaps) else 0,
        "max_height": int(snaps["height"].max()) if len(snaps) else 0,
        "dispatch_fill_rate": round(counts["dispatched"] / attempts, 4) if attempts else 0.0,
    }


def main() -> None:
    cfg = SimConfig(seed=123, n_events=200_000, snapshot_every=4_000)
    art = Simulator(cfg).run()

    OUT_DIR.mkdir(parents=True, exist_ok=True)
    latency = summarize_latency_ns(art.latencies_ns)
    lots = lot_summary(art)
    figures = plot_stock_by_expiry(art.report, str(OUT_DIR))
    figures["latency_hist"] = plot_latency_hist(art.latencies_ns, str(OUT_DIR))
    pd.DataFrame([{**lots, **latency}]).to_csv(OUT_DIR / "benchmark_summary.csv", index=False)
    print(json.dumps({"lots": lots, "latency": latency, "counts": art.counts, "figures": figures}, indent=2))


if __name__ == "__main__":
    main()
