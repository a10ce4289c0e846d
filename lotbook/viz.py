# lotbook/viz.py
from __future__ import annotations

from pathlib import Path
from typing import Dict

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd


def plot_stock_by_expiry(report: pd.DataFrame, out_dir: str) -> Dict[str, str]:
    """Stacked bars per lot: available stock under reserved (pending) units."""
    paths: Dict[str, str] = {}
    figdir = Path(out_dir) / "figures"
    figdir.mkdir(parents=True, exist_ok=True)

    plt.figure()
    x = np.arange(len(report))
    plt.bar(x, report["available_stock"], label="available")
    plt.bar(x, report["reserved"], bottom=report["available_stock"], label="reserved")
    plt.xticks(x, report["expiry"], rotation=45, ha="right")
    plt.legend()
    plt.title("Stock by Expiry")
    plt.xlabel("expiry")
    plt.ylabel("units")
    p = figdir / "stock_by_expiry.png"
    plt.tight_layout()
    plt.savefig(p)
    plt.close()
    paths["stock_png"] = str(p)

    plt.figure()
    plt.bar(x, report["orders"])
    plt.xticks(x, report["expiry"], rotation=45, ha="right")
    plt.title("Pending Orders by Lot")
    plt.xlabel("expiry")
    plt.ylabel("orders")
    p = figdir / "orders_by_expiry.png"
    plt.tight_layout()
    plt.savefig(p)
    plt.close()
    paths["orders_png"] = str(p)

    return paths


def plot_latency_hist(latencies_ns: np.ndarray, out_dir: str) -> str:
    figdir = Path(out_dir) / "figures"
    figdir.mkdir(parents=True, exist_ok=True)
    plt.figure()
    us = latencies_ns / 1_000.0
    plt.hist(us, bins=50)
    plt.title("Operation Latency Histogram (μs)")
    plt.xlabel("latency (μs)")
    plt.ylabel("count")
    p = figdir / "latency_hist.png"
    plt.tight_layout()
    plt.savefig(p)
    plt.close()
    return str(p)
