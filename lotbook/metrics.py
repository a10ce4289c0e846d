# lotbook/metrics.py
from __future__ import annotations

from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd

from .dates import format_key
from .models import LotSnapshot

REPORT_COLUMNS = ["expiry_date", "expiry", "product", "available_stock", "orders", "reserved"]
ORDER_COLUMNS = ["expiry_date", "position", "destination", "quantity"]


def report_frame(lots: Sequence[LotSnapshot]) -> pd.DataFrame:
    rows = [
        (s.expiry_date, format_key(s.expiry_date), s.product_name, s.available_stock, s.order_count, s.reserved)
        for s in lots
    ]
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


def orders_frame(lots: Sequence[LotSnapshot]) -> pd.DataFrame:
    rows = [
        (s.expiry_date, pos, o.destination, o.quantity)
        for s in lots
        for pos, o in enumerate(s.orders, start=1)
    ]
    return pd.DataFrame(rows, columns=ORDER_COLUMNS)


def summarize_inventory(lots: Sequence[LotSnapshot]) -> Dict[str, Optional[int]]:
    if not lots:
        return {"lots": 0, "available_stock": 0, "reserved": 0, "orders": 0, "nearest": None, "farthest": None}
    stock = np.fromiter((s.available_stock for s in lots), dtype=np.int64, count=len(lots))
    reserved = np.fromiter((s.reserved for s in lots), dtype=np.int64, count=len(lots))
    return {
        "lots": len(lots),
        "available_stock": int(stock.sum()),
        "reserved": int(reserved.sum()),
        "orders": sum(s.order_count for s in lots),
        "nearest": min(s.expiry_date for s in lots),
        "farthest": max(s.expiry_date for s in lots),
    }


def summarize_latency_ns(latencies: np.ndarray) -> Dict[str, float]:
    if latencies.size == 0:
        return {"p50_ns": 0.0, "p90_ns": 0.0, "p99_ns": 0.0, "ops_per_sec": 0.0}
    p50 = float(np.percentile(latencies, 50))
    p90 = float(np.percentile(latencies, 90))
    p99 = float(np.percentile(latencies, 99))
    mean_ns = float(latencies.mean())
    ops = 1e9 / mean_ns if mean_ns > 0 else 0.0
    return {"p50_ns": p50, "p90_ns": p90, "p99_ns": p99, "ops_per_sec": ops}
