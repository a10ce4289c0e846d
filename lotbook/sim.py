# lotbook/sim.py
from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from .core import Inventory
from .metrics import report_frame
from .models import DuplicateKey, ExpiryDate, InsufficientStock, NoInventory

DESTINATIONS = ("Timbiqui", "Juanchaco", "Tumaco", "Guapi")


@dataclass(slots=True)
class SimConfig:
    seed: int = 30
    n_events: int = 20_000
    p_receive: float = 0.30
    p_dispatch: float = 0.45
    p_cancel: float = 0.15
    p_remove: float = 0.10
    start: date = date(2025, 1, 1)
    horizon_days: int = 3650
    stock_mean: float = 500.0
    stock_min: int = 10
    qty_mean: float = 40.0
    qty_min: int = 1
    destinations: Tuple[str, ...] = DESTINATIONS
    snapshot_every: int = 250
    check_invariants: bool = False


@dataclass(slots=True)
class SimArtifacts:
    events: pd.DataFrame
    snapshots: pd.DataFrame
    report: pd.DataFrame
    latencies_ns: np.ndarray
    counts: Dict[str, int] = field(default_factory=dict)


class Simulator:
    """Seeded random workload of receipts, dispatches, cancels and lot removals."""

    def __init__(self, cfg: SimConfig) -> None:
        self.cfg = cfg
        self.rs = np.random.RandomState(cfg.seed)
        self.inventory = Inventory(check_invariants=cfg.check_invariants)
        self.live: List[ExpiryDate] = []
        self.counts: Dict[str, int] = {
            "received": 0,
            "duplicates": 0,
            "dispatched": 0,
            "rejected": 0,
            "cancelled": 0,
            "removed": 0,
        }

    def _gen_date(self) -> ExpiryDate:
        d = self.cfg.start + timedelta(days=int(self.rs.randint(0, self.cfg.horizon_days)))
        return d.year * 10000 + d.month * 100 + d.day

    def _gen_size(self, mean: float, minimum: int) -> int:
        return max(int(self.rs.lognormal(mean=math.log(mean), sigma=0.5)), minimum)

    def _destination(self) -> str:
        return self.cfg.destinations[self.rs.randint(0, len(self.cfg.destinations))]

    def _random_live(self) -> Optional[ExpiryDate]:
        if not self.live:
            return None
        return self.live[self.rs.randint(0, len(self.live))]

    def run(self) -> SimArtifacts:
        cfg = self.cfg
        rs = self.rs
        inv = self.inventory
        latencies: List[int] = []
        events: List[Tuple[int, str, int, str, int, bool]] = []
        snaps: List[Tuple[int, int, int, int, int]] = []

        for i in range(cfg.n_events):
            r = rs.rand()
            if r < cfg.p_receive:
                key = self._gen_date()
                stock = self._gen_size(cfg.stock_mean, cfg.stock_min)
                t0 = time.perf_counter_ns()
                try:
                    inv.insert_lot(key, f"lot-{key}", stock)
                    ok = True
                except DuplicateKey:
                    ok = False
                latencies.append(time.perf_counter_ns() - t0)
                if ok:
                    self.live.append(key)
                    self.counts["received"] += 1
                else:
                    self.counts["duplicates"] += 1
                events.append((i + 1, "receive", key, "", stock, ok))

            elif r < cfg.p_receive + cfg.p_dispatch:
                dest = self._destination()
                qty = self._gen_size(cfg.qty_mean, cfg.qty_min)
                t0 = time.perf_counter_ns()
                try:
                    lot = inv.dispatch(dest, qty)
                    key, ok = lot.expiry_date, True
                except (NoInventory, InsufficientStock):
                    key, ok = 0, False
                latencies.append(time.perf_counter_ns() - t0)
                self.counts["dispatched" if ok else "rejected"] += 1
                events.append((i + 1, "dispatch", key, dest, qty, ok))

            elif r < cfg.p_receive + cfg.p_dispatch + cfg.p_cancel:
                key = self._random_live()
                pending = list(inv.index.search(key).orders) if key is not None else []
                if pending:
                    victim = pending[rs.randint(0, len(pending))]
                    t0 = time.perf_counter_ns()
                    inv.cancel_order(key, victim.destination, victim.quantity)
                    latencies.append(time.perf_counter_ns() - t0)
                    self.counts["cancelled"] += 1
                    events.append((i + 1, "cancel", key, victim.destination, victim.quantity, True))

            else:
                key = self._random_live()
                if key is not None:
                    t0 = time.perf_counter_ns()
                    inv.remove_lot(key)
                    latencies.append(time.perf_counter_ns() - t0)
                    self.live.remove(key)
                    self.counts["removed"] += 1
                    events.append((i + 1, "remove", key, "", 0, True))

            if (i + 1) % cfg.snapshot_every == 0:
                lots = inv.report()
                snaps.append((
                    i + 1,
                    len(lots),
                    sum(s.available_stock for s in lots),
                    sum(s.reserved for s in lots),
                    inv.index.height,
                ))

        events_df = pd.DataFrame(events, columns=["event", "op", "expiry_date", "destination", "quantity", "ok"])
        snap_df = pd.DataFrame(snaps, columns=["event", "lots", "available_stock", "reserved", "height"])
        return SimArtifacts(
            events=events_df,
            snapshots=snap_df,
            report=report_frame(inv.report()),
            latencies_ns=np.array(latencies, dtype=np.int64),
            counts=dict(self.counts),
        )


def save_artifacts(art: SimArtifacts, out_dir: str) -> Dict[str, str]:
    ts = pd.Timestamp.now(tz="UTC").strftime("%Y%m%d_%H%M%S")
    base = Path(out_dir)
    base.mkdir(parents=True, exist_ok=True)
    files = {}
    events_path = base / f"events_{ts}.csv"
    art.events.to_csv(events_path, index=False)
    files["events_csv"] = str(events_path)

    snaps_path = base / f"snapshots_{ts}.csv"
    art.snapshots.to_csv(snaps_path, index=False)
    files["snapshots_csv"] = str(snaps_path)

    report_path = base / f"report_{ts}.csv"
    art.report.to_csv(report_path, index=False)
    files["report_csv"] = str(report_path)

    lat_path = base / f"latencies_{ts}.csv"
    pd.DataFrame({"latency_ns": art.latencies_ns}).to_csv(lat_path, index=False)
    files["latencies_csv"] = str(lat_path)

    return files
