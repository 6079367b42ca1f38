#!/usr/bin/env python
"""
ASCII plot of a bucketed series for one or more devices.

Example
-------
python scripts/plot_series.py --devices demo-fake-001 --period 1hr --metric overallAqi
"""

import argparse
import sys
from typing import Any, Dict, List

import plotext as plt  # type: ignore  # third‑party library without stubs
import requests

BASE_URL = "http://localhost:8000"
PERIODS = ["10min", "1hr", "8hr", "24hr"]


# ─────────────────────────── API ────────────────────────────
def fetch(device_id: str, period: str) -> List[Dict[str, Any]]:
    resp = requests.get(
        f"{BASE_URL}/devices/{device_id}/series",
        params={"period": period, "aqi": "true"},
        timeout=5,
    )
    resp.raise_for_status()
    return resp.json()["records"]


# ─────────────────────────── CLI ────────────────────────────
def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser()
    p.add_argument("--devices", nargs="+", required=True)
    p.add_argument("--period", choices=PERIODS, default="1hr")
    p.add_argument("--metric", default="overallAqi", help="sensor type or AQI field")
    return p.parse_args()


# ────────────────────────── main ────────────────────────────
def main() -> None:
    args = parse_args()

    data = {device: fetch(device, args.period) for device in args.devices}
    if all(not any(args.metric in r for r in records) for records in data.values()):
        print("No data returned.")
        sys.exit(0)

    plt.clear_figure()
    plt.title(f"{args.metric} – {args.period} buckets")
    plt.xlabel("bucket")
    plt.ylabel(args.metric)

    labels: List[str] = []
    for device, records in data.items():
        # buckets without data have no key for the metric; leave gaps
        points = [(i, r[args.metric]) for i, r in enumerate(records) if args.metric in r]
        if not points:
            continue
        labels = [r["timestamp_label"] for r in records]
        xs, ys = zip(*points)
        plt.plot(list(xs), list(ys), label=device)

    step = max(1, len(labels) // 6)
    plt.xticks(list(range(0, len(labels), step)), labels[::step])
    plt.show()


if __name__ == "__main__":
    main()
