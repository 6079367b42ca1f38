"""
Seed or wipe synthetic readings via the running FastAPI service.

Usage examples
──────────────
# wipe previous synthetic data, then post two hours of readings
python scripts/seed_synthetic_data.py --device-id demo-fake-001 --wipe --hours 2
"""

import argparse
import time

import requests
from airmon_core.domain.synthetic import SyntheticReadingGenerator

BASE_URL = "http://localhost:8000"
MAGIC_IDENTIFIER = "fake"


# ─────────────────────────── HTTP helper ────────────────────────────
def post(endpoint: str, payload: dict) -> None:
    r = requests.post(f"{BASE_URL}{endpoint}", json=payload, timeout=5)
    r.raise_for_status()


# ─────────────────────────── API helpers ────────────────────────────
def seed(device_id: str, hours: float, interval_seconds: int) -> int:
    end_ts = time.time()
    start_ts = end_ts - hours * 3600
    generator = SyntheticReadingGenerator(device_id=device_id)
    count = 0
    for reading in generator.iter_readings(start_ts, end_ts, interval_seconds):
        post(
            "/ingest",
            {
                "device_id": reading.device_id,
                "sensor_type": reading.sensor_type,
                "value": reading.value,
                "ts": reading.ts,
            },
        )
        count += 1
    return count


def wipe_data(device_id: str) -> None:
    if MAGIC_IDENTIFIER not in device_id:
        raise ValueError(
            f"Refusing to wipe device_id={device_id!r} "
            f"(missing magic identifier '{MAGIC_IDENTIFIER}')"
        )
    post("/admin/delete", {"device_id": device_id})


# ───────────────────────────── CLI ─────────────────────────────
def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--device-id", default="demo-fake")
    parser.add_argument("--wipe", action="store_true")
    parser.add_argument("--hours", type=float, default=2.0)
    parser.add_argument("--interval", type=int, default=60, help="seconds between readings")
    args = parser.parse_args()

    if args.wipe:
        wipe_data(args.device_id)

    count = seed(args.device_id, args.hours, args.interval)
    print(f"Posted {count} readings for {args.device_id}.")


if __name__ == "__main__":
    main()
