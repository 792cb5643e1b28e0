"""
Simulate concurrent request traffic against a Monitor.

Why simulate?
  - Lets you see the metrics document evolve without wiring a real host.
  - Hammers Recorder from many threads at once, which is the contention
    pattern the counters and sample window are built for.
  - Injects a configurable failure ratio so error/success rates move.

Usage:
    python -m scripts.simulate_traffic --requests 2000 --workers 8 --error-rate 0.05

The metrics file is flushed every --interval ms while traffic runs and
once more on shutdown.
"""

from __future__ import annotations

import argparse
import asyncio
import random
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from configs.settings import Settings
from services.metrics_service.monitor import Monitor
from services.metrics_service.recorder import Kind
from utils.logger import setup_logging, get_logger

_log = get_logger(__name__)

# Weighted towards the API, as a typical app backend would be
_ROUTES = [
    ("/api/users", Kind.API),
    ("/api/orders", Kind.API),
    ("/api/search", Kind.API),
    ("/", Kind.PAGE),
    ("/about", Kind.PAGE),
    ("/pricing", Kind.PAGE),
]


class SimulatedFailure(Exception):
    pass


def _handler(latency_ms: float, fail: bool) -> None:
    time.sleep(latency_ms / 1000)
    if fail:
        raise SimulatedFailure("simulated handler error")


def _one_request(monitor: Monitor, rng: random.Random, error_rate: float) -> None:
    route, kind = rng.choice(_ROUTES)
    latency = rng.lognormvariate(2.0, 0.6)  # ~7ms median, long tail
    fail = rng.random() < error_rate
    try:
        monitor.recorder.observe(lambda: _handler(latency, fail), route, kind)
    except SimulatedFailure:
        pass


async def run_simulation(
    num_requests: int,
    workers: int,
    error_rate: float,
    settings: Settings,
    seed: int,
) -> None:
    monitor = Monitor(settings)
    rng = random.Random(seed)

    async with monitor:
        loop = asyncio.get_running_loop()
        start = time.perf_counter()
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sim") as pool:
            futures = [
                loop.run_in_executor(pool, _one_request, monitor, rng, error_rate)
                for _ in range(num_requests)
            ]
            await asyncio.gather(*futures)
        monitor.recorder.observe_event("simulation_complete", duration_ms=None)
        elapsed = time.perf_counter() - start

    snap = monitor.snapshot()
    print(f"\n{'=' * 50}")
    print(f"  Requests:      {snap.request_count}")
    print(f"  Succeeded:     {snap.success_count}")
    print(f"  Failed:        {snap.error_count}  ({snap.error_rate:.2f}%)")
    print(f"  Avg latency:   {snap.response_time_avg:.2f} ms")
    print(f"  Pages:         {snap.pages.model_dump()}")
    print(f"  Wall time:     {elapsed:.2f} s")
    print(f"  Metrics file:  {settings.metrics_file}")
    print(f"{'=' * 50}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate request traffic against the collector")
    parser.add_argument("--requests", type=int, default=1000)
    parser.add_argument("--workers", type=int, default=8)
    parser.add_argument("--error-rate", type=float, default=0.05)
    parser.add_argument("--interval", type=int, default=1000, help="Flush period in ms")
    parser.add_argument("--metrics-file", type=str, default="./telemetry-metrics.json")
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    settings = Settings(
        metrics_file=args.metrics_file,
        update_interval=args.interval,
        project_name="traffic-simulation",
    )
    setup_logging(level=settings.log_level, json_output=settings.log_json, project=settings.project_name)
    _log.info("simulation_begin", requests=args.requests, workers=args.workers)
    asyncio.run(run_simulation(args.requests, args.workers, args.error_rate, settings, args.seed))


if __name__ == "__main__":
    main()
