"""
Load test for a running dirserve instance.

This script:
1. Issues N concurrent GETs against each URL, for several concurrency levels
2. Reports success counts and latency statistics (mean, p50, p95, max)
3. Optionally plots concurrency vs. mean latency to a PNG

Usage:
  python scripts/loadtest.py http://localhost:1234/big.bin [more urls] --requests 200 --plot latency.png
"""

import argparse
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Tuple

import numpy as np
import requests
import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend
import matplotlib.pyplot as plt

CONCURRENCY_LEVELS = [1, 5, 10, 25, 50]


def perform_get(url: str) -> Tuple[bool, float, int]:
    """
    Download url completely.
    Returns (success, latency_ms, bytes_received)
    """
    start_time = time.time()
    try:
        with requests.get(url, stream=True, timeout=60) as response:
            received = sum(len(chunk) for chunk in response.iter_content(chunk_size=64 * 1024))
            latency = (time.time() - start_time) * 1000
            return response.status_code == 200, latency, received
    except requests.exceptions.RequestException as e:
        latency = (time.time() - start_time) * 1000
        print(f"Request failed: {e}")
        return False, latency, 0


def run_workload(urls: List[str], total: int, concurrency: int) -> List[Tuple[bool, float, int]]:
    """Issue total requests spread round-robin over urls, concurrency at a time."""
    targets = [urls[i % len(urls)] for i in range(total)]
    results = []
    with ThreadPoolExecutor(max_workers=concurrency) as executor:
        futures = [executor.submit(perform_get, url) for url in targets]
        for future in as_completed(futures):
            results.append(future.result())
    return results


def summarize(results: List[Tuple[bool, float, int]], elapsed: float) -> Dict[str, float]:
    latencies = np.array([latency for _, latency, _ in results])
    ok = sum(1 for success, _, _ in results if success)
    received = sum(size for _, _, size in results)
    return {
        "ok": ok,
        "total": len(results),
        "mean_ms": float(np.mean(latencies)),
        "p50_ms": float(np.percentile(latencies, 50)),
        "p95_ms": float(np.percentile(latencies, 95)),
        "max_ms": float(np.max(latencies)),
        "throughput_mib_s": received / (1024 * 1024) / elapsed if elapsed > 0 else 0.0,
    }


def plot(levels: List[int], summaries: List[Dict[str, float]], output: str) -> None:
    means = [s["mean_ms"] for s in summaries]
    p95s = [s["p95_ms"] for s in summaries]

    plt.figure(figsize=(10, 6))
    plt.plot(levels, means, 'o-', linewidth=2, markersize=8, label='Mean latency')
    plt.plot(levels, p95s, 's--', linewidth=2, markersize=8, label='p95 latency')
    plt.xlabel('Concurrent clients', fontsize=12)
    plt.ylabel('Latency (ms)', fontsize=12)
    plt.title('Concurrency vs. Download Latency', fontsize=14)
    plt.grid(True, alpha=0.3)
    plt.legend()
    plt.tight_layout()
    plt.savefig(output, dpi=150)
    plt.close()
    print(f"Plot saved to {output}")


def main() -> int:
    parser = argparse.ArgumentParser(description='Concurrent download load test')
    parser.add_argument('urls', nargs='+', help='URLs to fetch')
    parser.add_argument('--requests', type=int, default=100, help='Requests per concurrency level')
    parser.add_argument('--levels', type=int, nargs='+', default=CONCURRENCY_LEVELS,
                        help='Concurrency levels to test')
    parser.add_argument('--plot', metavar='PNG', help='Write a latency plot to this file')
    args = parser.parse_args()

    summaries = []
    for level in args.levels:
        print(f"\n== {args.requests} requests, {level} concurrent ==")
        start = time.time()
        results = run_workload(args.urls, args.requests, level)
        summary = summarize(results, time.time() - start)
        summaries.append(summary)
        print(f"  OK:         {summary['ok']}/{summary['total']}")
        print(f"  Mean:       {summary['mean_ms']:.2f} ms")
        print(f"  p50 / p95:  {summary['p50_ms']:.2f} / {summary['p95_ms']:.2f} ms")
        print(f"  Max:        {summary['max_ms']:.2f} ms")
        print(f"  Throughput: {summary['throughput_mib_s']:.2f} MiB/s")

    if args.plot:
        plot(args.levels, summaries, args.plot)

    failed = sum(s["total"] - s["ok"] for s in summaries)
    return 1 if failed else 0


if __name__ == '__main__':
    sys.exit(main())
