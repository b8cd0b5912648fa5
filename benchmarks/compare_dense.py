"""Benchmark matrix-free WT-LARS against the same run on an explicit Kronecker dictionary."""

from __future__ import annotations

import argparse
import itertools
import json
import tempfile
import time
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from pathlib import Path

import numpy as np

from wtlars import simulate_separable, wt_lars
from wtlars.ops import dense_dictionary


def _measure(func, *args, backend="resource", **kwargs):
    if backend == "none":
        return func(*args, **kwargs), None

    if backend == "memray":
        try:
            import memray
        except ImportError as exc:
            raise RuntimeError(
                "memray is not installed; install memray or use --memory-backend none"
            ) from exc

        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "run.bin"
            with memray.Tracker(path):
                result = func(*args, **kwargs)
            return result, memray.FileReader(path).metadata.peak_memory

    if backend == "resource":
        import resource

        before = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
        result = func(*args, **kwargs)
        after = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
        return result, max(before, after)

    raise ValueError(f"Unknown memory backend {backend}")


@dataclass
class BenchmarkResult:
    n: int
    order: int
    m: int
    nnz: int
    method: str
    iterations: int
    residual_norm: float
    support_recovered: float
    peak_memory: float | None
    wall_time: float
    status: str


def run_benchmark(
    grid: Iterable[tuple[int, int, int, int]],
    *,
    seed: int = 0,
    tolerance: float = 1e-3,
    memory_backend: str = "resource",
) -> list[BenchmarkResult]:
    results = []
    for n, order, m, nnz in grid:
        Y, factors, X_true = simulate_separable((n,) * order, (m,) * order, nnz, noise=1e-3, seed=seed)
        true_support = set(np.flatnonzero(X_true).tolist())
        methods = {
            "separable": lambda f=factors: f,
            # one mode whose factor is the whole dictionary
            "dense": lambda f=factors: [dense_dictionary(f)],
        }
        for name, build in methods.items():
            t0 = time.perf_counter()
            try:
                fac = build()
                Y_in = Y.reshape(-1) if name == "dense" else Y
                res, peak = _measure(
                    wt_lars, Y_in, fac, None, 3 * nnz, tolerance, backend=memory_backend
                )
            except MemoryError:
                results.append(
                    BenchmarkResult(
                        n=n,
                        order=order,
                        m=m,
                        nnz=nnz,
                        method=name,
                        iterations=0,
                        residual_norm=float("nan"),
                        support_recovered=0.0,
                        peak_memory=None,
                        wall_time=time.perf_counter() - t0,
                        status="oom",
                    )
                )
                continue
            wall = time.perf_counter() - t0
            support = set(res.active_columns.tolist())
            results.append(
                BenchmarkResult(
                    n=n,
                    order=order,
                    m=m,
                    nnz=nnz,
                    method=name,
                    iterations=res.parameters.iterations,
                    residual_norm=res.parameters.residual_norm,
                    support_recovered=len(support & true_support) / max(len(true_support), 1),
                    peak_memory=peak,
                    wall_time=wall,
                    status=res.status.value,
                )
            )
    return results


def main(argv: Iterable[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--n", nargs="*", type=int, default=[8, 16], help="rows per factor")
    parser.add_argument("--order", nargs="*", type=int, default=[2, 3])
    parser.add_argument("--m", nargs="*", type=int, default=[12], help="columns per factor")
    parser.add_argument("--nnz", nargs="*", type=int, default=[10])
    parser.add_argument("--tolerance", type=float, default=1e-3)
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument(
        "--memory-backend", choices=["memray", "resource", "none"], default="resource"
    )
    parser.add_argument("--json", type=Path, help="Optional path to dump JSON results")
    args = parser.parse_args(argv)

    grid = list(itertools.product(args.n, args.order, args.m, args.nnz))
    results = run_benchmark(
        grid, seed=args.seed, tolerance=args.tolerance, memory_backend=args.memory_backend
    )

    for row in results:
        print(
            f"n={row.n:3d} order={row.order} m={row.m:3d} nnz={row.nnz:3d} | {row.method:9s} "
            f"iters={row.iterations:4d} resid={row.residual_norm:.2e} "
            f"support={row.support_recovered:.2f} peak_mem={row.peak_memory!r} "
            f"time={row.wall_time:.3f}s status={row.status}"
        )

    if args.json:
        args.json.write_text(json.dumps([asdict(row) for row in results], indent=2))


if __name__ == "__main__":
    main()
