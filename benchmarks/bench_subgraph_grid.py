# Copyright (c) 2025.
# This file is part of SubGraph-JIT, released under the MIT License.

import time

import jax.numpy as jnp
import numpy as np

from subgraph_jit.core.factor_graph import GaussianFactorGraph
from subgraph_jit.core.types import FactorId, JacobianFactor, NodeId
from subgraph_jit.optimization.iterative import CGConfig
from subgraph_jit.optimization.solvers import conjugate_gradient_descent, solve_dense
from subgraph_jit.optimization.subgraph_solver import SubgraphSolver, SubgraphSolverConfig


def build_grid_graph(n: int = 10, noise: float = 0.05, seed: int = 0):
    """
    n x n grid of 2D positions linked by relative measurements:

        x0 -- x1 -- ... -- x_{n-1}
        |     |             |
        x_n - ... ------- x_{2n-1}
        ...

    - Prior on x0 at the origin.
    - Every horizontal and vertical neighbor pair gets a noisy offset
      measurement, so every grid cell closes a loop.
    """
    rng = np.random.default_rng(seed)
    fg = GaussianFactorGraph()

    fg.add_factor(
        JacobianFactor(
            id=FactorId(0), type="prior", var_ids=(NodeId(0),), A=(jnp.eye(2),), b=jnp.zeros(2)
        )
    )

    fid = 1
    for r in range(n):
        for c in range(n):
            k = r * n + c
            neighbors = []
            if c + 1 < n:
                neighbors.append((k + 1, [1.0, 0.0]))
            if r + 1 < n:
                neighbors.append((k + n, [0.0, 1.0]))
            for nb, offset in neighbors:
                delta = jnp.asarray(offset) + noise * jnp.asarray(rng.normal(size=2))
                fg.add_factor(
                    JacobianFactor(
                        id=FactorId(fid),
                        type="odom",
                        var_ids=(NodeId(k), NodeId(nb)),
                        A=(-jnp.eye(2), jnp.eye(2)),
                        b=delta,
                    )
                )
                fid += 1

    ordering = [NodeId(k) for k in range(n * n)]
    return fg, ordering


def max_abs_diff(x, ref):
    return max(float(jnp.max(jnp.abs(x[k] - ref[k]))) for k in ref)


def run_benchmark(n: int = 10, max_iters: int = 200, use_jit: bool = True):
    print("=== Subgraph-preconditioned CG on a 2D grid ===")
    print(f"grid = {n}x{n}, max_iters = {max_iters}, use_jit = {use_jit}")

    fg, ordering = build_grid_graph(n)
    cfg = SubgraphSolverConfig(max_iters=max_iters, epsilon_rel=1e-8, epsilon_abs=1e-16, jit=use_jit)

    t0 = time.time()
    solver = SubgraphSolver(fg, cfg, ordering)
    t1 = time.time()
    print(f"Setup (split + tree elimination): {(t1 - t0) * 1000.0:.3f} ms")
    print(f"tree factors = {len(fg) - len(solver.preconditioner.constraints)}, "
          f"constraint factors = {len(solver.preconditioner.constraints)}")

    # Warmup (forces compilation when use_jit=True)
    solver.optimize()

    t0 = time.time()
    x_sub = solver.optimize()
    t1 = time.time()
    print(f"Subgraph CG solve: {(t1 - t0) * 1000.0:.3f} ms")

    t0 = time.time()
    x_cg = conjugate_gradient_descent(
        fg, CGConfig(max_iters=max_iters, epsilon_rel=1e-8, epsilon_abs=1e-16)
    )
    t1 = time.time()
    print(f"Plain CG solve: {(t1 - t0) * 1000.0:.3f} ms")

    x_dense = solve_dense(fg, ordering)
    print(f"max |subgraph - dense| = {max_abs_diff(x_sub, x_dense):.3e}")
    print(f"max |plain CG - dense| = {max_abs_diff(x_cg, x_dense):.3e}")


if __name__ == "__main__":
    # Example:
    #   PYTHONPATH=src python3 benchmarks/bench_subgraph_grid.py
    run_benchmark(n=10, max_iters=200, use_jit=True)
    run_benchmark(n=10, max_iters=200, use_jit=False)
