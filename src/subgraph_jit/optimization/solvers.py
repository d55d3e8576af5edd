# Copyright (c) 2025.
# This file is part of SubGraph-JIT, released under the MIT License.
"""
Direct reference solvers for SubGraph-JIT.

These solvers flatten a `GaussianFactorGraph` into a dense Jacobian and
solve it in one shot. They do not exploit sparsity and are meant for small
problems: tests, benchmarks and sanity checks of the iterative solvers.

solve_dense(graph, ordering=None)
    Solves the normal equations

        Jᵀ J x = Jᵀ b

    with `jnp.linalg.solve` and returns the per-variable solution.

conjugate_gradient_descent(graph, cfg, initial=None)
    Unpreconditioned conjugate gradients on the full graph, using the same
    engine as the subgraph solver. Useful to compare iteration counts.
"""

from __future__ import annotations
from typing import Optional, Sequence

import jax.numpy as jnp

from ..core.factor_graph import GaussianFactorGraph
from ..core.types import NodeId, VectorValues
from ..core.vector_values import zeros
from .iterative import CGConfig, conjugate_gradients


def solve_dense(
    graph: GaussianFactorGraph,
    ordering: Optional[Sequence[NodeId]] = None,
) -> VectorValues:
    """
    Least-squares solution of ``graph`` via dense normal equations.

    J has shape (m, n), matching math convention.
    """
    J, b, index = graph.jacobian(ordering)

    H = J.T @ J           # (n, n)
    g = J.T @ b           # (n,)

    x = jnp.linalg.solve(H, g)  # (n,)
    return graph.unpack_state(x, index)


def conjugate_gradient_descent(
    graph: GaussianFactorGraph,
    cfg: CGConfig,
    initial: Optional[VectorValues] = None,
) -> VectorValues:
    x0 = initial if initial is not None else zeros(graph.dims())
    return conjugate_gradients(graph, x0, cfg)
