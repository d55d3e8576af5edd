# Copyright (c) 2025.
# This file is part of SubGraph-JIT, released under the MIT License.
"""
SubGraph-JIT: subgraph-preconditioned least-squares solvers in JAX.

Solves the sparse linear systems produced by linearizing a factor graph
(e.g. pose-graph SLAM) by splitting the graph into a spanning tree, solving
the tree directly, and refining with conjugate gradients in tree
coordinates.

    >>> from subgraph_jit import SubgraphSolver, SubgraphSolverConfig
    >>> solver = SubgraphSolver(graph, SubgraphSolverConfig(), ordering)
    >>> x = solver.optimize()
"""

from .core import (
    DisjointSetForest,
    FactorId,
    GaussianFactorGraph,
    JacobianFactor,
    NodeId,
    NumericalError,
    OrderingError,
    StructuralError,
    SubgraphSolverError,
)
from .optimization import (
    CGConfig,
    GaussianBayesNet,
    SubgraphPreconditioner,
    SubgraphSolver,
    SubgraphSolverConfig,
    conjugate_gradients,
    eliminate_sequential,
    solve_dense,
    split_graph,
)

__version__ = "0.1.0"

__all__ = [
    "CGConfig",
    "DisjointSetForest",
    "FactorId",
    "GaussianBayesNet",
    "GaussianFactorGraph",
    "JacobianFactor",
    "NodeId",
    "NumericalError",
    "OrderingError",
    "StructuralError",
    "SubgraphPreconditioner",
    "SubgraphSolver",
    "SubgraphSolverConfig",
    "SubgraphSolverError",
    "conjugate_gradients",
    "eliminate_sequential",
    "solve_dense",
    "split_graph",
]
