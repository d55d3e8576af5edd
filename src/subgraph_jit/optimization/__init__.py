# Copyright (c) 2025.
# This file is part of SubGraph-JIT, released under the MIT License.
"""Elimination, conjugate gradients and the subgraph-preconditioned solver."""

from .elimination import GaussianBayesNet, GaussianConditional, eliminate_sequential
from .iterative import CGConfig, conjugate_gradients, steepest_descent
from .jit_wrappers import JittedSystem
from .preconditioner import SubgraphPreconditioner
from .solvers import conjugate_gradient_descent, solve_dense
from .subgraph_solver import SubgraphSolver, SubgraphSolverConfig, split_graph

__all__ = [
    "CGConfig",
    "GaussianBayesNet",
    "GaussianConditional",
    "JittedSystem",
    "SubgraphPreconditioner",
    "SubgraphSolver",
    "SubgraphSolverConfig",
    "conjugate_gradient_descent",
    "conjugate_gradients",
    "eliminate_sequential",
    "solve_dense",
    "split_graph",
    "steepest_descent",
]
