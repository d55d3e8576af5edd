# Copyright (c) 2025.
# This file is part of SubGraph-JIT, released under the MIT License.
"""Data model: typed ids, linear factors, factor graphs and union-find."""

from .dsf import DisjointSetForest
from .errors import NumericalError, OrderingError, StructuralError, SubgraphSolverError
from .factor_graph import GaussianFactorGraph
from .types import FactorId, JacobianFactor, NodeId, VectorValues

__all__ = [
    "DisjointSetForest",
    "FactorId",
    "GaussianFactorGraph",
    "JacobianFactor",
    "NodeId",
    "NumericalError",
    "OrderingError",
    "StructuralError",
    "SubgraphSolverError",
    "VectorValues",
]
