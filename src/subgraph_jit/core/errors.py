# Copyright (c) 2025.
# This file is part of SubGraph-JIT, released under the MIT License.
"""Exceptions raised by the SubGraph-JIT solvers."""


class SubgraphSolverError(Exception):
    """Base class for all solver failures."""


class StructuralError(SubgraphSolverError, ValueError):
    """The graph does not have the structure a solver requires.

    Raised for factors touching more than two variables during splitting,
    inconsistent Jacobian block shapes, and constraint factors that reference
    variables the spanning-tree system does not cover.
    """


class NumericalError(SubgraphSolverError, ArithmeticError):
    """Elimination hit a singular or rank-deficient frontal block."""


class OrderingError(SubgraphSolverError, KeyError):
    """A variable of the graph is missing from the elimination ordering."""
