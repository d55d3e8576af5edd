# Copyright (c) 2025.
# This file is part of SubGraph-JIT, released under the MIT License.
"""
Subgraph preconditioner.

Splits a least-squares problem ``|A1 x - b1|^2 + |A2 x - b2|^2`` into a
spanning-tree part (A1, already eliminated into the triangular system
``R1 x = c1``) and a constraint part (A2). With ``xbar = R1^{-1} c1`` the
change of variables

    x = xbar + R1^{-1} y

turns the tree part into ``|y|^2``, so the problem in ``y`` reads

    |y|^2 + |A2 R1^{-1} y + (A2 xbar - b2)|^2

whose normal operator ``I + R1^{-T} A2^T A2 R1^{-1}`` is symmetric positive
definite and close to identity when the tree carries most of the
information. `SubgraphPreconditioner` implements this system for the
conjugate-gradient engine in `optimization.iterative`.

Vectors in y-space are `VectorValues` over the Bayes net's variables.
Residual-space vectors are tuples ``(e1, e2)``: ``e1`` lives in y-space
(the tree rows), ``e2`` is a list with one array per constraint factor.
"""

from __future__ import annotations
from typing import List, Optional, Tuple

import jax.numpy as jnp

from ..core.errors import StructuralError
from ..core.factor_graph import GaussianFactorGraph
from ..core.types import VectorValues
from ..core.vector_values import tree_add, tree_axpy, zeros
from .elimination import GaussianBayesNet

Errors = Tuple[VectorValues, List[jnp.ndarray]]


class SubgraphPreconditioner:
    """
    Change of variables between tree space (y) and variable space (x).

    Holds the constraint graph, the tree's Bayes net and the baseline
    solution ``xbar``. All three are treated as immutable.
    """

    def __init__(
        self,
        constraints: GaussianFactorGraph,
        bayes_net: GaussianBayesNet,
        xbar: Optional[VectorValues] = None,
    ) -> None:
        self._constraints = constraints
        self._bayes_net = bayes_net
        self._dims = bayes_net.dims()

        for f in constraints:
            for nid in f.var_ids:
                if nid not in self._dims:
                    raise StructuralError(
                        f"Constraint factor {f.id} references variable {nid}, "
                        "which the spanning-tree system does not cover"
                    )
                if f.dim(nid) != self._dims[nid]:
                    raise StructuralError(
                        f"Constraint factor {f.id} uses variable {nid} with dimension "
                        f"{f.dim(nid)}, tree has {self._dims[nid]}"
                    )

        self._xbar = bayes_net.optimize() if xbar is None else dict(sorted(xbar.items()))

    @property
    def constraints(self) -> GaussianFactorGraph:
        return self._constraints

    @property
    def bayes_net(self) -> GaussianBayesNet:
        return self._bayes_net

    @property
    def xbar(self) -> VectorValues:
        return self._xbar

    def zero(self) -> VectorValues:
        """Origin of y-space; maps to `xbar`."""
        return zeros(self._dims, dtype=self._dtype())

    def _dtype(self):
        for c in self._bayes_net:
            return c.R.dtype
        return None

    def x(self, y: VectorValues) -> VectorValues:
        """Map tree-space coordinates back to variable space."""
        return tree_add(self._xbar, self._bayes_net.back_substitute(y))

    # --- System operators for conjugate gradients ---

    def _constraint_residuals(self, x: VectorValues) -> List[jnp.ndarray]:
        return self._constraints.errors(x)

    def _fold_back(self, e2: List[jnp.ndarray]) -> VectorValues:
        """``R1^{-T} A2^T e2`` as a y-space vector."""
        g = zeros(self._dims, dtype=self._dtype())
        for f, e in zip(self._constraints, e2):
            for nid, block in f.transpose_multiply(e).items():
                g[nid] = g[nid] + block
        return self._bayes_net.back_substitute_transpose(g)

    def errors(self, y: VectorValues) -> Errors:
        """Residual vector ``(y, A2 x(y) - b2)``."""
        return y, self._constraint_residuals(self.x(y))

    def error(self, y: VectorValues) -> float:
        e1, e2 = self.errors(y)
        total = sum(jnp.sum(v ** 2) for v in e1.values())
        total = total + sum(jnp.sum(v ** 2) for v in e2)
        return 0.5 * float(total)

    def gradient(self, y: VectorValues) -> VectorValues:
        """``y + R1^{-T} A2^T (A2 x(y) - b2)``."""
        e2 = self._constraint_residuals(self.x(y))
        return tree_add(y, self._fold_back(e2))

    def multiply(self, y: VectorValues) -> Errors:
        """``(y, A2 R1^{-1} y)``."""
        return y, self._constraints.multiply(self._bayes_net.back_substitute(y))

    def transpose_multiply(self, e: Errors) -> VectorValues:
        """``e1 + R1^{-T} A2^T e2``."""
        e1, e2 = e
        return tree_add(e1, self._fold_back(e2))

    def transpose_multiply_add(self, alpha, e: Errors, y: VectorValues) -> VectorValues:
        return tree_axpy(alpha, self.transpose_multiply(e), y)

    def __repr__(self) -> str:
        return (
            f"SubgraphPreconditioner(tree_variables={len(self._bayes_net)}, "
            f"constraints={len(self._constraints)})"
        )
