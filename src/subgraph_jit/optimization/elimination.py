# Copyright (c) 2025.
# This file is part of SubGraph-JIT, released under the MIT License.
"""
Sequential QR elimination of linear factor graphs.

This module turns a `GaussianFactorGraph` plus an elimination ordering into
a triangular system (a Gaussian Bayes net): one conditional equation per
eliminated variable, each depending only on variables eliminated later.

Key Concepts
------------
GaussianConditional
    ``R x_f + sum_j S_j x_j = d`` for a frontal variable ``f`` and its
    parents ``j``. ``R`` is square upper triangular.

GaussianBayesNet
    Conditionals in elimination order. Supports:
    - `optimize()`: back-substitution with the stored right-hand sides.
    - `back_substitute(rhs)`: solve ``R x = rhs`` for an arbitrary rhs.
    - `back_substitute_transpose(v)`: solve ``R^T z = v``.

eliminate_sequential(graph, ordering)
    For every variable in ``ordering``:
        1. Remove the factors touching it from the working set.
        2. Stack them densely over ``[frontal | separator | b]``.
        3. QR-factor the block; the top rows give the conditional, the
           remaining rows become a new factor on the separator.

Notes
-----
Elimination is a direct method and fails loudly: a frontal block that is
singular (fewer rows than unknowns or a vanishing diagonal of ``R``) raises
`NumericalError`, and an ordering that repeats a variable or leaves a graph
variable out raises `OrderingError`. Nothing is retried with another ordering.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import jax.numpy as jnp
from jax.scipy.linalg import solve_triangular
from loguru import logger

from ..core.errors import NumericalError, OrderingError
from ..core.factor_graph import GaussianFactorGraph
from ..core.types import NodeId, VectorValues


@dataclass(frozen=True, eq=False)
class GaussianConditional:
    """Conditional linear equation ``R x_f + sum_j S_j x_j = d``."""
    frontal: NodeId
    R: jnp.ndarray
    parents: Tuple[NodeId, ...]
    S: Tuple[jnp.ndarray, ...]
    d: jnp.ndarray

    @property
    def dim(self) -> int:
        return int(self.R.shape[0])

    def solve(self, parent_values: VectorValues, rhs: Optional[jnp.ndarray] = None) -> jnp.ndarray:
        """Solve for the frontal variable given its parents' values.

        ``rhs`` replaces the stored ``d`` when given.
        """
        rhs = self.d if rhs is None else rhs
        for nid, s in zip(self.parents, self.S):
            rhs = rhs - s @ parent_values[nid]
        return solve_triangular(self.R, rhs, lower=False)


@dataclass
class GaussianBayesNet:
    """Triangular system produced by `eliminate_sequential`."""
    conditionals: List[GaussianConditional] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.conditionals)

    def __iter__(self) -> Iterator[GaussianConditional]:
        return iter(self.conditionals)

    def keys(self) -> List[NodeId]:
        """Frontal variables in elimination order."""
        return [c.frontal for c in self.conditionals]

    def dims(self) -> Dict[NodeId, int]:
        return {c.frontal: c.dim for c in self.conditionals}

    def optimize(self) -> VectorValues:
        """Back-substitute with the stored right-hand sides."""
        return self._back_substitute(None)

    def back_substitute(self, rhs: VectorValues) -> VectorValues:
        """Solve ``R x = rhs`` where ``R`` is the whole triangular system."""
        return self._back_substitute(rhs)

    def _back_substitute(self, rhs: Optional[VectorValues]) -> VectorValues:
        result: VectorValues = {}
        # Parents are always eliminated later, so walk the net backwards.
        for c in reversed(self.conditionals):
            result[c.frontal] = c.solve(result, None if rhs is None else rhs[c.frontal])
        return dict(sorted(result.items()))

    def back_substitute_transpose(self, v: VectorValues) -> VectorValues:
        """Solve ``R^T z = v``, the adjoint of `back_substitute`."""
        acc = dict(v)
        result: VectorValues = {}
        for c in self.conditionals:
            z = solve_triangular(c.R, acc[c.frontal], lower=False, trans="T")
            result[c.frontal] = z
            for nid, s in zip(c.parents, c.S):
                acc[nid] = acc[nid] - s.T @ z
        return dict(sorted(result.items()))


@dataclass
class _WorkingFactor:
    var_ids: Tuple[NodeId, ...]
    A: Tuple[jnp.ndarray, ...]
    b: jnp.ndarray


def _check_ordering(graph: GaussianFactorGraph, ordering: Sequence[NodeId]) -> None:
    seen, repeated = set(), set()
    for nid in ordering:
        if nid in seen:
            repeated.add(nid)
        seen.add(nid)
    if repeated:
        raise OrderingError(f"Variables repeated in elimination ordering: {sorted(repeated)}")
    missing = set(graph.keys()) - set(ordering)
    if missing:
        raise OrderingError(f"Variables missing from elimination ordering: {sorted(missing)}")


def _eliminate_one(
    key: NodeId,
    involved: List[_WorkingFactor],
    dims: Dict[NodeId, int],
    position: Dict[NodeId, int],
) -> Tuple[GaussianConditional, Optional[_WorkingFactor]]:
    separator = sorted(
        {nid for f in involved for nid in f.var_ids if nid != key},
        key=position.__getitem__,
    )
    columns = [key] + separator
    offsets: Dict[NodeId, int] = {}
    n = 0
    for nid in columns:
        offsets[nid] = n
        n += dims[nid]

    rows = []
    for f in involved:
        block = jnp.zeros((f.b.shape[0], n + 1), dtype=f.b.dtype)
        for nid, a in zip(f.var_ids, f.A):
            start = offsets[nid]
            block = block.at[:, start:start + dims[nid]].add(a)
        block = block.at[:, n].set(f.b)
        rows.append(block)
    Ab = jnp.concatenate(rows, axis=0)

    frontal_dim = dims[key]
    if Ab.shape[0] < frontal_dim:
        raise NumericalError(
            f"Variable {key} is underdetermined: {Ab.shape[0]} rows for {frontal_dim} unknowns"
        )

    Rfull = jnp.linalg.qr(Ab, mode="r")
    R = Rfull[:frontal_dim, :frontal_dim]

    diag = jnp.abs(jnp.diag(R))
    eps = float(jnp.finfo(R.dtype).eps)
    tol = 10 * max(Ab.shape) * eps * float(jnp.max(diag))
    if float(jnp.min(diag)) <= tol:
        raise NumericalError(f"Singular frontal block while eliminating variable {key}")

    S = tuple(
        Rfull[:frontal_dim, offsets[nid]:offsets[nid] + dims[nid]] for nid in separator
    )
    conditional = GaussianConditional(
        frontal=key,
        R=R,
        parents=tuple(separator),
        S=S,
        d=Rfull[:frontal_dim, n],
    )

    remaining = Rfull[frontal_dim:]
    if not separator or remaining.shape[0] == 0:
        return conditional, None
    new_factor = _WorkingFactor(
        var_ids=tuple(separator),
        A=tuple(remaining[:, offsets[nid]:offsets[nid] + dims[nid]] for nid in separator),
        b=remaining[:, n],
    )
    return conditional, new_factor


def eliminate_sequential(graph: GaussianFactorGraph, ordering: Sequence[NodeId]) -> GaussianBayesNet:
    """
    Eliminate ``graph`` in ``ordering`` into a Gaussian Bayes net.

    Args:
        graph: linear factor graph to eliminate
        ordering: total order over (at least) every variable of the graph

    Returns:
        GaussianBayesNet with one conditional per graph variable, in the
        order the variables were eliminated.
    """
    _check_ordering(graph, ordering)
    dims = graph.dims()
    position = {nid: i for i, nid in enumerate(ordering)}

    pending: List[_WorkingFactor] = [_WorkingFactor(f.var_ids, f.A, f.b) for f in graph]
    conditionals: List[GaussianConditional] = []

    for key in ordering:
        if key not in dims:
            continue
        involved = [f for f in pending if key in f.var_ids]
        pending = [f for f in pending if key not in f.var_ids]
        if not involved:
            # Every row that mentioned this variable was consumed without
            # leaving information about it behind.
            raise NumericalError(f"No remaining constraints on variable {key}")

        conditional, new_factor = _eliminate_one(key, involved, dims, position)
        conditionals.append(conditional)
        if new_factor is not None:
            pending.append(new_factor)

    logger.trace("Eliminated {} variables", len(conditionals))
    return GaussianBayesNet(conditionals)
