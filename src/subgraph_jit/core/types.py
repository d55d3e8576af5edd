# Copyright (c) 2025.
# This file is part of SubGraph-JIT, released under the MIT License.
"""
Core typed data structures for SubGraph-JIT.

This module defines the lightweight container classes used by the linear
solvers. A linearized estimation problem is represented as a collection of
whitened Jacobian factors, each relating one or two variables through a
local linear equation.

Classes
-------
JacobianFactor
    Represents one local linear equation. A factor contains:
    - id: Unique identifier
    - type: Informational tag (e.g. "prior", "odom", "loop_closure")
    - var_ids: Ordered tuple of variable ids the factor touches
    - A: One Jacobian block per variable, all with the same row count
    - b: Right-hand side vector

    The error of a factor at an assignment ``x`` is ``sum_i A_i x_i - b``.

Notes
-----
Factors are frozen: the solvers share factor objects between the original
graph and the subgraphs produced by splitting, so they must never change
after construction. Noise models are assumed to be folded into ``A`` and
``b`` already (i.e. the factor is whitened).
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import NewType, Dict, Tuple

import jax.numpy as jnp

from .errors import StructuralError

NodeId = NewType("NodeId", int)
FactorId = NewType("FactorId", int)

# Mapping from variable id to its value (or update) vector.
VectorValues = Dict[NodeId, jnp.ndarray]


def _as_float(x) -> jnp.ndarray:
    arr = jnp.asarray(x)
    if not jnp.issubdtype(arr.dtype, jnp.floating):
        arr = arr.astype(jnp.result_type(float))
    return arr


@dataclass(frozen=True, eq=False)
class JacobianFactor:
    """Whitened linear factor ``A x - b`` over one or more variables."""
    id: FactorId
    type: str          # e.g. "prior", "odom", "loop_closure"
    var_ids: Tuple[NodeId, ...]
    A: Tuple[jnp.ndarray, ...]
    b: jnp.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "var_ids", tuple(self.var_ids))
        blocks = tuple(jnp.atleast_2d(_as_float(a)) for a in self.A)
        b = jnp.ravel(_as_float(self.b))
        object.__setattr__(self, "A", blocks)
        object.__setattr__(self, "b", b)

        if not self.var_ids:
            raise StructuralError(f"Factor {self.id} touches no variables")
        if len(blocks) != len(self.var_ids):
            raise StructuralError(
                f"Factor {self.id} has {len(self.var_ids)} keys but {len(blocks)} Jacobian blocks"
            )
        for nid, a in zip(self.var_ids, blocks):
            if a.shape[0] != b.shape[0]:
                raise StructuralError(
                    f"Factor {self.id}: block for variable {nid} has {a.shape[0]} rows, "
                    f"expected {b.shape[0]}"
                )

    @property
    def arity(self) -> int:
        return len(self.var_ids)

    @property
    def rows(self) -> int:
        return int(self.b.shape[0])

    def dim(self, nid: NodeId) -> int:
        return int(self.A[self.var_ids.index(nid)].shape[1])

    def multiply(self, values: VectorValues) -> jnp.ndarray:
        """Return ``A x`` for the variables this factor touches."""
        out = jnp.zeros_like(self.b)
        for nid, a in zip(self.var_ids, self.A):
            out = out + a @ values[nid]
        return out

    def residual(self, values: VectorValues) -> jnp.ndarray:
        return self.multiply(values) - self.b

    def transpose_multiply(self, e: jnp.ndarray) -> VectorValues:
        """Return ``A^T e`` split into per-variable blocks."""
        out: VectorValues = {}
        for nid, a in zip(self.var_ids, self.A):
            g = a.T @ e
            out[nid] = out[nid] + g if nid in out else g
        return out
