# Copyright (c) 2025.
# This file is part of SubGraph-JIT, released under the MIT License.
"""
Linear (Gaussian) factor graph for SubGraph-JIT.

This module implements the container every solver in the package consumes:
an ordered collection of whitened Jacobian factors, produced once per
linearization step by the caller and treated as read-only afterwards.

The GaussianFactorGraph stores:
    - Factors in insertion order (FactorId -> JacobianFactor)

Key Features
------------
• Least-squares operators
    `errors`, `error`, `multiply`, `transpose_multiply` and `gradient` act
    directly on per-variable `VectorValues`, so the graph can be handed to
    the conjugate-gradient engine as a system in its own right.

• Dense packing
    `build_state_index`, `pack_state`, `unpack_state` and `jacobian` flatten
    the problem into a single dense `(A, b)` pair for reference solves and
    tests.

Notes
-----
Insertion order is kept for determinism only; it decides which factors the
graph splitter puts in the spanning tree but has no effect on the least
squares solution.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import jax.numpy as jnp

from .errors import StructuralError
from .types import NodeId, FactorId, JacobianFactor, VectorValues
from .vector_values import tree_axpy

# Residual-space vector: one array per factor, in graph order.
Errors = List[jnp.ndarray]


@dataclass
class GaussianFactorGraph:
    """
    Ordered collection of linear factors.

    - factors: mapping from FactorId -> JacobianFactor, in insertion order
    """
    factors: Dict[FactorId, JacobianFactor] = field(default_factory=dict)

    def add_factor(self, factor: JacobianFactor) -> None:
        if factor.id in self.factors:
            raise ValueError(f"Duplicate factor id {factor.id}")
        self.factors[factor.id] = factor

    def __len__(self) -> int:
        return len(self.factors)

    def __iter__(self) -> Iterator[JacobianFactor]:
        return iter(self.factors.values())

    def keys(self) -> List[NodeId]:
        return sorted({nid for f in self for nid in f.var_ids})

    def dims(self) -> Dict[NodeId, int]:
        """Dimension of every variable, checked for consistency across factors."""
        dims: Dict[NodeId, int] = {}
        for f in self:
            for nid, a in zip(f.var_ids, f.A):
                d = int(a.shape[1])
                if dims.setdefault(nid, d) != d:
                    raise StructuralError(
                        f"Variable {nid} used with dimension {dims[nid]} and {d} (factor {f.id})"
                    )
        return dims

    # --- Least-squares operators ---

    def errors(self, values: VectorValues) -> Errors:
        """Per-factor residuals ``A_i x - b_i``."""
        return [f.residual(values) for f in self]

    def error(self, values: VectorValues) -> float:
        """Half the squared norm of the stacked residual."""
        return 0.5 * float(sum(jnp.sum(e ** 2) for e in self.errors(values)))

    def multiply(self, values: VectorValues) -> Errors:
        return [f.multiply(values) for f in self]

    def transpose_multiply(self, e: Errors) -> VectorValues:
        """Return ``A^T e`` with one block per variable of the graph."""
        out: VectorValues = {}
        for f, ei in zip(self, e):
            for nid, g in f.transpose_multiply(ei).items():
                out[nid] = out[nid] + g if nid in out else g
        return dict(sorted(out.items()))

    def transpose_multiply_add(self, alpha, e: Errors, x: VectorValues) -> VectorValues:
        """Return ``x + alpha * A^T e``."""
        return tree_axpy(alpha, self.transpose_multiply(e), x)

    def gradient(self, values: VectorValues) -> VectorValues:
        """Gradient of `error` at ``values``: ``A^T (A x - b)``."""
        return self.transpose_multiply(self.errors(values))

    # --- State packing/unpacking ---

    def build_state_index(
        self, ordering: Optional[Sequence[NodeId]] = None
    ) -> Dict[NodeId, Tuple[int, int]]:
        """
        Returns a mapping: NodeId -> (start_index, dim)
        Variables are laid out in ``ordering`` (sorted ids by default).
        """
        dims = self.dims()
        keys = list(ordering) if ordering is not None else sorted(dims)
        index: Dict[NodeId, Tuple[int, int]] = {}
        offset = 0
        for node_id in keys:
            if node_id not in dims:
                continue
            index[node_id] = (offset, dims[node_id])
            offset += dims[node_id]
        return index

    def pack_state(self, values: VectorValues, index: Dict[NodeId, Tuple[int, int]]) -> jnp.ndarray:
        chunks = [jnp.asarray(values[node_id]) for node_id in index]
        if not chunks:
            return jnp.zeros((0,))
        return jnp.concatenate(chunks)

    def unpack_state(self, x: jnp.ndarray, index: Dict[NodeId, Tuple[int, int]]) -> VectorValues:
        result: VectorValues = {}
        for node_id, (start, dim) in index.items():
            result[node_id] = x[start:start+dim]
        return result

    def jacobian(
        self, ordering: Optional[Sequence[NodeId]] = None
    ) -> Tuple[jnp.ndarray, jnp.ndarray, Dict[NodeId, Tuple[int, int]]]:
        """
        Dense stacked Jacobian ``A`` (m, n), right-hand side ``b`` (m,) and
        the column index used to lay out the variables.
        """
        index = self.build_state_index(ordering)
        n = sum(dim for _, dim in index.values())
        row_blocks = []
        for f in self:
            row = jnp.zeros((f.rows, n), dtype=f.b.dtype)
            for nid, a in zip(f.var_ids, f.A):
                if nid not in index:
                    raise StructuralError(f"Variable {nid} of factor {f.id} is not in the ordering")
                start, dim = index[nid]
                row = row.at[:, start:start+dim].add(a)
            row_blocks.append(row)

        if not row_blocks:
            return jnp.zeros((0, n)), jnp.zeros((0,)), index
        A = jnp.concatenate(row_blocks, axis=0)
        b = jnp.concatenate([f.b for f in self])
        return A, b, index
