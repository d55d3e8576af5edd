# Copyright (c) 2025.
# This file is part of SubGraph-JIT, released under the MIT License.
"""
Vector-space helpers for per-variable solution vectors.

Solution vectors are plain ``Dict[NodeId, jnp.ndarray]`` mappings and
residual-space vectors are lists (or tuples) of arrays. Both are JAX pytrees,
so every operation here is a thin `jax.tree_util` map or reduction. This is
what lets the iterative solvers stay agnostic of which space they work in.
"""

from __future__ import annotations
from typing import Any, Dict

import jax
import jax.numpy as jnp

from .types import NodeId, VectorValues

PyTree = Any


def zeros(dims: Dict[NodeId, int], dtype=None) -> VectorValues:
    """Zero vector with one block of size ``dims[k]`` per variable."""
    return {nid: jnp.zeros((dim,), dtype=dtype) for nid, dim in sorted(dims.items())}


def tree_add(x: PyTree, y: PyTree) -> PyTree:
    return jax.tree_util.tree_map(jnp.add, x, y)


def tree_sub(x: PyTree, y: PyTree) -> PyTree:
    return jax.tree_util.tree_map(jnp.subtract, x, y)


def tree_axpy(alpha, x: PyTree, y: PyTree) -> PyTree:
    """Return ``alpha * x + y``."""
    return jax.tree_util.tree_map(lambda a, b: alpha * a + b, x, y)


def tree_dot(x: PyTree, y: PyTree) -> jnp.ndarray:
    leaves_x = jax.tree_util.tree_leaves(x)
    leaves_y = jax.tree_util.tree_leaves(y)
    return sum((jnp.vdot(a, b) for a, b in zip(leaves_x, leaves_y)), jnp.asarray(0.0))