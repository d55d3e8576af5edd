# Copyright (c) 2025.
# This file is part of SubGraph-JIT, released under the MIT License.
"""
JIT-friendly wrappers for the iterative solvers.

The conjugate-gradient loop in `optimization.iterative` stays in Python: it
needs host-side convergence checks and optional logging on every step. The
expensive part of each iteration is applying the system operators, and
those are pure functions of their pytree arguments once the system is
built. This module compiles them with `jax.jit` so every CG iteration runs
three fused XLA computations instead of hundreds of small dispatches.

Typical Usage
-------------
    pc = SubgraphPreconditioner(constraints, bayes_net)
    system = JittedSystem.from_system(pc)
    y = conjugate_gradients(system, pc.zero(), cfg)
    x = pc.x(y)

Notes
-----
The wrapped system is traced once per distinct input structure; the graph
topology is baked into the compiled functions, so a new wrapper must be
built whenever the underlying system is rebuilt.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

import jax

PyTree = Any


@dataclass
class JittedSystem:
    """
    System protocol implementation backed by jitted operators.

    Usage:
        system = JittedSystem.from_system(preconditioner)
        g = system.gradient(y)
    """
    gradient_fn: Callable[[PyTree], PyTree]
    multiply_fn: Callable[[PyTree], PyTree]
    transpose_multiply_add_fn: Callable[[Any, PyTree, PyTree], PyTree]

    def gradient(self, x: PyTree) -> PyTree:
        return self.gradient_fn(x)

    def multiply(self, d: PyTree) -> PyTree:
        return self.multiply_fn(d)

    def transpose_multiply_add(self, alpha, e: PyTree, x: PyTree) -> PyTree:
        return self.transpose_multiply_add_fn(alpha, e, x)

    @staticmethod
    def from_system(system: Any) -> "JittedSystem":
        # The system is closed over and treated as static.
        return JittedSystem(
            gradient_fn=jax.jit(system.gradient),
            multiply_fn=jax.jit(system.multiply),
            transpose_multiply_add_fn=jax.jit(system.transpose_multiply_add),
        )
