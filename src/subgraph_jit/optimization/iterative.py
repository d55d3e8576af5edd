# Copyright (c) 2025.
# This file is part of SubGraph-JIT, released under the MIT License.
"""
Conjugate-gradient engine for linear least-squares systems.

The engine is written against a small "system" protocol rather than a
concrete matrix, so the same loop drives plain CG on a full
`GaussianFactorGraph` and preconditioned CG on a `SubgraphPreconditioner`.

System protocol
---------------
A system represents ``f(x) = 0.5 ||A x - b||^2`` through three operators:

    gradient(x)                      -> A^T (A x - b)        (x-space)
    multiply(d)                      -> A d                  (residual space)
    transpose_multiply_add(a, e, x)  -> x + a * A^T e        (x-space)

Vectors in both spaces are JAX pytrees (dicts of arrays, lists of arrays,
tuples of those), combined through `core.vector_values`.

Key Concepts
------------
CGConfig
    Dataclass holding configuration for the iteration:
    - max_iters: iteration budget
    - epsilon_rel / epsilon_abs: stopping threshold on the squared
      gradient norm, ``max(epsilon_abs, epsilon_rel^2 * |g0|^2)``
    - reset: recompute the gradient from scratch every `reset` iterations
    - verbosity: 0 silent, 1 summary, 2 per-iteration trace

conjugate_gradients(system, x0, cfg, steepest=False)
    Runs CG (or steepest descent) from x0 and returns the last iterate.

Notes
-----
Exhausting the iteration budget is not an error: the current iterate is
returned and it is up to the caller to check the residual if it needs a
convergence guarantee.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Protocol

from loguru import logger

from ..core.vector_values import tree_axpy, tree_dot

PyTree = Any


class LinearSystem(Protocol):
    def gradient(self, x: PyTree) -> PyTree: ...

    def multiply(self, d: PyTree) -> PyTree: ...

    def transpose_multiply_add(self, alpha, e: PyTree, x: PyTree) -> PyTree: ...


@dataclass
class CGConfig:
    max_iters: int = 500
    epsilon_rel: float = 1e-3
    epsilon_abs: float = 1e-3
    reset: int = 501           # recompute gradient every `reset` iterations
    verbosity: int = 0         # 0 silent, 1 summary, 2 per-iteration


@dataclass
class _CGState:
    """Running state of one conjugate-gradient solve."""
    g: PyTree           # gradient at the current iterate
    d: PyTree           # search direction
    Ad: PyTree          # system applied to d (residual space)
    gamma: float        # |g|^2
    threshold: float
    k: int = 0

    @classmethod
    def start(cls, system: LinearSystem, x: PyTree, cfg: CGConfig) -> "_CGState":
        g = system.gradient(x)
        gamma = float(tree_dot(g, g))
        threshold = max(cfg.epsilon_abs, cfg.epsilon_rel * cfg.epsilon_rel * gamma)
        return cls(g=g, d=g, Ad=system.multiply(g), gamma=gamma, threshold=threshold)

    def step(self, system: LinearSystem, x: PyTree, cfg: CGConfig, steepest: bool):
        """Take one optimal step along d. Returns (x_new, done)."""
        denom = float(tree_dot(self.Ad, self.Ad))
        if denom <= 0.0:
            if cfg.verbosity >= 1:
                logger.info("CG: search direction has no effect at iteration {}, stopping", self.k)
            return x, True

        alpha = -float(tree_dot(self.d, self.g)) / denom
        x = tree_axpy(alpha, self.d, x)
        self.k += 1

        if self.k % cfg.reset == 0:
            self.g = system.gradient(x)
        else:
            self.g = system.transpose_multiply_add(alpha, self.Ad, self.g)

        new_gamma = float(tree_dot(self.g, self.g))
        if cfg.verbosity >= 2:
            logger.info("CG iteration {}: alpha = {:.6e}, |g|^2 = {:.6e}", self.k, alpha, new_gamma)
        if new_gamma <= self.threshold:
            self.gamma = new_gamma
            return x, True

        if steepest:
            self.d = self.g
        else:
            beta = new_gamma / self.gamma
            self.d = tree_axpy(beta, self.d, self.g)
        self.gamma = new_gamma
        self.Ad = system.multiply(self.d)
        return x, False


def conjugate_gradients(
    system: LinearSystem,
    x0: PyTree,
    cfg: CGConfig,
    steepest: bool = False,
) -> PyTree:
    """
    Minimize ``0.5 ||A x - b||^2`` with conjugate gradients.

    Args:
        system: object implementing the system protocol above
        x0: initial iterate (pytree)
        cfg: CGConfig
        steepest: use steepest descent directions instead of conjugate ones

    Returns:
        The last iterate. When the initial gradient is already below the
        threshold, ``x0`` itself is returned.
    """
    state = _CGState.start(system, x0, cfg)
    if cfg.verbosity >= 1:
        logger.info("CG: |g0|^2 = {:.6e}, threshold = {:.6e}", state.gamma, state.threshold)

    if state.gamma <= state.threshold:
        return x0

    x = x0
    done = False
    while not done and state.k < cfg.max_iters:
        x, done = state.step(system, x, cfg, steepest)

    if cfg.verbosity >= 1:
        status = "converged" if state.gamma <= state.threshold else "stopped"
        logger.info("CG {} after {} iterations, |g|^2 = {:.6e}", status, state.k, state.gamma)
    return x


def steepest_descent(system: LinearSystem, x0: PyTree, cfg: CGConfig) -> PyTree:
    return conjugate_gradients(system, x0, cfg, steepest=True)
