# Copyright (c) 2025.
# This file is part of SubGraph-JIT, released under the MIT License.
"""
Subgraph-preconditioned conjugate-gradient solver.

This module ties the pieces of the package together:

    1. `split_graph` partitions a linear factor graph into a spanning tree
       and the loop-closing constraints (Kruskal over a disjoint-set forest).
    2. The tree is eliminated directly (`eliminate_sequential`) into a
       triangular system whose solution is the baseline ``xbar``.
    3. A `SubgraphPreconditioner` re-expresses the full problem around
       ``xbar`` in tree coordinates ``y``.
    4. `conjugate_gradients` solves for ``y`` starting at zero and the
       result is mapped back with ``x(y)``.

Graphs whose factors touch more than two variables are rejected during
splitting. Elimination failures (singular tree, incomplete ordering)
propagate unchanged; nothing is retried.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import jax.numpy as jnp
from loguru import logger

from ..core.dsf import DisjointSetForest
from ..core.errors import StructuralError
from ..core.factor_graph import GaussianFactorGraph
from ..core.types import NodeId, VectorValues
from .elimination import GaussianBayesNet, eliminate_sequential
from .iterative import CGConfig, conjugate_gradients
from .jit_wrappers import JittedSystem
from .preconditioner import SubgraphPreconditioner


@dataclass
class SubgraphSolverConfig(CGConfig):
    jit: bool = True    # compile the preconditioner operators with jax.jit


def split_graph(graph: GaussianFactorGraph) -> Tuple[GaussianFactorGraph, GaussianFactorGraph]:
    """
    Split ``graph`` into a spanning-tree subgraph and a constraint subgraph.

    Runs an unweighted Kruskal pass over the factors in graph order:
      - unary factors always join the tree
      - a binary factor joins the tree if it connects two components that
        are still disjoint, and the components are merged
      - any other binary factor would close a loop and becomes a constraint

    Raises:
        StructuralError: if any factor touches no variables or more than two. The
            check runs over the whole graph before anything is returned.
    """
    for factor in graph:
        if not 1 <= factor.arity <= 2:
            raise StructuralError(
                f"Factor {factor.id} touches {factor.arity} variables; "
                "the subgraph solver only handles unary and binary factors"
            )

    dsf = DisjointSetForest()
    tree = GaussianFactorGraph()
    constraints = GaussianFactorGraph()

    for factor in graph:
        keys = factor.var_ids
        if len(keys) == 1:
            tree.add_factor(factor)
        elif dsf.find(keys[0]) != dsf.find(keys[1]):
            tree.add_factor(factor)
            dsf.merge(keys[0], keys[1])
        else:
            constraints.add_factor(factor)

    return tree, constraints


class SubgraphSolver:
    """
    Solve a linear least-squares factor graph with subgraph-preconditioned CG.

    Usage:
        solver = SubgraphSolver(graph, SubgraphSolverConfig(), ordering)
        x = solver.optimize()

    Alternative constructors skip work the caller has already done:
        SubgraphSolver.from_split(tree, constraints, cfg, ordering)
        SubgraphSolver.from_bayes_net(bayes_net, constraints, cfg)

    A solver is built for one graph and never mutated; build a new one when
    the graph changes.
    """

    split_graph = staticmethod(split_graph)

    def __init__(
        self,
        graph: GaussianFactorGraph,
        cfg: Optional[SubgraphSolverConfig],
        ordering: Sequence[NodeId],
    ) -> None:
        self._setup(cfg, ordering)

        tree, constraints = split_graph(graph)
        if self.cfg.verbosity >= 1:
            logger.info(
                "Split A into (A1) {} and (A2) {} factors", len(tree), len(constraints)
            )

        bayes_net = eliminate_sequential(tree, self.ordering)
        self._initialize(bayes_net, constraints)

    @classmethod
    def from_split(
        cls,
        tree: GaussianFactorGraph,
        constraints: GaussianFactorGraph,
        cfg: Optional[SubgraphSolverConfig],
        ordering: Sequence[NodeId],
    ) -> "SubgraphSolver":
        """Build from an existing tree / constraint partition."""
        solver = cls.__new__(cls)
        solver._setup(cfg, ordering)
        solver._initialize(eliminate_sequential(tree, solver.ordering), constraints)
        return solver

    @classmethod
    def from_bayes_net(
        cls,
        bayes_net: GaussianBayesNet,
        constraints: GaussianFactorGraph,
        cfg: Optional[SubgraphSolverConfig] = None,
        ordering: Optional[Sequence[NodeId]] = None,
    ) -> "SubgraphSolver":
        """Build from an already eliminated spanning tree."""
        solver = cls.__new__(cls)
        solver._setup(cfg, bayes_net.keys() if ordering is None else ordering)
        solver._initialize(bayes_net, constraints)
        return solver

    def _setup(self, cfg: Optional[SubgraphSolverConfig], ordering: Sequence[NodeId]) -> None:
        self.cfg = cfg if cfg is not None else SubgraphSolverConfig()
        self.ordering = tuple(ordering)

    def _initialize(self, bayes_net: GaussianBayesNet, constraints: GaussianFactorGraph) -> None:
        self.preconditioner = SubgraphPreconditioner(constraints, bayes_net)
        if self.cfg.jit:
            self._system = JittedSystem.from_system(self.preconditioner)
        else:
            self._system = self.preconditioner

    def optimize(self, initial: Optional[VectorValues] = None) -> VectorValues:
        """
        Solve the full least-squares problem.

        ``initial`` is accepted for interface compatibility and ignored:
        the iteration always starts from the tree solution (``y = 0``).
        """
        pc = self.preconditioner
        ybar = conjugate_gradients(self._system, pc.zero(), self.cfg)
        return pc.x(ybar)

    def optimize_damped(
        self,
        graph: GaussianFactorGraph,
        key_info,
        lambdas: Dict[NodeId, jnp.ndarray],
        initial: VectorValues,
    ) -> VectorValues:
        """Per-variable damped solve for trust-region optimizers. Not supported."""
        raise NotImplementedError(
            "SubgraphSolver does not support per-variable damping"
        )
