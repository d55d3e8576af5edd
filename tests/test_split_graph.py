from __future__ import annotations

import pytest
import jax.numpy as jnp

from subgraph_jit.core.errors import StructuralError
from subgraph_jit.core.factor_graph import GaussianFactorGraph
from subgraph_jit.core.types import FactorId, JacobianFactor, NodeId
from subgraph_jit.optimization.subgraph_solver import SubgraphSolver, split_graph


def _unary(fid, nid):
    return JacobianFactor(
        id=FactorId(fid), type="prior", var_ids=(NodeId(nid),), A=(jnp.eye(1),), b=jnp.zeros(1)
    )


def _binary(fid, i, j, f_type="odom"):
    return JacobianFactor(
        id=FactorId(fid),
        type=f_type,
        var_ids=(NodeId(i), NodeId(j)),
        A=(-jnp.eye(1), jnp.eye(1)),
        b=jnp.zeros(1),
    )


def _graph(factors):
    fg = GaussianFactorGraph()
    for f in factors:
        fg.add_factor(f)
    return fg


def _ids(graph):
    return [f.id for f in graph]


def _is_forest(graph):
    """Edges == vertices - components for every component of the binary edges."""
    adjacency = {}
    edges = 0
    for f in graph:
        if f.arity != 2:
            continue
        a, b = f.var_ids
        adjacency.setdefault(a, set()).add(b)
        adjacency.setdefault(b, set()).add(a)
        edges += 1

    seen = set()
    components = 0
    for start in adjacency:
        if start in seen:
            continue
        components += 1
        stack = [start]
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            stack.extend(adjacency[node] - seen)
    return edges == len(adjacency) - components


def test_chain_with_loop_closure():
    """
    x1 - x2 - x3 odometry chain plus a loop closure (x1, x3):
    the loop closure is the only constraint.
    """
    fg = _graph([
        _binary(0, 1, 2),
        _binary(1, 2, 3),
        _binary(2, 1, 3, "loop_closure"),
    ])
    tree, constraints = split_graph(fg)

    assert _ids(tree) == [0, 1]
    assert _ids(constraints) == [2]


def test_partition_is_complete_and_tree_is_acyclic():
    # 3x3 grid of variables, edges listed row by row then column by column
    factors = [_unary(0, 0)]
    fid = 1
    for r in range(3):
        for c in range(2):
            factors.append(_binary(fid, 3 * r + c, 3 * r + c + 1))
            fid += 1
    for r in range(2):
        for c in range(3):
            factors.append(_binary(fid, 3 * r + c, 3 * (r + 1) + c))
            fid += 1
    fg = _graph(factors)

    tree, constraints = split_graph(fg)

    assert sorted(_ids(tree) + _ids(constraints)) == sorted(_ids(fg))
    assert not set(_ids(tree)) & set(_ids(constraints))
    assert _is_forest(tree)
    # Spanning tree over 9 nodes: 8 binary edges + the prior.
    assert len(tree) == 9
    assert len(constraints) == len(fg) - 9


def test_unary_factors_always_in_tree():
    fg = _graph([_unary(0, 0), _unary(1, 0), _binary(2, 0, 1), _unary(3, 1)])
    tree, constraints = split_graph(fg)

    assert _ids(tree) == [0, 1, 2, 3]
    assert len(constraints) == 0


def test_duplicate_edge_goes_to_constraints():
    fg = _graph([_binary(0, 0, 1), _binary(1, 1, 0), _binary(2, 0, 1)])
    tree, constraints = split_graph(fg)

    assert _ids(tree) == [0]
    assert _ids(constraints) == [1, 2]


def test_factor_order_decides_tree_membership():
    edges = [(0, 1), (1, 2), (0, 2)]
    fg_a = _graph([_binary(i, a, b) for i, (a, b) in enumerate(edges)])
    fg_b = _graph([_binary(i, a, b) for i, (a, b) in reversed(list(enumerate(edges)))])

    tree_a, cons_a = split_graph(fg_a)
    tree_b, cons_b = split_graph(fg_b)

    assert _ids(cons_a) == [2]
    assert _ids(cons_b) == [0]
    assert len(tree_a) == len(tree_b) == 2


def test_disconnected_components_each_get_a_tree():
    fg = _graph([
        _binary(0, 0, 1),
        _binary(1, 10, 11),
        _binary(2, 1, 2),
        _binary(3, 11, 12),
        _binary(4, 12, 10),
    ])
    tree, constraints = split_graph(fg)

    assert _ids(tree) == [0, 1, 2, 3]
    assert _ids(constraints) == [4]
    assert _is_forest(tree)


def test_ternary_factor_rejected():
    ternary = JacobianFactor(
        id=FactorId(5),
        type="ternary",
        var_ids=(NodeId(0), NodeId(1), NodeId(2)),
        A=(jnp.eye(1), jnp.eye(1), jnp.eye(1)),
        b=jnp.zeros(1),
    )
    fg = _graph([_binary(0, 0, 1), ternary])

    with pytest.raises(StructuralError):
        split_graph(fg)


def test_factor_without_keys_rejected():
    with pytest.raises(StructuralError):
        JacobianFactor(id=FactorId(9), type="const", var_ids=(), A=(), b=jnp.ones(1))


def test_split_rejects_keyless_factor_in_graph():
    """A keyless factor slipped past construction still fails the arity check."""
    keyless = object.__new__(JacobianFactor)
    object.__setattr__(keyless, "id", FactorId(9))
    object.__setattr__(keyless, "type", "const")
    object.__setattr__(keyless, "var_ids", ())
    object.__setattr__(keyless, "A", ())
    object.__setattr__(keyless, "b", jnp.ones(1))
    fg = _graph([_unary(0, 0), _binary(1, 0, 1), keyless])

    with pytest.raises(StructuralError):
        split_graph(fg)


def test_static_method_alias():
    fg = _graph([_binary(0, 0, 1), _binary(1, 0, 1)])
    tree, constraints = SubgraphSolver.split_graph(fg)

    assert _ids(tree) == [0]
    assert _ids(constraints) == [1]


def test_input_graph_untouched():
    fg = _graph([_unary(0, 0), _binary(1, 0, 1), _binary(2, 1, 0)])
    before = _ids(fg)
    split_graph(fg)

    assert _ids(fg) == before
