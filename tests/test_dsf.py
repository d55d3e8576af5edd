from __future__ import annotations

from subgraph_jit.core.dsf import DisjointSetForest


def test_find_creates_singletons():
    dsf = DisjointSetForest()

    assert dsf.find(3) == 3
    assert dsf.find("a") == "a"
    assert len(dsf) == 2
    assert 3 in dsf
    assert 4 not in dsf


def test_merge_joins_sets_transitively():
    """
    Merging (0,1) then (2,3) then (1,2) puts all four keys in one set,
    while 4 stays on its own.
    """
    dsf = DisjointSetForest()
    dsf.merge(0, 1)
    dsf.merge(2, 3)
    assert not dsf.same_set(0, 3)

    dsf.merge(1, 2)
    dsf.find(4)

    root = dsf.find(0)
    assert all(dsf.find(k) == root for k in (1, 2, 3))
    assert dsf.find(4) != root

    sets = sorted(sorted(members) for members in dsf.sets().values())
    assert sets == [[0, 1, 2, 3], [4]]


def test_merge_same_set_is_noop():
    dsf = DisjointSetForest()
    r1 = dsf.merge(0, 1)
    r2 = dsf.merge(1, 0)

    assert r1 == r2
    assert len(dsf.sets()) == 1


def test_long_chain_compresses_paths():
    dsf = DisjointSetForest()
    for i in range(100):
        dsf.merge(i, i + 1)

    root = dsf.find(100)
    assert dsf.find(0) == root
    # After find, every visited node points straight at the root.
    assert dsf._parent[0] == root
