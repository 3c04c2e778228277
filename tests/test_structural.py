import pytest

from flowguard.structural.checker import check_metadata, check_nodes, check_structure
from flowguard.structural.metrics import count_connections, count_connections_by_category


def _node(**kw):
    base = {"id": "1", "name": "Step", "type": "n8n-nodes-base.set", "typeVersion": 3}
    base.update(kw)
    return base


def test_valid_document_has_no_errors():
    res = check_structure({"nodes": [_node()], "connections": {}})
    assert res.ok
    assert res.errors == []
    assert res.warnings == []


def test_missing_nodes_and_connections_both_reported():
    res = check_structure({"name": "only a name"})
    assert res.errors == [
        "Missing or invalid 'nodes' array",
        "Missing or invalid 'connections' object",
    ]


@pytest.mark.parametrize("nodes", [None, {}, "abc", 3])
def test_invalid_nodes_skips_per_node_checks(nodes):
    res = check_structure({"nodes": nodes, "connections": {}})
    assert res.errors == ["Missing or invalid 'nodes' array"]
    assert res.warnings == []


@pytest.mark.parametrize("connections", [None, [], "x", 0])
def test_invalid_connections_is_independent_of_nodes(connections):
    res = check_structure({"nodes": [{"type": "x"}], "connections": connections})
    assert "Missing or invalid 'connections' object" in res.errors
    # per-node checks still ran
    assert "Node at index 0 is missing required 'id' field" in res.errors


def test_missing_id_references_index():
    res = check_nodes([_node(), {"name": "B", "type": "a.b", "typeVersion": 1}])
    assert res.errors == ["Node at index 1 is missing required 'id' field"]


@pytest.mark.parametrize("bad_id", ["", 0, 0.0, None, False])
def test_unset_id_counts_as_missing(bad_id):
    res = check_nodes([_node(id=bad_id)])
    assert res.errors == ["Node at index 0 is missing required 'id' field"]


@pytest.mark.parametrize("odd_id", [True, 7, -1, [], {"v": 1}, "x"])
def test_any_set_id_is_present(odd_id):
    assert check_nodes([_node(id=odd_id)]).errors == []


def test_missing_type_uses_name_then_id_then_index():
    res = check_nodes([
        {"id": "n1", "name": "Named", "typeVersion": 1},
        {"id": "n2", "typeVersion": 1},
        {"typeVersion": 1},
    ])
    assert res.errors == [
        "Node 'Named' is missing required 'type' field",
        "Node 'n2' is missing required 'type' field",
        "Node at index 2 is missing required 'id' field",
        "Node '2' is missing required 'type' field",
    ]


def test_missing_type_version_is_only_a_warning():
    res = check_nodes([{"id": "1", "name": "A", "type": "a.b"}])
    assert res.errors == []
    assert res.warnings == ["Node 'A' is missing 'typeVersion' field"]


def test_non_object_node_misses_everything():
    res = check_nodes(["oops"])
    assert res.errors == [
        "Node at index 0 is missing required 'id' field",
        "Node '0' is missing required 'type' field",
    ]
    assert res.warnings == ["Node '0' is missing 'typeVersion' field"]


def test_all_nodes_checked_after_failures():
    res = check_nodes([{}, {}, _node()])
    assert len(res.errors) == 4
    assert len(res.warnings) == 2


def test_metadata_info():
    assert check_metadata({"instanceId": "abc", "templateCredsSetupCompleted": True}) == [
        "Workflow from instance: abc",
        "Template credentials setup completed",
    ]
    assert check_metadata({"templateCredsSetupCompleted": False}) == []
    assert check_metadata(None) == []


# ---------- connection counter ----------

def test_count_connections_sums_innermost_lists():
    conns = {
        "A": {"main": [[{"node": "B"}, {"node": "C"}], [{"node": "D"}]]},
        "B": {"ai_tool": [[{"node": "Agent"}]], "main": [[]]},
    }
    assert count_connections(conns) == 4
    assert count_connections_by_category(conns) == {"main": 3, "ai_tool": 1}


@pytest.mark.parametrize("conns", [None, {}, [], "x"])
def test_count_connections_absent_or_wrong_type_is_zero(conns):
    assert count_connections(conns) == 0


def test_count_connections_skips_malformed_branches():
    conns = {
        "A": {"main": [[{"node": "B"}]]},
        "B": "not a mapping",
        "C": {"main": {"0": [{"node": "A"}]}},
        "D": {"main": [{"node": "A"}, None, [{"node": "E"}, {"node": "F"}]]},
    }
    assert count_connections(conns) == 3


def test_count_connections_counts_entries_regardless_of_content():
    # best-effort metric: list length, whatever the hop looks like
    assert count_connections({"A": {"main": [[1, "x", None]]}}) == 3
