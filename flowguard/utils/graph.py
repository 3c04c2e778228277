# utils/graph.py
from typing import Any, Dict, Iterable, Union

import networkx as nx

from flowguard.model import SecurityFinding, WorkflowDocument, is_set, max_severity


def build_graph(
    workflow: Union[WorkflowDocument, Dict[str, Any]],
    findings: Iterable[SecurityFinding] = (),
) -> nx.DiGraph:
    """
    Build the node/edge view a graph renderer consumes.

    Nodes are keyed by id and carry:
      name, type, annotation, security_level ("high" | "medium" | "low" | "safe"), issue_count
    Edges come from every connection category (main, ai_tool, ai_languageModel, ai_memory, ...)
    and carry `category`. Connections name their source by node *name*; a source that
    does not resolve to a node is skipped, a target that does not resolve is kept as-is.
    """
    doc = workflow if isinstance(workflow, WorkflowDocument) else WorkflowDocument.from_dict(workflow)
    findings = list(findings)

    G = nx.DiGraph()
    id_by_name: Dict[str, Any] = {}
    for n in doc.nodes:
        if not is_set(n.id) or isinstance(n.id, bool) or not isinstance(n.id, (str, int)):
            continue
        own = [f for f in findings if f.node_id == n.id]
        G.add_node(
            n.id,
            name=n.display_name,
            type=n.type,
            annotation=n.is_annotation,
            security_level=max_severity(own),
            issue_count=len(own),
        )
        if is_set(n.name):
            id_by_name[str(n.name)] = n.id

    for e in doc.edges():
        src_id = id_by_name.get(e.source)
        if src_id is None:
            continue
        tgt_id = id_by_name.get(e.target, e.target)
        if tgt_id not in G:
            G.add_node(tgt_id, name=str(tgt_id), type="", annotation=False,
                       security_level="safe", issue_count=0)
        G.add_edge(src_id, tgt_id, category=e.category)
    return G


def graph_to_dict(G: nx.DiGraph) -> Dict[str, Any]:
    """Node-link JSON for export alongside the report."""
    return nx.node_link_data(G, edges="links")
