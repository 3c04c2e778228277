# flowguard/model.py
"""
Data model shared by the parser, the validator, the rule engine and the
report writers.

Every object here is built fresh for one analysis run. Documents are read
leniently: wrong-shaped fields become empty values instead of errors, since
shape problems are the structural checker's job, not the model's.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional

SEVERITY_HIGH = "high"
SEVERITY_MEDIUM = "medium"
SEVERITY_LOW = "low"
SEVERITY_SAFE = "safe"

SEVERITIES = (SEVERITY_HIGH, SEVERITY_MEDIUM, SEVERITY_LOW)

# Total order used everywhere severities are rolled up (graph colors, grouping, CLI exit code)
SEVERITY_RANK = {SEVERITY_SAFE: 0, SEVERITY_LOW: 1, SEVERITY_MEDIUM: 2, SEVERITY_HIGH: 3}

ANNOTATION_MARKER = "stickynote"
UNKNOWN_NODE = "Unknown Node"
UNNAMED_WORKFLOW = "Unnamed Workflow"


def is_set(value: Any) -> bool:
    """
    True when a field counts as configured: present and not null/false/""/0.
    Empty containers count as set, like in the exporting tool.
    """
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0
    return True


def is_annotation_type(node_type: Any) -> bool:
    """Sticky notes are visual-only and never executed."""
    return isinstance(node_type, str) and ANNOTATION_MARKER in node_type.lower()


@dataclass
class Node:
    id: Optional[Any]
    type: str
    name: Optional[str] = None
    type_version: Optional[Any] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    credentials: Dict[str, Any] = field(default_factory=dict)
    position: Optional[Any] = None
    webhook_id: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Node":
        params = raw.get("parameters")
        creds = raw.get("credentials")
        node_type = raw.get("type")
        return cls(
            id=raw.get("id"),
            type=node_type if isinstance(node_type, str) else "",
            name=raw.get("name"),
            type_version=raw.get("typeVersion"),
            parameters=params if isinstance(params, dict) else {},
            credentials=creds if isinstance(creds, dict) else {},
            position=raw.get("position"),
            webhook_id=raw.get("webhookId"),
        )

    @property
    def display_name(self) -> str:
        label = self.name if is_set(self.name) else self.id
        return str(label) if is_set(label) else "Unknown"

    @property
    def is_annotation(self) -> bool:
        return is_annotation_type(self.type)

    def param(self, key: str) -> Any:
        return self.parameters.get(key)


@dataclass(frozen=True)
class ConnectionEdge:
    source: str
    category: str
    slot: int
    target: str
    index: int = 0


@dataclass
class WorkflowDocument:
    name: Optional[str]
    nodes: List[Node]
    connections: Dict[str, Any]
    meta: Dict[str, Any]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowDocument":
        raw_nodes = data.get("nodes")
        raw_conns = data.get("connections")
        raw_meta = data.get("meta")
        nodes = []
        if isinstance(raw_nodes, list):
            nodes = [Node.from_dict(n) for n in raw_nodes if isinstance(n, dict)]
        return cls(
            name=data.get("name"),
            nodes=nodes,
            connections=raw_conns if isinstance(raw_conns, dict) else {},
            meta=raw_meta if isinstance(raw_meta, dict) else {},
        )

    @property
    def executable_nodes(self) -> List[Node]:
        return [n for n in self.nodes if not n.is_annotation]

    def edges(self) -> Iterator[ConnectionEdge]:
        """
        Walk connections[source][category][slot] -> [ {"node": ..., "index": ...}, ... ].
        Hops that are not objects or carry no target are skipped.
        """
        for src_name, categories in self.connections.items():
            if not isinstance(categories, dict):
                continue
            for category, slots in categories.items():
                if not isinstance(slots, list):
                    continue
                for slot, hops in enumerate(slots):
                    if not isinstance(hops, list):
                        continue
                    for hop in hops:
                        if not isinstance(hop, dict) or not is_set(hop.get("node")):
                            continue
                        idx = hop.get("index")
                        yield ConnectionEdge(
                            source=str(src_name),
                            category=str(category),
                            slot=slot,
                            target=str(hop["node"]),
                            index=idx if isinstance(idx, int) else 0,
                        )


@dataclass
class SecurityFinding:
    severity: str
    category: str
    message: str
    description: str
    remediation: List[str]
    node_id: Optional[Any] = None
    node_name: Optional[str] = None
    rule_id: str = ""
    guideline: str = ""

    @property
    def title(self) -> str:
        return f"{self.guideline}: {self.category}" if self.guideline else self.category

    @property
    def remediation_text(self) -> str:
        return "\n".join(f"• {step}" for step in self.remediation)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity,
            "category": self.category,
            "guideline": self.guideline,
            "title": self.title,
            "message": self.message,
            "description": self.description,
            "remediation": list(self.remediation),
            "remediation_text": self.remediation_text,
            "node_id": self.node_id,
            "node_name": self.node_name,
        }


@dataclass
class WorkflowSummary:
    name: str
    node_count: int
    connection_count: int
    version: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "nodes": self.node_count,
            "connections": self.connection_count,
            "version": self.version,
        }


@dataclass
class ValidationReport:
    looks_like_workflow: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    info: List[str] = field(default_factory=list)
    findings: List[SecurityFinding] = field(default_factory=list)
    summary: Optional[WorkflowSummary] = None

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def severity_counts(self) -> Dict[str, int]:
        return severity_counts(self.findings)

    @property
    def findings_by_node(self) -> Dict[str, List[SecurityFinding]]:
        return group_findings_by_node(self.findings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "looks_like_workflow": self.looks_like_workflow,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "info": list(self.info),
            "findings": [f.to_dict() for f in self.findings],
            "severity_counts": self.severity_counts,
            "summary": self.summary.to_dict() if self.summary else None,
        }


# ---------- Projections over findings ----------

def severity_counts(findings: Iterable[SecurityFinding]) -> Dict[str, int]:
    counts = {sev: 0 for sev in SEVERITIES}
    for f in findings:
        if f.severity in counts:
            counts[f.severity] += 1
    return counts


def max_severity(findings: Iterable[SecurityFinding]) -> str:
    """Worst severity among findings; "safe" when there are none."""
    worst = SEVERITY_SAFE
    for f in findings:
        if SEVERITY_RANK.get(f.severity, 0) > SEVERITY_RANK[worst]:
            worst = f.severity
    return worst


def node_severity(findings: Iterable[SecurityFinding], node_id: Any) -> str:
    return max_severity(f for f in findings if f.node_id == node_id)


def group_findings_by_node(findings: Iterable[SecurityFinding]) -> Dict[str, List[SecurityFinding]]:
    grouped: Dict[str, List[SecurityFinding]] = {}
    for f in findings:
        key = f.node_name if is_set(f.node_name) else UNKNOWN_NODE
        grouped.setdefault(key, []).append(f)
    return grouped
