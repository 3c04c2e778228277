# flowguard/analyzer.py
"""
Entry point of the analyzer: raw text in, ValidationReport out.

Pipeline: parse -> workflow-likeness -> structural checks + connection count
+ security rules per node -> report. Parse and shape failures are terminal
and produce a report with a single error; everything else accumulates.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from flowguard.config import AnalyzerConfig
from flowguard.errors import NestingDepthError, ParseError, ShapeError
from flowguard.model import (
    UNNAMED_WORKFLOW,
    SecurityFinding,
    ValidationReport,
    WorkflowDocument,
    WorkflowSummary,
    group_findings_by_node,
    is_set,
    max_severity,
    node_severity,
    severity_counts,
)
from flowguard.parser import looks_like_workflow, parse_document
from flowguard.security.engine import evaluate_nodes
from flowguard.structural.checker import check_structure
from flowguard.structural.metrics import count_connections
from flowguard.utils.io import is_json_source, to_path
from flowguard.utils.logger import get_logger, source_logger

log = get_logger("analyzer")

__all__ = [
    "analyze",
    "analyze_file",
    "analyze_path",
    "count_secure_nodes",
    "findings_for_node",
    "group_findings_by_node",
    "max_severity",
    "node_severity",
    "severity_counts",
]


def _failed(message: str) -> ValidationReport:
    return ValidationReport(looks_like_workflow=False, errors=[message])


def analyze(raw_text: Union[str, bytes], config: Optional[AnalyzerConfig] = None) -> ValidationReport:
    """
    Analyze one exported workflow.

    Never raises for bad input: empty text, invalid JSON and non-workflow
    documents are reported as a single error.
    """
    return _analyze_text(raw_text, config or AnalyzerConfig.from_env())[0]


def _analyze_text(
    raw_text: Union[str, bytes], cfg: AnalyzerConfig
) -> Tuple[ValidationReport, Optional[Dict[str, Any]]]:
    try:
        data = parse_document(raw_text)
    except (ParseError, NestingDepthError) as e:
        log.debug("parse failed: %s", e)
        return _failed(e.report_message()), None

    if not looks_like_workflow(data):
        return _failed(ShapeError().report_message()), None

    structure = check_structure(data)
    document = WorkflowDocument.from_dict(data)

    # rules run even when the structure is broken, as long as there are nodes to visit
    findings = evaluate_nodes(document.nodes, cfg)

    summary = WorkflowSummary(
        name=str(document.name) if is_set(document.name) else UNNAMED_WORKFLOW,
        node_count=len(document.executable_nodes),
        connection_count=count_connections(data.get("connections")),
        version=document.meta.get("version"),
    )

    info = list(structure.info)
    info.append(f"Workflow contains {summary.node_count} nodes and {summary.connection_count} connections")

    report = ValidationReport(
        looks_like_workflow=True,
        errors=list(structure.errors),
        warnings=list(structure.warnings),
        info=info,
        findings=findings,
        summary=summary,
    )
    log.debug(
        "analyzed '%s': valid=%s, %d findings", summary.name, report.is_valid, len(findings)
    )
    return report, data


def analyze_file(path: Union[str, Path], config: Optional[AnalyzerConfig] = None) -> ValidationReport:
    """Read a `.json` file and analyze it; read failures become report errors."""
    return analyze_path(path, config)[0]


def analyze_path(
    path: Union[str, Path], config: Optional[AnalyzerConfig] = None
) -> Tuple[ValidationReport, Optional[Dict[str, Any]]]:
    """
    Like `analyze_file`, but also hand back the parsed document so callers
    that project it (graph export, secure node count) do not read it twice.
    The document is None whenever the report is not for a workflow.
    """
    cfg = config or AnalyzerConfig.from_env()
    p = to_path(path)
    flog = source_logger("analyzer", p)
    if not is_json_source(p):
        return _failed("Please upload a JSON file"), None
    try:
        raw = p.read_bytes()
    except OSError as e:
        flog.error("failed to read: %s", e)
        return _failed("Failed to read file"), None
    if len(raw) > cfg.max_input_bytes:
        flog.warning("%d bytes, above the %d byte guideline; analyzing anyway", len(raw), cfg.max_input_bytes)
    return _analyze_text(raw, cfg)


def count_secure_nodes(
    document: Union[WorkflowDocument, Dict[str, Any]],
    findings: Iterable[SecurityFinding],
) -> int:
    """Number of non-annotation nodes that no finding points at."""
    if not isinstance(document, WorkflowDocument):
        document = WorkflowDocument.from_dict(document if isinstance(document, dict) else {})
    flagged = [f.node_id for f in findings if f.node_id is not None]
    return sum(1 for n in document.executable_nodes if n.id not in flagged)


def findings_for_node(findings: Iterable[SecurityFinding], node_id: Any) -> List[SecurityFinding]:
    return [f for f in findings if f.node_id == node_id]
