#!/usr/bin/env python3
# flowguard/cli.py

from pathlib import Path
from typing import Optional

import typer

from flowguard.analyzer import analyze_file, analyze_path, count_secure_nodes
from flowguard.config import AnalyzerConfig
from flowguard.model import SEVERITIES, SEVERITY_RANK, WorkflowDocument, max_severity
from flowguard.security.rules import RULES
from flowguard.structural.metrics import count_connections_by_category
from flowguard.utils.graph import build_graph, graph_to_dict
from flowguard.utils.io import ensure_parent, write_json
from flowguard.utils.logger import init_logger, level_from_name, source_logger

app = typer.Typer(help="flowguard CLI - Validate n8n workflow exports and flag security risks")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", envvar="LOG_LEVEL", help="DEBUG | INFO | WARNING | ERROR"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", envvar="FLOWGUARD_LOG_DIR", help="Also write a rotating log file here"),
):
    level = level_from_name(log_level)
    if level is None:
        raise typer.BadParameter(f"Unknown log level '{log_level}'", param_hint="--log-level")
    init_logger(level=level, log_dir=log_dir)


def _config(max_depth: Optional[int]) -> AnalyzerConfig:
    cfg = AnalyzerConfig.from_env()
    if max_depth is None:
        return cfg
    if max_depth < 1:
        raise typer.BadParameter("--max-depth must be >= 1")
    return AnalyzerConfig(max_scan_depth=max_depth, max_input_bytes=cfg.max_input_bytes)


def _check_fail_on(fail_on: Optional[str]) -> Optional[str]:
    if fail_on is None:
        return None
    fail_on = fail_on.lower()
    if fail_on not in SEVERITIES:
        raise typer.BadParameter(f"Invalid severity '{fail_on}'. Choose one of: {', '.join(SEVERITIES)}")
    return fail_on


@app.command()
def analyze(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Path to n8n workflow JSON"),
    report: Optional[Path] = typer.Option(None, "--report", help="Write a JSON report to this path"),
    graph: Optional[Path] = typer.Option(None, "--graph", help="Write the node-link graph JSON to this path"),
    fail_on: Optional[str] = typer.Option(None, "--fail-on", help="Exit 1 when a finding at or above this severity exists: high | medium | low"),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", help="Nesting depth scanned for sensitive strings"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show descriptions and remediation"),
):
    """
    Analyze one workflow export: structure, connection count and security findings.
    Exits 1 when the document is invalid or when --fail-on is reached.
    """
    fail_on = _check_fail_on(fail_on)
    cfg = _config(max_depth)
    result, doc_data = analyze_path(input, cfg)

    if result.summary:
        s = result.summary
        print(f"Workflow:    {s.name}" + (f" (v{s.version})" if s.version is not None else ""))
        print(f"Nodes:       {s.node_count}")
        print(f"Connections: {s.connection_count}")
    print(f"Valid:       {result.is_valid}")

    for msg in result.errors:
        print(f"[ERROR] {msg}")
    for msg in result.warnings:
        print(f"[WARN]  {msg}")
    for msg in result.info:
        print(f"[INFO]  {msg}")

    counts = result.severity_counts
    if result.findings:
        print(f"Security findings: {len(result.findings)} "
              f"(high={counts['high']}, medium={counts['medium']}, low={counts['low']})")
        for node_name, items in result.findings_by_node.items():
            print(f"- {node_name} [{max_severity(items)}]")
            for f in items:
                print(f"    [{f.severity.upper()}] {f.title}: {f.message}")
                if verbose:
                    print(f"        {f.description}")
                    for step in f.remediation:
                        print(f"        • {step}")

    doc = WorkflowDocument.from_dict(doc_data) if doc_data is not None else None
    if doc is not None and verbose:
        print(f"[debug] secure nodes: {count_secure_nodes(doc, result.findings)}")
        print(f"[debug] connections by category: {count_connections_by_category(doc_data.get('connections'))}")

    if report is not None:
        payload = {"input": str(input), **result.to_dict()}
        if doc is not None:
            payload["secure_nodes"] = count_secure_nodes(doc, result.findings)
        write_json(report, payload)
        print(f"[ok] wrote report to {report}")

    if graph is not None:
        if doc is None:
            source_logger("cli", input).warning("no graph written: not a workflow")
        else:
            write_json(graph, graph_to_dict(build_graph(doc, result.findings)))
            print(f"[ok] wrote graph to {graph}")

    failed = not result.is_valid
    if fail_on is not None:
        worst = max_severity(result.findings)
        failed = failed or SEVERITY_RANK[worst] >= SEVERITY_RANK[fail_on]
    if failed:
        raise typer.Exit(code=1)


@app.command()
def scan(
    glob: str = typer.Option("workflows/**/*.json", "--glob", help="Glob for workflow JSON files"),
    out: Path = typer.Option(Path("results/scan.csv"), "--out", help="CSV path to write results"),
    dump_details: bool = typer.Option(False, "--dump-details", help="Dump a JSON report next to each workflow"),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", help="Nesting depth scanned for sensitive strings"),
):
    """
    Batch analyze workflows and export a CSV summary.
    """
    import glob as _glob
    import pandas as pd

    cfg = _config(max_depth)
    rows = []
    for fp_str in sorted(_glob.glob(glob, recursive=True)):
        fp = Path(fp_str)
        if fp.name.endswith(".flowguard.json"):
            # our own dumps from a previous run
            continue
        result = analyze_file(fp, cfg)
        if not result.looks_like_workflow:
            print(f"[skip] {fp}: {'; '.join(result.errors)}")
            continue

        counts = result.severity_counts
        s = result.summary
        rows.append({
            "file": str(fp),
            "name": s.name,
            "valid": result.is_valid,
            "nodes": s.node_count,
            "connections": s.connection_count,
            "errors": len(result.errors),
            "warnings": len(result.warnings),
            "findings": len(result.findings),
            "high": counts["high"],
            "medium": counts["medium"],
            "low": counts["low"],
            "worst": max_severity(result.findings),
        })

        if dump_details:
            write_json(fp.with_name(fp.stem + ".flowguard.json"), result.to_dict())

    columns = ["file", "name", "valid", "nodes", "connections", "errors", "warnings",
               "findings", "high", "medium", "low", "worst"]
    ensure_parent(out)
    pd.DataFrame(rows, columns=columns).to_csv(out, index=False)
    print(f"[ok] wrote {out} ({len(rows)} workflows)")


@app.command()
def rules():
    """
    List the security rule catalog.
    """
    for rule in RULES:
        label = f"{rule.guideline}: {rule.category}" if rule.guideline else rule.category
        print(f"{rule.rule_id:<7} {rule.severity:<7} {label}")


if __name__ == "__main__":
    app()
