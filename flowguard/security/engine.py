# flowguard/security/engine.py

from typing import Iterable, List, Optional, Sequence

from flowguard.config import DEFAULT_CONFIG, AnalyzerConfig
from flowguard.model import Node, SecurityFinding
from flowguard.security.rules import RULES, Rule
from flowguard.utils.logger import get_logger

log = get_logger("security")


def _finding(rule: Rule, node: Node, ctx: dict) -> SecurityFinding:
    return SecurityFinding(
        severity=ctx.get("severity", rule.severity),
        category=rule.category,
        message=rule.render_message(ctx),
        description=rule.description,
        remediation=list(rule.remediation),
        node_id=node.id,
        node_name=node.display_name,
        rule_id=rule.rule_id,
        guideline=rule.guideline,
    )


def evaluate_node(
    node: Node,
    config: Optional[AnalyzerConfig] = None,
    rules: Sequence[Rule] = RULES,
) -> List[SecurityFinding]:
    """
    Run every rule of the catalog against one node, in catalog order.

    Annotation nodes (sticky notes) are skipped entirely. A rule that fails on
    an unexpected parameter shape is logged and counted as not matched; the
    remaining rules still run.
    """
    cfg = config or DEFAULT_CONFIG
    if node.is_annotation:
        return []

    findings: List[SecurityFinding] = []
    for rule in rules:
        try:
            produced = [_finding(rule, node, ctx) for ctx in rule.matches(node, cfg)]
        except Exception as e:
            log.warning("rule %s failed on node '%s': %s", rule.rule_id, node.display_name, e)
            continue
        findings.extend(produced)
    return findings


def evaluate_nodes(
    nodes: Iterable[Node],
    config: Optional[AnalyzerConfig] = None,
    rules: Sequence[Rule] = RULES,
) -> List[SecurityFinding]:
    """Findings for all nodes, grouped by node in document order."""
    findings: List[SecurityFinding] = []
    for node in nodes:
        findings.extend(evaluate_node(node, config, rules))
    log.debug("security: %d findings", len(findings))
    return findings
