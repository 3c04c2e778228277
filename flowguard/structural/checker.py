# flowguard/structural/checker.py

from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from jsonschema import Draft7Validator

from .schema import NODE_RECOMMENDED_FIELDS, NODE_REQUIRED_FIELDS, NODE_SCHEMA, WORKFLOW_SHAPE_SCHEMA
from flowguard.model import is_set
from flowguard.utils.logger import get_logger

log = get_logger("structural")

_shape_validator = Draft7Validator(WORKFLOW_SHAPE_SCHEMA)
_node_validator = Draft7Validator(NODE_SCHEMA)


@dataclass
class StructureResult:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    info: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _failed_fields(validator: Draft7Validator, instance: Any, fields: tuple) -> Set[str]:
    """
    Run a schema and reduce its errors to the set of top-level fields that failed.
    A root-level type error (instance is not an object) fails every field.
    """
    failed: Set[str] = set()
    for err in validator.iter_errors(instance):
        if err.validator == "required":
            failed.update(f for f in err.validator_value if f not in err.instance)
        elif err.absolute_path:
            failed.add(str(err.absolute_path[0]))
        else:
            failed.update(fields)
    return failed


def _node_label(node: Any, index: int) -> str:
    """Display label used in messages: name, else id, else position."""
    if isinstance(node, dict):
        for key in ("name", "id"):
            if is_set(node.get(key)):
                return str(node[key])
    return str(index)


def check_nodes(nodes: List[Any]) -> StructureResult:
    """Per-node required fields; every node is checked even after failures."""
    result = StructureResult()
    for index, node in enumerate(nodes):
        failed = _failed_fields(_node_validator, node, NODE_REQUIRED_FIELDS + NODE_RECOMMENDED_FIELDS)
        label = _node_label(node, index)
        if "id" in failed:
            result.errors.append(f"Node at index {index} is missing required 'id' field")
        if "type" in failed:
            result.errors.append(f"Node '{label}' is missing required 'type' field")
        if "typeVersion" in failed:
            result.warnings.append(f"Node '{label}' is missing 'typeVersion' field")
    return result


def check_metadata(meta: Any) -> List[str]:
    info: List[str] = []
    if not isinstance(meta, dict):
        return info
    if is_set(meta.get("instanceId")):
        info.append(f"Workflow from instance: {meta['instanceId']}")
    if is_set(meta.get("templateCredsSetupCompleted")):
        info.append("Template credentials setup completed")
    return info


def check_structure(workflow: Dict[str, Any]) -> StructureResult:
    """
    Validate the structure of a workflow-like document.

    Returns a StructureResult with:
      - errors: missing/invalid containers, nodes without id/type
      - warnings: nodes without typeVersion
      - info: metadata notes (instance id, template credentials)
    """
    result = StructureResult()

    failed = _failed_fields(_shape_validator, workflow, ("nodes", "connections"))
    if "nodes" in failed:
        result.errors.append("Missing or invalid 'nodes' array")
    if "connections" in failed:
        result.errors.append("Missing or invalid 'connections' object")

    nodes = workflow.get("nodes") if isinstance(workflow, dict) else None
    if "nodes" not in failed and isinstance(nodes, list):
        per_node = check_nodes(nodes)
        result.errors.extend(per_node.errors)
        result.warnings.extend(per_node.warnings)

    if isinstance(workflow, dict):
        result.info.extend(check_metadata(workflow.get("meta")))

    log.debug("structure: %d errors, %d warnings", len(result.errors), len(result.warnings))
    return result
