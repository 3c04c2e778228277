import json

import pytest

from flowguard.analyzer import (
    analyze,
    analyze_file,
    analyze_path,
    count_secure_nodes,
    findings_for_node,
    group_findings_by_node,
    node_severity,
)
from flowguard.config import AnalyzerConfig
from flowguard.model import SecurityFinding, WorkflowDocument, max_severity, severity_counts

HTTP_DEMO = (
    '{"name":"Demo","nodes":[{"id":"1","type":"n8n-nodes-base.httpRequest",'
    '"parameters":{"url":"http://example.com"}}],"connections":{}}'
)


def _finding(severity, node_id="n1", node_name="Node"):
    return SecurityFinding(severity=severity, category="C", message="m", description="d",
                           remediation=["r"], node_id=node_id, node_name=node_name)


# ---------- terminal failures ----------

@pytest.mark.parametrize("raw", ["", "   \n"])
def test_empty_input(raw):
    report = analyze(raw)
    assert report.errors == ["Please provide JSON input"]
    assert not report.is_valid
    assert report.findings == [] and report.warnings == []
    assert report.summary is None


@pytest.mark.parametrize("raw", ["{", "not json", '{"nodes": [}', "[1,]"])
def test_invalid_json_is_a_single_error(raw):
    report = analyze(raw)
    assert len(report.errors) == 1
    assert report.errors[0].startswith("Invalid JSON format: ")
    assert report.findings == [] and report.warnings == [] and report.info == []
    assert not report.looks_like_workflow


@pytest.mark.parametrize("raw", ['{"foo": 1}', "[]", "null", '"text"', '{"meta": {"version": 2}}'])
def test_non_workflow_document(raw):
    report = analyze(raw)
    assert report.errors == ["This doesn't appear to be an n8n workflow file"]
    assert not report.looks_like_workflow
    assert report.summary is None
    assert report.findings == []


# ---------- scenarios ----------

def test_http_scenario():
    report = analyze(HTTP_DEMO)
    assert report.is_valid
    assert report.looks_like_workflow
    assert report.summary.name == "Demo"
    assert report.summary.node_count == 1
    assert report.summary.connection_count == 0
    assert len(report.findings) == 1
    f = report.findings[0]
    assert (f.category, f.severity, f.node_id) == ("External HTTP Request", "high", "1")
    # missing typeVersion only warns
    assert report.warnings == ["Node '1' is missing 'typeVersion' field"]
    assert report.info == ["Workflow contains 1 nodes and 0 connections"]


def test_missing_id_scenario():
    report = analyze('{"nodes":[{"type":"x"}],"connections":{}}')
    assert report.errors == ["Node at index 0 is missing required 'id' field"]
    assert not report.is_valid
    assert report.summary.name == "Unnamed Workflow"


def test_rules_run_on_structurally_invalid_document():
    raw = json.dumps({"nodes": [{"name": "DB", "type": "n8n-nodes-base.postgres"}]})
    report = analyze(raw)
    assert "Missing or invalid 'connections' object" in report.errors
    assert [f.category for f in report.findings] == ["Database Security Risk"]
    assert report.findings[0].node_name == "DB"


def test_name_only_document_has_empty_summary():
    report = analyze('{"name": "Draft"}')
    assert report.looks_like_workflow
    assert not report.is_valid
    assert report.summary.node_count == 0
    assert report.summary.connection_count == 0
    assert report.findings == []


def test_summary_excludes_sticky_notes_and_reads_meta():
    raw = json.dumps({
        "name": "W",
        "meta": {"instanceId": "inst-1", "version": "1.2"},
        "nodes": [
            {"id": "1", "type": "n8n-nodes-base.stickyNote", "typeVersion": 1, "parameters": {"content": "secret"}},
            {"id": "2", "type": "n8n-nodes-base.set", "typeVersion": 3},
            {"id": "3", "type": "n8n-nodes-base.StickyNote", "typeVersion": 1},
        ],
        "connections": {"2": {"main": [[{"node": "1"}]]}},
    })
    report = analyze(raw)
    assert report.summary.node_count == 1
    assert report.summary.connection_count == 1
    assert report.summary.version == "1.2"
    assert report.info[0] == "Workflow from instance: inst-1"
    assert report.findings == []


def test_findings_reference_existing_nodes():
    raw = json.dumps({
        "nodes": [
            {"id": "a", "name": "Hook", "type": "n8n-nodes-base.webhook", "typeVersion": 2},
            {"id": "b", "name": "Code", "type": "n8n-nodes-base.code", "typeVersion": 2,
             "parameters": {"jsCode": "const password = 1"}},
        ],
        "connections": {"Hook": {"main": [[{"node": "Code", "type": "main", "index": 0}]]}},
    })
    report = analyze(raw)
    ids = {"a", "b"}
    assert report.findings
    assert all(f.node_id in ids for f in report.findings)


def test_analyze_is_idempotent():
    raw = (
        '{"nodes":[{"id":"1","name":"Agent","type":"@n8n/n8n-nodes-langchain.agent",'
        '"parameters":{"tools":[1,2,3,4,5,6],"text":"api_key"}}],"connections":{}}'
    )
    first, second = analyze(raw), analyze(raw)
    assert first.to_dict() == second.to_dict()


def test_deeply_nested_parameters_are_analyzed_to_completion():
    raw = (
        '{"nodes":[{"id":"1","type":"x.y","typeVersion":1,"parameters":'
        '{"deep":' + "[" * 3000 + "]" * 3000 + ',"k":"password"}}],"connections":{}}'
    )
    report = analyze(raw)
    assert report.is_valid, report.errors
    assert [f.category for f in report.findings] == ["Sensitive Information Disclosure"]


def test_nesting_past_decoder_limit_is_reported_without_a_syntax_error():
    report = analyze('{"nodes": ' + "[" * 100000 + "]" * 100000 + "}")
    assert len(report.errors) == 1
    assert "nested too deeply" in report.errors[0]
    assert not report.errors[0].startswith("Invalid JSON format")


def test_huge_integer_literal_does_not_break_analysis():
    raw = (
        '{"nodes":[{"id":"1","type":"x.y","typeVersion":1,"parameters":{"n":'
        + "1" * 5000 + '}}],"connections":{}}'
    )
    report = analyze(raw)
    assert report.looks_like_workflow
    assert report.is_valid
    assert report.findings == []


def test_report_to_dict_shape():
    d = analyze(HTTP_DEMO).to_dict()
    assert d["is_valid"] is True
    assert d["summary"] == {"name": "Demo", "nodes": 1, "connections": 0, "version": None}
    assert d["severity_counts"] == {"high": 1, "medium": 0, "low": 0}
    assert d["findings"][0]["category"] == "External HTTP Request"
    assert isinstance(d["findings"][0]["remediation"], list)
    json.dumps(d)


# ---------- files ----------

def test_analyze_file(tmp_path):
    fp = tmp_path / "wf.json"
    fp.write_text(HTTP_DEMO, encoding="utf-8")
    assert analyze_file(fp).is_valid


def test_analyze_file_rejects_non_json_name(tmp_path):
    fp = tmp_path / "wf.txt"
    fp.write_text(HTTP_DEMO, encoding="utf-8")
    assert analyze_file(fp).errors == ["Please upload a JSON file"]


def test_analyze_path_hands_back_the_parsed_document(tmp_path):
    fp = tmp_path / "wf.json"
    fp.write_text(HTTP_DEMO, encoding="utf-8")
    report, data = analyze_path(fp)
    assert report.is_valid
    assert data["name"] == "Demo"
    assert data == json.loads(HTTP_DEMO)


@pytest.mark.parametrize("name, content", [("wf.json", '{"foo": 1}'), ("wf.json", "{"), ("wf.txt", HTTP_DEMO)])
def test_analyze_path_has_no_document_for_non_workflows(tmp_path, name, content):
    fp = tmp_path / name
    fp.write_text(content, encoding="utf-8")
    report, data = analyze_path(fp)
    assert data is None
    assert not report.looks_like_workflow


def test_analyze_file_missing(tmp_path):
    assert analyze_file(tmp_path / "missing.json").errors == ["Failed to read file"]


def test_analyze_file_above_size_guideline_still_runs(tmp_path):
    fp = tmp_path / "wf.json"
    fp.write_text(HTTP_DEMO, encoding="utf-8")
    report = analyze_file(fp, AnalyzerConfig(max_input_bytes=10))
    assert report.is_valid


# ---------- projections ----------

def test_count_secure_nodes():
    doc = {
        "nodes": [
            {"id": "1", "type": "a.b"},
            {"id": "2", "type": "a.c"},
            {"id": "3", "type": "n8n-nodes-base.stickyNote"},
        ]
    }
    findings = [_finding("low", node_id="2")]
    assert count_secure_nodes(doc, findings) == 1
    assert count_secure_nodes(WorkflowDocument.from_dict(doc), []) == 2


def test_group_findings_by_node_defaults_unknown():
    findings = [_finding("high", node_name="A"), _finding("low", node_name=None), _finding("low", node_name="A")]
    grouped = group_findings_by_node(findings)
    assert list(grouped) == ["A", "Unknown Node"]
    assert len(grouped["A"]) == 2


@pytest.mark.parametrize(
    "severities, expected",
    [
        ([], "safe"),
        (["low"], "low"),
        (["low", "medium"], "medium"),
        (["medium", "high", "low"], "high"),
    ],
)
def test_severity_rollup(severities, expected):
    findings = [_finding(s) for s in severities]
    assert max_severity(findings) == expected
    assert node_severity(findings, "n1") == expected
    assert node_severity(findings, "other") == "safe"


def test_severity_counts_and_findings_for_node():
    findings = [_finding("high", node_id="a"), _finding("high", node_id="b"), _finding("low", node_id="a")]
    assert severity_counts(findings) == {"high": 2, "medium": 0, "low": 1}
    assert len(findings_for_node(findings, "a")) == 2
