# flowguard/security/rules.py
"""
The fixed security rule catalog.

Each Rule is one row of a table: metadata (id, category, guideline,
severity, texts) plus a trigger function. A trigger looks at a single node
and returns a list of match contexts; an empty list means the rule does not
apply. A context is a dict of values for the message template and may carry
a "severity" key that overrides the rule default (used by the HTTP rule).

Covers the OWASP Top 10 for LLM applications (LLM-01..LLM-10 except LLM-05),
two agentic-AI checks and a set of traditional integration checks.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from flowguard.config import AnalyzerConfig
from flowguard.model import SEVERITY_HIGH, SEVERITY_LOW, SEVERITY_MEDIUM, Node, is_set
from flowguard.security.patterns import iter_strings, match_sensitive

MatchContext = Dict[str, Any]
Trigger = Callable[[Node, AnalyzerConfig], List[MatchContext]]

# Canonical identifiers compared by equality; substring tests would also hit
# unrelated tags such as "database.code".
CODE_EXECUTION_TYPES = (
    "n8n-nodes-base.code",
    "n8n-nodes-base.function",
    "n8n-nodes-base.functionItem",
)
HTTP_REQUEST_TYPE = "n8n-nodes-base.httpRequest"

MAX_AGENT_TOOLS = 5


@dataclass(frozen=True)
class Rule:
    rule_id: str
    category: str
    severity: str
    message: str
    description: str
    remediation: Tuple[str, ...]
    trigger: Trigger
    guideline: str = ""

    def matches(self, node: Node, config: AnalyzerConfig) -> List[MatchContext]:
        return self.trigger(node, config)

    def render_message(self, ctx: MatchContext) -> str:
        return self.message.format(**ctx)


# ---------- trigger helpers ----------

def _type_has(node: Node, *needles: str) -> bool:
    t = node.type.lower()
    return any(n.lower() in t for n in needles)


def _once(condition: bool) -> List[MatchContext]:
    return [{}] if condition else []


def _any_param(node: Node, *keys: str) -> bool:
    return any(is_set(node.param(k)) for k in keys)


LLM_PROMPT_TYPES = ("lmChat", "openai", "gemini", "anthropic")
LLM_OUTPUT_TYPES = ("lmChat", "openai", "gemini")
LLM_LIMIT_TYPES = ("lmChat", "openai")


# ---------- triggers ----------

def _prompt_injection(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    if not _type_has(node, *LLM_PROMPT_TYPES):
        return []
    prompt = node.param("prompt") if is_set(node.param("prompt")) else node.param("message")
    return _once(isinstance(prompt, str) and "{{" in prompt)


def _insecure_output(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    return _once(_type_has(node, *LLM_OUTPUT_TYPES))


def _training_data(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    return _once(_any_param(node, "trainingData", "dataset"))


def _model_dos(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    return _once(_type_has(node, *LLM_LIMIT_TYPES) and not _any_param(node, "maxTokens", "timeout"))


def _sensitive_data(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    matches: List[MatchContext] = []
    for text in iter_strings(node.parameters, config.max_scan_depth):
        matches.extend({"kind": label} for label in match_sensitive(text))
    return matches


def _plugin_design(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    return _once(_type_has(node, "tool", "agent"))


def _excessive_agency(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    tools = node.param("tools")
    if not (_type_has(node, "agent") or isinstance(tools, list)):
        return []
    tool_count = len(tools) if isinstance(tools, list) else 0
    if tool_count > MAX_AGENT_TOOLS:
        return [{"tool_count": tool_count}]
    return []


def _overreliance(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    return _once(_type_has(node, "lmChat") and not _any_param(node, "fallback", "validation"))


def _model_theft(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    return _once(_any_param(node, "modelPath", "modelUrl"))


def _insecure_planning(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    return _once(_type_has(node, "agent", "planning"))


def _memory_poisoning(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    return _once(_type_has(node, "memory", "buffer"))


def _credential_reference(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    return [
        {"credential_type": cred_type}
        for cred_type, ref in node.credentials.items()
        if isinstance(ref, dict) and is_set(ref.get("id"))
    ]


def _code_execution(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    return _once(node.type in CODE_EXECUTION_TYPES)


def _external_http(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    if node.type != HTTP_REQUEST_TYPE:
        return []
    url = node.param("url")
    if not isinstance(url, str) or not ("http://" in url or "https://" in url):
        return []
    if "http://" in url:
        return [{
            "url": url,
            "severity": SEVERITY_HIGH,
            "detail": "Unencrypted HTTP connections expose data in transit.",
        }]
    return [{
        "url": url,
        "severity": SEVERITY_MEDIUM,
        "detail": "External requests may leak sensitive data.",
    }]


def _webhook_exposure(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    if not _type_has(node, "trigger", "webhook", "form"):
        return []
    return _once(is_set(node.webhook_id) or _type_has(node, "webhook"))


def _social_media(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    return _once(_type_has(node, "linkedIn", "twitter", "facebook"))


def _database(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    return _once(_type_has(node, "postgres", "mysql", "database"))


def _file_system(node: Node, config: AnalyzerConfig) -> List[MatchContext]:
    return _once(_type_has(node, "file", "fs"))


# ---------- catalog ----------

RULES: Tuple[Rule, ...] = (
    Rule(
        rule_id="LLM01",
        guideline="LLM-01",
        category="Prompt Injection",
        severity=SEVERITY_HIGH,
        trigger=_prompt_injection,
        message="Dynamic prompt construction detected. User input directly inserted into prompts "
                "can lead to prompt injection attacks.",
        description="Prompt injection occurs when untrusted input is used to construct prompts, potentially "
                    "allowing attackers to manipulate AI model behavior, extract sensitive information, "
                    "or bypass safety measures.",
        remediation=(
            "Validate and sanitize all user inputs before including in prompts",
            "Use parameterized prompts with clear boundaries",
            "Implement input filtering for malicious patterns",
            "Consider using prompt templates with restricted variable substitution",
            "Monitor AI responses for unexpected behavior",
        ),
    ),
    Rule(
        rule_id="LLM02",
        guideline="LLM-02",
        category="Insecure Output Handling",
        severity=SEVERITY_MEDIUM,
        trigger=_insecure_output,
        message="AI model output used without validation. Unvalidated LLM outputs can contain malicious "
                "content or be used in downstream attacks.",
        description="LLM outputs may contain malicious code, scripts, or instructions that could be executed "
                    "by downstream systems or displayed to users without proper sanitization.",
        remediation=(
            "Validate and sanitize all LLM outputs before use",
            "Implement output filtering for code, scripts, and malicious patterns",
            "Use content security policies when displaying outputs",
            "Log and monitor LLM outputs for anomalies",
            "Implement rate limiting for LLM interactions",
        ),
    ),
    Rule(
        rule_id="LLM03",
        guideline="LLM-03",
        category="Training Data Poisoning",
        severity=SEVERITY_HIGH,
        trigger=_training_data,
        message="Training data source detected. Untrusted training data can compromise model integrity "
                "and introduce backdoors.",
        description="Training data poisoning involves injecting malicious or biased data into training "
                    "datasets, potentially causing the model to produce harmful outputs or exhibit "
                    "unintended behaviors.",
        remediation=(
            "Verify the integrity and source of all training data",
            "Implement data validation and anomaly detection",
            "Use trusted, curated datasets when possible",
            "Monitor model performance for unexpected behaviors",
            "Implement data provenance tracking",
        ),
    ),
    Rule(
        rule_id="LLM04",
        guideline="LLM-04",
        category="Model Denial of Service",
        severity=SEVERITY_MEDIUM,
        trigger=_model_dos,
        message="No resource limits configured for LLM requests. This can lead to resource exhaustion "
                "and service disruption.",
        description="Without proper resource limits, attackers can craft inputs that cause excessive "
                    "resource consumption, leading to denial of service for legitimate users.",
        remediation=(
            "Set maximum token limits for requests and responses",
            "Implement request timeouts",
            "Use rate limiting per user/IP",
            "Monitor resource usage and set alerts",
            "Implement circuit breakers for LLM services",
        ),
    ),
    Rule(
        rule_id="LLM06",
        guideline="LLM-06",
        category="Sensitive Information Disclosure",
        severity=SEVERITY_HIGH,
        trigger=_sensitive_data,
        message="Potential {kind} detected in node parameters. Sensitive data in prompts can be logged "
                "or exposed.",
        description="LLM interactions may inadvertently expose sensitive information through logs, model "
                    "training, or response caching. This can lead to data breaches and privacy violations.",
        remediation=(
            "Remove all sensitive data from prompts and parameters",
            "Use secure credential management systems",
            "Implement data masking for sensitive fields",
            "Review and sanitize all LLM inputs",
            "Use environment variables for secrets",
        ),
    ),
    Rule(
        rule_id="LLM07",
        guideline="LLM-07",
        category="Insecure Plugin Design",
        severity=SEVERITY_MEDIUM,
        trigger=_plugin_design,
        message="LLM tool/plugin usage detected. Insecure plugins can provide unauthorized access to "
                "sensitive functions.",
        description="LLM plugins and tools may lack proper input validation, authorization controls, or may "
                    "expose sensitive functions that can be exploited by malicious prompts.",
        remediation=(
            "Implement strict input validation for all plugin parameters",
            "Use principle of least privilege for plugin permissions",
            "Audit plugin code for security vulnerabilities",
            "Implement proper authentication and authorization",
            "Monitor plugin usage and outputs",
        ),
    ),
    Rule(
        rule_id="LLM08",
        guideline="LLM-08",
        category="Excessive Agency",
        severity=SEVERITY_HIGH,
        trigger=_excessive_agency,
        message="Agent configured with {tool_count} tools. Excessive permissions can lead to unintended "
                "actions and security breaches.",
        description="LLM agents with too many tools or excessive permissions can perform unintended actions, "
                    "potentially causing data loss, unauthorized access, or system compromise.",
        remediation=(
            "Limit agent tools to only what's necessary",
            "Implement approval workflows for sensitive actions",
            "Use role-based access control",
            "Monitor and log all agent actions",
            "Implement safeguards and confirmation steps",
        ),
    ),
    Rule(
        rule_id="LLM09",
        guideline="LLM-09",
        category="Overreliance",
        severity=SEVERITY_MEDIUM,
        trigger=_overreliance,
        message="No fallback or validation mechanisms detected. Overreliance on LLM outputs without "
                "verification can lead to critical failures.",
        description="Systems that rely entirely on LLM outputs without human oversight or validation "
                    "mechanisms are vulnerable to model failures, hallucinations, and malicious manipulation.",
        remediation=(
            "Implement human-in-the-loop validation for critical decisions",
            "Add fallback mechanisms for LLM failures",
            "Use multiple models for cross-validation",
            "Implement confidence scoring and thresholds",
            "Regular model performance monitoring",
        ),
    ),
    Rule(
        rule_id="LLM10",
        guideline="LLM-10",
        category="Model Theft",
        severity=SEVERITY_MEDIUM,
        trigger=_model_theft,
        message="Custom model path/URL detected. Exposed model endpoints can lead to intellectual "
                "property theft.",
        description="Unauthorized access to proprietary models can result in intellectual property theft, "
                    "competitive disadvantage, and potential misuse of the model.",
        remediation=(
            "Secure model endpoints with proper authentication",
            "Use API rate limiting and monitoring",
            "Implement model access logging",
            "Consider model encryption at rest",
            "Use secure model serving infrastructure",
        ),
    ),
    Rule(
        rule_id="AGT01",
        guideline="Agentic AI",
        category="Insecure Planning",
        severity=SEVERITY_MEDIUM,
        trigger=_insecure_planning,
        message="AI agent planning capabilities detected. Insecure planning can lead to unintended or "
                "malicious action sequences.",
        description="AI agents with planning capabilities may generate action sequences that bypass security "
                    "controls, access unauthorized resources, or perform unintended operations.",
        remediation=(
            "Implement plan validation and approval workflows",
            "Use constrained planning with predefined action sets",
            "Monitor and log all planned actions",
            "Implement plan simulation and testing",
            "Use human oversight for critical plans",
        ),
    ),
    Rule(
        rule_id="AGT02",
        guideline="Agentic AI",
        category="Memory Poisoning",
        severity=SEVERITY_MEDIUM,
        trigger=_memory_poisoning,
        message="AI memory/buffer system detected. Compromised memory can persist malicious information "
                "across sessions.",
        description="AI memory systems can be poisoned with malicious information that persists across "
                    "interactions, potentially influencing future decisions and responses.",
        remediation=(
            "Implement memory validation and sanitization",
            "Use memory isolation between users/sessions",
            "Regular memory cleanup and rotation",
            "Monitor memory contents for anomalies",
            "Implement memory access controls",
        ),
    ),
    Rule(
        rule_id="CRED01",
        category="Credential Reference",
        severity=SEVERITY_LOW,
        trigger=_credential_reference,
        message="Node references credential of type '{credential_type}'. Ensure credentials are properly "
                "secured.",
        description="Using the credential store is the recommended practice; this is an informational "
                    "reminder to keep the referenced credential scoped to the minimum required permissions.",
        remediation=(
            "Verify credential permissions follow principle of least privilege",
            "Regularly rotate credentials",
            "Monitor credential usage",
            "Use separate credentials for different environments",
            "Implement credential access logging",
        ),
    ),
    Rule(
        rule_id="EXEC01",
        category="Code Execution Risk",
        severity=SEVERITY_HIGH,
        trigger=_code_execution,
        message="Node can execute custom code. Malicious code execution can compromise the entire system.",
        description="Code execution nodes can run arbitrary JavaScript code, potentially allowing attackers "
                    "to access sensitive data, modify system files, or establish persistence.",
        remediation=(
            "Review all custom code for malicious patterns",
            "Use code sandboxing and isolation",
            "Implement code review processes",
            "Restrict available APIs and modules",
            "Monitor code execution and outputs",
            "Use static code analysis tools",
        ),
    ),
    Rule(
        rule_id="NET01",
        category="External HTTP Request",
        severity=SEVERITY_HIGH,
        trigger=_external_http,
        message="Node makes HTTP requests to: {url}. {detail}",
        description="HTTP requests to external services can expose sensitive data, credentials, or workflow "
                    "information. Unencrypted HTTP connections are particularly vulnerable to interception.",
        remediation=(
            "Use HTTPS for all external requests",
            "Validate and sanitize request parameters",
            "Implement request logging and monitoring",
            "Use allowlists for external domains",
            "Avoid sending sensitive data in URLs",
            "Implement request timeouts and rate limiting",
        ),
    ),
    Rule(
        rule_id="NET02",
        category="Webhook Exposure",
        severity=SEVERITY_MEDIUM,
        trigger=_webhook_exposure,
        message="Node exposes a webhook endpoint. Unsecured webhooks can be exploited by attackers.",
        description="Webhook endpoints without proper authentication and validation can be abused to trigger "
                    "unauthorized workflow executions, inject malicious data, or cause denial of service.",
        remediation=(
            "Implement webhook authentication (API keys, signatures)",
            "Validate all incoming webhook data",
            "Use HTTPS for webhook endpoints",
            "Implement rate limiting and DDoS protection",
            "Log and monitor webhook usage",
            "Use webhook secret validation",
        ),
    ),
    Rule(
        rule_id="INT01",
        category="Social Media Integration Risk",
        severity=SEVERITY_MEDIUM,
        trigger=_social_media,
        message="Node integrates with social media platforms. Compromised accounts can lead to reputation "
                "damage and data exposure.",
        description="Social media integrations can be exploited to post malicious content, harvest personal "
                    "information, or spread misinformation if proper controls are not in place.",
        remediation=(
            "Implement content approval workflows",
            "Use read-only permissions when possible",
            "Monitor posted content and interactions",
            "Implement rate limiting for posts",
            "Use separate accounts for automation",
            "Regular security audits of social media permissions",
        ),
    ),
    Rule(
        rule_id="DATA01",
        category="Database Security Risk",
        severity=SEVERITY_HIGH,
        trigger=_database,
        message="Direct database access detected. Improper database queries can lead to SQL injection "
                "and data breaches.",
        description="Direct database access without proper input validation and query parameterization can "
                    "lead to SQL injection attacks, unauthorized data access, and data corruption.",
        remediation=(
            "Use parameterized queries and prepared statements",
            "Implement input validation and sanitization",
            "Use database user accounts with minimal privileges",
            "Enable database query logging and monitoring",
            "Implement connection encryption (SSL/TLS)",
            "Regular database security audits",
        ),
    ),
    Rule(
        rule_id="FS01",
        category="File System Access Risk",
        severity=SEVERITY_MEDIUM,
        trigger=_file_system,
        message="File system operations detected. Unrestricted file access can lead to data exposure and "
                "system compromise.",
        description="File system operations without proper path validation can lead to directory traversal "
                    "attacks, unauthorized file access, and potential system compromise.",
        remediation=(
            "Validate and sanitize all file paths",
            "Use chroot jails or containers for isolation",
            "Implement file access logging",
            "Restrict file operations to specific directories",
            "Use principle of least privilege for file permissions",
            "Monitor file system changes",
        ),
    ),
)

_RULES_BY_ID = {rule.rule_id: rule for rule in RULES}


def get_rule(rule_id: str) -> Optional[Rule]:
    return _RULES_BY_ID.get(rule_id)
