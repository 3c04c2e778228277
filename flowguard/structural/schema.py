# flowguard/structural/schema.py

# Top-level shape: both containers must exist with the right JSON type.
# Checked independently so a bad 'nodes' never hides a bad 'connections'.
WORKFLOW_SHAPE_SCHEMA = {
    "type": "object",
    "required": ["nodes", "connections"],
    "properties": {
        "nodes": {
            "type": "array"
        },
        "connections": {
            "type": "object"
        },
    },
    "additionalProperties": True
}

# A value the exporting tool would treat as "not configured"
_UNSET = {"enum": [None, False, "", 0]}

NODE_SCHEMA = {
    "type": "object",
    "required": ["id", "type", "typeVersion"],
    "properties": {
        # any configured value, as long as the exporter would treat it as set
        "id": {
            "not": _UNSET
        },
        "type": {
            # namespaced tag such as "n8n-nodes-base.httpRequest"
            "type": "string",
            "minLength": 1
        },
        # lenient: any configured value is accepted
        "typeVersion": {
            "not": _UNSET
        },
    },
    "additionalProperties": True
}

# Fields whose absence is an error; anything else in NODE_SCHEMA only warns
NODE_REQUIRED_FIELDS = ("id", "type")
NODE_RECOMMENDED_FIELDS = ("typeVersion",)
