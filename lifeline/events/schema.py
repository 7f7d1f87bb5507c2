"""JSON schema of authored event definitions.

Event libraries are written in JSON with camelCase keys; every entry is
validated against EVENT_SCHEMA before being turned into dataclasses.
"""

OPERATOR_ENUM = [">", ">=", "<", "<=", "==", "!="]

CONDITION_TYPES = [
    "attribute", "item", "itemCount", "level", "chainContext",
    "history", "streak", "cumulative", "daysSince", "eventCount",
]

OUTCOME_TYPES = [
    "attributeChange", "levelChange", "itemGain", "itemLoss",
    "chainContext", "custom", "randomOutcome",
]

CUSTOM_EFFECTS = [
    "setProfession", "setRace", "setGender", "fullHeal", "randomAttributeBoost", "noEffect",
]

SCALAR = {"type": ["number", "string", "boolean"]}

EVENT_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "definitions": {
        "condition": {
            "type": "object",
            "required": ["type"],
            "properties": {
                "type": {"type": "string", "enum": CONDITION_TYPES},
                "key": {"type": "string"},
                "operator": {"type": "string", "enum": OPERATOR_ENUM},
                "value": SCALAR,
                "historyType": {"type": "string", "enum": ["eventTriggered", "attributeChange", "itemGained"]},
                "timeWindow": {"type": "integer", "minimum": 1},
                "contextPath": {"type": "string", "minLength": 1},
            },
            "additionalProperties": False,
        },
        "random": {
            "type": "object",
            "required": ["type"],
            "properties": {
                "type": {"type": "string", "enum": ["range", "choice", "weighted"]},
                "min": {"type": "number"},
                "max": {"type": "number"},
                "allowFloat": {"type": "boolean"},
                "choices": {"type": "array", "items": SCALAR},
                "weightedChoices": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "required": ["value", "weight"],
                        "properties": {
                            "value": SCALAR,
                            "weight": {"type": "number", "minimum": 0},
                        },
                        "additionalProperties": False,
                    },
                },
            },
            "additionalProperties": False,
        },
        "outcome": {
            "type": "object",
            "required": ["type"],
            "properties": {
                "type": {"type": "string", "enum": OUTCOME_TYPES},
                "key": {"type": "string"},
                "value": {},
                "random": {"$ref": "#/definitions/random"},
                "contextPath": {"type": "string", "minLength": 1},
                "contextOperation": {"type": "string", "enum": ["set", "add", "remove", "append"]},
                "possibleOutcomes": {
                    "type": "array",
                    "minItems": 1,
                    "items": {
                        "type": "object",
                        "required": ["outcome"],
                        "properties": {
                            "outcome": {"$ref": "#/definitions/outcome"},
                            "weight": {"type": "number", "minimum": 0},
                            "probability": {"type": "number", "minimum": 0, "maximum": 1},
                        },
                        "additionalProperties": False,
                    },
                },
                "description": {"type": "string"},
            },
            # A value is either literal or random, never both
            "not": {"required": ["value", "random"]},
            "allOf": [
                {
                    "if": {"properties": {"type": {"const": "custom"}}},
                    "then": {"required": ["key"], "properties": {"key": {"enum": CUSTOM_EFFECTS}}},
                },
                {
                    "if": {"properties": {"type": {"const": "randomOutcome"}}},
                    "then": {"required": ["possibleOutcomes"]},
                },
            ],
            "additionalProperties": False,
        },
        "nextEvent": {
            "type": "object",
            "required": ["eventId"],
            "properties": {
                "eventId": {"type": "string", "minLength": 1},
                "delay": {"type": "integer", "minimum": 0},
                "probability": {"type": "number", "minimum": 0, "maximum": 1},
                "contextUpdate": {"type": "object"},
            },
            "additionalProperties": False,
        },
    },
    "type": "object",
    "required": ["id", "type", "name", "outcomes"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "type": {"type": "string", "minLength": 1},
        "name": {"type": "string", "minLength": 1},
        "description": {"type": "string"},
        "image": {"type": "string"},
        "tags": {"type": "array", "items": {"type": "string"}},
        "probability": {"type": "number", "minimum": 0, "maximum": 1},
        "weight": {"type": "number", "minimum": 0},
        "conditions": {"type": "array", "items": {"$ref": "#/definitions/condition"}},
        "conditionMode": {"type": "string", "enum": ["AND", "OR"]},
        "outcomes": {"type": "array", "items": {"$ref": "#/definitions/outcome"}},
        "chainId": {"type": "string", "minLength": 1},
        "chainStep": {"type": "integer", "minimum": 0},
        "isChainStart": {"type": "boolean"},
        "isChainEnd": {"type": "boolean"},
        "nextEvents": {"type": "array", "items": {"$ref": "#/definitions/nextEvent"}},
        "skipNormalEvents": {"type": "boolean"},
    },
    "additionalProperties": False,
}

# Top-level shape of a library file: a bare list or {"events": [...]}
EVENT_LIBRARY_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "oneOf": [
        {"type": "array", "items": {"type": "object"}},
        {
            "type": "object",
            "required": ["events"],
            "properties": {"events": {"type": "array", "items": {"type": "object"}}},
        },
    ],
}
