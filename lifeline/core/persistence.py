"""Snapshot serialization for actors, inventories, history and chains.

Snapshots are plain JSON-compatible dicts tagged with a format version.
Writing them to disk is left to the host application.
"""
from __future__ import annotations
import time
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

import jsonschema

from ..errors import SnapshotError
from .state import ActorState, Inventory, validate_character, validate_inventory

# Snapshot format version - increment when making breaking changes
SNAPSHOT_VERSION = 1

_ITEM_SCHEMA = {
    "type": "object",
    "required": ["id", "name", "type", "quantity"],
    "properties": {
        "id": {"type": "string"},
        "name": {"type": "string"},
        "type": {"type": "string"},
        "quantity": {"type": "integer"},
        "attributes": {"type": "object"},
    },
}

ACTOR_SNAPSHOT_SCHEMA = {
    "type": "object",
    "required": ["id", "name", "stats"],
    "properties": {
        "id": {"type": "string"},
        "name": {"type": "string"},
        "level": {"type": "integer"},
        "days_lived": {"type": "integer"},
        "stats": {"type": "object", "additionalProperties": {"type": "integer"}},
        "equipment": {
            "type": "object",
            "additionalProperties": {"anyOf": [{"type": "null"}, _ITEM_SCHEMA]},
        },
    },
}

INVENTORY_SNAPSHOT_SCHEMA = {
    "type": "object",
    "required": ["owner_id", "items"],
    "properties": {
        "owner_id": {"type": "string"},
        "items": {"type": "array", "items": _ITEM_SCHEMA},
    },
}

HISTORY_SNAPSHOT_SCHEMA = {
    "type": "object",
    "required": ["character_id", "daily_records", "event_history"],
    "properties": {
        "character_id": {"type": "string"},
        "daily_records": {
            "type": "array",
            "items": {"type": "object", "required": ["day"], "properties": {"day": {"type": "integer"}}},
        },
        "event_history": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["event_id", "day"],
                "properties": {"event_id": {"type": "string"}, "day": {"type": "integer"}},
            },
        },
    },
}


def _metadata(kind: str) -> Dict[str, Any]:
    return {
        "version": SNAPSHOT_VERSION,
        "kind": kind,
        "timestamp": time.time(),
        "date_saved": datetime.now().isoformat(),
    }


def _check(data: Dict[str, Any], schema: Dict[str, Any], kind: str) -> Dict[str, Any]:
    """Strip and check metadata, then validate the payload against ``schema``."""
    if not isinstance(data, dict):
        raise SnapshotError(f"{kind} snapshot must be an object")
    data = dict(data)
    metadata = data.pop("_snapshot_metadata", {})
    version = metadata.get("version", 0)
    if version > SNAPSHOT_VERSION:
        raise SnapshotError(f"{kind} snapshot version {version} is newer than supported version {SNAPSHOT_VERSION}")
    try:
        jsonschema.validate(data, schema)
    except jsonschema.ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise SnapshotError(f"Invalid {kind} snapshot at {location}: {e.message}") from e
    return data


def serialize_actor(actor: ActorState) -> Dict[str, Any]:
    data = asdict(actor)
    data["_snapshot_metadata"] = _metadata("actor")
    return data


def deserialize_actor(data: Dict[str, Any]) -> ActorState:
    """Restore an actor; out-of-range values are repaired rather than rejected.

    Raises:
        SnapshotError: newer format or structurally invalid data
    """
    return validate_character(_check(data, ACTOR_SNAPSHOT_SCHEMA, "actor"))


def serialize_inventory(inventory: Inventory) -> Dict[str, Any]:
    data = asdict(inventory)
    data["_snapshot_metadata"] = _metadata("inventory")
    return data


def deserialize_inventory(data: Dict[str, Any]) -> Inventory:
    payload = _check(data, INVENTORY_SNAPSHOT_SCHEMA, "inventory")
    return validate_inventory(payload, payload["owner_id"])


def serialize_history(history) -> Dict[str, Any]:
    data = history.to_dict()
    data["_snapshot_metadata"] = _metadata("history")
    return data


def deserialize_history(data: Dict[str, Any]):
    # Local import: events depends on core, not the other way round
    from ..events.history import HistoryManager
    return HistoryManager.from_dict(_check(data, HISTORY_SNAPSHOT_SCHEMA, "history"))


def serialize_session(actor: ActorState, inventory: Inventory, history=None,
                      chains=None) -> Dict[str, Any]:
    """Bundle everything needed to resume a simulation.

    Args:
        actor: current actor
        inventory: current inventory
        history: optional HistoryManager
        chains: optional ChainManager whose in-flight chains are saved
    """
    return {
        "actor": serialize_actor(actor),
        "inventory": serialize_inventory(inventory),
        "history": serialize_history(history) if history is not None else None,
        "chains": chains.snapshot() if chains is not None else {},
        "_snapshot_metadata": _metadata("session"),
    }


def deserialize_session(data: Dict[str, Any], chains=None) -> Tuple[ActorState, Inventory, Optional[Any]]:
    """Restore a session bundle; ``chains`` (a ChainManager) is refilled in place when given.

    Raises:
        SnapshotError: newer format or invalid data in any part
    """
    if not isinstance(data, dict):
        raise SnapshotError("session snapshot must be an object")
    version = data.get("_snapshot_metadata", {}).get("version", 0)
    if version > SNAPSHOT_VERSION:
        raise SnapshotError(f"session snapshot version {version} is newer than supported version {SNAPSHOT_VERSION}")
    try:
        actor = deserialize_actor(data["actor"])
        inventory = deserialize_inventory(data["inventory"])
    except KeyError as e:
        raise SnapshotError(f"session snapshot is missing {e}") from e
    history = deserialize_history(data["history"]) if data.get("history") else None
    if chains is not None:
        chains.restore(data.get("chains") or {})
    return actor, inventory, history
