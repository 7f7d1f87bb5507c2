"""Actor and inventory state containers.

The calling application owns these objects. The engine only ever works on
clones and hands back new instances, so nothing here is shared across ticks.
"""
from __future__ import annotations
import copy
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Tuple

from ..errors import OutcomeError

# Fixed attribute key set for every actor
STAT_KEYS: Tuple[str, ...] = ("strength", "agility", "intelligence", "stamina")
EQUIPMENT_SLOTS: Tuple[str, ...] = ("weapon", "armor", "accessory")
ITEM_TYPES: Tuple[str, ...] = ("weapon", "armor", "accessory", "consumable", "material", "misc")

STAT_FLOOR = 1
DEFAULT_STAT = 5


@dataclass
class InventoryItem:
    """A stack of identical items held by an actor."""
    id: str
    name: str
    type: str = "misc"
    quantity: int = 1
    attributes: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None
    owner_id: Optional[str] = None


@dataclass
class Inventory:
    """Ordered collection of item stacks, at most one stack per item id."""
    owner_id: str
    items: List[InventoryItem] = field(default_factory=list)

    def find(self, item_id: str) -> Optional[InventoryItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def quantity_of(self, item_id: str) -> int:
        item = self.find(item_id)
        return item.quantity if item else 0

    def has_item(self, item_id: str) -> bool:
        return self.find(item_id) is not None

    def clone(self) -> "Inventory":
        return copy.deepcopy(self)


@dataclass
class ActorState:
    """Mutable character state handed to the engine once per tick."""
    id: str
    name: str
    level: int = 1
    days_lived: int = 0
    stats: Dict[str, int] = field(default_factory=lambda: {k: DEFAULT_STAT for k in STAT_KEYS})
    equipment: Dict[str, Optional[InventoryItem]] = field(
        default_factory=lambda: {slot: None for slot in EQUIPMENT_SLOTS}
    )
    profession: Optional[str] = None
    race: Optional[str] = None
    gender: Optional[str] = None

    def clone(self) -> "ActorState":
        return copy.deepcopy(self)

    def get_stat(self, name: str) -> Optional[int]:
        return self.stats.get(name)


def create_character(actor_id: str, name: str, stats: Optional[Dict[str, int]] = None,
                     **extra: Any) -> ActorState:
    """Create a fresh actor, filling missing stats with the default value."""
    values = {k: DEFAULT_STAT for k in STAT_KEYS}
    if stats:
        for k, v in stats.items():
            if k in values:
                values[k] = max(STAT_FLOOR, int(v))
    return ActorState(id=actor_id, name=name, stats=values, **extra)


def _coerce_int(value: Any, default: int, floor: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return max(floor, int(value))


def _parse_item(data: Any, owner_id: Optional[str]) -> Optional[InventoryItem]:
    if not isinstance(data, dict):
        return None
    if not data.get("id") or not data.get("name") or not data.get("type"):
        return None
    quantity = data.get("quantity", 1)
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        return None
    return InventoryItem(
        id=str(data["id"]),
        name=str(data["name"]),
        type=str(data["type"]),
        quantity=quantity,
        attributes=dict(data.get("attributes") or {}),
        description=data.get("description"),
        owner_id=data.get("owner_id", data.get("ownerId", owner_id)),
    )


def validate_character(data: Dict[str, Any]) -> ActorState:
    """Build an ActorState from raw data, repairing whatever is missing or invalid.

    Args:
        data: raw character dictionary (snake_case or legacy camelCase keys)

    Returns:
        A valid ActorState: stats default to 5 and are floored at 1, level
        defaults to 1, days lived to 0, unknown equipment slots are dropped.
    """
    raw_stats = data.get("stats") if isinstance(data.get("stats"), dict) else {}
    stats = {k: _coerce_int(raw_stats.get(k), DEFAULT_STAT, STAT_FLOOR) for k in STAT_KEYS}

    equipment: Dict[str, Optional[InventoryItem]] = {slot: None for slot in EQUIPMENT_SLOTS}
    raw_equipment = data.get("equipment") if isinstance(data.get("equipment"), dict) else {}
    for slot in EQUIPMENT_SLOTS:
        entry = raw_equipment.get(slot)
        if isinstance(entry, InventoryItem):
            equipment[slot] = entry
        elif isinstance(entry, dict):
            equipment[slot] = _parse_item({"quantity": 1, **entry}, data.get("id"))

    days = data.get("days_lived", data.get("daysLived", 0))
    return ActorState(
        id=str(data.get("id") or "unknown"),
        name=str(data.get("name") or "Unnamed"),
        level=_coerce_int(data.get("level"), 1, 1),
        days_lived=_coerce_int(days, 0, 0),
        stats=stats,
        equipment=equipment,
        profession=data.get("profession"),
        race=data.get("race"),
        gender=data.get("gender"),
    )


def validate_inventory(data: Dict[str, Any], owner_id: Optional[str] = None) -> Inventory:
    """Build an Inventory from raw data, dropping malformed stacks and merging duplicates."""
    owner = owner_id or data.get("owner_id") or data.get("ownerId") or "unknown"
    inventory = Inventory(owner_id=owner)
    for raw in data.get("items") or []:
        item = _parse_item(raw, owner)
        if item is None:
            continue
        existing = inventory.find(item.id)
        if existing:
            existing.quantity += item.quantity
        else:
            inventory.items.append(item)
    return inventory


def calculate_enhanced_stats(actor: ActorState) -> Dict[str, Any]:
    """Return base stats plus equipment-derived totals."""
    attack = float(actor.stats.get("strength", 0))
    defense = actor.stats.get("strength", 0) / 2
    speed = float(actor.stats.get("agility", 0))

    for item in actor.equipment.values():
        if not item or not item.attributes:
            continue
        attack += _numeric(item.attributes.get("attack"))
        defense += _numeric(item.attributes.get("defense"))
        speed += _numeric(item.attributes.get("speed"))

    result: Dict[str, Any] = dict(actor.stats)
    result.update({
        "level": actor.level,
        "total_attack": round(attack),
        "total_defense": round(defense),
        "total_speed": round(speed),
    })
    return result


def _numeric(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def equip_item(actor: ActorState, inventory: Inventory, item_id: str,
               slot: Optional[str] = None) -> Tuple[ActorState, Inventory]:
    """Move one unit of ``item_id`` from the inventory into its equipment slot.

    The previously equipped item, if any, goes back into the inventory.

    Raises:
        OutcomeError: item not held, or item type does not fit the slot
    """
    new_actor = actor.clone()
    new_inventory = inventory.clone()

    item = new_inventory.find(item_id)
    if item is None:
        raise OutcomeError(f"Item {item_id} is not in the inventory")
    slot = slot or item.type
    if slot not in EQUIPMENT_SLOTS or item.type != slot:
        raise OutcomeError(f"Item {item.name} cannot be equipped in slot '{slot}'")

    current = new_actor.equipment.get(slot)
    if current is not None:
        stack = new_inventory.find(current.id)
        if stack:
            stack.quantity += 1
        else:
            returned = copy.deepcopy(current)
            returned.quantity = 1
            returned.owner_id = actor.id
            new_inventory.items.append(returned)

    equipped = copy.deepcopy(item)
    equipped.quantity = 1
    new_actor.equipment[slot] = equipped

    item.quantity -= 1
    if item.quantity <= 0:
        new_inventory.items.remove(item)

    return new_actor, new_inventory
