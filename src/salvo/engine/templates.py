"""Ship and item variants used when building fleets for a match."""

from __future__ import annotations

from dataclasses import dataclass

from .models import Item, Ship


@dataclass(frozen=True)
class ShipTemplate:
    """A ship footprint plus how many copies a default fleet carries."""

    name: str
    width: int
    height: int
    default_count: int = 1

    @property
    def size(self) -> int:
        return self.width * self.height


@dataclass(frozen=True)
class ItemTemplate:
    id: str
    title: str
    part: int
    default_count: int = 1
    description: str | None = None


SMALL_SHIP = ShipTemplate("small", width=2, height=2, default_count=1)
MEDIUM_SHIP = ShipTemplate("medium", width=3, height=1, default_count=2)
LARGE_SHIP = ShipTemplate("large", width=4, height=1, default_count=1)
XLARGE_SHIP = ShipTemplate("xlarge", width=5, height=1, default_count=1)

SHIP_TEMPLATES: dict[str, ShipTemplate] = {
    template.name: template for template in (SMALL_SHIP, MEDIUM_SHIP, LARGE_SHIP, XLARGE_SHIP)
}

HEALTH_KIT = ItemTemplate(
    "health_kit", "Health Kit", part=1, default_count=2,
    description="Restores one point of health when collected.",
)
AMMO_CACHE = ItemTemplate(
    "ammo_cache", "Ammo Cache", part=1, default_count=1,
    description="Grants extra ammunition when fully collected.",
)
SHIELD_MODULE = ItemTemplate(
    "shield_module", "Shield Module", part=1, default_count=1,
    description="Grants a one-hit shield when collected.",
)
RADAR_DEVICE = ItemTemplate(
    "radar_device", "Radar Device", part=3, default_count=1,
    description="Reveals a section of the enemy board when fully collected.",
)

ITEM_TEMPLATES: dict[str, ItemTemplate] = {
    template.id: template for template in (HEALTH_KIT, AMMO_CACHE, SHIELD_MODULE, RADAR_DEVICE)
}


def get_ship_template(name: str) -> ShipTemplate:
    return SHIP_TEMPLATES.get(name, SMALL_SHIP)


def get_item_template(name: str) -> ItemTemplate:
    return ITEM_TEMPLATES.get(name, HEALTH_KIT)


def create_ship(template: ShipTemplate, x: int, y: int, ship_id: int | None = None, rotated: bool = False) -> Ship:
    """Place ``template`` with its top-left cell at ``(x, y)``.

    ``rotated`` swaps width and height.
    """
    width, height = (template.height, template.width) if rotated else (template.width, template.height)
    return Ship(x=x, y=y, width=width, height=height, ship_id=ship_id)


def create_item(template: ItemTemplate, x: int, y: int, item_id: int | None = None) -> Item:
    return Item(x=x, y=y, part=template.part, item_id=item_id, template_id=template.id)


def default_fleet_size() -> int:
    """Total cells occupied by a default fleet."""
    return sum(template.size * template.default_count for template in SHIP_TEMPLATES.values())
