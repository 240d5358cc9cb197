"""House metadata: the single source of truth for the five competing Houses.

The list is built once from settings and handed to the pipeline; nothing in
the leaderboard reads House data from globals.
"""

from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from config import Settings, settings as default_settings


class HouseColors(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary: str
    secondary: str
    accent: str


class House(BaseModel):
    """One competing House and the ERC-1155 token that marks membership."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    numeric_id: int = Field(ge=1)
    element: str
    symbol: str
    name_key: str
    asset_address: str = ""
    colors: Optional[HouseColors] = None

    @field_validator("asset_address", mode="before")
    @classmethod
    def _lowercase_address(cls, value: object) -> str:
        return str(value or "").strip().lower()


# (id, numeric id, element, symbol, settings field, colors)
_HOUSE_DEFINITIONS = (
    ("honoo", 1, "fire", "炎", "HOUSE_FIRE_ADDRESS", ("#c92a22", "#55011f", "#dccf8e")),
    ("mizu", 2, "water", "水", "HOUSE_WATER_ADDRESS", ("#94bcad", "#6f5652", "#dccf8e")),
    ("mori", 3, "forest", "森", "HOUSE_FOREST_ADDRESS", ("#9b9024", "#6f5652", "#94bcad")),
    ("tsuchi", 4, "earth", "土", "HOUSE_EARTH_ADDRESS", ("#6f5652", "#9b9024", "#dccf8e")),
    ("kaze", 5, "wind", "風", "HOUSE_WIND_ADDRESS", ("#94bcad", "#d0555d", "#dccf8e")),
)


def build_houses(config: Optional[Settings] = None) -> tuple[House, ...]:
    """Ordered House list with asset addresses taken from ``config``."""
    config = config or default_settings
    houses = []
    for house_id, numeric_id, element, symbol, address_field, (primary, secondary, accent) in _HOUSE_DEFINITIONS:
        houses.append(
            House(
                id=house_id,
                numeric_id=numeric_id,
                element=element,
                symbol=symbol,
                name_key=f"house.{house_id}",
                asset_address=getattr(config, address_field, ""),
                colors=HouseColors(primary=primary, secondary=secondary, accent=accent),
            )
        )
    return tuple(houses)


def get_house_by_id(houses: Sequence[House], house_id: Optional[str]) -> Optional[House]:
    return next((h for h in houses if h.id == house_id), None)
