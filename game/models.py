"""
SwordFight CLI — game/models.py
Pydantic schemas for everything read from the engine or shown in a menu.
========================================================================
Stack:       Python 3.11+ | Pydantic v2

The engine speaks camelCase and is loose with types (scores arrive as ""
for non-scoring moves, bonus amounts as numeric strings). Validators
normalise that here so renderers only ever see clean values.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator


class SwordfightError(Exception):
    """Base class for every error raised by this package."""


class PayloadError(SwordfightError):
    """An engine event arrived without the fields the front-end relies on."""


class GameMode(str, Enum):
    SINGLE = "single"
    MULTIPLAYER = "multiplayer"


def _blank_to_none(value: Any) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return value


# ================================================================================
# MENU ITEMS
# ================================================================================

class SelectableItem(BaseModel):
    """
    One entry in a selection menu: a move, a character or a game mode.
    Identity is `id`; the item never changes while a menu is open.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, from_attributes=True, extra="ignore")

    id: Union[int, str]
    name: str
    tag: str = ""
    description: Optional[str] = None
    type: Optional[str] = None
    range: Optional[str] = None
    modifier: Optional[Union[int, str]] = Field(
        default=None, validation_alias=AliasChoices("mod", "modifier")
    )
    weapon: Optional[Union[bool, str]] = None
    shield: Optional[Union[bool, str]] = None

    @field_validator("tag", mode="before")
    @classmethod
    def _tag_default(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def label(self) -> str:
        return f"{self.name} ({self.tag})" if self.tag else self.name

    @classmethod
    def from_source(cls, source: Any) -> "SelectableItem":
        """Builds an item from an engine dict or attribute-style object."""
        if isinstance(source, Mapping):
            return cls.model_validate(dict(source))
        return cls.model_validate(source, from_attributes=True)


class CharacterProfile(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, from_attributes=True, extra="ignore")

    slug: str
    name: str
    description: str = ""
    weapon: Optional[Union[bool, str]] = None
    shield: Optional[Union[bool, str]] = None

    def to_item(self) -> SelectableItem:
        return SelectableItem(
            id=self.slug,
            name=self.name,
            description=self.description or None,
            weapon=self.weapon,
            shield=self.shield,
        )


# ================================================================================
# ROUND DATA
# ================================================================================

class MoveSummary(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, from_attributes=True, extra="ignore")

    id: Optional[Union[int, str]] = None
    name: str = "Unknown move"
    tag: str = ""

    @field_validator("tag", mode="before")
    @classmethod
    def _tag_default(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def label(self) -> str:
        return f"{self.name} ({self.tag})" if self.tag else self.name


class RoundResult(BaseModel):
    """What one side sees of the other after a round (stance, range, limits)."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, from_attributes=True, extra="ignore")

    name: str = ""
    range: str = ""
    restrict: List[str] = Field(default_factory=list)
    allow_only: List[str] = Field(default_factory=list, alias="allowOnly")
    score: Optional[int] = None  # None: the move could not score at all

    _normalise_score = field_validator("score", mode="before")(_blank_to_none)

    @field_validator("restrict", "allow_only", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value


class RoundSnapshot(BaseModel):
    """One side's view of a resolved round. Replaced wholesale every round."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, from_attributes=True, extra="ignore")

    my_move: MoveSummary = Field(default_factory=MoveSummary, alias="myMove")
    opponents_move: Optional[MoveSummary] = Field(default=None, alias="opponentsMove")
    result: RoundResult = Field(default_factory=RoundResult)
    score: Optional[int] = None
    move_modifier: Optional[int] = Field(default=None, alias="moveModifier")
    bonus: int = 0
    total_score: int = Field(default=0, alias="totalScore")
    next_round_bonus: List[Dict[str, Any]] = Field(default_factory=list, alias="nextRoundBonus")

    _normalise_score = field_validator("score", "move_modifier", mode="before")(_blank_to_none)

    @field_validator("bonus", "total_score", mode="before")
    @classmethod
    def _blank_to_zero(cls, value: Any) -> Any:
        return 0 if _blank_to_none(value) is None else value

    @field_validator("next_round_bonus", mode="before")
    @classmethod
    def _bonus_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def attempted_hit(self) -> bool:
        """True when the move used this round was a scoring move."""
        return self.result.score is not None


def parse_round_payload(detail: Mapping[str, Any]) -> Tuple[RoundSnapshot, RoundSnapshot]:
    """Validates a `round` event payload into (mine, opponent's) snapshots."""
    try:
        mine = detail["myRoundData"]
        theirs = detail["opponentsRoundData"]
    except KeyError as exc:
        raise PayloadError(f"round event is missing {exc.args[0]!r}") from exc

    try:
        return (_snapshot(mine), _snapshot(theirs))
    except ValidationError as exc:
        raise PayloadError(f"round event payload is malformed: {exc}") from exc


def _snapshot(raw: Any) -> RoundSnapshot:
    if isinstance(raw, RoundSnapshot):
        return raw
    if isinstance(raw, Mapping):
        return RoundSnapshot.model_validate(dict(raw))
    return RoundSnapshot.model_validate(raw, from_attributes=True)
