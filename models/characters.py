"""Participant snapshots, conditions, and action definitions."""

import math
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from config import MONSTER_PROFICIENCY_BONUS
from models.map_state import Position


class Ability(str, Enum):
    """The six core abilities."""
    STRENGTH = "strength"
    DEXTERITY = "dexterity"
    CONSTITUTION = "constitution"
    INTELLIGENCE = "intelligence"
    WISDOM = "wisdom"
    CHARISMA = "charisma"


class AbilityScores(BaseModel):
    """The six core ability scores."""
    model_config = ConfigDict(frozen=True)

    strength: int = 10
    dexterity: int = 10
    constitution: int = 10
    intelligence: int = 10
    wisdom: int = 10
    charisma: int = 10

    def score(self, ability: Ability) -> int:
        return getattr(self, ability.value)

    def modifier(self, ability: Ability) -> int:
        return (self.score(ability) - 10) // 2


class ConditionKind(str, Enum):
    """Conditions the engine knows how to enforce."""
    BLINDED = "blinded"
    CHARMED = "charmed"
    DEAFENED = "deafened"
    EXHAUSTION = "exhaustion"
    FRIGHTENED = "frightened"
    GRAPPLED = "grappled"
    INCAPACITATED = "incapacitated"
    INVISIBLE = "invisible"
    PARALYZED = "paralyzed"
    PETRIFIED = "petrified"
    POISONED = "poisoned"
    PRONE = "prone"
    RESTRAINED = "restrained"
    STUNNED = "stunned"
    UNCONSCIOUS = "unconscious"


MOVEMENT_BLOCKING = frozenset({
    ConditionKind.GRAPPLED,
    ConditionKind.RESTRAINED,
    ConditionKind.PARALYZED,
    ConditionKind.PETRIFIED,
    ConditionKind.STUNNED,
    ConditionKind.UNCONSCIOUS,
})

ATTACK_BLOCKING = frozenset({
    ConditionKind.INCAPACITATED,
    ConditionKind.PARALYZED,
    ConditionKind.PETRIFIED,
    ConditionKind.STUNNED,
    ConditionKind.UNCONSCIOUS,
})

INITIATIVE_DISADVANTAGE = frozenset({ConditionKind.EXHAUSTION})


class Condition(BaseModel):
    """A named status effect on a participant."""
    model_config = ConfigDict(frozen=True)

    name: str
    duration: int | None = None     # Rounds remaining, None = indefinite

    @property
    def kind(self) -> ConditionKind | None:
        """The recognised condition kind, or None for cosmetic conditions."""
        try:
            return ConditionKind(self.name.strip().lower())
        except ValueError:
            return None

    @property
    def label(self) -> str:
        return self.name.strip().capitalize()


class ActionType(str, Enum):
    """Broad category of a combat action."""
    MELEE_ATTACK = "MELEE_ATTACK"
    RANGED_ATTACK = "RANGED_ATTACK"
    SPELL = "SPELL"
    BONUS_ACTION = "BONUS_ACTION"
    REACTION = "REACTION"
    OTHER = "OTHER"


class ActionCost(str, Enum):
    """Which part of a turn an action consumes."""
    ACTION = "Action"
    BONUS_ACTION = "Bonus Action"
    REACTION = "Reaction"
    NO_ACTION = "No Action"
    SPECIAL = "Special"


class DiceSpec(BaseModel):
    """A number of identical dice, e.g. 2d6."""
    model_config = ConfigDict(frozen=True)

    count: int = Field(ge=0)        # 0 for flat damage
    faces: int = Field(ge=1)

    @property
    def notation(self) -> str:
        return f"{self.count}d{self.faces}"


class DamageRoll(BaseModel):
    """One damage component of an action."""
    model_config = ConfigDict(frozen=True)

    dice: DiceSpec
    modifier: int = 0
    damage_type: str = "BLUDGEONING"


class ActionDefinition(BaseModel):
    """A combat action a participant can take."""
    model_config = ConfigDict(frozen=True)

    name: str                       # e.g., "Longsword"
    type: ActionType = ActionType.OTHER
    action_cost: ActionCost = ActionCost.ACTION
    range: str | int | None = None  # "30 feet", "Touch", 120, ...
    damage_rolls: tuple[DamageRoll, ...] = ()
    spell_level: int | None = None
    attack_ability: Ability | None = None
    is_proficient: bool = False

    @property
    def requires_spell_slot(self) -> bool:
        return self.type == ActionType.SPELL and (self.spell_level or 0) > 0


class SpellSlot(BaseModel):
    """Spell slot usage for one spell level."""
    model_config = ConfigDict(frozen=True)

    level: int = Field(ge=1, le=9)
    total: int = Field(ge=0)
    used: int = Field(ge=0)

    @property
    def exhausted(self) -> bool:
        return self.used >= self.total


class InitiativeBonus(BaseModel):
    """A flat bonus to initiative from a feat, feature, or item."""
    model_config = ConfigDict(frozen=True)

    source: str                     # "feat", "class_feature", "item", ...
    name: str                       # e.g., "Alert"
    bonus: int


class Faction(str, Enum):
    """Which side of the table a token fights for."""
    PC = "pc"
    NPC_FRIENDLY = "npc_friendly"
    NPC_FOE = "npc_foe"


class _ParticipantBase(BaseModel):
    """Fields shared by every combatant snapshot."""
    model_config = ConfigDict(frozen=True)

    entity_id: str
    token_id: str | None = None     # Defaults to entity_id
    name: str
    faction: Faction = Faction.NPC_FOE
    position: Position
    speed: int = 30                 # Feet per turn
    current_hp: int
    max_hp: int
    armor_class: int = 10
    conditions: tuple[Condition, ...] = ()
    equipped_items: dict[str, str] = {}  # slot -> item id
    ability_scores: AbilityScores = AbilityScores()
    actions: tuple[ActionDefinition, ...] = ()
    initiative_bonuses: tuple[InitiativeBonus, ...] = ()
    initiative_advantage: bool = False
    initiative_dice_bonus: int | None = None  # Faces of an extra die

    @property
    def token_key(self) -> str:
        return self.token_id or self.entity_id

    def ability_modifier(self, ability: Ability) -> int:
        return self.ability_scores.modifier(ability)

    def resolved_actions(self) -> tuple[ActionDefinition, ...]:
        return self.actions

    @property
    def tracks_spell_slots(self) -> bool:
        return False

    def spell_slot(self, level: int) -> SpellSlot | None:
        return None

    def movement_restrictions(self) -> list[str]:
        """Labels of conditions that prevent moving."""
        return [c.label for c in self.conditions if c.kind in MOVEMENT_BLOCKING]

    def attack_restrictions(self) -> list[str]:
        """Labels of conditions that prevent attacking."""
        return [c.label for c in self.conditions if c.kind in ATTACK_BLOCKING]


class CharacterView(_ParticipantBase):
    """A player character or character-sheet NPC."""
    entity_type: Literal["player", "npc"] = "player"
    level: int = Field(default=1, ge=1, le=20)
    spell_slots: tuple[SpellSlot, ...] = ()
    ability_modifiers: dict[Ability, int] | None = None  # Sheet overrides

    def ability_modifier(self, ability: Ability) -> int:
        if self.ability_modifiers and ability in self.ability_modifiers:
            return self.ability_modifiers[ability]
        return super().ability_modifier(ability)

    def proficiency_bonus_value(self) -> int:
        return math.ceil(self.level / 4) + 1

    @property
    def tracks_spell_slots(self) -> bool:
        return bool(self.spell_slots)

    def spell_slot(self, level: int) -> SpellSlot | None:
        for slot in self.spell_slots:
            if slot.level == level:
                return slot
        return None


class MonsterView(_ParticipantBase):
    """A monster stat block placed on the map."""
    entity_type: Literal["monster"] = "monster"
    proficiency_bonus: int = MONSTER_PROFICIENCY_BONUS
    challenge_rating: str | None = None

    def proficiency_bonus_value(self) -> int:
        return self.proficiency_bonus


Participant = Annotated[
    Union[CharacterView, MonsterView],
    Field(discriminator="entity_type"),
]
