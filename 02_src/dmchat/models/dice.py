"""Dice-related data models."""

from dataclasses import dataclass, field

FUDGE = "F"

# Display glyphs for fudge faces, indexed by value
FUDGE_GLYPHS = {-1: "-", 0: " ", 1: "+"}

Sides = int | str  # positive integer or FUDGE


@dataclass(frozen=True)
class DiceCommand:
    """A parsed `/r NdS+M` command."""

    count: int
    sides: Sides
    modifier: int = 0

    @property
    def is_fudge(self) -> bool:
        return self.sides == FUDGE

    @property
    def notation(self) -> str:
        """Dice expression without the modifier, e.g. "2d6"."""
        return f"{self.count}d{self.sides}"


@dataclass
class DiceRoll:
    """Result of evaluating a dice expression."""

    count: int
    sides: Sides
    modifier: int
    rolls: list[int] = field(default_factory=list)
    total: int = 0  # sum(rolls) + modifier

    @property
    def is_fudge(self) -> bool:
        return self.sides == FUDGE

    @property
    def notation(self) -> str:
        return f"{self.count}d{self.sides}"

    @property
    def faces(self) -> list[str]:
        """Display value of each die."""
        if self.is_fudge:
            return [FUDGE_GLYPHS[value] for value in self.rolls]
        return [str(value) for value in self.rolls]
