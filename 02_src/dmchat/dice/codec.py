"""Dice notation codec.

Two independent entry points work on the same notation:

* ``parse_command`` reads what the player types (``/r 2d6+1``);
* ``decode`` reads the canonical result string that is stored in the
  history (``2d6+1 = 9 { 3, 5 }``).

The canonical string is the only persisted representation of a roll, so
``decode`` must recover enough of it to replay the animation.
"""

import random
import re

from ..models import FUDGE, FUDGE_GLYPHS, DiceCommand, DiceRoll

COMMAND_RE = re.compile(r"^/r\s+(\d+)d([Ff]|\d+)([+-]\d+)?$")
EMBEDDED_COMMAND_RE = re.compile(r"/r\s+(\d+)d([Ff]|\d+)([+-]\d+)?")
RESULT_RE = re.compile(r"^(\d+)d([Ff]|\d+)([+-]\d+)? = ([+-]?\d+) \{ (.*?) \}$")

_GLYPH_VALUES = {"-": -1, "": 0, "+": 1}


def _command_from_match(match: re.Match) -> DiceCommand | None:
    count = int(match.group(1))
    sides = _parse_sides(match.group(2))
    if count < 1 or sides is None:
        return None
    modifier = int(match.group(3)) if match.group(3) else 0
    return DiceCommand(count=count, sides=sides, modifier=modifier)


def _parse_sides(raw: str) -> int | str | None:
    if raw.upper() == FUDGE:
        return FUDGE
    sides = int(raw)
    return sides if sides > 0 else None


def parse_command(text: str) -> DiceCommand | None:
    """Parse a whole input line as a `/r` command. None if it is not one."""
    match = COMMAND_RE.match(text.strip())
    if not match:
        return None
    return _command_from_match(match)


def find_command(text: str) -> DiceCommand | None:
    """Find the first `/r` command embedded anywhere in a text."""
    match = EMBEDDED_COMMAND_RE.search(text)
    if not match:
        return None
    return _command_from_match(match)


def roll(
    count: int,
    sides: int | str,
    modifier: int = 0,
    rng: random.Random | None = None,
) -> DiceRoll:
    """Roll `count` dice. Pass `rng` for deterministic results."""
    rng = rng or random
    if sides == FUDGE:
        rolls = [rng.choice((-1, 0, 1)) for _ in range(count)]
    else:
        rolls = [rng.randint(1, int(sides)) for _ in range(count)]
    return DiceRoll(
        count=count,
        sides=sides,
        modifier=modifier,
        rolls=rolls,
        total=sum(rolls) + modifier,
    )


def roll_command(command: DiceCommand, rng: random.Random | None = None) -> DiceRoll:
    return roll(command.count, command.sides, command.modifier, rng=rng)


def format_result(
    count: int,
    sides: int | str,
    modifier: int,
    total: int,
    rolls: list[int],
) -> str:
    """Build the canonical result string.

    `total` already includes the modifier. Fudge totals above zero carry an
    explicit plus sign.
    """
    mod = f"{modifier:+d}" if modifier else ""
    if sides == FUDGE:
        faces = [FUDGE_GLYPHS[value] for value in rolls]
        total_display = f"+{total}" if total > 0 else str(total)
    else:
        faces = [str(value) for value in rolls]
        total_display = str(total)
    return f"{count}d{sides}{mod} = {total_display} {{ {', '.join(faces)} }}"


def format_roll(dice_roll: DiceRoll) -> str:
    return format_result(
        dice_roll.count,
        dice_roll.sides,
        dice_roll.modifier,
        dice_roll.total,
        dice_roll.rolls,
    )


def decode(text: str) -> DiceRoll | None:
    """Recover a DiceRoll from a canonical result string. None if not one."""
    match = RESULT_RE.match(text)
    if not match:
        return None

    count = int(match.group(1))
    sides = _parse_sides(match.group(2))
    if count < 1 or sides is None:
        return None

    rolls = []
    for face in match.group(5).split(","):
        face = face.strip()
        if sides == FUDGE:
            if face not in _GLYPH_VALUES:
                return None
            rolls.append(_GLYPH_VALUES[face])
        else:
            if not face.isdigit():
                return None
            rolls.append(int(face))

    if len(rolls) != count:
        return None

    return DiceRoll(
        count=count,
        sides=sides,
        modifier=int(match.group(3)) if match.group(3) else 0,
        rolls=rolls,
        total=int(match.group(4)),
    )
