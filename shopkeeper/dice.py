"""Dice-notation rolls for stock quantities."""

from __future__ import annotations

import logging
import random
import re

logger = logging.getLogger(__name__)

_DICE_RE = re.compile(r"^(\d+)d(\d+)(?:-(\d+))?$")


def roll_dice(notation: str | int, rng: random.Random | None = None) -> int:
    """Roll ``NdM`` or ``NdM-K`` and return the total, floored at 0.

    A bare integer (or integer string) is taken literally, negatives as 0.
    Unparseable notation yields 1.
    """
    if isinstance(notation, int):
        return max(0, notation)
    text = str(notation).strip()
    if text.lstrip("-").isdigit():
        return max(0, int(text))

    match = _DICE_RE.match(text)
    if not match:
        logger.warning("Invalid dice notation %r, defaulting to 1", notation)
        return 1

    num_dice, num_sides = int(match.group(1)), int(match.group(2))
    subtract = int(match.group(3) or 0)
    if num_dice <= 0 or num_sides <= 0:
        logger.warning("Invalid dice parameters in %r, defaulting to 1", notation)
        return 1

    rng = rng or random
    total = sum(rng.randint(1, num_sides) for _ in range(num_dice))
    return max(0, total - subtract)
