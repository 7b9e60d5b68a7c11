"""Dice notation parsing and formatting.

Grammar::

    expr      := term (sign term)*
    sign      := '+' | '-'
    term      := dice_term | flat_number
    dice_term := [count] 'd' sides [keep]
    keep      := 'k' nat | 'kh' nat | 'kl' nat

Examples: 1d20, 2d6+3, 3d6+2d4-1d8+5, 4d6k3, 4d6kl1, 8d6.

Each dice term becomes one DiceLine whose operation follows the term's sign.
A flat number is folded into the modifier of the line emitted just before it;
a flat number that precedes every dice term goes to the first line.

Lenient mode (the default) keeps the legacy fallbacks: a malformed count is
read as 1, malformed or missing sides as 20, and unrecognized tokens are
skipped. Strict mode raises InvalidNotation for all of these.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from dicebox.dice import (
    MAX_DICE_PER_ROLL,
    DiceLine,
    DiceSpec,
    DiceTerm,
    FlatModifier,
    InvalidNotation,
    Operation,
    OutOfRangeDice,
    PoolRoll,
    check_dice_total,
)

logger = logging.getLogger(__name__)

_SIGN_SPLIT_RE = re.compile(r"(?=[+-])")
_NUMBER_RE = re.compile(r"^\d+$")
_DICE_TOKEN_RE = re.compile(
    r"^(?P<count>[^dk]*)d(?P<sides>[^dk]*)(?:k(?P<which>[hl]?)(?P<keep>.*))?$"
)

DEFAULT_COUNT = 1
DEFAULT_SIDES = 20

# Longest numeral accepted anywhere in an expression.
MAX_NUMERAL_DIGITS = 9


def _to_int(text: str, token: str) -> int:
    if len(text) > MAX_NUMERAL_DIGITS:
        raise OutOfRangeDice(f"Number too large in {token!r}")
    return int(text)


def _skip_or_raise(token: str, reason: str, strict: bool) -> None:
    if strict:
        raise InvalidNotation(f"Invalid token {token!r}: {reason}")
    logger.debug("Skipping token %r: %s", token, reason)


def _read_int(text: str, default: int, *, field: str, token: str, strict: bool) -> int:
    """Read a count or sides substring, falling back to default in lenient mode."""
    if _NUMBER_RE.match(text):
        return _to_int(text, token)
    if strict:
        raise InvalidNotation(f"Invalid dice {field} in {token!r}")
    logger.debug("Using default %s %d for token %r", field, default, token)
    return default


def _dice_term(m: re.Match[str], sign: int, token: str, strict: bool) -> DiceTerm:
    count_text = m.group("count")
    count = (
        DEFAULT_COUNT
        if count_text == ""
        else _read_int(count_text, DEFAULT_COUNT, field="count", token=token, strict=strict)
    )
    sides = _read_int(m.group("sides"), DEFAULT_SIDES, field="sides", token=token, strict=strict)

    keep_highest = keep_lowest = None
    keep_text = m.group("keep")
    if keep_text is not None:
        if not _NUMBER_RE.match(keep_text):
            raise InvalidNotation(f"Invalid keep count in {token!r}")
        if m.group("which") == "l":
            keep_lowest = _to_int(keep_text, token)
        else:
            keep_highest = _to_int(keep_text, token)

    return DiceTerm(
        spec=DiceSpec(sides=sides, count=count),
        sign=sign,
        keep_highest=keep_highest,
        keep_lowest=keep_lowest,
    )


def tokenize(expression: str, *, strict: bool = False) -> list[DiceTerm | FlatModifier]:
    """Split an expression into signed dice terms and flat modifiers.

    Raises:
        InvalidNotation: If the expression is empty, or in strict mode when a
            token is malformed.
        OutOfRangeDice: If a dice term's count or sides are out of bounds, or a
            numeral is longer than MAX_NUMERAL_DIGITS.
        IncompatibleModifiers: If keep is requested on a single die.
    """
    text = "".join(expression.split()).lower()
    if not text:
        raise InvalidNotation("Empty dice expression")

    terms: list[DiceTerm | FlatModifier] = []
    for token in _SIGN_SPLIT_RE.split(text):
        if not token:
            continue
        sign = -1 if token[0] == "-" else 1
        body = token[1:] if token[0] in "+-" else token
        if not body:
            _skip_or_raise(token, "sign without a term", strict)
            continue
        if _NUMBER_RE.match(body):
            terms.append(FlatModifier(value=_to_int(body, token), sign=sign))
            continue
        m = _DICE_TOKEN_RE.match(body)
        if m is None:
            _skip_or_raise(token, "not a dice term or number", strict)
            continue
        terms.append(_dice_term(m, sign, token, strict))
    return terms


def parse(
    expression: str, *, strict: bool = False, max_dice: int = MAX_DICE_PER_ROLL
) -> list[DiceLine]:
    """Parse a dice expression into DiceLines.

    Args:
        expression: Dice notation, e.g. "3d6+2d4-1d8+5".
        strict: Reject malformed tokens instead of applying legacy defaults.
        max_dice: Upper bound on dice thrown across all lines.

    Returns:
        One DiceLine per dice term, in expression order.

    Raises:
        DiceError: If the expression has no dice term or is otherwise invalid.
    """
    lines: list[DiceLine] = []
    leading_modifier = 0
    for term in tokenize(expression, strict=strict):
        if isinstance(term, FlatModifier):
            if lines:
                lines[-1].modifier += term.signed_value
            else:
                leading_modifier += term.signed_value
            continue
        line = DiceLine(
            label=f"Roll {len(lines) + 1}",
            dice_count=term.spec.count,
            dice_sides=term.spec.sides,
            exploding=term.exploding,
            operation=Operation.subtract if term.sign < 0 else Operation.add,
            keep_highest=term.keep_highest,
            keep_lowest=term.keep_lowest,
        )
        if not lines:
            line.modifier += leading_modifier
        lines.append(line)

    if not lines:
        raise InvalidNotation(f"No dice found in {expression!r}")
    check_dice_total(lines, max_dice)
    return lines


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def _dice_text(line: DiceLine) -> str:
    text = f"{line.dice_count}d{line.dice_sides}"
    if line.keep_highest is not None:
        text += f"k{line.keep_highest}"
    elif line.keep_lowest is not None:
        text += f"kl{line.keep_lowest}"
    if line.modifier:
        text += f"{line.modifier:+d}"
    return text


def format_line(line: DiceLine) -> str:
    """Render a line back to notation, prefixed with '-' for subtract lines."""
    text = _dice_text(line)
    if line.operation is Operation.subtract:
        return f"-{text}"
    return text


def format_expression(lines: Iterable[DiceLine]) -> str:
    """Render lines as a single expression that parses back to the same lines."""
    parts: list[str] = []
    for line in lines:
        text = format_line(line)
        if parts and not text.startswith("-"):
            text = f"+{text}"
        parts.append(text)
    return "".join(parts)


def describe_line(line: DiceLine) -> str:
    """Return the configuration string recorded in roll history, e.g. "1d20+5 (Advantage)"."""
    text = _dice_text(line)
    if line.advantage:
        text += " (Advantage)"
    if line.disadvantage:
        text += " (Disadvantage)"
    if line.exploding:
        text += " (Exploding)"
    return text


def describe_pool(pool: PoolRoll) -> str:
    """Return the configuration string for a pool roll, e.g. "2d6+1d20+3"."""
    text = "+".join(f"{entry.count}d{entry.sides}" for entry in pool.breakdown)
    modifier = pool.bonus - pool.penalty
    if modifier:
        text += f"{modifier:+d}"
    return text
