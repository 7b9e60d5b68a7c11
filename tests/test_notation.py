"""Unit tests for dice notation parsing and formatting."""

from __future__ import annotations

import pytest

from dicebox.dice import (
    DiceLine,
    DiceSpec,
    DiceTerm,
    FlatModifier,
    IncompatibleModifiers,
    InvalidNotation,
    Operation,
    OutOfRangeDice,
    RollMode,
    roll_pool,
)
from dicebox.engine import DiceEngine
from dicebox.notation import (
    describe_line,
    describe_pool,
    format_expression,
    format_line,
    parse,
    tokenize,
)


def _shape(line: DiceLine) -> tuple:
    """Everything that defines a line except its id and label."""
    return (
        line.dice_count,
        line.dice_sides,
        line.modifier,
        line.operation,
        line.keep_highest,
        line.keep_lowest,
    )


class TestParse:
    def test_multi_term_expression(self) -> None:
        lines = parse("3d6+2d4-1d8+5")
        assert [(line.dice_count, line.dice_sides) for line in lines] == [(3, 6), (2, 4), (1, 8)]
        assert [line.operation for line in lines] == [
            Operation.add,
            Operation.add,
            Operation.subtract,
        ]
        assert [line.modifier for line in lines] == [0, 0, 5]

    def test_labels(self) -> None:
        assert [line.label for line in parse("1d20+1d6")] == ["Roll 1", "Roll 2"]

    def test_simple(self) -> None:
        (line,) = parse("1d20")
        assert _shape(line) == (1, 20, 0, Operation.add, None, None)
        assert line.roll_mode is RollMode.normal
        assert line.result is None

    def test_positive_modifier(self) -> None:
        assert parse("2d6+3")[0].modifier == 3

    def test_negative_modifier(self) -> None:
        assert parse("1d20-2")[0].modifier == -2

    def test_implicit_count(self) -> None:
        assert parse("d20")[0].dice_count == 1

    def test_many_dice(self) -> None:
        assert parse("8d6")[0].dice_count == 8

    def test_whitespace_and_case(self) -> None:
        (line,) = parse("  2D6 + 3 ")
        assert _shape(line) == (2, 6, 3, Operation.add, None, None)

    def test_modifiers_accumulate(self) -> None:
        assert parse("1d20+2+3-1")[0].modifier == 4

    def test_modifier_attaches_to_previous_line(self) -> None:
        lines = parse("1d20+4+2d6-1")
        assert [line.modifier for line in lines] == [4, -1]

    def test_leading_modifier_goes_to_first_line(self) -> None:
        lines = parse("5+1d20+1d4")
        assert [line.modifier for line in lines] == [5, 0]

    def test_leading_subtract(self) -> None:
        (line,) = parse("-1d8+5")
        assert line.operation is Operation.subtract
        assert line.modifier == 5

    def test_keep_highest(self) -> None:
        (line,) = parse("4d6k3")
        assert (line.dice_count, line.dice_sides, line.keep_highest) == (4, 6, 3)
        assert line.keep_lowest is None

    def test_keep_highest_explicit(self) -> None:
        assert parse("4d6kh2")[0].keep_highest == 2

    def test_keep_lowest(self) -> None:
        (line,) = parse("4d6kl1")
        assert line.keep_lowest == 1
        assert line.keep_highest is None

    def test_keep_roll_sums_highest(self, scripted) -> None:
        (line,) = parse("4d6k3")
        result = DiceEngine(scripted([2, 6, 4, 5])).roll(line)
        assert result.total == 15


class TestLenientParsing:
    def test_bad_count_defaults_to_one(self) -> None:
        (line,) = parse("xd6")
        assert (line.dice_count, line.dice_sides) == (1, 6)

    def test_bad_sides_default_to_d20(self) -> None:
        (line,) = parse("2dx")
        assert (line.dice_count, line.dice_sides) == (2, 20)

    def test_missing_sides_default_to_d20(self) -> None:
        assert parse("2d")[0].dice_sides == 20

    def test_unknown_tokens_skipped(self) -> None:
        (line,) = parse("1d20+abc")
        assert _shape(line) == (1, 20, 0, Operation.add, None, None)

    def test_dangling_sign_skipped(self) -> None:
        assert parse("1d20+")[0].modifier == 0


class TestStrictParsing:
    @pytest.mark.parametrize("expression", ["xd6", "2dx", "2d", "1d20+abc", "1d20+"])
    def test_rejects_what_lenient_accepts(self, expression: str) -> None:
        with pytest.raises(InvalidNotation):
            parse(expression, strict=True)

    def test_valid_expression(self) -> None:
        lines = parse("3d6+2d4-1d8+5", strict=True)
        assert len(lines) == 3


class TestParseErrors:
    @pytest.mark.parametrize("expression", ["", "   ", "5", "+3-2", "hello"])
    def test_no_dice(self, expression: str) -> None:
        with pytest.raises(InvalidNotation):
            parse(expression)

    @pytest.mark.parametrize("expression", ["0d6", "2d0", "2d1", "101d6", "2d1001"])
    def test_out_of_range(self, expression: str) -> None:
        with pytest.raises(OutOfRangeDice):
            parse(expression)

    def test_too_many_dice_in_total(self) -> None:
        with pytest.raises(OutOfRangeDice, match="Too many dice"):
            parse("100d6+100d6+1d6")

    def test_custom_dice_total(self) -> None:
        with pytest.raises(OutOfRangeDice):
            parse("3d6+3d6", max_dice=5)

    def test_keep_on_single_die(self) -> None:
        with pytest.raises(IncompatibleModifiers):
            parse("1d20k1")

    def test_keep_more_than_rolled(self) -> None:
        with pytest.raises(OutOfRangeDice):
            parse("4d6k5")

    @pytest.mark.parametrize(
        "expression",
        ["1" * 5000 + "d6", "1d" + "9" * 5000, "1d6+" + "9" * 5000, "4d6k" + "1" * 5000],
        ids=["count", "sides", "modifier", "keep"],
    )
    @pytest.mark.parametrize("strict", [False, True])
    def test_huge_numerals(self, expression: str, strict: bool) -> None:
        with pytest.raises(OutOfRangeDice, match="Number too large"):
            parse(expression, strict=strict)

    def test_ten_digit_modifier(self) -> None:
        with pytest.raises(OutOfRangeDice):
            parse("1d20+1000000000")

    def test_nine_digit_modifier(self) -> None:
        assert parse("1d20+999999999")[0].modifier == 999999999

    @pytest.mark.parametrize("expression", ["4d6k", "4d6kx", "4d6khl2"])
    def test_malformed_keep(self, expression: str) -> None:
        with pytest.raises(InvalidNotation):
            parse(expression)


class TestTokenize:
    def test_terms_and_modifiers(self) -> None:
        assert tokenize("2d6-3") == [
            DiceTerm(spec=DiceSpec(sides=6, count=2)),
            FlatModifier(value=3, sign=-1),
        ]

    def test_signed_dice_term(self) -> None:
        (term,) = tokenize("-4d6k3")
        assert term.sign == -1
        assert term.keep_highest == 3

    def test_flat_modifier_value(self) -> None:
        assert FlatModifier(value=4, sign=-1).signed_value == -4


class TestFormatting:
    def test_format_line(self) -> None:
        assert format_line(DiceLine(dice_count=3, dice_sides=6, modifier=2)) == "3d6+2"
        assert format_line(DiceLine(dice_count=3, dice_sides=6, modifier=-1)) == "3d6-1"
        assert format_line(DiceLine(dice_count=1, dice_sides=20)) == "1d20"

    def test_format_subtract_line(self) -> None:
        line = DiceLine(dice_count=1, dice_sides=8, modifier=5, operation=Operation.subtract)
        assert format_line(line) == "-1d8+5"

    def test_format_keep(self) -> None:
        assert format_line(DiceLine(dice_count=4, dice_sides=6, keep_highest=3)) == "4d6k3"
        assert format_line(DiceLine(dice_count=4, dice_sides=6, keep_lowest=1)) == "4d6kl1"

    def test_format_expression(self) -> None:
        assert format_expression(parse("3d6+2d4-1d8+5")) == "3d6+2d4-1d8+5"

    def test_format_expression_normalizes(self) -> None:
        assert format_expression(parse("5 + d20 + 2 + 2d6")) == "1d20+7+2d6"

    @pytest.mark.parametrize(
        "line",
        [
            DiceLine(dice_count=1, dice_sides=20),
            DiceLine(dice_count=3, dice_sides=6, modifier=2),
            DiceLine(dice_count=2, dice_sides=10, modifier=-4),
            DiceLine(dice_count=1, dice_sides=8, modifier=5, operation=Operation.subtract),
            DiceLine(dice_count=1, dice_sides=12, modifier=-2, operation=Operation.subtract),
            DiceLine(dice_count=4, dice_sides=6, keep_highest=3),
            DiceLine(dice_count=5, dice_sides=100, keep_lowest=2, modifier=1),
        ],
        ids=lambda line: format_line(line),
    )
    def test_format_then_parse(self, line: DiceLine) -> None:
        (parsed,) = parse(format_line(line), strict=True)
        assert _shape(parsed) == _shape(line)

    def test_describe_line(self) -> None:
        line = DiceLine(dice_count=1, dice_sides=20, modifier=5, roll_mode=RollMode.advantage)
        assert describe_line(line) == "1d20+5 (Advantage)"

    def test_describe_exploding(self) -> None:
        line = DiceLine(dice_count=2, dice_sides=6, exploding=True)
        assert describe_line(line) == "2d6 (Exploding)"

    def test_describe_disadvantage(self) -> None:
        line = DiceLine(roll_mode=RollMode.disadvantage)
        assert describe_line(line) == "1d20 (Disadvantage)"

    def test_describe_pool(self, scripted) -> None:
        pool = roll_pool({"d6": 2, "d20": 1}, scripted([1, 2, 3]), bonus=1, penalty=4)
        assert describe_pool(pool) == "2d6+1d20-3"

    def test_describe_pool_without_modifier(self, scripted) -> None:
        pool = roll_pool({"d8": 1}, scripted([5]), bonus=2, penalty=2)
        assert describe_pool(pool) == "1d8"
