"""
Dicekeeper - Checked Roll Pipeline Tests

Tests for classification, request parsing, and the sanity and growth checks.
"""

from unittest.mock import MagicMock

import pytest
from src.database.character_store import InMemoryCharacterStore
from src.engine.attributes import SANITY
from src.engine.base import CheckRule, SuccessLevel
from src.engine.checks import (
    CheckRequest,
    GrowthCheck,
    GrowthFormula,
    GrowthRequest,
    SanityCheck,
    SanityCost,
    SanityRequest,
    classify,
)
from src.engine.errors import (
    FormatError,
    MissingAttributeError,
    RandomSourceError,
    RangeError,
)


# === Classify ===


class TestClassifyDefaultRule:
    """Tests for classify() under rule 0."""

    @pytest.mark.parametrize("roll, level", [
        (1, SuccessLevel.CRITICAL_SUCCESS),
        (10, SuccessLevel.EXTREME_SUCCESS),
        (11, SuccessLevel.HARD_SUCCESS),
        (25, SuccessLevel.HARD_SUCCESS),
        (26, SuccessLevel.SUCCESS),
        (50, SuccessLevel.SUCCESS),
        (51, SuccessLevel.FAIL),
        (96, SuccessLevel.FAIL),
        (100, SuccessLevel.CRITICAL_FAIL),
    ])
    def test_reference_fifty(self, roll, level):
        assert classify(roll, 50) == level

    @pytest.mark.parametrize("roll, level", [
        (95, SuccessLevel.FAIL),
        (96, SuccessLevel.CRITICAL_FAIL),
        (100, SuccessLevel.CRITICAL_FAIL),
    ])
    def test_low_reference_fumbles_from_96(self, roll, level):
        assert classify(roll, 40) == level

    def test_critical_checked_before_fumble(self):
        assert classify(1, 0) == SuccessLevel.CRITICAL_SUCCESS

    def test_zero_reference_never_succeeds_without_critical(self):
        assert classify(2, 0) == SuccessLevel.FAIL


class TestClassifyHouseRules:
    """Tests for classify() under rules 1-5."""

    @pytest.mark.parametrize("rule, roll, reference, level", [
        # Rule 1: 1-5 crit only at 50+
        (CheckRule.RULE_1, 5, 60, SuccessLevel.CRITICAL_SUCCESS),
        (CheckRule.RULE_1, 5, 40, SuccessLevel.EXTREME_SUCCESS),
        # Rule 2: crit within skill, fumble 96-99 only above skill
        (CheckRule.RULE_2, 4, 3, SuccessLevel.FAIL),
        (CheckRule.RULE_2, 3, 3, SuccessLevel.CRITICAL_SUCCESS),
        (CheckRule.RULE_2, 97, 80, SuccessLevel.CRITICAL_FAIL),
        (CheckRule.RULE_2, 97, 99, SuccessLevel.SUCCESS),
        # Rule 3: flat 1-5 / 96-100
        (CheckRule.RULE_3, 5, 10, SuccessLevel.CRITICAL_SUCCESS),
        (CheckRule.RULE_3, 96, 90, SuccessLevel.CRITICAL_FAIL),
        # Rule 4: scaled by skill/10
        (CheckRule.RULE_4, 5, 50, SuccessLevel.CRITICAL_SUCCESS),
        (CheckRule.RULE_4, 5, 40, SuccessLevel.EXTREME_SUCCESS),
        (CheckRule.RULE_4, 99, 40, SuccessLevel.FAIL),
        (CheckRule.RULE_4, 99, 30, SuccessLevel.CRITICAL_FAIL),
        # Rule 5: crit 1-2 under skill/5
        (CheckRule.RULE_5, 2, 50, SuccessLevel.CRITICAL_SUCCESS),
        (CheckRule.RULE_5, 2, 10, SuccessLevel.EXTREME_SUCCESS),
        (CheckRule.RULE_5, 98, 60, SuccessLevel.FAIL),
        (CheckRule.RULE_5, 99, 60, SuccessLevel.CRITICAL_FAIL),
        (CheckRule.RULE_5, 96, 40, SuccessLevel.CRITICAL_FAIL),
    ])
    def test_rule(self, rule, roll, reference, level):
        assert classify(roll, reference, rule) == level


# === Requests ===


class TestSanityCost:
    """Tests for SanityCost.parse()."""

    def test_valid(self):
        cost = SanityCost.parse("0/1d6")
        assert cost == SanityCost(success="0", failure="1d6")
        assert str(cost) == "0/1d6"

    def test_compound_expressions(self):
        assert SanityCost.parse("1d4+1/2D6-1").failure == "2D6-1"

    @pytest.mark.parametrize("text", ["1d6", "0/1d6/2", "0/abc", "1x/2", "/1d6", ""])
    def test_invalid(self, text):
        with pytest.raises(FormatError):
            SanityCost.parse(text)


class TestGrowthFormula:
    """Tests for GrowthFormula."""

    def test_parse(self):
        formula = GrowthFormula.parse("+1D3/1D10")
        assert formula.success == "1D3"
        assert formula.failure == "1D10"
        assert str(formula) == "+1D3/1D10"

    @pytest.mark.parametrize("text", ["1D3/1D10", "+1D3", "+3/1D10", "+1D3/1D10/2"])
    def test_invalid(self, text):
        assert GrowthFormula.matches(text) is False
        with pytest.raises(FormatError):
            GrowthFormula.parse(text)


class TestSanityRequest:
    """Tests for SanityRequest.from_args()."""

    def test_cost_only(self):
        request = SanityRequest.from_args("user_1", ["0/1d6"])
        assert request.attribute == SANITY
        assert request.explicit_value is None
        assert request.reason == ""

    def test_explicit_value_and_reason(self):
        request = SanityRequest.from_args("user_1", ["1/1d4+1", "45", "看到了", "深潜者"])
        assert request.explicit_value == 45
        assert request.reason == "看到了 深潜者"
        assert request.cost == SanityCost("1", "1d4+1")

    def test_reason_without_value(self):
        assert SanityRequest.from_args("user_1", ["0/1", "尸体"]).reason == "尸体"

    def test_oversized_number_is_reason(self):
        request = SanityRequest.from_args("user_1", ["0/1", "9" * 5000])
        assert request.explicit_value is None
        assert request.reason == "9" * 5000

    def test_no_args(self):
        with pytest.raises(FormatError):
            SanityRequest.from_args("user_1", [])


class TestGrowthRequest:
    """Tests for GrowthRequest.from_args()."""

    def test_skill_only(self):
        request = GrowthRequest.from_args("user_1", ["侦查"])
        assert request.attribute == "侦查"
        assert request.formula is None

    def test_explicit_value(self):
        assert GrowthRequest.from_args("user_1", ["侦查", "40"]).explicit_value == 40

    def test_oversized_number_is_reason(self):
        request = GrowthRequest.from_args("user_1", ["侦查", "9" * 5000])
        assert request.explicit_value is None
        assert request.reason == "9" * 5000

    def test_formula(self):
        request = GrowthRequest.from_args("user_1", ["侦查", "+1D3/1D10", "幕间成长"])
        assert request.formula == GrowthFormula("1D3", "1D10")
        assert request.explicit_value is None
        assert request.reason == "幕间成长"

    def test_no_args(self):
        with pytest.raises(FormatError):
            GrowthRequest.from_args("user_1", [])


# === Sanity Check ===


class TestSanityCheck:
    """Tests for SanityCheck.run()."""

    def run(self, store, source, args, rule=CheckRule.RULE_0):
        check = SanityCheck(source, store, rule=rule)
        return check.run(SanityRequest.from_args("user_1", args))

    def test_failure_loses_failure_expression(self, character_store, scripted):
        outcome = self.run(character_store, scripted(80, 4), ["0/1d6"])
        assert outcome.roll_value == 80
        assert outcome.reference_value == 50
        assert outcome.success_level == SuccessLevel.FAIL
        assert outcome.magnitude == 4
        assert outcome.new_value == 46
        assert outcome.committed is True
        assert character_store.get_attribute("user_1", SANITY) == 46

    def test_success_loses_success_expression(self, character_store, scripted):
        outcome = self.run(character_store, scripted(20), ["0/1d6"])
        assert outcome.success_level == SuccessLevel.HARD_SUCCESS
        assert outcome.magnitude == 0
        assert outcome.new_value == 50
        assert outcome.committed is False
        assert character_store.get_attribute("user_1", SANITY) == 50

    def test_success_with_nonzero_loss_commits(self, character_store, scripted):
        outcome = self.run(character_store, scripted(30, 2), ["1d3/1d6"])
        assert outcome.success_level == SuccessLevel.SUCCESS
        assert outcome.new_value == 48
        assert outcome.committed is True

    def test_fumble_loses_maximum(self, character_store, scripted):
        outcome = self.run(character_store, scripted(100), ["0/1d6"])
        assert outcome.success_level == SuccessLevel.CRITICAL_FAIL
        assert outcome.magnitude == 6
        assert outcome.magnitude_detail == "Max{1d6}=6"
        assert outcome.new_value == 44

    def test_fumble_minimises_subtracted_dice(self, character_store, scripted):
        outcome = self.run(character_store, scripted(100), ["0/1d6-1d4"])
        assert outcome.magnitude == 5
        assert outcome.magnitude_detail == "Max{1d6-1d4}=5"
        assert outcome.new_value == 45

    def test_house_rule_changes_fumble_band(self, character_store, scripted):
        outcome = self.run(character_store, scripted(97), ["0/1d6"], rule=CheckRule.RULE_3)
        assert outcome.success_level == SuccessLevel.CRITICAL_FAIL
        assert outcome.new_value == 44

    def test_value_never_negative(self, scripted):
        store = InMemoryCharacterStore({"user_1": {SANITY: 3}})
        outcome = self.run(store, scripted(80, 6), ["0/1d6"])
        assert outcome.new_value == 0
        assert store.get_attribute("user_1", SANITY) == 0

    def test_explicit_value_is_not_written(self, character_store, scripted):
        outcome = self.run(character_store, scripted(80, 3), ["0/1d6", "30"])
        assert outcome.reference_value == 30
        assert outcome.new_value == 27
        assert outcome.committed is False
        assert character_store.get_attribute("user_1", SANITY) == 50

    def test_explicit_value_without_card(self, scripted):
        store = InMemoryCharacterStore()
        outcome = self.run(store, scripted(10), ["0/1d6", "60"])
        assert outcome.success_level == SuccessLevel.EXTREME_SUCCESS
        assert store.get_all_attributes("user_1") == {}

    def test_missing_sanity(self, scripted):
        with pytest.raises(MissingAttributeError) as exc_info:
            self.run(InMemoryCharacterStore(), scripted(50), ["0/1d6"])
        assert exc_info.value.attribute == SANITY

    @pytest.mark.parametrize("args", [["0/1d6", "0"], ["0/1d6", "-5"]])
    def test_non_positive_explicit_value(self, character_store, scripted, args):
        with pytest.raises(RangeError):
            self.run(character_store, scripted(50), args)

    def test_zero_stored_sanity(self, scripted):
        store = InMemoryCharacterStore({"user_1": {SANITY: 0}})
        with pytest.raises(RangeError):
            self.run(store, scripted(50), ["0/1d6"])

    def test_bad_magnitude_expression_writes_nothing(self, character_store, scripted):
        with pytest.raises(FormatError):
            self.run(character_store, scripted(80, 3), ["0/1d6-"])
        assert character_store.get_attribute("user_1", SANITY) == 50

    def test_bad_fumble_expression(self, character_store, scripted):
        with pytest.raises(FormatError):
            self.run(character_store, scripted(100), ["0/1d6-"])

    def test_primary_roll_failure_propagates(self, character_store, failing_source):
        with pytest.raises(RandomSourceError):
            self.run(character_store, failing_source, ["0/1d6"])
        assert character_store.get_attribute("user_1", SANITY) == 50

    def test_rejected_write_is_not_committed(self, scripted):
        store = MagicMock()
        store.get_attribute.return_value = 50
        store.set_attribute.return_value = False
        outcome = self.run(store, scripted(80, 4), ["0/1d6"])
        assert outcome.new_value == 46
        assert outcome.committed is False
        store.set_attribute.assert_called_once_with("user_1", SANITY, 46, 100)

    def test_requires_cost(self, character_store, scripted):
        check = SanityCheck(scripted(50), character_store)
        with pytest.raises(FormatError):
            check.run(CheckRequest(card_id="user_1", attribute=SANITY))

    def test_invalid_rule(self, character_store, scripted):
        with pytest.raises(RangeError):
            SanityCheck(scripted(), character_store, rule=7)


# === Growth Check ===


class TestGrowthCheck:
    """Tests for GrowthCheck.run()."""

    def run(self, store, source, args):
        return GrowthCheck(source, store).run(GrowthRequest.from_args("user_1", args))

    def test_roll_above_skill_grows(self, character_store, scripted):
        outcome = self.run(character_store, scripted(75, 7), ["教育"])
        assert outcome.success_level == SuccessLevel.SUCCESS
        assert outcome.magnitude == 7
        assert outcome.new_value == 67
        assert outcome.committed is True
        assert character_store.get_attribute("user_1", "教育") == 67

    @pytest.mark.parametrize("roll", [40, 60])
    def test_roll_at_or_below_skill_fails(self, character_store, scripted, roll):
        outcome = self.run(character_store, scripted(roll), ["教育"])
        assert outcome.success_level == SuccessLevel.FAIL
        assert outcome.magnitude == 0
        assert outcome.new_value == 60
        assert outcome.committed is False

    def test_alias_resolves_to_stored_name(self, character_store, scripted):
        self.run(character_store, scripted(90, 1), ["EDU"])
        assert character_store.get_attribute("user_1", "教育") == 61

    def test_explicit_value_is_not_written(self, character_store, scripted):
        outcome = self.run(character_store, scripted(50, 5), ["教育", "30"])
        assert outcome.new_value == 35
        assert outcome.committed is False
        assert character_store.get_attribute("user_1", "教育") == 60

    def test_formula_rolls_success_part(self, character_store, scripted):
        outcome = self.run(character_store, scripted(75, 2), ["教育", "+1D3/1D10"])
        assert outcome.magnitude == 2
        assert outcome.new_value == 62

    def test_formula_not_rolled_on_failure(self, character_store, scripted):
        outcome = self.run(character_store, scripted(10), ["教育", "+1D3/1D10"])
        assert outcome.magnitude == 0
        assert outcome.magnitude_detail == ""

    def test_missing_skill(self, character_store, scripted):
        with pytest.raises(MissingAttributeError) as exc_info:
            self.run(character_store, scripted(50), ["侦查"])
        assert exc_info.value.attribute == "侦查"

    def test_zero_skill_is_allowed(self, character_store, scripted):
        outcome = self.run(character_store, scripted(1, 3), ["侦查", "0"])
        assert outcome.new_value == 3
