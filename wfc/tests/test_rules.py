"""
Tests for rules and canonicalization.
"""

import pytest
from wfc.core import (
    BaseFrame, CanonicalSolverRule, Module, Rule, RuleConstructionError,
    RuleExplicit, RuleTyped, parse_rule,
)


def make_module(name, centers):
    return Module(name, [], BaseFrame.world(), centers, (1.0, 1.0, 1.0))


@pytest.fixture
def modules():
    """Single-cell modules a, b and a two-cell beam along X."""
    return [
        make_module("a", [(0, 0, 0)]),
        make_module("b", [(0, 0, 0)]),
        make_module("beam", [(0, 0, 0), (1, 0, 0)]),
    ]


class TestRuleExplicit:
    """Tests for RuleExplicit."""

    def test_lowercase(self):
        rule = RuleExplicit("A", 1, "Beam", 2)
        assert rule.source_module_name == "a"
        assert rule.target_module_name == "beam"

    def test_symmetric_equality(self):
        r1 = RuleExplicit("a", 1, "b", 2)
        r2 = RuleExplicit("b", 2, "a", 1)
        assert r1 == r2
        assert hash(r1) == hash(r2)
        assert len({r1, r2}) == 1
        assert r1.reversed() == r1

    def test_inequality(self):
        assert RuleExplicit("a", 1, "b", 2) != RuleExplicit("a", 2, "b", 1)
        assert RuleExplicit("a", 1, "b", 2) != RuleExplicit("a", 1, "c", 2)

    @pytest.mark.parametrize("args", [
        ("", 0, "b", 0),
        ("a", 0, "", 0),
        ("a", -1, "b", 0),
        ("a", 0, "b", -3),
    ])
    def test_construction_errors(self, args):
        with pytest.raises(RuleConstructionError):
            RuleExplicit(*args)

    def test_structural_validity(self):
        """Only a connector connecting to itself is invalid."""
        assert not RuleExplicit("a", 0, "a", 0).is_valid
        assert RuleExplicit("a", 0, "a", 3).is_valid
        assert RuleExplicit("a", 1, "b", 1).is_valid
        assert RuleExplicit("a", 0, "b", 3).is_valid
        assert "itself" in RuleExplicit("a", 0, "a", 0).why_invalid

    def test_valid_with_modules(self, modules):
        assert RuleExplicit("a", 0, "b", 3).is_valid_with_modules(modules)
        assert not RuleExplicit("a", 0, "b", 0).is_valid_with_modules(modules)
        assert not RuleExplicit("a", 0, "c", 3).is_valid_with_modules(modules)
        assert not RuleExplicit("a", 0, "b", 99).is_valid_with_modules(modules)

    def test_why_invalid_with_modules(self, modules):
        assert "non-existing module c" in RuleExplicit("a", 0, "c", 3).why_invalid_with_modules(modules)
        assert "not opposite" in RuleExplicit("a", 0, "b", 0).why_invalid_with_modules(modules)

    def test_uses_module(self):
        rule = RuleExplicit("a", 0, "b", 3)
        assert rule.uses_module("a")
        assert rule.uses_module("B")
        assert not rule.uses_module("c")

    def test_str(self):
        assert str(RuleExplicit("a", 1, "b", 4)) == "a:1 -> b:4"


class TestCanonicalization:
    """Tests for conversion to the solver form."""

    def test_internal_rule(self, modules):
        beam = modules[2]
        expected = CanonicalSolverRule("x", "beam0", "beam1")
        assert beam.internal_rules[0].to_canonical(modules) == expected
        assert beam.internal_rules[0].reversed().to_canonical(modules) == expected

    def test_declaration_order_does_not_matter(self, modules):
        expected = CanonicalSolverRule("x", "a0", "b0")
        assert RuleExplicit("a", 0, "b", 3).to_canonical(modules) == expected
        assert RuleExplicit("b", 3, "a", 0).to_canonical(modules) == expected

    def test_negative_source(self, modules):
        """a:5 faces -Z, so b sits below a."""
        assert RuleExplicit("a", 5, "b", 2).to_canonical(modules) == \
            CanonicalSolverRule("z", "b0", "a0")

    def test_target_resolved_against_own_module(self, modules):
        """beam:9 is the -X face of beam1; a has no connector 9."""
        assert RuleExplicit("a", 0, "beam", 9).to_canonical(modules) == \
            CanonicalSolverRule("x", "a0", "beam1")

    def test_unresolvable(self, modules):
        assert RuleExplicit("a", 0, "b", 0).to_canonical(modules) is None
        assert RuleExplicit("a", 0, "zzz", 3).to_canonical(modules) is None
        assert RuleExplicit("a", 0, "b", 6).to_canonical(modules) is None

    def test_accepts_mapping(self, modules):
        by_name = {m.name: m for m in modules}
        assert RuleExplicit("a", 1, "b", 4).to_canonical(by_name) == \
            CanonicalSolverRule("y", "a0", "b0")

    def test_invalid_axis(self):
        with pytest.raises(RuleConstructionError):
            CanonicalSolverRule("w", "a0", "b0")


class TestRuleTyped:
    """Tests for RuleTyped."""

    def test_lowercase(self):
        rule = RuleTyped("A", 2, "Wood")
        assert rule.module_name == "a"
        assert rule.connector_type == "wood"
        assert rule.is_valid

    @pytest.mark.parametrize("args", [("", 0, "t"), ("a", -1, "t"), ("a", 0, "")])
    def test_construction_errors(self, args):
        with pytest.raises(RuleConstructionError):
            RuleTyped(*args)

    def test_valid_with_modules(self, modules):
        assert RuleTyped("a", 5, "t").is_valid_with_modules(modules)
        assert not RuleTyped("a", 6, "t").is_valid_with_modules(modules)
        assert not RuleTyped("zzz", 0, "t").is_valid_with_modules(modules)
        assert RuleTyped("beam", 11, "t").is_valid_with_modules(modules)

    def test_expansion_opposite(self, modules):
        """a:0 faces +X, b:3 faces -X."""
        rules = RuleTyped("a", 0, "t").to_rules_explicit([RuleTyped("b", 3, "t")], modules)
        assert rules == [RuleExplicit("a", 0, "b", 3)]

    def test_expansion_not_opposite(self, modules):
        rules = RuleTyped("a", 0, "t").to_rules_explicit([RuleTyped("b", 0, "t")], modules)
        assert rules == []

    def test_expansion_other_type(self, modules):
        rules = RuleTyped("a", 0, "t").to_rules_explicit([RuleTyped("b", 3, "u")], modules)
        assert rules == []

    def test_expansion_skips_unresolvable(self, modules):
        others = [RuleTyped("zzz", 3, "t"), RuleTyped("b", 99, "t"), RuleTyped("b", 3, "t")]
        assert RuleTyped("a", 0, "t").to_rules_explicit(others, modules) == \
            [RuleExplicit("a", 0, "b", 3)]
        assert RuleTyped("zzz", 0, "t").to_rules_explicit(others, modules) == []

    def test_expansion_with_itself(self, modules):
        """Opposite faces of the same module may touch each other."""
        group = [RuleTyped("a", 0, "t"), RuleTyped("a", 3, "t")]
        assert group[0].to_rules_explicit(group, modules) == [RuleExplicit("a", 0, "a", 3)]

    def test_str(self):
        assert str(RuleTyped("a", 1, "wood")) == "a:1 = wood"


class TestRule:
    """Tests for the Rule sum type."""

    def test_explicit(self):
        rule = Rule.explicit("a", 0, "b", 3)
        assert rule.is_explicit and not rule.is_typed
        assert rule.as_explicit == RuleExplicit("a", 0, "b", 3)
        assert rule.as_typed is None

    def test_typed(self):
        rule = Rule.typed("a", 0, "t")
        assert rule.is_typed and not rule.is_explicit
        assert rule.as_typed == RuleTyped("a", 0, "t")
        assert rule.as_explicit is None

    def test_rejects_other_payload(self):
        with pytest.raises(RuleConstructionError):
            Rule("a:0 -> b:3")

    def test_equality(self):
        assert Rule.explicit("a", 1, "b", 2) == Rule.explicit("b", 2, "a", 1)
        assert Rule.explicit("a", 1, "b", 2) != Rule.typed("a", 1, "b")
        assert len({Rule.explicit("a", 1, "b", 2), Rule.explicit("b", 2, "a", 1)}) == 1

    def test_delegation(self, modules):
        rule = Rule.explicit("a", 0, "b", 3)
        assert rule.is_valid
        assert rule.is_valid_with_modules(modules)
        assert rule.uses_module("b")
        assert str(rule) == "a:0 -> b:3"


class TestParseRule:
    """Tests for the textual notation."""

    def test_explicit(self):
        assert parse_rule("A:1 -> b:4") == Rule.explicit("a", 1, "b", 4)
        assert parse_rule("  a : 1->b:4 ") == Rule.explicit("a", 1, "b", 4)

    def test_typed(self):
        assert parse_rule("a:1 = Wood") == Rule.typed("a", 1, "wood")

    @pytest.mark.parametrize("text", ["a -> b", "a:-1 -> b:2", "a:1 = ", "a:x = t", ""])
    def test_malformed(self, text):
        with pytest.raises(RuleConstructionError):
            parse_rule(text)

    def test_round_trip(self):
        for rule in [Rule.explicit("a", 1, "b", 4), Rule.typed("beam", 11, "indifferent")]:
            assert parse_rule(str(rule)) == rule
