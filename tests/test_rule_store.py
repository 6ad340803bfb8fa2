import os

import pytest

from pii_audit.errors import ConfigurationError
from pii_audit.rules import RegexRule, RuleAction, RuleStore, YamlRuleStore, make_generator, serialize
from pii_audit.rules.serialization import format_timestamp, load_from, serialize_with_comment

from .conftest import FIXED_NOW

ACTOR = "tester"


def _read(path):
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def _write(path, text):
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)


@pytest.fixture
def rules_path(tmp_path):
    return os.path.join(tmp_path, "rules.yaml")


@pytest.fixture
def store_factory(rules_path, clock):
    def make(**kwargs):
        return YamlRuleStore(rules_path, actor=ACTOR, clock=clock, **kwargs)
    return make


DELETED = f"# Rule deleted by {ACTOR} - {format_timestamp(FIXED_NOW)}\n"


class TestYamlRuleStore:
    def test_loads_existing_untagged_rules(self, rules_path, store_factory):
        _write(rules_path, "- Action: Report\n  IfPattern: foo\n")
        store = store_factory()
        assert store.rules == (RegexRule(action=RuleAction.REPORT, if_pattern="foo"),)

    def test_missing_file_created(self, rules_path, store_factory):
        store = store_factory()
        assert len(store) == 0
        assert os.path.exists(rules_path)

    def test_missing_file_not_created(self, store_factory):
        with pytest.raises(FileNotFoundError):
            store_factory(create_if_missing=False)

    def test_malformed_file(self, rules_path, store_factory):
        _write(rules_path, "- Action: [unclosed\n")
        with pytest.raises(ConfigurationError):
            store_factory()

    def test_malformed_pattern(self, rules_path, store_factory):
        _write(rules_path, "- Action: Ignore\n  IfPattern: '([a-z'\n")
        with pytest.raises(ConfigurationError):
            store_factory()

    def test_add_single(self, rules_path, store_factory):
        store = store_factory()
        rule = RegexRule()
        store.add(rule)
        assert _read(rules_path) == serialize_with_comment(rule, FIXED_NOW, ACTOR)

    def test_add_multiple(self, rules_path, store_factory):
        store = store_factory()
        r1 = RegexRule(if_column="col1")
        r2 = RegexRule(if_column="col2")
        store.add(r1)
        store.add(r2)
        assert _read(rules_path) == serialize_with_comment(r1, FIXED_NOW, ACTOR) + serialize_with_comment(r2, FIXED_NOW, ACTOR)

    def test_add_equivalent_rule_is_noop(self, rules_path, store_factory):
        store = store_factory()
        store.add(RegexRule(action=RuleAction.IGNORE, if_pattern="foo"))
        once = _read(rules_path)
        store.add(RegexRule(action=RuleAction.IGNORE, if_pattern="foo"))
        assert _read(rules_path) == once
        assert len(store) == 1

    def test_added_rules_reload(self, rules_path, store_factory):
        rule = RegexRule(action=RuleAction.REPORT, if_column="Narrative", if_pattern="^(Kansas).*(Toto)$")
        store_factory().add(rule)
        assert load_from(rules_path, create_if_missing=False) == [rule]

    def test_delete_existing_rule_from_file(self, rules_path, store_factory):
        rule = RegexRule(action=RuleAction.REPORT, if_pattern="foo")
        _write(rules_path, serialize(rule))
        store = store_factory()

        assert store.delete(rule)
        assert _read(rules_path) == DELETED
        assert len(store) == 0

    def test_delete_new_rule(self, rules_path, store_factory):
        rule = RegexRule(action=RuleAction.REPORT, if_pattern="foo")
        store = store_factory()
        store.add(rule)

        assert store.delete(rule)
        content = _read(rules_path)
        assert "# Rule deleted by" in content
        assert "IfPattern" not in content

    def test_delete_unknown_rule(self, store_factory):
        assert not store_factory().delete(RegexRule(action=RuleAction.REPORT, if_pattern="foo"))

    def test_undo_without_history(self, store_factory):
        store_factory().undo()

    def test_undo_single(self, rules_path, store_factory):
        store = store_factory()
        store.add(RegexRule())
        store.undo()
        assert _read(rules_path) == DELETED
        assert len(store) == 0

    def test_undo_last_of_two(self, rules_path, store_factory):
        store = store_factory()
        store.add(RegexRule(action=RuleAction.IGNORE, if_pattern="foo"))
        store.add(RegexRule(action=RuleAction.IGNORE, if_pattern="bar"))
        store.undo()

        content = _read(rules_path)
        assert "foo" in content
        assert "bar" not in content
        assert "# Rule deleted by" in content
        assert [r.if_pattern for r in store] == ["foo"]

    def test_no_temp_file_left(self, rules_path, store_factory):
        store = store_factory()
        store.add(RegexRule(action=RuleAction.IGNORE, if_pattern="foo"))
        store.undo()
        assert not os.path.exists(rules_path + ".tmp")


class TestRuleStore:
    def test_has_rule_covering_first_in_order(self, kansas_failure):
        store = RuleStore()
        first = RegexRule(action=RuleAction.IGNORE, if_pattern="Toto")
        second = RegexRule(action=RuleAction.IGNORE, if_column="Narrative")
        store.add(first)
        store.add(second)
        assert store.has_rule_covering(kansas_failure) == (True, first)

    def test_nothing_covers(self, kansas_failure):
        store = RuleStore()
        store.add(RegexRule(action=RuleAction.IGNORE, if_column="Other"))
        assert store.has_rule_covering(kansas_failure) == (False, None)

    def test_default_rule_not_added(self, kansas_failure):
        store = RuleStore(make_generator("parts", RuleAction.IGNORE))
        rule = store.default_rule_for(kansas_failure)
        assert rule.if_pattern == "(Kansas).*(Toto)$"
        assert rule not in store

    def test_contains_uses_equivalence(self):
        store = RuleStore()
        store.add(RegexRule(action=RuleAction.IGNORE, if_pattern="x"))
        assert RegexRule(action=RuleAction.IGNORE, if_pattern="x") in store
        assert "x" not in store
