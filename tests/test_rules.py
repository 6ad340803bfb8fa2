import socket
import threading

import pytest

from pii_audit.errors import ConfigurationError
from pii_audit.failures import Failure, FailureClassification, FailurePart
from pii_audit.rules import (
    AllowlistRule,
    ConsensusRule,
    PartPatternFilterRule,
    RegexRule,
    RuleAction,
    RulePriority,
    RuleSet,
    SocketRule,
    sort_rules,
)

LOC = FailureClassification.LOCATION


class TestRegexRule:
    def test_column_mismatch(self):
        rule = RegexRule(action=RuleAction.IGNORE, if_column="Modality")
        assert rule.apply("Narrative", "CT") == (RuleAction.NONE, [])
        assert rule.apply("modality", "CT") == (RuleAction.IGNORE, [])

    def test_pattern_no_match(self):
        rule = RegexRule(action=RuleAction.REPORT, if_pattern="Kansas", as_=LOC)
        assert rule.apply("Narrative", "Oz") == (RuleAction.NONE, [])

    def test_report_one_part_per_match(self):
        rule = RegexRule(action=RuleAction.REPORT, if_pattern="kansas", as_=LOC)
        action, parts = rule.apply("Narrative", "Kansas, Kansas")
        assert action == RuleAction.REPORT
        assert parts == [FailurePart("Kansas", LOC, 0), FailurePart("Kansas", LOC, 8)]

    def test_case_sensitive(self):
        rule = RegexRule(action=RuleAction.REPORT, if_pattern="kansas", as_=LOC, case_sensitive=True)
        assert rule.apply("Narrative", "Kansas")[0] == RuleAction.NONE

    def test_report_column_without_pattern_reports_whole_value(self):
        rule = RegexRule(action=RuleAction.REPORT, if_column="PatientName", as_=FailureClassification.PERSON)
        assert rule.apply("PatientName", "Smith^John") == (
            RuleAction.REPORT,
            [FailurePart("Smith^John", FailureClassification.PERSON, 0)],
        )

    def test_neither_column_nor_pattern(self):
        rule = RegexRule(action=RuleAction.IGNORE)
        with pytest.raises(ValueError):
            rule.apply("a", "b")
        with pytest.raises(ConfigurationError):
            rule.check_setup()

    def test_malformed_pattern_rejected_on_construction(self):
        with pytest.raises(ConfigurationError):
            RegexRule(action=RuleAction.REPORT, if_pattern="([a-z", as_=LOC)

    def test_is_identical(self):
        a = RegexRule(action=RuleAction.IGNORE, if_column="c", if_pattern="p")
        assert a.is_identical(RegexRule(action=RuleAction.IGNORE, if_column="c", if_pattern="p", as_=LOC))
        assert not a.is_identical(RegexRule(action=RuleAction.REPORT, if_column="c", if_pattern="p"))
        assert not a.is_identical(RegexRule(action=RuleAction.IGNORE, if_pattern="p"))

    def test_covers(self, kansas_failure):
        assert RegexRule(action=RuleAction.IGNORE, if_pattern="Toto$").covers(kansas_failure)
        assert not RegexRule(action=RuleAction.IGNORE, if_pattern="^Toto").covers(kansas_failure)


class TestAllowlistRule:
    def test_plain_apply_does_nothing(self):
        assert AllowlistRule(if_pattern=".*").apply("a", "b") == (RuleAction.NONE, [])

    def test_all_conditions_must_hold(self):
        part = FailurePart("Kansas", LOC, 13)
        rule = AllowlistRule(if_column="Narrative", if_pattern="Toto", if_part_pattern="^kansas$", as_=LOC)
        value = "We aren't in Kansas anymore Toto"
        assert rule.apply_allowlist_rule("Narrative", value, part) == RuleAction.IGNORE
        assert rule.apply_allowlist_rule("Other", value, part) == RuleAction.NONE
        assert rule.apply_allowlist_rule("Narrative", "Kansas", part) == RuleAction.NONE
        person = FailurePart("Kansas", FailureClassification.PERSON, 13)
        assert rule.apply_allowlist_rule("Narrative", value, person) == RuleAction.NONE

    def test_malformed_part_pattern_rejected_on_construction(self):
        with pytest.raises(ConfigurationError):
            AllowlistRule(if_part_pattern="[unclosed")

    def test_part_filter_rule_counts_usage(self):
        rule = PartPatternFilterRule(if_part_pattern="^Toto$")
        assert rule.covers_part(FailurePart("Toto", LOC, 28), "We aren't in Kansas anymore Toto")
        rule.increment_used()
        rule.increment_used()
        assert rule.used == 2


class TestConsensusRule:
    def test_reports_agreed_parts_only(self):
        rule = ConsensusRule(rules=[
            RegexRule(action=RuleAction.REPORT, if_pattern="Kansas|Toto", as_=LOC),
            RegexRule(action=RuleAction.REPORT, if_pattern="Kansas", as_=LOC),
        ])
        action, parts = rule.apply("Narrative", "We aren't in Kansas anymore Toto")
        assert action == RuleAction.REPORT
        assert [p.word for p in parts] == ["Kansas"]

    def test_disagreement_is_none(self):
        rule = ConsensusRule(rules=[
            RegexRule(action=RuleAction.REPORT, if_pattern="Kansas", as_=LOC),
            RegexRule(action=RuleAction.REPORT, if_pattern="Toto", as_=LOC),
        ])
        assert rule.apply("Narrative", "We aren't in Kansas anymore Toto") == (RuleAction.NONE, [])

    def test_all_ignore(self):
        rule = ConsensusRule(rules=[
            RegexRule(action=RuleAction.IGNORE, if_pattern="Kansas"),
            RegexRule(action=RuleAction.IGNORE, if_column="Narrative"),
        ])
        assert rule.apply("Narrative", "Kansas") == (RuleAction.IGNORE, [])
        assert rule.apply("Other", "Kansas") == (RuleAction.NONE, [])


def test_sort_rules_by_priority_band():
    report = RegexRule(action=RuleAction.REPORT, if_pattern="a")
    ignore = RegexRule(action=RuleAction.IGNORE, if_pattern="b")
    inert = RegexRule(action=RuleAction.NONE, if_pattern="c")
    consensus = ConsensusRule(rules=[report, report])
    sock = SocketRule(port=1)
    ignore2 = RegexRule(action=RuleAction.IGNORE, if_pattern="d")

    ordered = sort_rules([inert, sock, consensus, report, ignore, ignore2])
    assert ordered[0] is ignore and ordered[1] is ignore2
    assert ordered[2] is report
    assert [r.priority for r in ordered] == sorted(r.priority for r in ordered)
    assert ordered[-1] is inert
    assert sock.priority == RulePriority.SOCKET


def _serve_once(server: socket.socket, reply: bytes, received: list):
    conn, _ = server.accept()
    with conn:
        buf = b""
        while buf.count(b"\0") < 2:
            chunk = conn.recv(1024)
            if not chunk:
                return
            buf += chunk
        received.append(buf)
        conn.sendall(reply)


class TestSocketRule:
    def _server(self, reply):
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.bind(("127.0.0.1", 0))
        server.listen(1)
        received = []
        t = threading.Thread(target=_serve_once, args=(server, reply, received), daemon=True)
        t.start()
        return server, t, received

    def test_parts_from_reply(self):
        server, t, received = self._server(b"Person\x006\x00Smith\x00\x00")
        rule = SocketRule(host="127.0.0.1", port=server.getsockname()[1], timeout=5)
        try:
            action, parts = rule.apply("Narrative", "David Smith")
        finally:
            rule.close()
            t.join(5)
            server.close()

        assert received == [b"Narrative\x00David Smith\x00"]
        assert action == RuleAction.REPORT
        assert parts == [FailurePart("Smith", FailureClassification.PERSON, 6)]

    def test_empty_reply(self):
        server, t, _ = self._server(b"\x00")
        rule = SocketRule(host="127.0.0.1", port=server.getsockname()[1], timeout=5)
        try:
            assert rule.apply("Narrative", "nothing here") == (RuleAction.NONE, [])
        finally:
            rule.close()
            t.join(5)
            server.close()


class TestRuleSet:
    def test_sections(self):
        rs = RuleSet.from_yaml(
            "BasicRules:\n"
            "  - Action: Ignore\n"
            "    IfColumn: Modality\n"
            "  - Action: Report\n"
            "    IfPattern: 'Kansas'\n"
            "    As: Location\n"
            "AllowlistRules:\n"
            "  - IfPartPattern: ^NHS$\n"
            "SocketRules:\n"
            "  - Host: localhost\n"
            "    Port: 1881\n"
            "ConsensusRules:\n"
            "  - Rules:\n"
            "      - !SocketRule {Host: localhost, Port: 1881}\n"
            "      - !SocketRule {Host: localhost, Port: 1882}\n"
        )
        assert rs.basic_rules == [
            RegexRule(action=RuleAction.IGNORE, if_column="Modality"),
            RegexRule(action=RuleAction.REPORT, if_pattern="Kansas", as_=LOC),
        ]
        assert rs.allowlist_rules == [AllowlistRule(if_part_pattern="^NHS$")]
        assert rs.socket_rules[0].port == 1881
        assert [r.port for r in rs.consensus_rules[0].rules] == [1881, 1882]
        assert len(rs.custom_rules()) == 4

    def test_tagged_sequence(self):
        rs = RuleSet.from_yaml(
            "- !RegexRule\n"
            "  Action: Report\n"
            "  IfPattern: Toto\n"
            "- !AllowlistRule\n"
            "  IfColumn: Narrative\n"
        )
        assert len(rs.basic_rules) == 1
        assert rs.allowlist_rules == [AllowlistRule(if_column="Narrative")]

    def test_unknown_section(self):
        with pytest.raises(ConfigurationError):
            RuleSet.from_yaml("MysteryRules: []\n")

    def test_unknown_field(self):
        with pytest.raises(ConfigurationError):
            RuleSet.from_yaml("BasicRules:\n  - Action: Report\n    IfPatern: typo\n")

    def test_bad_classification(self):
        with pytest.raises(ConfigurationError):
            RuleSet.from_yaml("BasicRules:\n  - Action: Report\n    IfPattern: x\n    As: Planet\n")

    def test_malformed_pattern(self):
        with pytest.raises(ConfigurationError):
            RuleSet.from_yaml("BasicRules:\n  - Action: Report\n    IfPattern: '([a-z'\n    As: Person\n")

    def test_rule_without_column_or_pattern(self):
        with pytest.raises(ConfigurationError):
            RuleSet.from_yaml("BasicRules:\n  - Action: Ignore\n")

    def test_consensus_needs_two_rules(self):
        with pytest.raises(ConfigurationError):
            RuleSet.from_yaml("ConsensusRules:\n  - Rules:\n      - !SocketRule {Port: 1}\n")

    def test_empty(self):
        assert RuleSet.from_yaml("").is_empty()
