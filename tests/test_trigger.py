import itertools

import pytest

from matrixci.errors import ConfigurationError
from matrixci.model import Event, TriggerRule
from matrixci.trigger import TriggerListener

RULES = [
    TriggerRule(kind="push", branches=("master",)),
    TriggerRule(kind="pull_request", branches=("master", "release/*")),
]


@pytest.mark.parametrize(
    "kind, branch, expected",
    [
        (kind, branch, (kind, branch) in {
            ("push", "master"),
            ("pull_request", "master"),
            ("pull_request", "release/1.0"),
        })
        for kind, branch in itertools.product(
            ["push", "pull_request"],
            ["master", "main", "release/1.0", "feature/x", "masterpiece"],
        )
    ],
)
def test_accepts_table(kind, branch, expected):
    listener = TriggerListener(RULES)
    assert listener.accepts(Event(kind=kind, branch=branch)) is expected


def test_rule_without_branches_matches_any_branch():
    listener = TriggerListener([TriggerRule(kind="push")])
    assert listener.accepts(Event(kind="push", branch="whatever"))
    assert not listener.accepts(Event(kind="pull_request", branch="whatever"))


@pytest.mark.parametrize(
    "event",
    [
        Event(kind="push", branch=None),
        Event(kind="push", branch=""),
        Event(kind="tag", branch="master"),
        None,
        {"kind": "push", "branch": "master"},
    ],
)
def test_malformed_events_are_rejected_without_raising(event):
    assert TriggerListener(RULES).accepts(event) is False


def test_matching_rule_reports_first_match():
    listener = TriggerListener(RULES)
    rule = listener.matching_rule(Event(kind="pull_request", branch="release/2"))
    assert rule is RULES[1]


def test_no_rules_accepts_nothing():
    assert not TriggerListener([]).accepts(Event(kind="push", branch="master"))


def test_unknown_rule_kind_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        TriggerListener([TriggerRule(kind="schedule")])
