"""
Tests for the trial/condition index.
"""

import logging

import pandas as pd
import pytest

from ieeg_power.exceptions import UnknownCondition
from ieeg_power.trials import TrialIndex


@pytest.fixture
def index(epoch_table):
    return TrialIndex.from_table(epoch_table)


def test_from_table_builds_conditions(index):
    assert index.trials == (1, 2, 3, 4)
    assert index.conditions == frozenset({"drive_av", "last_av", "drive_a", "last_a"})
    assert len(index) == 4
    assert 3 in index
    assert 7 not in index


def test_trials_for_single_label(index):
    assert index.trials_for("drive_av") == frozenset({1})


def test_trials_for_label_set(index):
    """Test the selection used for the audio-visual panel."""
    assert index.trials_for({"drive_av", "last_av"}) == frozenset({1, 2})


def test_trials_for_unknown_label_warns(index, caplog):
    """Unmatched labels are logged, matched labels are still returned."""
    with caplog.at_level(logging.WARNING, logger="ieeg_power.trials"):
        trials = index.trials_for({"drive_av", "meow"})

    assert trials == frozenset({1})
    assert "meow" in caplog.text


def test_trials_for_only_unknown_labels_returns_empty(index):
    assert index.trials_for({"meow"}) == frozenset()


def test_trials_for_strict_raises(epoch_table):
    index = TrialIndex.from_table(epoch_table, strict=True)

    with pytest.raises(UnknownCondition, match="meow"):
        index.trials_for({"drive_av", "meow"})


def test_trials_for_strict_accepts_known_labels(epoch_table):
    index = TrialIndex.from_table(epoch_table, strict=True)

    assert index.trials_for("last_a") == frozenset({4})


def test_trials_where_suffix(index):
    assert index.trials_where(lambda label: label.endswith("_av")) == frozenset({1, 2})
    assert index.trials_where(lambda label: label.endswith("_a")) == frozenset({3, 4})


def test_condition_labels_are_strings():
    """Numeric condition codes are looked up by their string label."""
    index = TrialIndex.from_table(
        pd.DataFrame({"Trial": [1, 2, 3], "Condition": [4, 1, 4]})
    )

    assert index.trials_for("4") == frozenset({1, 3})
    assert index.condition_of(2) == "1"


def test_from_rows():
    index = TrialIndex.from_table(
        [
            {"Trial": 10, "Condition": "x", "Response": 0.4},
            {"Trial": 11, "Condition": "y", "Response": 0.7},
        ]
    )

    assert index.trials == (10, 11)
    assert index.covariate(11, "Response") == 0.7


def test_covariates(index):
    assert index.covariate(2, "Onset") == 4.5

    with pytest.raises(KeyError):
        index.covariate(2, "Response")
    with pytest.raises(KeyError):
        index.covariate(99, "Onset")


def test_from_table_missing_column():
    with pytest.raises(ValueError, match="Condition"):
        TrialIndex.from_table(pd.DataFrame({"Trial": [1, 2]}))


def test_from_table_duplicated_trials():
    with pytest.raises(ValueError, match="duplicated"):
        TrialIndex.from_table(pd.DataFrame({"Trial": [1, 1], "Condition": ["a", "b"]}))


def test_to_frame_round_trip(index, epoch_table):
    frame = index.to_frame()

    assert list(frame.columns) == ["Trial", "Condition", "Onset"]
    pd.testing.assert_frame_equal(frame, epoch_table, check_dtype=False)


def test_restrict_keeps_order_and_strictness(epoch_table):
    index = TrialIndex.from_table(epoch_table, strict=True)

    restricted = index.restrict([4, 2])

    assert restricted.trials == (2, 4)
    assert restricted.strict is True
    assert restricted.covariate(4, "Onset") == 10.5


def test_index_is_read_only(index):
    with pytest.raises(AttributeError):
        index.strict = True
