import numpy as np
import pandas as pd
import pytest

from gramviz.core.errors import MissingValueWarning, TableContractError
from gramviz.core.table import (
    GROUP,
    NO_GROUP,
    PANEL,
    add_group,
    check_table,
    count_missing,
    remove_missing,
    resolution,
    split_apply,
)


def test_check_table_requires_panel_and_group():
    check_table(pd.DataFrame({PANEL: [1], GROUP: [-1]}), "stage")
    check_table(pd.DataFrame({PANEL: [1]}), "setup", require_group=False)
    with pytest.raises(TableContractError, match="group"):
        check_table(pd.DataFrame({PANEL: [1]}), "compute_aesthetics")
    with pytest.raises(TableContractError, match="missing values"):
        check_table(pd.DataFrame({PANEL: [1, None], GROUP: [1, 1]}), "finish")


def test_add_group_uses_discrete_columns():
    data = pd.DataFrame(
        {PANEL: [1, 1, 1, 1], "x": [1.0, 2.0, 3.0, 4.0], "colour": ["b", "a", "b", "a"], "label": ["p", "q", "r", "s"]}
    )
    grouped = add_group(data)
    assert list(grouped[GROUP]) == [2, 1, 2, 1]


def test_add_group_without_discrete_columns_is_no_group():
    grouped = add_group(pd.DataFrame({PANEL: [1, 1], "x": [1.0, 2.0]}))
    assert set(grouped[GROUP]) == {NO_GROUP}


def test_add_group_densifies_explicit_group():
    grouped = add_group(pd.DataFrame({PANEL: [1, 1, 1], GROUP: [10, 30, 10]}))
    assert list(grouped[GROUP]) == [1, 2, 1]


def test_split_apply_visits_partitions_in_sorted_order():
    data = pd.DataFrame({GROUP: [2, 1, 2, 1], "v": [1, 2, 3, 4]})
    out = split_apply(data, [GROUP], lambda part: part.assign(total=part["v"].sum()))
    assert list(out[GROUP]) == [1, 1, 2, 2]
    assert list(out["total"]) == [6, 6, 4, 4]


def test_split_apply_skips_empty_results():
    data = pd.DataFrame({GROUP: [1, 2], "v": [1, 2]})
    out = split_apply(data, [GROUP], lambda part: part[part["v"] > 1])
    assert list(out["v"]) == [2]


def test_remove_missing_warns_unless_na_rm():
    data = pd.DataFrame({"x": [1.0, np.nan, 3.0], "y": [1.0, 2.0, np.inf]})
    assert count_missing(data, ["x", "y"]) == 1
    assert count_missing(data, ["x", "y"], finite=True) == 2
    with pytest.warns(MissingValueWarning, match="Removed 1 rows"):
        kept = remove_missing(data, ["x", "y"])
    assert len(kept) == 2
    assert len(remove_missing(data, ["x", "y"], na_rm=True, finite=True)) == 1


def test_resolution():
    assert resolution([1, 2, 3]) == 1.0
    assert resolution([0.5, 0.75, 1.5], zero=False) == pytest.approx(0.25)
