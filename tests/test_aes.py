import pandas as pd
import pytest

from gramviz.core.errors import AestheticEvaluationError, SpecificationError
from gramviz.pipeline.aes import (
    AFTER_STAT,
    Aes,
    Expr,
    aes,
    after_stat,
    check_required_aesthetics,
    evaluate_mapping,
    standardise_aes_name,
)


def test_mapping_normalises_names_and_values():
    mapping = aes(color="grp", x="a", y=[1, 2, 3], size=2)
    assert set(mapping) == {"colour", "x", "y", "size"}
    assert isinstance(mapping["x"], Expr)
    assert mapping["y"] == (1, 2, 3)
    assert mapping["size"] == 2


def test_standardise_aes_name():
    assert standardise_aes_name("pch") == "shape"
    assert standardise_aes_name("lwd") == "linewidth"
    assert standardise_aes_name("outline_color") == "outline_colour"


def test_mapping_merge_and_stage_selection():
    merged = Aes(x="a", y="b") | {"y": "c", "fill": after_stat("count")}
    assert merged["y"].source == "c"
    assert list(merged.at_stage(AFTER_STAT)) == ["fill"]
    assert "x" not in merged.without(["x"])


def test_expression_evaluates_against_columns():
    data = pd.DataFrame({"a": [1.0, 2.0], "b": [10.0, 20.0]})
    expr = Expr("a + b * 2")
    assert expr.names == {"a", "b"}
    assert list(expr.evaluate(data)) == [21.0, 42.0]


def test_backticked_and_bare_column_names():
    data = pd.DataFrame({"Sales Amount": [3.0, 4.0]})
    assert Expr("`Sales Amount` * 2").names == {"Sales Amount"}
    assert list(Expr("`Sales Amount` * 2").evaluate(data)) == [6.0, 8.0]
    assert list(Expr("Sales Amount").evaluate(data)) == [3.0, 4.0]


def test_after_stat_expression_checks_its_phase():
    expr = after_stat("count / max(count)")
    with pytest.raises(AestheticEvaluationError, match="after_stat"):
        expr.check(["x", "y"])
    stat_output = pd.DataFrame({"count": [1.0, 4.0]})
    assert list(expr.evaluate(stat_output)) == [0.25, 1.0]


def test_disallowed_syntax_is_rejected():
    with pytest.raises(AestheticEvaluationError):
        Expr("x.__class__")
    with pytest.raises(AestheticEvaluationError):
        Expr("__import__('os')")
    with pytest.raises(AestheticEvaluationError):
        Expr("1 < x < 3")


def test_evaluate_mapping_mixes_constants_and_vectors():
    data = pd.DataFrame({"a": [1, 2, 3]})
    out = evaluate_mapping(Aes(x="a", y=[4, 5, 6], size=2), data, "start")
    assert list(out["x"]) == [1, 2, 3]
    assert list(out["y"]) == [4, 5, 6]
    assert list(out["size"]) == [2, 2, 2]


def test_vector_of_wrong_length_fails():
    data = pd.DataFrame({"a": [1, 2, 3]})
    with pytest.raises(AestheticEvaluationError):
        evaluate_mapping(Aes(y=[1, 2]), data, "start")


def test_factor_makes_discrete_column():
    data = pd.DataFrame({"cyl": [4, 6, 4]})
    out = Expr("factor(cyl)").evaluate(data)
    assert isinstance(out.dtype, pd.CategoricalDtype)


def test_required_aesthetics_with_alternatives():
    check_required_aesthetics(["x|y"], ["y"], "stat_thing")
    with pytest.raises(SpecificationError, match="x or y"):
        check_required_aesthetics(["x|y"], ["colour"], "stat_thing")
