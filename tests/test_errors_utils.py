import pandas as pd

from infbench.errors import error_reason, SkipReport
from infbench.utils import _format_number, df_to_md_table, safe_tag


def test_skip_report_counts_and_examples():
    report = SkipReport(max_examples=2)
    assert not report
    for i in range(4):
        report.add("run", f"r{i}", "tick axis mismatch")
    report.add("layer", "a_b_c", "empty label")

    assert report
    assert report.total() == 5
    assert report.total("run") == 4
    payload = report.to_dict()
    assert payload["run"]["tick axis mismatch"] == {
        "count": 4,
        "examples": ["r0", "r1"],
    }


def test_error_reason():
    assert error_reason(ValueError("bad")) == "ValueError: bad"
    assert error_reason(KeyError()) == "KeyError"
    assert error_reason(None) == "unknown"


def test_format_helpers():
    assert safe_tag("a b/c@d") == "a_b_c_d"
    assert _format_number(2.0) == "2"
    assert _format_number(float("nan")) == "NaN"
    assert _format_number(0.123456) == "0.1235"
    lines = df_to_md_table(pd.DataFrame({"a": [1.5], "b": ["x"]}))
    assert lines == ["| a | b |", "| --- | --- |", "| 1.5 | x |"]
