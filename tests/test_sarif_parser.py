"""Tests for streaming SARIF extraction."""

import json

import pytest

from qlharvest.services.sarif_parser import SarifParseError, extract_sarif_log


def _write(tmp_path, content, name="results.sarif"):
    path = tmp_path / name
    path.write_text(content if isinstance(content, str) else json.dumps(content), encoding="utf-8")
    return path


def test_returns_results_of_first_run(tmp_path):
    r1 = {"ruleId": "a", "message": {"text": "one"}, "rank": 1.5}
    r2 = {"ruleId": "b", "message": {"text": "two"}, "locations": [{"id": 0}]}
    path = _write(
        tmp_path,
        {
            "version": "2.1.0",
            "runs": [
                {"tool": {"driver": {"name": "CodeQL", "rules": [{"id": "a"}]}}, "results": [r1, r2]},
                {"tool": {"driver": {"name": "other"}}, "results": [{"ruleId": "c"}]},
            ],
        },
    )

    log = extract_sarif_log(path)

    assert log["runs"][0]["results"] == [r1, r2]
    assert len(log["runs"]) == 1


def test_discards_tool_by_default(tmp_path):
    path = _write(
        tmp_path,
        {"runs": [{"tool": {"driver": {"name": "CodeQL", "rules": [{"id": "a"}]}}, "results": []}]},
    )

    log = extract_sarif_log(path)

    assert log["version"] == "2.1.0"
    assert log["runs"][0]["tool"] == {"driver": {"name": ""}}


def test_keep_tool_assembles_tool_subtree(tmp_path):
    tool = {"driver": {"name": "CodeQL", "rules": [{"id": "a", "properties": {"problem.severity": "error"}}]}}
    path = _write(tmp_path, {"runs": [{"results": [{"ruleId": "a"}], "tool": tool}]})

    log = extract_sarif_log(path, keep_tool=True)

    assert log["runs"][0]["tool"] == tool
    assert log["runs"][0]["results"] == [{"ruleId": "a"}]


def test_missing_results_gives_empty_list(tmp_path):
    path = _write(tmp_path, {"version": "2.1.0", "runs": [{"tool": {"driver": {"name": "CodeQL"}}}]})

    assert extract_sarif_log(path)["runs"][0]["results"] == []


def test_no_runs_gives_empty_list(tmp_path):
    path = _write(tmp_path, {"version": "2.1.0"})

    assert extract_sarif_log(path)["runs"][0]["results"] == []


def test_corrupted_stream_raises(tmp_path):
    path = _write(tmp_path, '{"runs": [{"results": [{"ruleId": "a"}, {"ruleId": ')

    with pytest.raises(SarifParseError):
        extract_sarif_log(path)


def test_truncation_after_results_is_not_read(tmp_path):
    # Parsing stops once the first run's results are complete
    path = _write(tmp_path, '{"runs": [{"results": [{"ruleId": "a"}], "artifacts": [{"location": {"uri": ')

    assert extract_sarif_log(path)["runs"][0]["results"] == [{"ruleId": "a"}]


def test_truncation_before_tool_raises_when_tool_is_kept(tmp_path):
    path = _write(tmp_path, '{"runs": [{"results": [{"ruleId": "a"}], "tool": {"driver": {"name": ')

    with pytest.raises(SarifParseError):
        extract_sarif_log(path, keep_tool=True)


def test_missing_file_raises(tmp_path):
    with pytest.raises(SarifParseError):
        extract_sarif_log(tmp_path / "absent.sarif")


def test_nested_results_keys_are_not_confused(tmp_path):
    inner = {"ruleId": "a", "properties": {"results": ["not", "these"]}}
    path = _write(tmp_path, {"runs": [{"results": [inner]}]})

    assert extract_sarif_log(path)["runs"][0]["results"] == [inner]
