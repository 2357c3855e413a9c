import csv
import json

import pytest

from core import utils
from core.exports import fncExportList, fncExportMultiModule, fncExportSingleModule
from core.utils import fncExportCSV, fncMask, fncRetry, fncToTable


@pytest.mark.parametrize("raw,expected", [
    (None, set()),
    ([], set()),
    (["csv,json"], {"csv", "json"}),
    (["CSV", "json"], {"csv", "json"}),
    (["csv", "html", "xlsx"], {"csv"}),
])
def test_export_list(raw, expected):
    assert fncExportList(raw) == expected


def _report():
    columns = ["PermissionType", "ClientDisplayName", "Permission", "Privilege"]
    return {
        "provider": "entra",
        "columns": columns,
        "consent_grants": [
            {"Privilege": "High", "Permission": "Directory.ReadWrite.All", "ClientDisplayName": "CRM", "PermissionType": "Application"},
        ],
        "privilege_summary": [{"Privilege": "High", "Grants": 1}],
    }


def test_single_module_csv_uses_column_order(tmp_path):
    out_dir = fncExportSingleModule("consent_grants", _report(), {"csv", "json"}, tmp_path)

    with open(out_dir / "consent_grants_consent_grants.csv", newline="", encoding="utf-8") as f:
        header = next(csv.reader(f))
    assert header == ["PermissionType", "ClientDisplayName", "Permission", "Privilege"]
    assert (out_dir / "consent_grants_privilege_summary.csv").exists()
    assert json.loads((out_dir / "consent_grants.json").read_text(encoding="utf-8"))["provider"] == "entra"


def test_multi_module_export_skips_non_dict_results(tmp_path):
    results = {"consent_grants": _report(), "tenant_lookup": None}
    out_dir = fncExportMultiModule(results, {"csv"}, tmp_path)

    assert (out_dir / "consent_grants" / "consent_grants_consent_grants.csv").exists()
    assert not (out_dir / "tenant_lookup").exists()


def test_csv_headers_keep_first_seen_order(tmp_path):
    path = tmp_path / "rows.csv"
    fncExportCSV(str(path), [{"b": 1, "a": 2}, {"c": 3}])

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows[0] == ["b", "a", "c"]
    assert rows[2] == ["", "", "3"]


def test_retry_stops_when_told(monkeypatch):
    monkeypatch.setattr(utils.time, "sleep", lambda s: None)
    calls = []

    def boom():
        calls.append(1)
        raise KeyError("nope")

    with pytest.raises(KeyError):
        fncRetry(boom, attempts=3, should_retry=lambda ex: False)
    assert len(calls) == 1


def test_retry_eventually_succeeds(monkeypatch):
    monkeypatch.setattr(utils.time, "sleep", lambda s: None)
    outcomes = iter([ValueError("flaky"), "ok"])

    def flaky():
        item = next(outcomes)
        if isinstance(item, Exception):
            raise item
        return item

    assert fncRetry(flaky, attempts=2) == "ok"


def test_to_table_truncates():
    rows = [{"n": i} for i in range(5)]
    out = fncToTable(rows, max_rows=2)
    assert "…" in out
    assert "| 3 " not in out
    assert fncToTable([]) == "(no data)"


def test_mask():
    assert fncMask("abcd1234efgh") == "abcd****efgh"
    assert fncMask("short") == "*****"
    assert fncMask(None) == ""


def test_to_table_uses_given_headers_only():
    out = fncToTable([{"Privilege": "High", "Permission": "Mail.Send", "Secret": "x"}], headers=["Privilege", "Permission"])
    assert "Mail.Send" in out
    assert "Secret" not in out
