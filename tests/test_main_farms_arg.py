"""Tests for reading the farms file given on the command line."""

import json

from main import load_farms


def test_load_farms_reads_a_json_list(tmp_path) -> None:
    path = tmp_path / "farms.json"
    path.write_text(json.dumps([{"id": 1, "farmName": "North"}]), encoding="utf-8")

    assert load_farms(path) == [{"id": 1, "farmName": "North"}]


def test_load_farms_missing_file_starts_without_farms(tmp_path) -> None:
    assert load_farms(tmp_path / "absent.json") is None


def test_load_farms_malformed_json_starts_without_farms(tmp_path) -> None:
    path = tmp_path / "farms.json"
    path.write_text("[{\"id\": 1,", encoding="utf-8")

    assert load_farms(path) is None


def test_load_farms_rejects_non_list_document(tmp_path) -> None:
    path = tmp_path / "farms.json"
    path.write_text(json.dumps({"id": 1}), encoding="utf-8")

    assert load_farms(path) is None
