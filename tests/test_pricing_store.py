from __future__ import annotations

import json

import pytest

from services.gateway import pricing_store


@pytest.fixture
def policy_file(monkeypatch, tmp_path):
    path = tmp_path / "pricing_policy.json"
    monkeypatch.setenv("PRICING_POLICY_PATH", str(path))
    return path


def test_defaults_when_missing(policy_file):
    assert pricing_store.load_policy() == pricing_store.DEFAULT_POLICY
    policy = pricing_store.ait_policy()
    assert policy.rate == 0.003
    assert policy.excluded_codes == frozenset({"BD", "UT", "E5"})


def test_corrupt_file_falls_back(policy_file):
    policy_file.write_text("{not json", encoding="utf-8")
    assert pricing_store.load_policy() == pricing_store.DEFAULT_POLICY


def test_save_validates_ait_block(policy_file):
    saved = pricing_store.save_policy({"ait": {"rate": "nan", "excluded_codes": ["xt", "yq"]}, "note": "x"})
    assert saved["ait"] == {"rate": 0.003, "excluded_codes": ["XT", "YQ"]}
    on_disk = json.loads(policy_file.read_text(encoding="utf-8"))
    assert on_disk["note"] == "x"
    assert pricing_store.ait_policy().excluded_codes == frozenset({"XT", "YQ"})


def test_missing_ait_block_gets_defaults(policy_file):
    policy_file.write_text(json.dumps({"other": 1}), encoding="utf-8")
    cfg = pricing_store.load_policy()
    assert cfg["other"] == 1
    assert cfg["ait"] == pricing_store.DEFAULT_POLICY["ait"]
