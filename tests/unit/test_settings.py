from __future__ import annotations

import pytest

from apps.common.settings import load_settings


def _write_cfg(tmp_path, body: str):
    p = tmp_path / "app.yaml"
    p.write_text(body, encoding="utf-8")
    return p


def test_yaml_values_are_loaded(tmp_path, monkeypatch):
    for k in (
        "PACKETFLOW_STORE_DIR",
        "PACKETFLOW_API_URL",
        "PACKETFLOW_CHECKLIST",
        "PACKETFLOW_MIN_SENTENCE_CHARS",
        "PACKETFLOW_MIN_PARAGRAPH_CHARS",
    ):
        monkeypatch.delenv(k, raising=False)
    cfg = _write_cfg(
        tmp_path,
        "store_dir: store\n"
        "api_url: http://localhost:9000/\n"
        "segmentation:\n  min_sentence_chars: 12\n"
        "review:\n  checklist: [accuracy, fluency]\n",
    )
    s = load_settings(str(cfg))
    assert s.store_dir.name == "store"
    assert s.api_url == "http://localhost:9000"
    assert s.min_sentence_chars == 12
    assert s.min_paragraph_chars == 20
    assert s.checklist_items == ("accuracy", "fluency")


def test_env_overrides_yaml(tmp_path, monkeypatch):
    cfg = _write_cfg(tmp_path, "store_dir: store\napi_url: http://a\n")
    monkeypatch.setenv("PACKETFLOW_API_URL", "http://b")
    monkeypatch.setenv("PACKETFLOW_CHECKLIST", "accuracy, meaning")
    monkeypatch.setenv("PACKETFLOW_MIN_PARAGRAPH_CHARS", "30")
    s = load_settings(str(cfg))
    assert s.api_url == "http://b"
    assert s.checklist_items == ("accuracy", "meaning")
    assert s.min_paragraph_chars == 30


def test_missing_required_values(tmp_path, monkeypatch):
    monkeypatch.delenv("PACKETFLOW_STORE_DIR", raising=False)
    monkeypatch.delenv("PACKETFLOW_API_URL", raising=False)
    with pytest.raises(ValueError, match="store_dir"):
        load_settings(str(tmp_path / "absent.yaml"))
