# apps/common/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    return data or {}


def _env(key: str) -> Optional[str]:
    v = os.getenv(key)
    return v.strip() if isinstance(v, str) and v.strip() else None


def _as_path(v: str) -> Path:
    return Path(v).expanduser().resolve()


def _as_int(name: str, v: Any) -> int:
    try:
        return int(v)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Configuration value {name} must be an integer, got {v!r}") from e


@dataclass(frozen=True)
class AppSettings:
    store_dir: Path
    api_url: str
    min_paragraph_chars: int = 20
    min_sentence_chars: int = 10
    checklist_items: Tuple[str, ...] = ("accuracy", "meaning", "dialect", "fluency")


def load_settings(config_path: Optional[str] = None) -> AppSettings:
    """
    Resolution order (highest -> lowest):
      1) Explicit function argument
      2) PACKETFLOW_CONFIG_PATH env var
      3) config/app.yaml
    Individual fields can be overridden via env vars:
      - PACKETFLOW_STORE_DIR
      - PACKETFLOW_API_URL
      - PACKETFLOW_MIN_PARAGRAPH_CHARS
      - PACKETFLOW_MIN_SENTENCE_CHARS
      - PACKETFLOW_CHECKLIST (comma-separated)
    """
    cfg_path = (
        Path(config_path)
        if config_path
        else Path(_env("PACKETFLOW_CONFIG_PATH") or "config/app.yaml")
    )
    cfg = _read_yaml(cfg_path)
    seg = cfg.get("segmentation") or {}
    review = cfg.get("review") or {}

    store_dir = _env("PACKETFLOW_STORE_DIR") or cfg.get("store_dir")
    api_url = _env("PACKETFLOW_API_URL") or cfg.get("api_url")
    min_par = _env("PACKETFLOW_MIN_PARAGRAPH_CHARS") or seg.get("min_paragraph_chars", 20)
    min_sent = _env("PACKETFLOW_MIN_SENTENCE_CHARS") or seg.get("min_sentence_chars", 10)

    checklist_env = _env("PACKETFLOW_CHECKLIST")
    if checklist_env:
        checklist_raw: List[str] = [s.strip() for s in checklist_env.split(",") if s.strip()]
    else:
        checklist_raw = review.get("checklist") or ["accuracy", "meaning", "dialect", "fluency"]

    missing = []
    if not store_dir:
        missing.append("store_dir / PACKETFLOW_STORE_DIR")
    if not api_url:
        missing.append("api_url / PACKETFLOW_API_URL")
    if not checklist_raw:
        missing.append("review.checklist / PACKETFLOW_CHECKLIST")

    if missing:
        raise ValueError(
            "Missing required configuration: " + ", ".join(missing) +
            f". Config file used: {cfg_path}"
        )

    return AppSettings(
        store_dir=_as_path(str(store_dir)),
        api_url=str(api_url).rstrip("/"),
        min_paragraph_chars=_as_int("min_paragraph_chars", min_par),
        min_sentence_chars=_as_int("min_sentence_chars", min_sent),
        checklist_items=tuple(str(x) for x in checklist_raw),
    )
