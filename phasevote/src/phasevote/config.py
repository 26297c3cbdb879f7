from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError

DEFAULT_STATE_PATH = "phasevote_state.json"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _truthy(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


def _truthy_env(name: str) -> bool:
    return _truthy(os.getenv(name, ""))


@dataclass
class VotingConfig:
    admin: Optional[str] = None
    state_path: Path = Path(DEFAULT_STATE_PATH)
    events_out: Optional[Path] = None
    clear_proposals_on_reset: bool = False
    log_level: str = "WARNING"


def load_yaml(path: Path) -> Dict[str, Any]:
    doc = yaml.safe_load(path.read_text(encoding="utf-8-sig"))
    if doc is None:
        return {}
    if not isinstance(doc, dict):
        raise ConfigError(f"config must be a mapping: {path}")
    return doc


def _apply(cfg: VotingConfig, doc: Dict[str, Any]) -> None:
    unknown = sorted(set(doc) - {"admin", "state_path", "events_out", "clear_proposals_on_reset", "log_level"})
    if unknown:
        raise ConfigError(f"unknown config keys: {unknown}")

    if doc.get("admin") is not None:
        cfg.admin = str(doc["admin"])
    if doc.get("state_path"):
        cfg.state_path = Path(str(doc["state_path"])).expanduser()
    if doc.get("events_out"):
        cfg.events_out = Path(str(doc["events_out"])).expanduser()
    if "clear_proposals_on_reset" in doc:
        cfg.clear_proposals_on_reset = _truthy(doc["clear_proposals_on_reset"])
    if doc.get("log_level"):
        level = str(doc["log_level"]).upper()
        if level not in _LOG_LEVELS:
            raise ConfigError(f"unsupported log_level: {doc['log_level']!r}")
        cfg.log_level = level


def _apply_env(cfg: VotingConfig) -> None:
    env: Dict[str, Any] = {}
    if os.getenv("PHASEVOTE_ADMIN", "").strip():
        env["admin"] = os.environ["PHASEVOTE_ADMIN"].strip()
    if os.getenv("PHASEVOTE_STATE", "").strip():
        env["state_path"] = os.environ["PHASEVOTE_STATE"].strip()
    if os.getenv("PHASEVOTE_EVENTS_OUT", "").strip():
        env["events_out"] = os.environ["PHASEVOTE_EVENTS_OUT"].strip()
    if os.getenv("PHASEVOTE_CLEAR_PROPOSALS_ON_RESET", "").strip():
        env["clear_proposals_on_reset"] = _truthy_env("PHASEVOTE_CLEAR_PROPOSALS_ON_RESET")
    if os.getenv("PHASEVOTE_LOG_LEVEL", "").strip():
        env["log_level"] = os.environ["PHASEVOTE_LOG_LEVEL"].strip()
    _apply(cfg, env)


def load_config(path: Optional[Path] = None) -> VotingConfig:
    """
    Builds the configuration: defaults, then the YAML file (if given), then
    PHASEVOTE_* environment variables.
    """
    cfg = VotingConfig()
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"config file not found: {path}")
        try:
            doc = load_yaml(path)
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {path}: {e}") from e
        _apply(cfg, doc)
    _apply_env(cfg)
    return cfg
