"""
Deployment config (v1)

A deployment config seeds a ballot: who chairs it, which proposals it
carries, and optionally which voters are authorized straight away.

    chairperson: "0xChair"
    proposals: ["Fireball", "Invisibility", "Teleportation"]
    voters: ["0xA", "0xB"]

YAML or JSON, BOM-tolerant reads. With VOTING_STRICT truthy, duplicate
proposal names are rejected.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from jsonschema import Draft202012Validator

from voting.ballot import BallotState
from voting.errors import DeploymentConfigError

log = logging.getLogger(__name__)

DEPLOYMENT_SCHEMA_V1: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["chairperson", "proposals"],
    "additionalProperties": False,
    "properties": {
        "chairperson": {"type": "string", "minLength": 1},
        "proposals": {
            "type": "array",
            "minItems": 1,
            "items": {"type": "string"},
        },
        "voters": {
            "type": "array",
            "items": {"type": "string", "minLength": 1},
        },
    },
}

_validator = Draft202012Validator(DEPLOYMENT_SCHEMA_V1)


def _truthy_env(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "y", "on"}


def load_config(path: Path) -> Dict[str, Any]:
    txt = path.read_text(encoding="utf-8-sig")
    if path.suffix.lower() == ".json":
        return json.loads(txt)
    try:
        return yaml.safe_load(txt)
    except yaml.YAMLError as e:
        raise DeploymentConfigError(f"deployment config is not valid YAML: {path}: {e}") from e


def validate_config(cfg: Any, *, strict: Optional[bool] = None) -> None:
    if strict is None:
        strict = _truthy_env("VOTING_STRICT")

    errs = sorted(_validator.iter_errors(cfg), key=lambda e: list(e.path))
    if errs:
        e0 = errs[0]
        loc = ".".join(str(x) for x in e0.path) if e0.path else "<root>"
        raise DeploymentConfigError(f"deployment config violation at {loc}: {e0.message}")

    if strict:
        seen: List[str] = []
        for name in cfg["proposals"]:
            if name in seen:
                raise DeploymentConfigError(f"duplicate proposal name in strict mode: {name}")
            seen.append(name)


def deploy(cfg: Dict[str, Any], *, strict: Optional[bool] = None) -> BallotState:
    validate_config(cfg, strict=strict)

    chair = cfg["chairperson"]
    ballot = BallotState(chair, cfg["proposals"])
    for voter in cfg.get("voters", []):
        ballot.authorize(chair, voter)

    log.info(
        "ballot deployed: chairperson=%s proposals=%d voters=%d",
        chair,
        ballot.get_num_proposals(),
        len(cfg.get("voters", [])),
    )
    return ballot


def deploy_from_file(path: Path, *, strict: Optional[bool] = None) -> BallotState:
    return deploy(load_config(path), strict=strict)
