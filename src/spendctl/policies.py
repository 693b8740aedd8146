"""Payment policy model and on-disk policy store."""

from __future__ import annotations

import json
import os
from pathlib import Path
import re
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .utils.config_loader import config_loader
from .utils.logging_config import StructuredLogger


logger = StructuredLogger(__name__)

_POLICY_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,63}$")
_POLICY_SUFFIXES = (".json", ".yaml", ".yml")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class HaltConditions(_CamelModel):
    max_consecutive_failures: int = Field(3, ge=1)
    settlement_timeout_ms: int = Field(30_000, ge=1)


class Provenance(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="allow")

    agent_id: str
    task_id: str | None = None
    commit_hash: str | None = None


class PaymentPolicy(_CamelModel):
    """Spending rules for one agent session.

    Accepts the camelCase configuration format (``allowedVendors``,
    ``budgetCap``, ``budgetWindow``, ``rateLimits``, ``haltConditions``)
    as well as snake_case field names.
    """

    allowed_vendors: tuple[str, ...]
    budget_cap: int = Field(..., ge=0)
    budget_window: int = Field(..., ge=1)
    rate_limits: dict[str, int] = Field(default_factory=dict)
    provenance: Provenance
    halt_conditions: HaltConditions = Field(default_factory=HaltConditions)

    @field_validator("allowed_vendors", mode="before")
    @classmethod
    def _parse_vendors(cls, value: Any):
        if isinstance(value, str):
            value = value.split(",")
        vendors = []
        for raw in value or ():
            vendor = str(raw).strip()
            if vendor and vendor not in vendors:
                vendors.append(vendor)
        return tuple(vendors)

    @field_validator("rate_limits", mode="before")
    @classmethod
    def _lower_rate_limit_keys(cls, value: Any):
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("rateLimits must be a mapping of vendor to max requests per window")
        limits: dict[str, int] = {}
        for vendor, limit in value.items():
            limit = int(limit)
            if limit < 0:
                raise ValueError(f"rate limit for {vendor} must be >= 0")
            limits[str(vendor).strip().lower()] = limit
        return limits

    @model_validator(mode="after")
    def _warn_on_unreachable_rate_limits(self):
        allowed = {v.lower() for v in self.allowed_vendors}
        unreachable = sorted(k for k in self.rate_limits if k not in allowed)
        if unreachable:
            logger.warning(
                "Rate limits name vendors outside allowedVendors",
                agent_id=self.provenance.agent_id,
                vendors=unreachable,
            )
        return self

    @property
    def budget_window_ms(self) -> int:
        return self.budget_window * 1000

    def rate_limit_for(self, vendor: str) -> int | None:
        return self.rate_limits.get(vendor.lower())

    def provenance_tags(self) -> dict[str, str]:
        """Flat string tags stamped on every telemetry event."""
        data = self.provenance.model_dump(by_alias=True, exclude_none=True)
        return {str(k): str(v) for k, v in data.items()}

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=True, sort_keys=True)


def resolve_policy_dir(policy_dir: str | Path | None = None) -> Path:
    if policy_dir is not None:
        return Path(policy_dir)
    env_dir = (os.getenv("SPENDCTL_POLICY_DIR") or "").strip()
    if env_dir:
        return Path(env_dir)
    configured = config_loader.get_config().policy_dir
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".spendctl" / "policies"


def _require_policy_id(policy_id: str) -> str:
    pid = str(policy_id or "").strip()
    if not _POLICY_ID_RE.match(pid):
        raise ValueError(
            "policy_id must match [A-Za-z0-9][A-Za-z0-9_.-]{0,63}"
        )
    return pid


def _find_policy_file(root: Path, policy_id: str) -> Path | None:
    for suffix in _POLICY_SUFFIXES:
        path = root / f"{policy_id}{suffix}"
        if path.exists():
            return path
    return None


def _read_document(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def policy_from_dict(payload: dict[str, Any]) -> PaymentPolicy:
    if not isinstance(payload, dict):
        raise ValueError("Policy document must be a mapping")
    return PaymentPolicy.model_validate(payload)


def load_policy_file(path: str | Path) -> PaymentPolicy:
    path = Path(path)
    data = _read_document(path)
    if not isinstance(data, dict):
        raise ValueError(f"Invalid policy document: {path}")
    return policy_from_dict(data)


def create_policy(policy_id: str, payload: dict[str, Any], policy_dir: str | Path | None = None) -> PaymentPolicy:
    pid = _require_policy_id(policy_id)
    policy = policy_from_dict(payload)
    root = resolve_policy_dir(policy_dir)
    root.mkdir(parents=True, exist_ok=True)
    path = root / f"{pid}.json"
    path.write_text(
        json.dumps(policy.to_dict(), indent=2, ensure_ascii=True, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return policy


def load_policy(policy_id: str, policy_dir: str | Path | None = None) -> PaymentPolicy:
    pid = _require_policy_id(policy_id)
    root = resolve_policy_dir(policy_dir)
    path = _find_policy_file(root, pid)
    if path is None:
        raise FileNotFoundError(f"Policy not found: {root / pid}")
    return load_policy_file(path)


def list_policies(policy_dir: str | Path | None = None) -> dict[str, PaymentPolicy]:
    """Return every parseable policy keyed by id; malformed files are skipped."""
    root = resolve_policy_dir(policy_dir)
    if not root.exists():
        return {}
    items: dict[str, PaymentPolicy] = {}
    for path in sorted(root.iterdir()):
        if path.suffix not in _POLICY_SUFFIXES or path.stem in items:
            continue
        try:
            items[path.stem] = load_policy_file(path)
        except (ValueError, OSError, yaml.YAMLError):
            continue
    return items


def delete_policy(policy_id: str, policy_dir: str | Path | None = None) -> bool:
    pid = _require_policy_id(policy_id)
    path = _find_policy_file(resolve_policy_dir(policy_dir), pid)
    if path is None:
        return False
    path.unlink()
    return True
