"""domainproof configuration loader.

The file is read with PyYAML (JSON is a subset), ``${VAR}`` references
are resolved, the result is validated against the bundled
``schema.json`` with jsonschema, cross-field checks run, and the typed
settings tree is built.

Lifecycle::

    # 1. CLI creates the singleton (once, at startup)
    DomainProofConfig(config_file="/etc/domainproof/config.yaml")

    # 2. Any module retrieves it afterwards
    from domainproof.config import get_config
    cfg = get_config()
    cfg.settings.scheduler.interval_seconds

    # 3. Dynamic access
    cfg.get("alerts.webhook_url")
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator

from domainproof.config.settings import DomainProofSettings, build_settings

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_KNOWN_METHODS = frozenset({"DNS_TXT", "HTTP"})

_CLASS_PATH_RE = re.compile(
    r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)+$",
)

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton reference
# ---------------------------------------------------------------------------
_instance: DomainProofConfig | None = None


def get_config() -> DomainProofConfig:
    """Return the initialised configuration singleton.

    Raises :class:`RuntimeError` if :class:`DomainProofConfig` has not
    been created yet (i.e. the CLI entry point has not run).
    """
    if _instance is None:
        msg = (
            "Configuration not initialised. "
            "DomainProofConfig must be created with config_file= before calling get_config()."
        )
        raise RuntimeError(msg)
    return _instance


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when schema or cross-field validation finds problems."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> Any:  # noqa: ANN401
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return _coerce_scalar(resolved)
    if fallback is not None:
        return _coerce_scalar(fallback)
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


def _coerce_scalar(value: str) -> Any:  # noqa: ANN401
    """Give an env-substituted string its YAML scalar type.

    ``${PORT:-8080}`` resolves to the string ``"8080"``; parse it so the
    schema sees an integer.  Non-scalar results are left as strings.
    """
    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError:
        return value
    if isinstance(parsed, (bool, int, float)):
        return parsed
    return value


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML or JSON config file into a dict."""
    source = Path(path)
    with source.open(encoding="utf-8") as f:
        if source.suffix == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = f"Configuration root in {source} must be a mapping"
        raise ConfigValidationError([msg])
    return data


def schema_errors(data: dict[str, Any]) -> list[str]:
    """Return every JSON Schema violation in *data*, sorted by path."""
    schema = json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))
    validator = Draft202012Validator(schema)
    errors = []
    for err in sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path)):
        where = ".".join(str(p) for p in err.absolute_path) or "(root)"
        errors.append(f"{where}: {err.message}")
    return errors


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class DomainProofConfig:
    """Central configuration for the domainproof service.

    After construction the typed settings tree is available at
    :pyattr:`settings` and the raw dict via :pyattr:`data` /
    :pymeth:`get`.

    Parameters
    ----------
    config_file:
        Path to the YAML/JSON configuration file.
    data:
        Raw configuration to use instead of reading a file.

    """

    def __init__(
        self,
        *,
        config_file: str | Path | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        global _instance  # noqa: PLW0603

        if data is None:
            if config_file is None:
                msg = "Either config_file or data is required"
                raise ValueError(msg)
            data = load_config_file(config_file)
            data["_source"] = str(config_file)

        # Env vars first so substituted values meet enum/type constraints.
        _resolve_env_vars(data)

        errors = schema_errors(data)
        if errors:
            raise ConfigValidationError(errors)

        self._data = data
        self.additional_checks()
        self._settings: DomainProofSettings = build_settings(data)
        _instance = self

    # -- typed access -------------------------------------------------------

    @property
    def settings(self) -> DomainProofSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    @property
    def data(self) -> dict[str, Any]:
        return self._data

    def get(self, dotted: str, default: Any = None) -> Any:  # noqa: ANN401
        """Look up a raw value by dot-path, e.g. ``"alerts.webhook_url"``."""
        node: Any = self._data
        for part in dotted.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    # -- cross-field validation ---------------------------------------------

    def additional_checks(self) -> None:
        """Semantic and cross-field validation, run after the schema passes."""
        errors: list[str] = []
        warnings: list[str] = []

        challenges = self.data.get("challenges") or {}
        database = self.data.get("database") or {}
        alerts = self.data.get("alerts") or {}
        scheduler = self.data.get("scheduler") or {}

        # -- challenges --
        base = challenges.get("backoff_base_seconds", 30)
        cap = challenges.get("backoff_max_seconds", 3600)
        if base > cap:
            errors.append(
                f"challenges.backoff_base_seconds ({base}) must be <= "
                f"challenges.backoff_max_seconds ({cap})",
            )

        enabled = challenges.get("enabled", ["DNS_TXT", "HTTP"])
        if not enabled:
            errors.append("challenges.enabled must list at least one method")
        for name in enabled:
            if name in _KNOWN_METHODS:
                continue
            if name.startswith("ext:"):
                if not _CLASS_PATH_RE.match(name[4:]):
                    errors.append(
                        f"challenges.enabled: '{name}' must be 'ext:package.module.ClassName'",
                    )
                continue
            errors.append(
                f"challenges.enabled: unknown method '{name}' "
                f"(known: {sorted(_KNOWN_METHODS)} or 'ext:...')",
            )

        # -- database --
        min_conn = database.get("min_connections", 2)
        max_conn = database.get("max_connections", 10)
        if min_conn > max_conn:
            errors.append(
                f"database.min_connections ({min_conn}) must be <= "
                f"database.max_connections ({max_conn})",
            )
        concurrency = scheduler.get("concurrency", 4)
        if scheduler.get("enabled", True) and max_conn < concurrency + 1:
            warnings.append(
                f"database.max_connections ({max_conn}) is low for "
                f"scheduler.concurrency={concurrency}",
            )

        # -- alerts --
        if alerts.get("enabled", True) and not alerts.get("webhook_url"):
            warnings.append(
                "alerts.enabled is true but alerts.webhook_url is not set; "
                "alerts will be written to the log only",
            )

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton -- testing only."""
        global _instance  # noqa: PLW0603
        _instance = None

    def __repr__(self) -> str:
        source = self.data.get("_source", "?")
        return f"<DomainProofConfig config_file={source}>"
