"""Layered configuration loader and CLI for the NewsHarvest crawler."""
from __future__ import annotations

import argparse
import json
import os
import shutil
import sys
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional, Sequence

import tomli_w
from dotenv import dotenv_values
from pydantic import ValidationError

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - Py <3.11
    import tomli as tomllib  # type: ignore[no-redef]

from newsharvest.config_schema import Config, DEFAULT_CONFIG, iter_field_docs

DEFAULT_ENV_PREFIX = "NEWSHARVEST"
DEFAULT_CONFIG_FILENAME = "config.toml"
DEFAULT_ENV_FILENAME = ".env"
BACKUP_DIRNAME = "backups"

# Unprefixed variables still honored for older deployments
LEGACY_ENV_ALIASES: Dict[str, str] = {"NITTER_INSTANCES": "social.instances"}


@dataclass(frozen=True)
class ConfigValueOrigin:
    """Provenance metadata for a single configuration value."""

    layer: str
    source: str
    env_var: str | None = None

    def render(self) -> str:
        """Return a human-readable provenance description."""

        details = [item for item in (self.env_var, self.source) if item]
        if details:
            return f"{self.layer} ({', '.join(details)})"
        return self.layer


@dataclass
class ConfigMetadata:
    """Aggregated metadata returned alongside the loaded configuration."""

    config_path: Path
    env_path: Optional[Path]
    env_prefix: str
    provenance: Dict[str, ConfigValueOrigin] = field(default_factory=dict)
    load_order: tuple[str, ...] = ("defaults", "file", "env-file", "env", "env-legacy")

    def describe_sources(self) -> list[str]:
        sources = [
            "defaults: built into newsharvest.config_schema",
            f"config file: {self.config_path}",
            f".env file: {self.env_path}" if self.env_path else ".env file: not found",
            f"environment prefix: {self.env_prefix}__*",
            "legacy variables: " + ", ".join(sorted(LEGACY_ENV_ALIASES)),
        ]
        return sources


class ConfigError(RuntimeError):
    """Raised when configuration loading or validation fails."""


def _project_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _default_paths() -> tuple[Path, Path]:
    root = _project_root()
    return root / DEFAULT_CONFIG_FILENAME, root / DEFAULT_ENV_FILENAME


def _is_secret(path: str) -> bool:
    lowered = path.lower()
    return any(token in lowered for token in ("password", "secret", "token", "key"))


def _merge_layer(
    target: MutableMapping[str, Any],
    updates: Mapping[str, Any],
    provenance: Dict[str, ConfigValueOrigin],
    *,
    origin: ConfigValueOrigin,
    prefix: str = "",
) -> None:
    for key, value in updates.items():
        composed = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            existing = target.get(key)
            if not isinstance(existing, MutableMapping):
                existing = {}
                target[key] = existing
            _merge_layer(existing, value, provenance, origin=origin, prefix=composed)
        else:
            target[key] = value
            provenance[composed] = origin


def _coerce_text(value: str) -> Any:
    text = value.strip()
    if not text:
        return ""
    lowered = text.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    if lowered in {"null", "none"}:
        return None
    if text.isdigit() or (text.startswith("-") and text[1:].isdigit()):
        return int(text)
    try:
        return float(text)
    except ValueError:
        pass
    if (text.startswith("[") and text.endswith("]")) or (
        text.startswith("{") and text.endswith("}")
    ):
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text
    return text


def _parse_kv_override(raw_key: str, raw_value: str, prefix: str) -> tuple[str, Any]:
    if not raw_key.startswith(prefix + "__"):
        raise ConfigError(
            f"Environment override '{raw_key}' does not start with prefix {prefix}__"
        )
    segments = [segment for segment in raw_key[len(prefix) + 2 :].split("__") if segment]
    if not segments:
        raise ConfigError(f"Environment override '{raw_key}' is missing key segments")
    return ".".join(segment.lower() for segment in segments), _coerce_text(raw_value)


def _assign_path(target: MutableMapping[str, Any], path: str, value: Any) -> None:
    segments = path.split(".")
    current: MutableMapping[str, Any] = target
    for segment in segments[:-1]:
        next_value = current.get(segment)
        if not isinstance(next_value, MutableMapping):
            next_value = {}
            current[segment] = next_value
        current = next_value
    current[segments[-1]] = value


def _serialize_for_toml(value: Any) -> Any:
    if isinstance(value, Config):
        return _serialize_for_toml(value.model_dump(mode="python"))
    if isinstance(value, Mapping):
        # TOML has no null; unset optionals are omitted
        return {
            key: _serialize_for_toml(val) for key, val in value.items() if val is not None
        }
    if isinstance(value, list):
        return [_serialize_for_toml(item) for item in value]
    if isinstance(value, Path):
        return str(value)
    return value


def _write_atomic(path: Path, payload: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        prefix=".newsharvest-config-", dir=str(path.parent), delete=False
    ) as tmp_handle:
        tmp_path = Path(tmp_handle.name)
        tomli_w.dump(payload, tmp_handle)
    try:
        if path.exists():
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
            backup_dir = path.parent / BACKUP_DIRNAME
            backup_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, backup_dir / f"{path.name}.{timestamp}.bak")
        os.replace(tmp_path, path)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        raise ConfigError(f"Failed to persist configuration: {exc}") from exc


def _load_toml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError:
        return {}
    except (tomllib.TOMLDecodeError, OSError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def _find_env_file(config_path: Path) -> Optional[Path]:
    """The ``.env`` next to the config file wins over the project one."""

    for candidate in (config_path.parent / DEFAULT_ENV_FILENAME, _default_paths()[1]):
        if candidate.exists():
            return candidate
    return None


def _apply_env_layer(
    merged: MutableMapping[str, Any],
    provenance: Dict[str, ConfigValueOrigin],
    variables: Mapping[str, Optional[str]],
    *,
    prefix: str,
    layer: str,
    source: str,
) -> None:
    for name, raw in variables.items():
        if raw is None or not name.startswith(prefix + "__"):
            continue
        path_key, value = _parse_kv_override(name, raw, prefix)
        _assign_path(merged, path_key, value)
        provenance[path_key] = ConfigValueOrigin(layer=layer, source=source, env_var=name)


def _apply_legacy_aliases(
    merged: MutableMapping[str, Any],
    provenance: Dict[str, ConfigValueOrigin],
    variables: Mapping[str, str],
) -> None:
    """Old deployments set a few values through unprefixed variables.

    An alias only fills a key that no other layer changed from its default.
    """

    for name, path_key in LEGACY_ENV_ALIASES.items():
        raw = variables.get(name)
        origin = provenance.get(path_key)
        if not raw or (origin is not None and origin.layer != "defaults"):
            continue
        _assign_path(merged, path_key, raw)
        provenance[path_key] = ConfigValueOrigin(
            layer="env-legacy", source="process", env_var=name
        )


def _format_validation_error(
    error: ValidationError,
    provenance: Mapping[str, ConfigValueOrigin],
) -> ConfigError:
    messages: list[str] = []
    for record in error.errors():
        location = ".".join(str(part) for part in record.get("loc", ()))
        origin = provenance.get(location)
        origin_text = f" [{origin.render()}]" if origin else ""
        detail = record.get("msg", "invalid value")
        input_value = record.get("input")
        if input_value is not None and not _is_secret(location):
            detail += f" (received={input_value!r})"
        messages.append(f"{location or '<root>'}: {detail}{origin_text}")
    combined = "\n - ".join(messages)
    return ConfigError(f"Configuration validation failed:\n - {combined}")


def load_config(
    path: Path | None = None,
    *,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """Merge defaults, the TOML file, ``.env`` and the process environment.

    Later layers win. Every leaf value remembers the layer it came from so
    ``--explain`` can answer where a crawler setting was decided.
    """

    config_path = path or _default_paths()[0]
    env_path = _find_env_file(config_path)
    runtime_env = os.environ if environ is None else environ

    merged: Dict[str, Any] = {}
    provenance: Dict[str, ConfigValueOrigin] = {}
    _merge_layer(
        merged,
        DEFAULT_CONFIG.model_dump(mode="python"),
        provenance,
        origin=ConfigValueOrigin(
            layer="defaults", source="newsharvest.config_schema.DEFAULT_CONFIG"
        ),
    )
    _merge_layer(
        merged,
        _load_toml(config_path),
        provenance,
        origin=ConfigValueOrigin(layer="file", source=str(config_path)),
    )
    if env_path is not None:
        _apply_env_layer(
            merged,
            provenance,
            dotenv_values(env_path, verbose=False),
            prefix=env_prefix,
            layer="env-file",
            source=str(env_path),
        )
    _apply_env_layer(
        merged, provenance, runtime_env, prefix=env_prefix, layer="env", source="process"
    )
    _apply_legacy_aliases(merged, provenance, runtime_env)

    try:
        config = Config.model_validate(merged)
    except ValidationError as exc:
        raise _format_validation_error(exc, provenance) from exc
    config._metadata = ConfigMetadata(
        config_path=config_path,
        env_path=env_path,
        env_prefix=env_prefix,
        provenance=provenance,
    )
    return config


def save_config(config: Config, path: Path | None = None) -> Path:
    """Persist the provided configuration to disk atomically."""

    metadata = getattr(config, "_metadata", None)
    target_path = path or (metadata.config_path if metadata else _default_paths()[0])
    _write_atomic(target_path, _serialize_for_toml(config))
    return target_path


def _resolve_value(mapping: Mapping[str, Any], path: str) -> Any:
    current: Any = mapping
    for segment in path.split("."):
        if isinstance(current, Mapping) and segment in current:
            current = current[segment]
        else:
            raise ConfigError(f"Unknown configuration key: {path}")
    return current


def _safe_repr(value: Any) -> str:
    if isinstance(value, Path):
        return str(value)
    try:
        return json.dumps(value, ensure_ascii=False)
    except TypeError:
        return repr(value)


def _format_schema_table() -> str:
    headers = ["Field", "Type", "Default", "Description", "Example"]
    lines = [
        "| " + " | ".join(headers) + " |",
        "| " + " | ".join(["---"] * len(headers)) + " |",
    ]
    for entry in iter_field_docs(DEFAULT_CONFIG):
        default = "" if entry["default"] is None else _safe_repr(entry["default"])
        example = ", ".join(str(item) for item in entry.get("examples", []) or [])
        row = [
            str(entry["name"]),
            str(entry["type"]),
            default,
            str(entry.get("description", "")),
            example,
        ]
        lines.append("| " + " | ".join(row) + " |")
    return "\n".join(lines)


def _explain(config: Config, key: str) -> str:
    metadata: ConfigMetadata | None = getattr(config, "_metadata", None)
    if metadata is None:
        raise ConfigError("Configuration metadata is unavailable")
    value = _resolve_value(config.model_dump(mode="python"), key)
    origin = metadata.provenance.get(key)
    origin_text = origin.render() if origin else "unknown"
    formatted_value = "***masked***" if _is_secret(key) else _safe_repr(value)
    return f"{key} = {formatted_value}\nsource: {origin_text}"


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="NewsHarvest configuration utilities",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--config", type=Path, help="Path to the TOML configuration file")
    parser.add_argument(
        "--env-prefix",
        default=DEFAULT_ENV_PREFIX,
        help="Environment variable prefix (e.g. NEWSHARVEST__HTTP__REQUEST_TIMEOUT_SECONDS)",
    )
    actions = parser.add_mutually_exclusive_group(required=True)
    actions.add_argument("--validate", action="store_true", help="Validate the active configuration")
    actions.add_argument("--dump-defaults", action="store_true", help="Print built-in defaults as TOML")
    actions.add_argument("--print-schema", action="store_true", help="Print Markdown table documenting all fields")
    actions.add_argument("--show-sources", action="store_true", help="Show configuration source precedence")
    actions.add_argument("--explain", metavar="KEY", help="Explain where a field value originates")

    args = parser.parse_args(argv)

    try:
        if args.dump_defaults:
            sys.stdout.write(tomli_w.dumps(_serialize_for_toml(DEFAULT_CONFIG)))
            return 0
        if args.print_schema:
            sys.stdout.write(_format_schema_table() + "\n")
            return 0

        config = load_config(args.config, env_prefix=args.env_prefix)
        if args.validate:
            print("Configuration OK")
            return 0
        if args.show_sources:
            metadata: ConfigMetadata = config._metadata  # type: ignore[assignment]
            details = "\n".join(f"- {item}" for item in metadata.describe_sources())
            print(f"Active configuration sources:\n{details}")
            return 0
        if args.explain:
            print(_explain(config, args.explain))
            return 0
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - module CLI entry point
    raise SystemExit(main())
