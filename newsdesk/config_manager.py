"""Layered configuration loader and CLI for the Newsdesk crawler.

Layers, lowest precedence first: built-in defaults, ``config.toml``, the
``.env`` file next to it, then ``NEWSDESK__SECTION__KEY`` process variables.
Every resolved key remembers which layer set it so ``--explain`` can answer
"why is this value what it is".
"""
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
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Sequence, Tuple

import tomli_w
from dotenv import dotenv_values
from pydantic import ValidationError

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for Py <3.11
    import tomli as tomllib  # type: ignore[no-redef]

from newsdesk.config_schema import DEFAULT_CONFIG, Config, iter_field_docs

DEFAULT_ENV_PREFIX = "NEWSDESK"
DEFAULT_CONFIG_FILENAME = "config.toml"
DEFAULT_ENV_FILENAME = ".env"
BACKUP_DIRNAME = "backups"
LOAD_ORDER = ("defaults", "file", "env-file", "env")
_SECRET_TOKENS = ("password", "secret", "token", "key")
_MASK = "***masked***"


class ConfigError(RuntimeError):
    """Raised when configuration loading or validation fails."""


@dataclass(frozen=True)
class ConfigValueOrigin:
    """Which layer supplied a value, and from where."""

    layer: str
    source: str
    env_var: str | None = None

    def render(self) -> str:
        details = ", ".join(item for item in (self.env_var, self.source) if item)
        return f"{self.layer} ({details})" if details else self.layer


@dataclass
class ConfigMetadata:
    config_path: Path
    env_path: Optional[Path]
    env_prefix: str
    provenance: Dict[str, ConfigValueOrigin] = field(default_factory=dict)

    def describe_sources(self) -> list[str]:
        env_line = f".env file: {self.env_path}" if self.env_path else ".env file: not found"
        return [
            "defaults: built into newsdesk.config_schema",
            f"config file: {self.config_path}",
            env_line,
            f"environment prefix: {self.env_prefix}__*",
        ]


def _is_secret(path: str) -> bool:
    return any(token in path.lower() for token in _SECRET_TOKENS)


def _walk(mapping: Mapping[str, Any], prefix: str = "") -> Iterator[Tuple[str, Any]]:
    """Yield ``(dotted.path, leaf)`` pairs; tables are descended, lists are leaves."""
    for key, value in mapping.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            yield from _walk(value, path)
        else:
            yield path, value


def _coerce_text(value: str) -> Any:
    """Interpret an environment or ``--set`` string as the closest TOML scalar."""
    text = value.strip()
    if not text:
        return ""
    lowered = text.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered in ("null", "none"):
        return None
    if text.lstrip("-").isdigit():
        return int(text)
    try:
        return float(text)
    except ValueError:
        pass
    if text[:1] in "[{" and text[-1:] in "]}":
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text
    return text


class ConfigLayers:
    """Flat ``dotted.key -> value`` accumulator with per-key provenance."""

    def __init__(self, env_prefix: str = DEFAULT_ENV_PREFIX) -> None:
        self.env_prefix = env_prefix
        self.values: Dict[str, Any] = {}
        self.provenance: Dict[str, ConfigValueOrigin] = {}

    def set(self, path: str, value: Any, origin: ConfigValueOrigin) -> None:
        # a scalar override replaces any table previously stored below it
        stale = [key for key in self.values if key.startswith(path + ".")]
        for key in stale:
            del self.values[key]
        self.values[path] = value
        self.provenance[path] = origin

    def apply_mapping(self, mapping: Mapping[str, Any], origin: ConfigValueOrigin) -> None:
        for path, value in _walk(mapping):
            self.set(path, value, origin)

    def env_path_for(self, variable: str) -> Optional[str]:
        marker = self.env_prefix + "__"
        if not variable.startswith(marker):
            return None
        segments = [part.lower() for part in variable[len(marker) :].split("__") if part]
        if not segments:
            raise ConfigError(f"Environment override '{variable}' is missing key segments")
        return ".".join(segments)

    def apply_environment(
        self, variables: Mapping[str, Optional[str]], *, layer: str, source: str
    ) -> None:
        for variable, raw in variables.items():
            path = self.env_path_for(variable)
            if path is None or raw is None:
                continue
            origin = ConfigValueOrigin(layer=layer, source=source, env_var=variable)
            self.set(path, _coerce_text(raw), origin)

    def nested(self) -> Dict[str, Any]:
        tree: Dict[str, Any] = {}
        for path, value in self.values.items():
            *parents, leaf = path.split(".")
            node = tree
            for part in parents:
                node = node.setdefault(part, {})
            node[leaf] = value
        return tree

    def build(self) -> Config:
        try:
            return Config.model_validate(self.nested())
        except ValidationError as exc:
            raise self.describe_failure(exc) from exc

    def describe_failure(self, error: ValidationError) -> ConfigError:
        lines = []
        for record in error.errors():
            location = ".".join(str(part) for part in record.get("loc", ())) or "<root>"
            detail = record.get("msg", "invalid value")
            received = record.get("input")
            if received is not None and not isinstance(received, Mapping):
                if not _is_secret(location):
                    detail = f"{detail} (received={received!r})"
            origin = self.provenance.get(location)
            if origin is not None:
                detail = f"{detail} [{origin.render()}]"
            lines.append(f"{location}: {detail}")
        return ConfigError("Configuration validation failed:\n - " + "\n - ".join(lines))

    @classmethod
    def from_config(cls, config: Config) -> "ConfigLayers":
        layers = cls()
        metadata: Optional[ConfigMetadata] = getattr(config, "_metadata", None)
        if metadata is not None:
            layers.env_prefix = metadata.env_prefix
        fallback = ConfigValueOrigin(layer="defaults", source="newsdesk.config_schema")
        for path, value in _walk(config.model_dump(mode="python")):
            origin = metadata.provenance.get(path, fallback) if metadata else fallback
            layers.set(path, value, origin)
        return layers


def _project_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _read_toml(path: Path) -> Mapping[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def _locate_env_file(config_path: Path) -> Optional[Path]:
    for candidate in (
        config_path.parent / DEFAULT_ENV_FILENAME,
        _project_root() / DEFAULT_ENV_FILENAME,
    ):
        if candidate.exists():
            return candidate
    return None


def load_config(
    path: Path | None = None,
    *,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """Merge defaults, ``config.toml``, ``.env`` and the environment into a Config."""

    config_path = path or _project_root() / DEFAULT_CONFIG_FILENAME
    env_path = _locate_env_file(config_path)

    layers = ConfigLayers(env_prefix)
    layers.apply_mapping(
        DEFAULT_CONFIG.model_dump(mode="python"),
        ConfigValueOrigin(layer="defaults", source="newsdesk.config_schema.DEFAULT_CONFIG"),
    )
    layers.apply_mapping(
        _read_toml(config_path), ConfigValueOrigin(layer="file", source=str(config_path))
    )
    if env_path is not None:
        layers.apply_environment(
            dotenv_values(env_path, verbose=False), layer="env-file", source=str(env_path)
        )
    layers.apply_environment(
        os.environ if environ is None else environ, layer="env", source="process"
    )

    config = layers.build()
    config._metadata = ConfigMetadata(
        config_path=config_path,
        env_path=env_path,
        env_prefix=env_prefix,
        provenance=layers.provenance,
    )
    return config


# Persistence
# ===========


def _toml_ready(value: Any) -> Any:
    # TOML has no null; unset optionals are written as "" and read back as None
    if value is None:
        return ""
    if isinstance(value, Mapping):
        return {key: _toml_ready(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_toml_ready(item) for item in value]
    if isinstance(value, Path):
        return str(value)
    return value


def _backup(path: Path) -> Optional[Path]:
    if not path.exists():
        return None
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    backup_dir = path.parent / BACKUP_DIRNAME
    backup_dir.mkdir(parents=True, exist_ok=True)
    target = backup_dir / f"{path.name}.{stamp}.bak"
    shutil.copy2(path, target)
    return target


def save_config(config: Config, path: Path | None = None) -> Path:
    """Write ``config`` as TOML via temp file + rename, keeping a backup of the old file."""

    metadata: Optional[ConfigMetadata] = getattr(config, "_metadata", None)
    if path is None:
        path = metadata.config_path if metadata else _project_root() / DEFAULT_CONFIG_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = _toml_ready(config.model_dump(mode="python"))
    fd, tmp_name = tempfile.mkstemp(prefix=".newsdesk-config-", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            tomli_w.dump(payload, handle)
        _backup(path)
        os.replace(tmp_path, path)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        raise ConfigError(f"Failed to persist configuration: {exc}") from exc
    return path


# CLI
# ===


def _display(path: str, value: Any) -> str:
    if _is_secret(path) and value not in (None, ""):
        return _MASK
    if isinstance(value, Path):
        return str(value)
    try:
        return json.dumps(value, ensure_ascii=False)
    except TypeError:
        return repr(value)


def _schema_table() -> str:
    columns = ("Field", "Type", "Default", "Description", "Constraints")
    rows = [columns, ("---",) * len(columns)]
    for entry in iter_field_docs(DEFAULT_CONFIG):
        name = str(entry["name"])
        default = "" if entry["default"] is None else _display(name, entry["default"])
        rows.append(
            (
                name,
                str(entry["type"]),
                default,
                str(entry.get("description", "")),
                str(entry.get("constraints", "")),
            )
        )
    return "\n".join("| " + " | ".join(row) + " |" for row in rows)


def _with_updates(config: Config, assignments: Sequence[str]) -> Config:
    layers = ConfigLayers.from_config(config)
    cli_origin = ConfigValueOrigin(layer="cli", source="runtime")
    for assignment in assignments:
        key, separator, raw = assignment.partition("=")
        key = key.strip()
        if not separator:
            raise ConfigError(f"Invalid --set argument: '{assignment}'")
        if key not in layers.values:
            raise ConfigError(f"Unknown configuration key: {key}")
        layers.set(key, _coerce_text(raw), cli_origin)
    updated = layers.build()
    metadata: Optional[ConfigMetadata] = getattr(config, "_metadata", None)
    if metadata is not None:
        metadata.provenance = layers.provenance
    updated._metadata = metadata
    return updated


def _changes(before: Config, after: Config) -> list[str]:
    old = dict(_walk(before.model_dump(mode="python")))
    new = dict(_walk(after.model_dump(mode="python")))
    return [
        f"{key}: {_display(key, old.get(key))} -> {_display(key, new.get(key))}"
        for key in sorted(set(old) | set(new))
        if old.get(key) != new.get(key)
    ]


def _run_validate(config: Config, args: argparse.Namespace) -> None:
    print("Configuration OK")


def _run_show_sources(config: Config, args: argparse.Namespace) -> None:
    metadata: Optional[ConfigMetadata] = getattr(config, "_metadata", None)
    if metadata is None:
        raise ConfigError("Metadata unavailable for source display")
    print("Active configuration sources:")
    for line in metadata.describe_sources():
        print(f"- {line}")


def _run_explain(config: Config, args: argparse.Namespace) -> None:
    metadata: Optional[ConfigMetadata] = getattr(config, "_metadata", None)
    key = args.explain
    flat = dict(_walk(config.model_dump(mode="python")))
    if key not in flat:
        raise ConfigError(f"Unknown configuration key: {key}")
    value = _MASK if _is_secret(key) else _display(key, flat[key])
    origin = metadata.provenance.get(key) if metadata else None
    print(f"{key} = {value}")
    print(f"source: {origin.render() if origin else 'unknown'}")


def _run_set(config: Config, args: argparse.Namespace) -> None:
    updated = _with_updates(config, args.set)
    saved = save_config(updated, args.config)
    for line in _changes(config, updated):
        print(line)
    print(f"Saved configuration to {saved}")


_ACTIONS: Dict[str, Callable[[Config, argparse.Namespace], None]] = {
    "validate": _run_validate,
    "show_sources": _run_show_sources,
    "explain": _run_explain,
    "set": _run_set,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Newsdesk configuration utilities",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--config", type=Path, help="Path to the TOML configuration file")
    parser.add_argument(
        "--env-prefix",
        default=DEFAULT_ENV_PREFIX,
        help="Environment variable prefix (e.g. NEWSDESK__SESSION__ARTICLES_PER_LANGUAGE)",
    )
    actions = parser.add_mutually_exclusive_group(required=True)
    actions.add_argument("--validate", action="store_true", help="Validate the active configuration")
    actions.add_argument("--dump-defaults", action="store_true", help="Print built-in defaults as TOML")
    actions.add_argument("--print-schema", action="store_true", help="Print a Markdown table of all fields")
    actions.add_argument("--show-sources", action="store_true", help="Show configuration layers in load order")
    actions.add_argument("--explain", metavar="KEY", help="Show a value and the layer that set it")
    actions.add_argument(
        "--set",
        nargs="+",
        metavar="KEY=VALUE",
        help="Validate and persist one or more overrides to the config file",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        if args.dump_defaults:
            sys.stdout.write(tomli_w.dumps(_toml_ready(DEFAULT_CONFIG.model_dump(mode="python"))))
            return 0
        if args.print_schema:
            print(_schema_table())
            return 0
        config = load_config(args.config, env_prefix=args.env_prefix)
        for name, action in _ACTIONS.items():
            if getattr(args, name):
                action(config, args)
                break
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - module CLI entry point
    raise SystemExit(main())
