"""Configuration loading: templated config files and layered key lookup."""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Mapping

import yaml

CONFIG_NAMES = (".weather.yml", ".weather.yaml")

_ACTION = re.compile(r"\{\{(-\s)?\s*(.*?)\s*(\s-)?\}\}", re.DOTALL)
_ARG_PATTERN = re.compile(r'"(?:[^"\\\n]|\\.)*"|`[^`]*`|\S+')
_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}


class ConfigError(Exception):
    """Raised when a configuration file cannot be found, rendered or parsed."""


def _normalize(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k).lower(): _normalize(v) for k, v in value.items()}
    return value


class Config:
    """Layered settings: explicit values, then file data, then defaults.

    Keys are case-insensitive and nested sections are addressed with dots.
    """

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        if data is not None and not isinstance(data, Mapping):
            raise ConfigError("configuration root must be a mapping")
        self._data: dict[str, Any] = _normalize(data or {})
        self._overrides: dict[str, Any] = {}
        self._defaults: dict[str, Any] = {}

    def set_default(self, key: str, value: Any) -> None:
        """Set the value used when no other layer provides ``key``."""
        self._defaults[key.lower()] = value

    def set(self, key: str, value: Any) -> None:
        """Set a value that takes precedence over the file and defaults."""
        self._overrides[key.lower()] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Return the raw value for ``key``, or ``default`` when unset."""
        key = key.lower()
        if key in self._overrides:
            return self._overrides[key]
        node: Any = self._data
        for part in key.split("."):
            if not (isinstance(node, dict) and part in node):
                break
            node = node[part]
        else:
            if node is not None:
                return node
        return self._defaults.get(key, default)

    def get_str(self, key: str) -> str:
        value = self.get(key)
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)

    def get_int(self, key: str) -> int:
        value = self.get(key)
        if isinstance(value, str):
            text = value.strip()
            try:
                return int(text, 0)
            except ValueError:
                try:
                    value = float(text)
                except ValueError:
                    return 0
                return int(value) if value.is_integer() else 0
        if isinstance(value, (bool, int)):
            return int(value)
        if isinstance(value, float) and value == value and abs(value) != float("inf"):
            return int(value)
        return 0

    def get_float(self, key: str) -> float:
        value = self.get(key)
        try:
            if isinstance(value, (bool, int, float, str)):
                return float(value.strip() if isinstance(value, str) else value)
        except ValueError:
            pass
        return 0.0

    def get_bool(self, key: str) -> bool:
        value = self.get(key)
        if isinstance(value, str):
            return value.strip() in _TRUE_WORDS
        if isinstance(value, (bool, int, float)):
            return bool(value)
        return False


def _evaluate(action: str, environ: Mapping[str, str]) -> str:
    words = _ARG_PATTERN.findall(action)
    if not words:
        raise ConfigError("failed to parse config template: missing value for command")
    args: list[str] = []
    for word in words[1:]:
        if word.startswith("`"):
            args.append(word[1:-1])
        elif word.startswith('"'):
            args.append(json.loads(word))
        else:
            raise ConfigError(f"failed to parse config template: unsupported argument {word!r}")
    head = words[0]
    if head not in ("env", "envDefault"):
        raise ConfigError(f'failed to parse config template: function "{head}" not defined')
    wanted = 1 if head == "env" else 2
    if len(args) != wanted:
        raise ConfigError(
            f"failed to execute config template: wrong number of args for {head}: "
            f"want {wanted} got {len(args)}"
        )
    found = environ.get(args[0], "")
    return args[1] if head == "envDefault" and found == "" else found


def render_config_template(text: str, environ: Mapping[str, str] | None = None) -> str:
    """Expand ``{{ env "KEY" }}`` and ``{{ envDefault "KEY" "fallback" }}`` actions."""
    env = os.environ if environ is None else environ
    pieces: list[str] = []
    pos = 0
    trim_next = False
    for match in _ACTION.finditer(text):
        chunk = text[pos : match.start()]
        if trim_next:
            chunk = chunk.lstrip()
        if match.group(1):
            chunk = chunk.rstrip()
        pieces += [chunk, _evaluate(match.group(2), env)]
        pos, trim_next = match.end(), bool(match.group(3))
    tail = text[pos:]
    pieces.append(tail.lstrip() if trim_next else tail)
    if any("{{" in piece for piece in pieces[::2]):
        raise ConfigError("failed to parse config template: unclosed action")
    return "".join(pieces)


def process_config_template(path: str | os.PathLike[str], environ: Mapping[str, str] | None = None) -> str:
    """Read ``path`` and render it as a config template."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(str(exc)) from exc
    return render_config_template(text, environ)


def find_config_file(
    config_file: str | os.PathLike[str] | None = None,
    cwd: str | os.PathLike[str] | None = None,
    home: str | os.PathLike[str] | None = None,
) -> Path | None:
    """Return the config file to use, or None if there is none.

    An explicit file wins; otherwise ``.weather.yml`` and ``.weather.yaml`` are
    looked for in the working directory, then in the home directory.
    """
    if config_file:
        return Path(config_file)
    if home is None:
        try:
            home = Path.home()
        except RuntimeError as exc:
            raise ConfigError(str(exc)) from exc
    for base in (Path(cwd or "."), Path(home)):
        for name in CONFIG_NAMES:
            if (base / name).exists():
                return base / name
    return None


def load_config(path: str | os.PathLike[str], environ: Mapping[str, str] | None = None) -> Config:
    """Render the templated file at ``path`` and parse it by its extension."""
    path = Path(path)
    config_type = path.suffix[1:].lower()
    if config_type not in ("yaml", "yml", "json"):
        raise ConfigError(f'Unsupported Config Type "{config_type}"')
    text = process_config_template(path, environ)
    try:
        if config_type == "json":
            data = json.loads(text) if text.strip() else None
        else:
            data = yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"error reading processed config: {exc}") from exc
    if data is not None and not isinstance(data, Mapping):
        raise ConfigError("error reading processed config: top level must be a mapping")
    return Config(data)