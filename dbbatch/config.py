from __future__ import annotations

import os
import pathlib
import typing as t

import yaml

try:
    import tomllib as _toml
except ModuleNotFoundError:
    import tomli as _toml

from dbbatch.constants import DEFAULT_CONFIG_FILE
from dbbatch.state import Settings

_DEFAULT_PATH = pathlib.Path(DEFAULT_CONFIG_FILE)
_ENGINE_KEYS = ("max_run_time", "max_tries", "sleep")


class ConfigError(RuntimeError):
    """Raised for any user‑visible configuration problem."""


class Environment:
    """
    A thin value‑object holding the attributes required to open a MariaDB
    connection plus the engine knobs for that environment.  Nothing here
    talks to the database.
    """

    def __init__(
        self, name: str, d: dict[str, t.Any], engine: dict[str, t.Any] | None = None
    ) -> None:
        self.name: str = name
        try:
            self.host: str = d["host"]
            self.database: str = d["database"]
            self.user: str = d["user"]
            raw_pwd: str = str(d["password"])
        except KeyError as exc:
            raise ConfigError(f"Environment {name!r} is missing {exc.args[0]!r}") from exc
        self.port: int = int(d.get("port", 3306))

        # Allow `${ENV_VAR}` syntax for secrets
        self.password: str = (
            os.getenv(raw_pwd[2:-1], "") if raw_pwd.startswith("${") else raw_pwd
        )

        # global `engine:` section, overridden by the environment's own
        merged = dict(engine or {})
        merged.update(d.get("engine") or {})
        unknown = set(merged) - set(_ENGINE_KEYS)
        if unknown:
            raise ConfigError(f"Unknown engine setting(s): {', '.join(sorted(unknown))}")
        self.engine: dict[str, int] = {k: int(v) for k, v in merged.items()}

    # --------------------------------------------------------------------- #
    # Helpers
    # --------------------------------------------------------------------- #
    def dsn(self) -> dict[str, t.Any]:
        """Return kwargs that mysql‑connector understands."""
        return {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": self.password,
            "database": self.database,
        }

    def settings(self) -> Settings:
        return Settings(**self.engine)


def _read(cfg_file: pathlib.Path) -> dict[str, t.Any]:
    if cfg_file.suffix == ".toml":
        with cfg_file.open("rb") as fh:
            return _toml.load(fh)
    with cfg_file.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def load(path: pathlib.Path | str | None = None, env: str | None = None) -> Environment:
    """
    Parse *path* (or the default YAML) and return an :class:`Environment`.
    """
    cfg_file = pathlib.Path(path) if path else _DEFAULT_PATH
    if not cfg_file.exists():
        raise ConfigError(f"Config file {cfg_file} not found.")

    try:
        raw = _read(cfg_file)
    except (yaml.YAMLError, _toml.TOMLDecodeError) as exc:
        raise ConfigError(f"Config file {cfg_file} is not valid: {exc}") from exc

    env_name = env or raw.get("default_env")
    if not env_name:
        raise ConfigError("No environment specified and no default_env in config")

    try:
        env_data = raw["environments"][env_name]
    except (KeyError, TypeError) as exc:
        raise ConfigError(f"Environment {env_name!r} not found in config") from exc
    return Environment(env_name, env_data, raw.get("engine"))
