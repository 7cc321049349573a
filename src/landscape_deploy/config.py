from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

try:
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]


DEFAULT_CONFIG = Path("/etc/landscape-deploy/main.conf")
DEFAULT_POLL_INTERVAL = 15.0
DEFAULT_ENV_PREFIXES = {"prod": "LANDSCAPE_API", "dev": "LANDSCAPE_API_DEV"}
WEBHOOK_ENV = "LANDSCAPE_DEPLOY_WEBHOOK_URL"


class ConfigError(Exception):
    pass


@dataclass
class DeployConfig:
    landscape_api: list[str] = field(default_factory=lambda: ["landscape-api"])
    poll_interval: float = DEFAULT_POLL_INTERVAL
    poll_timeout: Optional[float] = None
    command_timeout: Optional[float] = None
    webhook_url: Optional[str] = None
    webhook_username: str = "Deployment Guru Bot"
    webhook_channel: str = "#bot-deployments"
    webhook_icon: str = ":octopus:"
    env_prefixes: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ENV_PREFIXES))


@dataclass(frozen=True)
class Credentials:
    uri: str
    key: str
    secret: str
    ssl_ca_file: Optional[str] = None

    def as_env(self) -> dict[str, str]:
        env = {
            "LANDSCAPE_API_URI": self.uri,
            "LANDSCAPE_API_KEY": self.key,
            "LANDSCAPE_API_SECRET": self.secret,
        }
        if self.ssl_ca_file:
            env["LANDSCAPE_API_SSL_CA_FILE"] = self.ssl_ca_file
        return env


def load_config(path: Path, environ: Optional[Mapping[str, str]] = None) -> DeployConfig:
    environ = os.environ if environ is None else environ
    data: dict[str, Any] = {}
    if path.exists():
        try:
            data = tomllib.loads(path.read_text())
        except OSError as exc:
            raise ConfigError(f"{path}: cannot read config: {exc}") from exc
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"{path}: invalid TOML") from exc
    defaults = _section(data, "defaults")

    cfg = DeployConfig()
    landscape_api = defaults.get("landscape_api")
    if landscape_api:
        cfg.landscape_api = (
            shlex.split(landscape_api) if isinstance(landscape_api, str) else [str(p) for p in landscape_api]
        )
    cfg.poll_interval = _number(defaults, "poll_interval", DEFAULT_POLL_INTERVAL)
    cfg.poll_timeout = _number(defaults, "poll_timeout", None)
    cfg.command_timeout = _number(defaults, "command_timeout", None)
    cfg.webhook_url = environ.get(WEBHOOK_ENV) or defaults.get("webhook_url") or None
    for key in ("webhook_username", "webhook_channel", "webhook_icon"):
        if defaults.get(key):
            setattr(cfg, key, str(defaults[key]))

    environments = _section(data, "environments")
    for name in DEFAULT_ENV_PREFIXES:
        prefix = _section(environments, name, f"environments.{name}").get("env_prefix")
        if prefix:
            cfg.env_prefixes[name] = str(prefix)
    return cfg


def load_credentials(cfg: DeployConfig, *, dev: bool, environ: Optional[Mapping[str, str]] = None) -> Credentials:
    """Read one of the two parallel credential sets from the environment."""

    environ = os.environ if environ is None else environ
    prefix = cfg.env_prefixes["dev" if dev else "prod"]
    values = {}
    for suffix in ("URI", "KEY", "SECRET"):
        name = f"{prefix}_{suffix}"
        value = environ.get(name)
        if not value:
            raise ConfigError(f"Environment variable {name} is not set")
        values[suffix] = value

    ssl_ca_file = environ.get(f"{prefix}_SSL_CA_FILE")
    if not ssl_ca_file:
        folder = environ.get(f"{prefix}_CERT_FOLDER")
        filename = environ.get(f"{prefix}_CERT_FILE")
        if folder and filename:
            ssl_ca_file = str(Path(folder) / filename)
    return Credentials(values["URI"], values["KEY"], values["SECRET"], ssl_ca_file or None)


def _number(section: Mapping[str, Any], key: str, default: Optional[float]) -> Optional[float]:
    value = section.get(key)
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{key}' must be a number, got {value!r}") from exc
    if number < 0:
        raise ConfigError(f"'{key}' must not be negative")
    return number


def _section(data: Mapping[str, Any], key: str, label: Optional[str] = None) -> Mapping[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, Mapping):
        raise ConfigError(f"[{label or key}] must be a table, got {type(value).__name__}")
    return value
