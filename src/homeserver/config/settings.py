import logging
import os
from typing import Optional

import yaml
from pydantic import BaseModel, ValidationError

from homeserver.hwosinfo.models import DistroInfo

logger = logging.getLogger(__name__)

CONFIG_SEARCH_PATHS = [
    "homeserver.yaml",
    "~/.config/homeserver/config.yaml",
    "/etc/homeserver/config.yaml",
]

# Config key -> environment variable
ENV_OVERRIDES = {
    "mount_path": "HOMESERVER_STORAGE_MOUNT",
    "legacy_media_path": "HOMESERVER_LEGACY_MEDIA",
    "filesystem": "HOMESERVER_FILESYSTEM",
    "fstab_path": "HOMESERVER_FSTAB",
    "mount_options": "HOMESERVER_MOUNT_OPTIONS",
    "selection_attempts": "HOMESERVER_SELECTION_ATTEMPTS",
}


class ConfigError(ValueError):
    pass


class Config(BaseModel):
    mount_path: str = "/mnt/storage"
    legacy_media_path: str = "/mnt/media"
    filesystem: str = "ext4"
    fstab_path: str = "/etc/fstab"
    mount_options: str = "defaults,nofail"
    selection_attempts: int = 3
    operator: Optional[str] = None  # Non-root user who invoked sudo
    distro: Optional[DistroInfo] = None


def find_config_file(path: Optional[str] = None) -> Optional[str]:
    if path:
        if not os.path.exists(path):
            raise FileNotFoundError(f"Configuration file not found: {path}")
        return path
    for candidate in CONFIG_SEARCH_PATHS:
        expanded = os.path.expanduser(candidate)
        if os.path.exists(expanded):
            return expanded
    return None


def resolve_operator(environ=None) -> Optional[str]:
    environ = os.environ if environ is None else environ
    user = environ.get("SUDO_USER")
    if not user or user == "root":
        return None
    return user


def load_config(path: Optional[str] = None, environ=None, distro: Optional[DistroInfo] = None) -> Config:
    """
    Resolve the configuration once.
    Precedence: environment variables, then the YAML file, then defaults.
    """
    environ = os.environ if environ is None else environ
    values = {}

    config_path = find_config_file(path)
    if config_path:
        logger.debug(f"Loading configuration from {config_path}")
        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"{config_path} is not valid YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{config_path} must contain a mapping of settings")
        section = data.get("storage", data)
        if section is None:
            section = {}
        if not isinstance(section, dict):
            raise ConfigError(f"The storage section of {config_path} must be a mapping")
        values.update(section)

    for key, env_name in ENV_OVERRIDES.items():
        if environ.get(env_name):
            values[key] = environ[env_name]

    values["operator"] = resolve_operator(environ)
    values["distro"] = distro
    try:
        return Config(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
