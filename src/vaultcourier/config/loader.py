"""Configuration loader for the Vault client.

Reads the ``vault`` section of a YAML file and validates it into a
:class:`VaultClientConfigModel`.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import VaultClientConfigModel

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "VAULTCOURIER_CONFIG"


def load_client_config(config_path: Path | None = None) -> VaultClientConfigModel:
    """Load the Vault client configuration.

    Args:
        config_path: Optional path to the config file.
                    If not provided, looks for:
                    1. VAULTCOURIER_CONFIG environment variable
                    2. ~/.vaultcourier/config.yaml
                    3. ./config.yaml

    Returns:
        VaultClientConfigModel with client settings

    Raises:
        FileNotFoundError: If an explicitly requested config file doesn't exist
        ValueError: If the config is invalid
    """
    if config_path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path:
            config_path = Path(env_path)
        else:
            candidates = [Path.home() / ".vaultcourier" / "config.yaml", Path.cwd() / "config.yaml"]
            for candidate in candidates:
                if candidate.exists():
                    config_path = candidate
                    break

            if config_path is None:
                logger.info("No vault client config file found, using defaults")
                return VaultClientConfigModel()

    if not config_path.exists():
        raise FileNotFoundError(f"Vault client config file not found at {config_path}")

    logger.debug(f"Loading vault client config from: {config_path}")

    try:
        with open(config_path) as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML config file {config_path}: {e}") from e

    if not raw_config:
        logger.info("Empty vault client config file, using defaults")
        return VaultClientConfigModel()

    if not isinstance(raw_config, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    return build_client_config(raw_config.get("vault") or {})


def build_client_config(section: dict[str, Any]) -> VaultClientConfigModel:
    """Validate the ``vault`` section of a config file."""
    try:
        return VaultClientConfigModel.model_validate(section)
    except ValidationError as e:
        raise ValueError(f"Invalid vault client config: {e}") from e
