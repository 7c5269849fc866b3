"""Vault client configuration models and loader."""

from .loader import CONFIG_ENV_VAR, build_client_config, load_client_config
from .models import AuthConfigModel, VaultClientConfigModel

__all__ = [
    "AuthConfigModel",
    "CONFIG_ENV_VAR",
    "VaultClientConfigModel",
    "build_client_config",
    "load_client_config",
]
