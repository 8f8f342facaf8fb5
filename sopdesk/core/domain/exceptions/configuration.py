"""Configuration exceptions."""

from .base import SopDeskError


class ConfigurationError(SopDeskError):
    """Invalid or missing configuration."""

    error_code = "SOP_CFG_001"


class MissingCredentialsError(ConfigurationError):
    """Confluence URL, username or API token is not configured."""

    error_code = "SOP_CFG_002"
