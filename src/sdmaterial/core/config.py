"""
Configuration management for sdmaterial.

This module holds the Stable Diffusion server connection settings (base URL,
endpoint paths, credentials), timeouts, the output location and the default
generation parameters.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from sdmaterial.logging_config import get_logger
from sdmaterial.utils.exceptions import ConfigurationError

logger = get_logger(__name__)

# Load environment variables from .env file
load_dotenv()

# Default configuration constants
DEFAULT_SERVER_URL = "http://127.0.0.1:7860"
DEFAULT_MODELS_PATH = "/sdapi/v1/sd-models"
DEFAULT_MODELS_FALLBACK_PATH = "/api/sd-models"
DEFAULT_OPTIONS_PATH = "/sdapi/v1/options"
DEFAULT_OPTIONS_FALLBACK_PATH = "/api/options"
DEFAULT_TXT2IMG_PATH = "/sdapi/v1/txt2img"
DEFAULT_PROGRESS_PATH = "/sdapi/v1/progress"
DEFAULT_OUTPUT_ROOT = "."

DEFAULT_SAMPLER = "Euler a"
DEFAULT_WIDTH = 512
DEFAULT_HEIGHT = 512
DEFAULT_STEPS = 35
DEFAULT_CFG_SCALE = 7.0
DEFAULT_SEED = -1

_TRUE_VALUES = ("1", "true", "yes")


@dataclass
class ServerConfig:
    """Connection and default-parameter settings for a Stable Diffusion server."""

    # Server endpoints
    base_url: str = DEFAULT_SERVER_URL
    models_path: str = DEFAULT_MODELS_PATH
    models_fallback_path: str = DEFAULT_MODELS_FALLBACK_PATH
    options_path: str = DEFAULT_OPTIONS_PATH
    options_fallback_path: str = DEFAULT_OPTIONS_FALLBACK_PATH
    txt2img_path: str = DEFAULT_TXT2IMG_PATH
    progress_path: str = DEFAULT_PROGRESS_PATH

    # Basic auth (password excluded from repr to avoid leaking secrets)
    username: str = ""
    password: str = field(default="", repr=False)
    use_auth: bool = False

    # Timeout Configuration (seconds)
    request_timeout: int = 30  # catalog, options and progress calls
    generation_timeout: int = 600  # txt2img; generation can take minutes
    poll_interval: float = 0.5

    # Generated images land in <output_root>/SDMaterials/
    output_root: str = DEFAULT_OUTPUT_ROOT

    # Generation defaults, applied to every field a request leaves unset
    default_sampler: str = DEFAULT_SAMPLER
    default_width: int = DEFAULT_WIDTH
    default_height: int = DEFAULT_HEIGHT
    default_steps: int = DEFAULT_STEPS
    default_cfg_scale: float = DEFAULT_CFG_SCALE
    default_seed: int = DEFAULT_SEED

    _validated: bool = field(default=False, repr=False)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create a ServerConfig instance from environment variables.

        Environment variables:
            SDMATERIAL_SERVER_URL: Server base URL (default http://127.0.0.1:7860)
            SDMATERIAL_USERNAME / SDMATERIAL_PASSWORD: Basic auth credentials
            SDMATERIAL_USE_AUTH: "1"/"true"/"yes" to send Basic auth
            SDMATERIAL_OUTPUT_ROOT: Directory that receives SDMaterials/
            SDMATERIAL_REQUEST_TIMEOUT / SDMATERIAL_GENERATION_TIMEOUT: Seconds
            SDMATERIAL_DEFAULT_SAMPLER: Sampler used when a request names none
            SDMATERIAL_MODELS_PATH, SDMATERIAL_OPTIONS_PATH, SDMATERIAL_TXT2IMG_PATH,
            SDMATERIAL_PROGRESS_PATH: Endpoint path overrides

        Returns:
            ServerConfig instance populated from environment

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed
        """

        def _int_env(name: str, default: int) -> int:
            val = os.getenv(name)
            if val is None or val == "":
                return default
            try:
                return int(val)
            except ValueError as e:
                raise ConfigurationError(f"{name} must be an integer, got {val!r}.") from e

        use_auth = os.getenv("SDMATERIAL_USE_AUTH", "").strip().lower() in _TRUE_VALUES

        return cls(
            base_url=os.getenv("SDMATERIAL_SERVER_URL", DEFAULT_SERVER_URL),
            models_path=os.getenv("SDMATERIAL_MODELS_PATH", DEFAULT_MODELS_PATH),
            options_path=os.getenv("SDMATERIAL_OPTIONS_PATH", DEFAULT_OPTIONS_PATH),
            txt2img_path=os.getenv("SDMATERIAL_TXT2IMG_PATH", DEFAULT_TXT2IMG_PATH),
            progress_path=os.getenv("SDMATERIAL_PROGRESS_PATH", DEFAULT_PROGRESS_PATH),
            username=os.getenv("SDMATERIAL_USERNAME", ""),
            password=os.getenv("SDMATERIAL_PASSWORD", ""),
            use_auth=use_auth,
            request_timeout=_int_env("SDMATERIAL_REQUEST_TIMEOUT", 30),
            generation_timeout=_int_env("SDMATERIAL_GENERATION_TIMEOUT", 600),
            output_root=os.getenv("SDMATERIAL_OUTPUT_ROOT", DEFAULT_OUTPUT_ROOT),
            default_sampler=os.getenv("SDMATERIAL_DEFAULT_SAMPLER", DEFAULT_SAMPLER),
            default_seed=_int_env("SDMATERIAL_DEFAULT_SEED", DEFAULT_SEED),
        )

    def validate(self) -> None:
        """
        Validate the configuration.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        logger.debug("Validating config")

        if not self.base_url or not self.base_url.strip():
            raise ConfigurationError("Server URL cannot be empty.")
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"Server URL must start with http:// or https://, got {self.base_url!r}."
            )
        if self.request_timeout <= 0 or self.generation_timeout <= 0:
            raise ConfigurationError("Timeouts must be positive.")
        if self.poll_interval <= 0:
            raise ConfigurationError(
                f"poll_interval must be positive, got {self.poll_interval}."
            )
        self.check_credentials()

        self._validated = True

    def check_credentials(self) -> None:
        """
        Enforce the auth invariant: with use_auth set, both credentials are required.

        Raises:
            ConfigurationError: If use_auth is set and a credential is empty
        """
        if self.use_auth and (not self.username or not self.password):
            raise ConfigurationError(
                "Basic auth is enabled but username or password is empty. "
                "Set SDMATERIAL_USERNAME and SDMATERIAL_PASSWORD."
            )

    def is_valid(self) -> bool:
        """Return True if validate() has been called successfully."""
        return self._validated

    @property
    def credentials(self) -> tuple[str, str] | None:
        """(username, password) when auth is enabled, else None."""
        if not self.use_auth:
            return None
        return (self.username, self.password)

    def set_credentials(self, username: str, password: str) -> None:
        """
        Enable Basic auth with the given credentials.

        Raises:
            ConfigurationError: If either value is empty
        """
        if not username or not password:
            raise ConfigurationError("Username and password cannot be empty")
        self.username = username
        self.password = password
        self.use_auth = True
        self._validated = False  # Need to revalidate

    def url(self, path: str) -> str:
        """Join the server base URL with an endpoint path."""
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    @property
    def materials_dir(self) -> Path:
        """Directory generated color images are written to."""
        return Path(self.output_root) / "SDMaterials"


# Global configuration instance
_global_config: ServerConfig | None = None


def get_config() -> ServerConfig:
    """
    Get the global configuration instance.

    Returns:
        The global ServerConfig instance
    """
    global _global_config
    if _global_config is None:
        _global_config = ServerConfig.from_env()
    return _global_config


def set_config(config: ServerConfig) -> None:
    """
    Set the global configuration instance.

    Args:
        config: The ServerConfig instance to use globally
    """
    global _global_config
    _global_config = config
