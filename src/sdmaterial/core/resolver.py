"""
Model catalog and model selection.

ConfigResolver owns the server config, the known sampler list and the cached
model catalog. Listing and selecting models tolerate servers that expose the
legacy /api/* paths instead of /sdapi/v1/*; both calls are idempotent, so
falling back is safe.
"""

from sdmaterial.core.config import ServerConfig, get_config
from sdmaterial.core.models import ModelDescriptor, decode_json_body, excerpt
from sdmaterial.core.transport import Transport
from sdmaterial.logging_config import get_logger
from sdmaterial.utils.cache import ModelCache
from sdmaterial.utils.exceptions import (
    AuthRequiredError,
    InvalidResponseError,
    ProtocolError,
    SDMaterialError,
    TransportError,
    ValidationError,
)

logger = get_logger(__name__)

# Samplers offered by AUTOMATIC1111 txt2img
DEFAULT_SAMPLERS = (
    "Euler a",
    "Euler",
    "LMS",
    "Heun",
    "DPM2",
    "DPM2 a",
    "DPM++ 2S a",
    "DPM++ 2M",
    "DPM++ SDE",
    "DPM fast",
    "DPM adaptive",
    "LMS Karras",
    "DPM2 Karras",
    "DPM2 a Karras",
    "DPM++ 2S a Karras",
    "DPM++ 2M Karras",
    "DPM++ SDE Karras",
    "DDIM",
    "PLMS",
)


def _parse_models(text: str) -> list[ModelDescriptor]:
    data = decode_json_body(text)
    if isinstance(data, dict):
        # Some forks wrap the list
        for key in ("models", "data"):
            if isinstance(data.get(key), list):
                data = data[key]
                break
        else:
            raise InvalidResponseError("Model list response has no model array.", excerpt(text))
    if not all(isinstance(entry, dict) for entry in data):
        raise InvalidResponseError("Model list entries must be JSON objects.", excerpt(text))
    return [ModelDescriptor.from_dict(entry) for entry in data]


class ConfigResolver:
    """Server connection info plus the resolved model and sampler catalogs."""

    def __init__(
        self,
        config: ServerConfig | None = None,
        transport: Transport | None = None,
        samplers: tuple[str, ...] | list[str] = DEFAULT_SAMPLERS,
    ) -> None:
        self.config = config or get_config()
        self.transport = transport or Transport(self.config)
        self.samplers: tuple[str, ...] = tuple(samplers)
        self._cache = ModelCache()

    @property
    def models(self) -> tuple[ModelDescriptor, ...]:
        return self._cache.models()

    @property
    def model_names(self) -> tuple[str, ...]:
        return self._cache.names()

    def list_models(self) -> list[ModelDescriptor]:
        """
        Fetch the server's model catalog and replace the cache with it.

        Tries the primary models path; on 404 tries the legacy path once.

        Returns:
            Descriptors in server order (duplicates kept)

        Raises:
            AuthRequiredError: On 401/403 (no fallback attempted)
            InvalidResponseError: If the body is not a JSON model list
            TransportError: On connection failure, timeout or other status
        """
        url = self.config.url(self.config.models_path)
        try:
            response = self.transport.send("GET", url)
        except AuthRequiredError:
            raise
        except ProtocolError as e:
            if e.status_code != 404:
                raise
            fallback = self.config.url(self.config.models_fallback_path)
            logger.info("Models endpoint %s not found; trying %s", url, fallback)
            response = self.transport.send("GET", fallback)

        models = _parse_models(response.text)
        self._cache.replace(models)
        logger.debug("Model catalog updated count=%d", len(models))
        return models

    def ensure_models(self) -> tuple[str, ...]:
        """
        Load the catalog if it is empty. A failed load is logged, not raised,
        except for auth failures.

        Returns:
            Current model names (possibly empty)

        Raises:
            AuthRequiredError: On 401/403 from the models endpoint
        """
        if self._cache.size() == 0:
            try:
                self.list_models()
            except AuthRequiredError:
                raise
            except SDMaterialError as e:
                logger.warning("Could not load model catalog: %s", e)
        return self.model_names

    def set_model(self, name: str) -> None:
        """
        Make name the server's active checkpoint.

        Loads the catalog first if empty. Posts to the options path; on a
        transport failure other than auth, retries once on the legacy path.
        Returns only after the server has answered.

        Raises:
            ValidationError: If name is empty
            AuthRequiredError: On 401/403 from the catalog or options call
            TransportError: If the fallback also fails
        """
        if not name or not name.strip():
            raise ValidationError("Model name cannot be empty", field="model")
        self.ensure_models()

        body = {"sd_model_checkpoint": name}
        url = self.config.url(self.config.options_path)
        logger.info("Selecting model %s", name)
        try:
            self.transport.send("POST", url, body=body)
        except AuthRequiredError:
            raise
        except TransportError as e:
            fallback = self.config.url(self.config.options_fallback_path)
            logger.info("Setting model via %s failed (%s); trying %s", url, e, fallback)
            self.transport.send("POST", fallback, body=body)

    def resolve_model(self, name: str | None, index: int = 0) -> str | None:
        """
        Pick the checkpoint for a request: the explicit name, else the catalog
        entry at index. Returns None if neither is available.

        Raises:
            AuthRequiredError: If loading the catalog is refused
        """
        if name:
            return name
        names = self.ensure_models()
        if 0 <= index < len(names):
            return names[index]
        return None
