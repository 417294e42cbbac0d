"""
sdmaterial - Stable Diffusion surface materials

Generates a color texture on an AUTOMATIC1111-compatible Stable Diffusion
server and derives a tangent-space normal map from it.

Library usage:
- Build a ConfigResolver from a ServerConfig (or the shared config via get_config()),
  then a GenerationOrchestrator around it; call generate(GenerationRequest(...)).
- generate() never raises for job failures; inspect job.state and job.error.
- Logging: control verbosity with set_verbosity(0|1|2) or configure_logging(verbose_level, quiet);
  SDMATERIAL_VERBOSITY env (0/1/2) is read when the CLI runs.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("sdmaterial")
except PackageNotFoundError:
    # Package is not installed (e.g., running from source in development)
    __version__ = "0.0.0.dev"

from sdmaterial.core.config import (
    DEFAULT_SERVER_URL,
    ServerConfig,
    get_config,
    set_config,
)
from sdmaterial.core.material import (
    DiskMaterialSink,
    MaterialSettings,
    MaterialSink,
    SurfaceMaterial,
)
from sdmaterial.core.models import (
    GenerationRequest,
    GenerationResponse,
    ModelDescriptor,
    ProgressSample,
)
from sdmaterial.core.normal_map import synthesize
from sdmaterial.core.orchestrator import GenerationJob, GenerationOrchestrator, JobState
from sdmaterial.core.progress import ProgressPoller
from sdmaterial.core.request_builder import build_txt2img_payload, clamp_dimension
from sdmaterial.core.resolver import DEFAULT_SAMPLERS, ConfigResolver
from sdmaterial.core.transport import Transport
from sdmaterial.logging_config import configure_logging, set_verbosity
from sdmaterial.utils.exceptions import (
    AuthRequiredError,
    ConfigurationError,
    CorruptImageError,
    EmptyResultError,
    ImageProcessingError,
    InvalidResponseError,
    MaterialSinkError,
    NetworkError,
    ProtocolError,
    RequestTimeoutError,
    SDMaterialError,
    TransportError,
    ValidationError,
)

__all__ = [
    "AuthRequiredError",
    "ConfigResolver",
    "ConfigurationError",
    "CorruptImageError",
    "DEFAULT_SAMPLERS",
    "DEFAULT_SERVER_URL",
    "DiskMaterialSink",
    "EmptyResultError",
    "GenerationJob",
    "GenerationOrchestrator",
    "GenerationRequest",
    "GenerationResponse",
    "ImageProcessingError",
    "InvalidResponseError",
    "JobState",
    "MaterialSettings",
    "MaterialSink",
    "MaterialSinkError",
    "ModelDescriptor",
    "NetworkError",
    "ProgressPoller",
    "ProgressSample",
    "ProtocolError",
    "RequestTimeoutError",
    "SDMaterialError",
    "ServerConfig",
    "SurfaceMaterial",
    "Transport",
    "TransportError",
    "ValidationError",
    "build_txt2img_payload",
    "clamp_dimension",
    "configure_logging",
    "get_config",
    "set_config",
    "set_verbosity",
    "synthesize",
]
