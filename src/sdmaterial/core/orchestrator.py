"""
Generation orchestration.

GenerationOrchestrator runs one job at a time through

    IDLE -> MODEL_SELECTING -> SUBMITTING -> POLLING -> DECODING -> COMPLETED | FAILED

Model listing/selection may fall back to legacy endpoints (see resolver); the
txt2img call itself is never retried, since a second submission would repeat
expensive work and break seed bookkeeping. While txt2img is outstanding on a
worker thread, the calling thread starts a progress sample every poll_interval
on a short-lived thread of its own. The polling loop ends as soon as the
request settles; a sample still outstanding then is abandoned and its result
dropped.
"""

import base64
import binascii
import io
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from PIL import Image

from sdmaterial.core.material import MaterialSettings, MaterialSink, SurfaceMaterial
from sdmaterial.core.models import GenerationRequest, GenerationResponse, ProgressSample
from sdmaterial.core.normal_map import synthesize
from sdmaterial.core.progress import ProgressPoller
from sdmaterial.core.request_builder import build_txt2img_payload
from sdmaterial.core.resolver import ConfigResolver
from sdmaterial.core.transport import Response
from sdmaterial.logging_config import get_logger, log_prompts
from sdmaterial.utils.exceptions import (
    CorruptImageError,
    EmptyResultError,
    ImageProcessingError,
    MaterialSinkError,
    SDMaterialError,
)

logger = get_logger(__name__)

_PROMPT_LOG_MAX = 50_000


class JobState(str, Enum):
    IDLE = "idle"
    MODEL_SELECTING = "model_selecting"
    SUBMITTING = "submitting"
    POLLING = "polling"
    DECODING = "decoding"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_STATES = frozenset(
    {JobState.MODEL_SELECTING, JobState.SUBMITTING, JobState.POLLING, JobState.DECODING}
)


@dataclass
class GenerationJob:
    """One run of the state machine. Owned by the orchestrator until it settles."""

    request: GenerationRequest
    output_path: Path
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: JobState = JobState.IDLE
    image: Image.Image | None = None
    normal_map: Image.Image | None = None
    material: SurfaceMaterial | None = None
    generated_seed: int | None = None
    percent: float = 0.0
    status_text: str = ""
    error: SDMaterialError | None = None
    warnings: list[str] = field(default_factory=list)
    generation_time: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.state is JobState.COMPLETED


def _decode_image(image_b64: str) -> tuple[bytes, Image.Image]:
    """Strict base64 decode plus an image open, so corrupt data never reaches disk."""
    if image_b64.startswith("data:"):
        image_b64 = image_b64.split(",", 1)[-1]
    try:
        data = base64.b64decode(image_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CorruptImageError(f"Invalid base64 image in response: {str(e)}") from e
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (OSError, ValueError) as e:
        raise CorruptImageError(f"Returned image could not be decoded: {str(e)}") from e
    return data, image


class GenerationOrchestrator:
    """
    Coordinates model selection, txt2img, progress polling, decoding and the
    material hand-off for a single owning entity.

    generate() while a job is active is a no-op. Failures never raise out of
    generate(); they end the job in FAILED with job.error set.
    """

    def __init__(
        self,
        resolver: ConfigResolver,
        sink: MaterialSink | None = None,
        settings: MaterialSettings | None = None,
        guid: str | None = None,
        on_progress: Callable[[ProgressSample], None] | None = None,
        on_state_change: Callable[[JobState], None] | None = None,
    ) -> None:
        self.resolver = resolver
        self.sink = sink
        self.settings = settings or MaterialSettings()
        self.guid = guid or str(uuid.uuid4())
        self.on_progress = on_progress
        self.on_state_change = on_state_change

        self.last_error: SDMaterialError | None = None
        self.generated_seed: int | None = None

        self._lock = threading.Lock()
        self._state = JobState.IDLE
        self._job: GenerationJob | None = None

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def is_generating(self) -> bool:
        return self._state in ACTIVE_STATES

    @property
    def percent(self) -> float:
        job = self._job
        return job.percent if job is not None else 0.0

    @property
    def output_path(self) -> Path:
        """<output_root>/SDMaterials/<guid>.png; regenerating overwrites it."""
        return self.resolver.config.materials_dir / f"{self.guid}.png"

    def _claim(self, request: GenerationRequest) -> GenerationJob | None:
        """Atomically move IDLE/terminal -> MODEL_SELECTING, or return None."""
        if not request.prompt or not request.prompt.strip():
            logger.debug("Ignoring generate request with empty prompt")
            return None
        with self._lock:
            if self._state in ACTIVE_STATES:
                logger.info("Generation already in progress; request ignored")
                return None
            job = GenerationJob(request=request, output_path=self.output_path)
            job.state = JobState.MODEL_SELECTING
            self._state = JobState.MODEL_SELECTING
            self._job = job
        self._notify_state(JobState.MODEL_SELECTING)
        return job

    def _transition(self, job: GenerationJob, state: JobState) -> None:
        with self._lock:
            job.state = state
            self._state = state
        logger.debug("Job %s -> %s", job.id, state.value)
        self._notify_state(state)

    def _notify_state(self, state: JobState) -> None:
        if self.on_state_change is None:
            return
        try:
            self.on_state_change(state)
        except Exception as e:
            logger.debug("on_state_change callback raised: %s", e)

    def generate(self, request: GenerationRequest) -> GenerationJob | None:
        """
        Run a generation job to completion on the calling thread.

        Args:
            request: What to generate

        Returns:
            The settled job (COMPLETED or FAILED), or None if the prompt is
            empty or another job is active
        """
        job = self._claim(request)
        if job is None:
            return None
        self._run(job)
        return job

    def generate_in_background(
        self,
        request: GenerationRequest,
        on_done: Callable[[GenerationJob], None] | None = None,
    ) -> threading.Thread | None:
        """
        Claim the job slot now and run the job on a daemon thread.

        Returns:
            The started thread, or None if the request was ignored
        """
        job = self._claim(request)
        if job is None:
            return None

        def worker() -> None:
            self._run(job)
            if on_done is not None:
                on_done(job)

        thread = threading.Thread(target=worker, name=f"sdmaterial-job-{job.id[:8]}", daemon=True)
        thread.start()
        return thread

    def _run(self, job: GenerationJob) -> None:
        start_time = time.time()
        request = job.request
        logger.info(
            "Generating material job=%s size=%sx%s seed=%s",
            job.id,
            request.width,
            request.height,
            request.seed,
        )
        if log_prompts():
            prompt = request.prompt
            truncated = prompt if len(prompt) <= _PROMPT_LOG_MAX else prompt[:_PROMPT_LOG_MAX] + "..."
            logger.info("Prompt (used): %s", truncated)

        try:
            payload = build_txt2img_payload(
                request, self.resolver.samplers, self.resolver.config
            )
            self._select_model(job)
            self._transition(job, JobState.SUBMITTING)
            response = self._submit_and_poll(job, payload)
            self._transition(job, JobState.DECODING)
            self._decode(job, response)
            self._complete(job)
        except SDMaterialError as e:
            self._fail(job, e)
        finally:
            job.generation_time = time.time() - start_time
            with self._lock:
                if job.state in ACTIVE_STATES:
                    # Unexpected exception is propagating; release the slot anyway
                    job.state = JobState.FAILED
                self._state = job.state
                self._job = None

        if job.succeeded:
            logger.info("Generated in %.1fs path=%s", job.generation_time, job.output_path)

    def _select_model(self, job: GenerationJob) -> None:
        model = self.resolver.resolve_model(job.request.model, job.request.model_index)
        if model is None:
            msg = "No model selected and catalog is empty; using the server's active model"
            logger.warning(msg)
            job.warnings.append(msg)
            return
        self.resolver.set_model(model)

    def _submit_and_poll(self, job: GenerationJob, payload: dict) -> GenerationResponse:
        config = self.resolver.config
        transport = self.resolver.transport
        url = config.url(config.txt2img_path)

        result_holder: list[Response | None] = [None]
        exc_holder: list[BaseException | None] = [None]
        done = threading.Event()

        def worker() -> None:
            try:
                result_holder[0] = transport.send(
                    "POST", url, body=payload, timeout=config.generation_timeout
                )
            except BaseException as e:
                exc_holder[0] = e
            finally:
                done.set()

        thread = threading.Thread(
            target=worker, name=f"sdmaterial-txt2img-{job.id[:8]}", daemon=True
        )
        thread.start()
        self._transition(job, JobState.POLLING)

        poller = ProgressPoller(
            transport, config.url(config.progress_path), timeout=config.request_timeout
        )

        def take_sample(holder: list[ProgressSample | None]) -> None:
            try:
                holder[0] = poller.sample()
            except SDMaterialError as e:
                logger.debug("Progress sample failed: %s", e)

        # Samples run off this thread; a slow progress GET must not hold up POLLING
        sample_thread: threading.Thread | None = None
        sample_holder: list[ProgressSample | None] = [None]
        while not done.wait(timeout=config.poll_interval):
            if sample_thread is not None:
                if sample_thread.is_alive():
                    continue
                sample = sample_holder[0]
                if sample is not None and not done.is_set():
                    self._record_progress(job, sample)
            sample_holder = [None]
            sample_thread = threading.Thread(
                target=take_sample,
                args=(sample_holder,),
                name=f"sdmaterial-progress-{job.id[:8]}",
                daemon=True,
            )
            sample_thread.start()

        if sample_thread is not None and sample_thread.is_alive():
            logger.debug("Abandoning progress sample outstanding at completion")
        thread.join()

        if exc_holder[0] is not None:
            raise exc_holder[0]
        assert result_holder[0] is not None
        response = GenerationResponse.from_body(result_holder[0].text)
        if not response.images:
            raise EmptyResultError(
                "No image was returned by the server. Verify that the server is correctly set up."
            )
        return response

    def _record_progress(self, job: GenerationJob, sample: ProgressSample) -> None:
        job.percent = sample.percent
        job.status_text = sample.status_text
        logger.debug("Progress %.0f%% %s", sample.percent, sample.status_text)
        if self.on_progress is None:
            return
        try:
            self.on_progress(sample)
        except Exception as e:
            logger.debug("on_progress callback raised: %s", e)

    def _decode(self, job: GenerationJob, response: GenerationResponse) -> None:
        data, image = _decode_image(response.images[0])

        path = job.output_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise ImageProcessingError(
                f"Failed to write image: {str(e)}", image_path=str(path)
            ) from e
        job.image = image

        try:
            job.generated_seed = response.seed_from_info()
        except ValueError as e:
            msg = f"Could not read the generated seed from info: {e}"
            logger.warning(msg)
            job.warnings.append(msg)
            job.generated_seed = None
        self.generated_seed = job.generated_seed

    def _complete(self, job: GenerationJob) -> None:
        assert job.image is not None
        if self.settings.generate_normal_map:
            job.normal_map = synthesize(job.image, self.settings.normal_map_strength)
        job.material = SurfaceMaterial(
            color=job.image,
            color_path=job.output_path,
            normal_map=job.normal_map,
            seed=job.generated_seed,
            settings=self.settings,
        )
        if self.sink is not None:
            try:
                self.sink.apply(job.material)
            except Exception as e:
                raise MaterialSinkError(f"Material sink failed: {str(e)}") from e
        job.percent = 100.0
        self._transition(job, JobState.COMPLETED)
        self.last_error = None

    def _fail(self, job: GenerationJob, error: SDMaterialError) -> None:
        logger.error("Job %s failed: %s", job.id, error)
        job.error = error
        self.last_error = error
        self._transition(job, JobState.FAILED)
