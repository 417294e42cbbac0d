"""
Click command definitions for the sdmaterial CLI.

This module contains the Click command group and all CLI commands
(generate, models, samplers, progress, normal-map).
"""

from pathlib import Path

import click
from PIL import Image

from sdmaterial import (
    ConfigResolver,
    DiskMaterialSink,
    GenerationOrchestrator,
    GenerationRequest,
    ImageProcessingError,
    MaterialSettings,
    ProgressPoller,
    ServerConfig,
    ValidationError,
    __version__,
    synthesize,
)
from sdmaterial.cli import progress
from sdmaterial.cli.handlers import run_with_error_handling
from sdmaterial.cli.utils import default_normal_map_path
from sdmaterial.logging_config import configure_logging, get_verbosity_from_env

_VERBOSE_OPTION = click.option(
    "--verbose",
    "-v",
    "verbose_count",
    count=True,
    help="Increase verbosity: -v also show prompts, -vv show HTTP detail.",
)
_QUIET_OPTION = click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Minimize progress messages; only print results or errors.",
)
_SERVER_OPTION = click.option(
    "--server",
    "server_url",
    envvar="SDMATERIAL_SERVER_URL",
    help="Stable Diffusion server URL (default http://127.0.0.1:7860).",
)


def _setup_logging(verbose_count: int, quiet: bool) -> None:
    # CLI flags override SDMATERIAL_VERBOSITY
    verbose_level = min(verbose_count, 2) if verbose_count > 0 else get_verbosity_from_env()
    configure_logging(verbose_level=verbose_level, quiet=quiet)


def _load_config(server_url: str | None, output_root: Path | None = None) -> ServerConfig:
    config = ServerConfig.from_env()
    if server_url:
        config.base_url = server_url
    if output_root is not None:
        config.output_root = str(output_root)
    config.validate()
    return config


@click.group(
    help=f"""Stable Diffusion surface materials: color texture + normal map.

\b
Version: {__version__}
"""
)
@click.version_option(version=__version__, package_name="sdmaterial")
@click.pass_context
def cli(ctx: click.Context) -> None:
    ctx.color = True


@cli.command()
@click.option("--prompt", "-p", required=True, help="Text description of the texture.")
@click.option("--negative-prompt", "-n", default="", help="What the texture should avoid.")
@click.option("--model", "-m", help="Checkpoint name (default: first model on the server).")
@click.option("--sampler", "-s", help="Sampler name (see `sdmaterial samplers`).")
@click.option("--width", "-W", type=int, help="Width in pixels, clamped to 128-2048.")
@click.option("--height", "-H", type=int, help="Height in pixels, clamped to 128-2048.")
@click.option("--steps", type=int, help="Sampling steps.")
@click.option("--cfg-scale", type=float, help="Classifier-free guidance scale.")
@click.option(
    "--seed", type=int, help="Seed; -1 lets the server choose (default SDMATERIAL_DEFAULT_SEED)."
)
@click.option("--tiling/--no-tiling", default=True, help="Request a seamlessly tiling texture.")
@click.option("--normal-map/--no-normal-map", default=True, help="Derive a normal map.")
@click.option(
    "--normal-strength",
    type=click.FloatRange(0, 10),
    default=0.5,
    show_default=True,
    help="Normal map gradient strength.",
)
@click.option(
    "--output-root",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory receiving SDMaterials/ (default from SDMATERIAL_OUTPUT_ROOT or CWD).",
)
@click.option("--guid", help="Reuse a material id; its image is overwritten.")
@_SERVER_OPTION
@_QUIET_OPTION
@_VERBOSE_OPTION
def generate(
    prompt: str,
    negative_prompt: str,
    model: str | None,
    sampler: str | None,
    width: int | None,
    height: int | None,
    steps: int | None,
    cfg_scale: float | None,
    seed: int | None,
    tiling: bool,
    normal_map: bool,
    normal_strength: float,
    output_root: Path | None,
    guid: str | None,
    server_url: str | None,
    quiet: bool,
    verbose_count: int,
) -> None:
    """Generate a material texture and its normal map."""
    _setup_logging(verbose_count, quiet)

    def do_generate() -> None:
        config = _load_config(server_url, output_root)
        resolver = ConfigResolver(config)
        sink = DiskMaterialSink()
        settings = MaterialSettings(
            generate_normal_map=normal_map, normal_map_strength=normal_strength
        )
        orchestrator = GenerationOrchestrator(resolver, sink=sink, settings=settings, guid=guid)
        request = GenerationRequest(
            prompt=prompt,
            negative_prompt=negative_prompt,
            model=model,
            sampler=sampler,
            width=width,
            height=height,
            steps=steps,
            cfg_scale=cfg_scale,
            seed=seed,
            tiling=tiling,
        )

        if quiet:
            job = orchestrator.generate(request)
        else:
            with progress.generation_progress(model=model) as display:
                orchestrator.on_progress = display.on_progress
                orchestrator.on_state_change = display.on_state_change
                job = orchestrator.generate(request)

        if job is None:
            raise ValidationError("Prompt cannot be empty", field="prompt")
        if job.error is not None:
            raise job.error

        if quiet:
            click.echo(str(job.output_path))
            return
        progress.print_success_result(
            output_path=job.output_path,
            generation_time=job.generation_time,
            prompt_used=prompt,
            seed=job.generated_seed,
            normal_map_path=sink.normal_path,
            warnings=job.warnings,
        )
        # Also print path to stdout for scriptability
        click.echo(str(job.output_path))

    run_with_error_handling(do_generate, quiet=quiet)


@cli.command()
@_SERVER_OPTION
@_QUIET_OPTION
@_VERBOSE_OPTION
def models(server_url: str | None, quiet: bool, verbose_count: int) -> None:
    """List the checkpoints available on the server."""
    _setup_logging(verbose_count, quiet)

    def do_list() -> None:
        resolver = ConfigResolver(_load_config(server_url))
        if quiet:
            found = resolver.list_models()
        else:
            with progress.spinner("Fetching models"):
                found = resolver.list_models()
        if quiet:
            for descriptor in found:
                click.echo(descriptor.model_name)
        else:
            progress.print_models_table(found)

    run_with_error_handling(do_list, quiet=quiet)


@cli.command()
def samplers() -> None:
    """List the sampler names accepted by --sampler."""
    for name in ConfigResolver(ServerConfig()).samplers:
        click.echo(name)


@cli.command(name="progress")
@_SERVER_OPTION
@_QUIET_OPTION
@_VERBOSE_OPTION
def progress_command(server_url: str | None, quiet: bool, verbose_count: int) -> None:
    """Show the server's current generation progress."""
    _setup_logging(verbose_count, quiet)

    def do_sample() -> None:
        config = _load_config(server_url)
        resolver = ConfigResolver(config)
        poller = ProgressPoller(resolver.transport, config.url(config.progress_path))
        sample = poller.sample()
        if quiet:
            click.echo(f"{sample.percent:.0f}")
        else:
            progress.print_progress_sample(sample)

    run_with_error_handling(do_sample, quiet=quiet)


@cli.command(name="normal-map")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--strength",
    type=click.FloatRange(0, 10),
    default=0.5,
    show_default=True,
    help="Gradient strength.",
)
@click.option("--out", "-o", type=click.Path(path_type=Path), help="Output path.")
@_QUIET_OPTION
def normal_map_command(source: Path, strength: float, out: Path | None, quiet: bool) -> None:
    """Derive a normal map from an existing image (no server needed)."""

    def do_synthesize() -> None:
        out_path = out or default_normal_map_path(source)
        try:
            with Image.open(source) as image:
                result = synthesize(image, strength)
        except OSError as e:
            raise ImageProcessingError(
                f"Could not read image: {str(e)}", image_path=str(source)
            ) from e
        result.save(out_path, format="PNG")
        if not quiet:
            progress.print_success(f"Normal map written ({result.width}x{result.height})")
        click.echo(str(out_path))

    run_with_error_handling(do_synthesize, quiet=quiet)


def main() -> None:
    """Entry point for the sdmaterial console script."""
    cli()


__all__ = ["cli", "main"]
