"""CLI interface for swift-package-size."""

import asyncio

import typer
from pydantic import ValidationError

from .config import settings
from .measurement.machine import STAGE_MESSAGES
from .measurement.models import LinkingMode, MeasurementRequest, PipelineStage
from .measurement.reporters import CompositeReporter, ConsoleReporter, JsonReporter
from .observability import setup_structured_logging
from .providers import build_pipeline

app = typer.Typer(help="Estimate the binary size a Swift Package adds to an app")


@app.command()
def measure(
    package_url: str = typer.Option(
        ...,
        "--package-url",
        "-p",
        "--for",
        "--package",
        "--repository-url",
        help="URL of the Swift Package to measure",
    ),
    version: str = typer.Option(..., "--version", "-v", "--package-version", help="Semantic version of the Swift Package"),
    product: str = typer.Option(
        None,
        "--product",
        "--library",
        "--library-name",
        help="Product to link. Defaults to the repository name",
    ),
    dynamic: bool = typer.Option(False, "--dynamic", help="Link the product dynamically and embed it in the app"),
    timeout: float = typer.Option(None, "--timeout", "-t", help="Timeout per archive build in seconds"),
    json_output: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    save: bool = typer.Option(False, "--save", "-s", help="Save the JSON result to the results directory"),
    verbose: bool = typer.Option(False, "--verbose", help="Output all steps of a running measurement"),
) -> None:
    """Measure the binary size a Swift Package adds to an empty app."""
    try:
        request = MeasurementRequest(
            repository_url=package_url,
            version=version,
            product=product,
            linking=LinkingMode.DYNAMIC if dynamic else LinkingMode.STATIC,
            verbose=verbose,
        )
    except ValidationError as e:
        for error in e.errors():
            field = error["loc"][0] if error["loc"] else "input"
            typer.echo(f"Error: Invalid argument '{field}': {error['msg']}", err=True)
        raise typer.Exit(code=2)

    setup_structured_logging("DEBUG" if request.verbose else settings.logging.level, settings.logging.json_output)

    reporters = [JsonReporter(save=save) if json_output else ConsoleReporter()]
    if save and not json_output:
        reporters.append(JsonReporter(echo=None, save=True))

    def show_progress(stage: PipelineStage, index: int, total: int) -> None:
        message = STAGE_MESSAGES[stage].format(product=request.product_name)
        typer.echo(f"[{index}/{total}] {message}")

    pipeline = build_pipeline(
        reporter=CompositeReporter(reporters),
        progress=None if json_output else show_progress,
        timeout=timeout,
        verbose=request.verbose,
    )

    try:
        result = asyncio.run(pipeline.run(request))
    except KeyboardInterrupt:
        # asyncio.run cancels the pipeline (which cleans up) and re-raises the interrupt
        typer.echo("Cancelled", err=True)
        raise typer.Exit(code=130)

    if not result.succeeded:
        raise typer.Exit(code=1)


@app.command()
def config() -> None:
    """Show current configuration."""
    print(f"Reference app: {settings.template.repository_url}@{settings.template.revision}")
    print(f"Project: {settings.template.get_project_file()} (scheme {settings.template.app_name})")
    print(f"xcodebuild: {settings.build.xcodebuild}")
    print(f"Configuration: {settings.build.configuration} ({settings.build.arch})")
    print(f"Timeout: {settings.build.timeout or '(none)'}")
    print(f"Work dir: {settings.workspace.work_dir or '(system temp)'}")
    print(f"Results dir: {settings.workspace.results_dir or '(default)'}")


if __name__ == "__main__":
    app()
