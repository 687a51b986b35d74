"""Reporters that present a finished measurement."""

import json
import logging
from collections.abc import Callable, Sequence
from pathlib import Path

import typer

from ..utils import save_measurement_result
from .interfaces import Reporter
from .models import MeasurementResult, MeasurementStatus, SizeMeasurement

logger = logging.getLogger(__name__)


def _describe(measurement: SizeMeasurement) -> str:
    return f"{measurement.display} ({measurement.bytes:,} bytes)"


class ConsoleReporter:
    """Human readable summary."""

    def __init__(self, echo: Callable[..., None] = typer.echo):
        self.echo = echo

    def report(self, result: MeasurementResult) -> None:
        request = result.request
        product = request.product_name

        if result.status == MeasurementStatus.CANCELLED:
            self.echo(f"Cancelled during {result.stage.label}", err=True)
        elif result.failure is not None:
            self.echo(f"Error: {result.failure}", err=True)
        elif result.delta is not None:
            delta = result.delta
            self.echo(f"Empty app size: {_describe(delta.baseline)}")
            self.echo(f"App size with {product} {request.version} ({request.linking.value}): {_describe(delta.updated)}")
            self.echo(f"Binary size increase: {delta.display} ({delta.bytes:+,} bytes)")

        if result.cleanup_warning:
            self.echo(f"Warning: {result.cleanup_warning}", err=True)


class JsonReporter:
    """Machine readable output, printed and/or saved to the results directory."""

    def __init__(
        self,
        echo: Callable[..., None] | None = typer.echo,
        save: bool = False,
        results_dir: Path | None = None,
    ):
        self.echo = echo
        self.save = save
        self.results_dir = results_dir
        self.saved_path: Path | None = None

    def report(self, result: MeasurementResult) -> None:
        data = result.to_dict()
        if self.echo is not None:
            self.echo(json.dumps(data, indent=2))
        if self.save:
            self.saved_path = save_measurement_result(
                data,
                prefix=result.request.product_name,
                results_dir=self.results_dir,
            )


class CompositeReporter:
    """Fans a result out to several reporters; one failing does not stop the others."""

    def __init__(self, reporters: Sequence[Reporter]):
        self.reporters = list(reporters)

    def report(self, result: MeasurementResult) -> None:
        for reporter in self.reporters:
            try:
                reporter.report(result)
            except Exception as e:
                logger.warning(f"{type(reporter).__name__} failed: {e}")
