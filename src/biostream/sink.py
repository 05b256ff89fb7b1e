"""Consumer interface for pipeline output.

A sink receives every processed window, each aggregate snapshot, reported
errors, battery readings and performance metrics.  All hooks are no-ops by
default so consumers override only what they need.  Hooks are called on the
event loop thread and should return quickly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from biostream.decoders.frame import BatteryReading

if TYPE_CHECKING:
    from biostream.aggregator import AggregatedMetrics
    from biostream.pipeline import PerformanceMetrics
    from biostream.processors import BioWindow, InertialWindow, PulseWindow


class Sink:
    """Base class for pipeline consumers."""

    def on_bio_processed(self, window: BioWindow) -> None:
        pass

    def on_pulse_processed(self, window: PulseWindow) -> None:
        pass

    def on_inertial_processed(self, window: InertialWindow) -> None:
        pass

    def on_metrics_updated(self, metrics: AggregatedMetrics) -> None:
        pass

    def on_error(self, error: BaseException, source: str) -> None:
        pass

    def on_battery(self, reading: BatteryReading) -> None:
        pass

    def on_performance(self, metrics: PerformanceMetrics) -> None:
        pass


class RecordingSink(Sink):
    """Sink that keeps everything it is given, in arrival order."""

    def __init__(self):
        self.bio: list[BioWindow] = []
        self.pulse: list[PulseWindow] = []
        self.inertial: list[InertialWindow] = []
        self.metrics: list[AggregatedMetrics] = []
        self.errors: list[tuple[BaseException, str]] = []
        self.battery: list[BatteryReading] = []
        self.performance: list[PerformanceMetrics] = []

    def on_bio_processed(self, window: BioWindow) -> None:
        self.bio.append(window)

    def on_pulse_processed(self, window: PulseWindow) -> None:
        self.pulse.append(window)

    def on_inertial_processed(self, window: InertialWindow) -> None:
        self.inertial.append(window)

    def on_metrics_updated(self, metrics: AggregatedMetrics) -> None:
        self.metrics.append(metrics)

    def on_error(self, error: BaseException, source: str) -> None:
        self.errors.append((error, source))

    def on_battery(self, reading: BatteryReading) -> None:
        self.battery.append(reading)

    def on_performance(self, metrics: PerformanceMetrics) -> None:
        self.performance.append(metrics)

    @property
    def latest_metrics(self) -> AggregatedMetrics | None:
        return self.metrics[-1] if self.metrics else None

    def errors_of(self, kind: type[BaseException]) -> list[BaseException]:
        return [err for err, _ in self.errors if isinstance(err, kind)]

    def __repr__(self) -> str:
        return (
            f"RecordingSink(bio={len(self.bio)}, pulse={len(self.pulse)}, "
            f"inertial={len(self.inertial)}, metrics={len(self.metrics)}, "
            f"errors={len(self.errors)})"
        )
