"""CLI for the biostream headband toolkit."""

import asyncio
import logging

import click


@click.group()
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level for library diagnostics.",
)
def main(log_level: str) -> None:
    """biostream: real-time EEG / PPG / accelerometer pipeline for BLE headbands."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--timeout", "-t", default=10.0, help="Scan timeout in seconds.")
def scan(timeout: float) -> None:
    """Scan for nearby headbands."""
    from biostream.scanner import scan as do_scan

    asyncio.run(do_scan(timeout))


@main.command()
@click.option("--address", "-a", default=None, help="BLE address to connect to.")
@click.option("--duration", "-d", default=None, type=float, help="Streaming duration in seconds.")
@click.option("--capture", "-c", "capture_path", default=None, help="Append raw notifications to this .jsonl file.")
@click.option("--no-eeg", is_flag=True, help="Do not process the EEG channel.")
def stream(address: str | None, duration: float | None, capture_path: str | None, no_eeg: bool) -> None:
    """Stream live metrics from a headband."""
    from biostream.config import PipelineConfig
    from biostream.protocol import ChannelTag
    from biostream.stream import stream_device

    config = PipelineConfig.default()
    if no_eeg:
        config = config.with_channel(ChannelTag.BIO, enabled=False)

    try:
        asyncio.run(stream_device(address, duration, capture_path, config))
    except KeyboardInterrupt:
        click.echo("\nStopped.")


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--output", "-o", default=None, help="Write the final metrics report as JSON.")
@click.option("--verbose", "-v", is_flag=True, help="Show skipped lines and every reported error.")
def replay(file: str, output: str | None, verbose: bool) -> None:
    """Replay a captured notification log through the pipeline."""
    from biostream.replay import replay_file

    sink = replay_file(file, output, verbose)

    if sink is not None and sink.latest_metrics is not None:
        from biostream.stream import format_metrics

        click.echo("\n--- Metrics ---")
        click.echo(format_metrics(sink.latest_metrics))


if __name__ == "__main__":
    main()
