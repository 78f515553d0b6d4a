"""CLI for dockerprom.

Provides a command-line interface using Typer for:
- Serving container metrics over HTTP
- Printing one scrape to stdout
- Showing the detected cgroup topology

Every option can also be set through the environment variable named in its
help text, and a YAML/JSON file given with ``--config`` supplies defaults.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from dockerprom.collector import ContainerMetricsCollector
from dockerprom.core.config import build_config, load_config
from dockerprom.core.errors import CgroupRootUnavailableError, ConfigurationError
from dockerprom.core.schemas import CgroupDriver, CgroupVersion, ExporterConfig
from dockerprom.monitoring.base import TopologyDetection
from dockerprom.monitoring.topology import detect_topology
from dockerprom.server import create_app, serve as serve_app
from dockerprom.utils.logging import get_logger, setup_logging, verbosity_to_level

app = typer.Typer(
    name="dockerprom",
    help=(
        "Simple Prometheus exporter for Docker container metrics. No Docker socket access "
        "is required: metrics are read from the cgroupfs and metadata from the Docker "
        "containers directory."
    ),
    add_completion=False,
)

console = Console(stderr=True)
logger = get_logger(__name__)

CONFIG_OPTION = typer.Option(
    None, "--config", help="YAML/JSON configuration file; options below override it"
)
CONTAINERS_DIR_OPTION = typer.Option(
    None, "--containers-dir", "-d", envvar="CONTAINERS_DIR",
    help="Path to the Docker containers directory [default: /var/lib/docker/containers/]",
)
CGROUPFS_DIR_OPTION = typer.Option(
    None, "--cgroupfs-dir", "-c", envvar="CGROUPFS_DIR",
    help="Path to the cgroupfs [default: /sys/fs/cgroup/]",
)
CGROUP_VERSION_OPTION = typer.Option(
    None, "--cgroup-version", envvar="CGROUP_VERSION", help="Override cgroup version detection"
)
DRIVER_OPTION = typer.Option(
    None, "--docker-cgroup-driver", envvar="DOCKER_CGROUP_DRIVER",
    help="Override Docker cgroup driver detection",
)
REFRESH_OPTION = typer.Option(
    None, "--min-metadata-refresh-ms", envvar="MIN_METADATA_REFRESH_MS",
    help="Minimum milliseconds between container metadata refreshes, 0 = always [default: 2000]",
)
EXCLUDE_OPTION = typer.Option(
    None, "--exclude-labels", envvar="EXCLUDE_LABELS",
    help="Docker labels to ignore (repeatable, comma-separated). Not with --include-labels.",
)
INCLUDE_OPTION = typer.Option(
    None, "--include-labels", envvar="INCLUDE_LABELS",
    help="Only these Docker labels become metric labels (repeatable, comma-separated).",
)
VERBOSE_OPTION = typer.Option(
    0, "--verbose", "-v", count=True, help="Increase the log level (default INFO, -v DEBUG)"
)
JSON_LOGS_OPTION = typer.Option(False, "--json-logs", help="Output logs in JSON format")
LOG_FILE_OPTION = typer.Option(None, "--log-file", help="Also write logs to this file")


def _setup_logging(verbose: int, json_logs: bool, log_file: Path | None = None) -> None:
    try:
        level = verbosity_to_level(verbose)
    except ValueError as e:
        console.print(f"[bold red]Error: {e} Quitting.[/]")
        raise typer.Exit(1) from e
    setup_logging(
        level=level, log_file=log_file, json_format=json_logs, rich_console=not json_logs
    )


def _load_config(config_file: Path | None, **options: Any) -> ExporterConfig:
    """Merge file and option values; invalid configuration exits with status 1."""
    try:
        if config_file is not None:
            return load_config(config_file, **options)
        return build_config(**options)
    except (ConfigurationError, FileNotFoundError) as e:
        console.print(f"[bold red]ERROR: {e}[/]")
        raise typer.Exit(1) from e


def _check_read_dir(directory: Path, what: str) -> None:
    """Log (but tolerate) an unreadable directory at startup."""
    try:
        os.listdir(directory)
    except OSError as e:
        logger.error(
            f"Unable to read contents of {what} directory {directory}: {e}. "
            "If you're running this tool within a container, maybe check your volume mounts."
        )


def _detect(config: ExporterConfig) -> TopologyDetection:
    detection = detect_topology(
        config.cgroupfs_dir, config.cgroup_version, config.docker_cgroup_driver
    )
    topology = detection.topology
    logger.info(
        f"Assuming: cgroup version {topology.version.value}, "
        f"Docker cgroup driver {topology.driver.value}."
    )
    if detection.low_confidence:
        logger.warning(
            "cgroup layout detection was inconclusive and fell back to defaults. "
            "Use --cgroup-version / --docker-cgroup-driver if metrics are missing."
        )
    return detection


def _startup(config: ExporterConfig) -> ContainerMetricsCollector:
    if config.exclude_labels:
        logger.info(f"Excluding labels: {', '.join(config.exclude_labels)}")
    if config.include_labels:
        logger.info(f"Including labels: {', '.join(config.include_labels)}")
    _check_read_dir(config.containers_dir, "containers")
    _check_read_dir(config.cgroupfs_dir, "cgroupfs")

    collector = ContainerMetricsCollector.from_config(config, _detect(config))
    collector.cache.refresh()
    return collector


@app.command()
def serve(
    config_file: Path | None = CONFIG_OPTION,
    containers_dir: Path | None = CONTAINERS_DIR_OPTION,
    cgroupfs_dir: Path | None = CGROUPFS_DIR_OPTION,
    listen_addr: str | None = typer.Option(
        None, "--listen-addr", "-l", envvar="LISTEN_ADDR",
        help="IP and port to bind to, e.g. [::]:3000 [default: 127.0.0.1:3000]",
    ),
    min_metadata_refresh_ms: int | None = REFRESH_OPTION,
    basicauth: str | None = typer.Option(
        None, "--basicauth", "-B", envvar="BASICAUTH",
        help="Require HTTP Basic auth, 'username:password' (not base64 encoded)",
    ),
    cgroup_version: CgroupVersion | None = CGROUP_VERSION_OPTION,
    docker_cgroup_driver: CgroupDriver | None = DRIVER_OPTION,
    exclude_labels: list[str] | None = EXCLUDE_OPTION,
    include_labels: list[str] | None = INCLUDE_OPTION,
    verbose: int = VERBOSE_OPTION,
    json_logs: bool = JSON_LOGS_OPTION,
    log_file: Path | None = LOG_FILE_OPTION,
) -> None:
    """Serve container metrics over HTTP."""
    _setup_logging(verbose, json_logs, log_file)
    config = _load_config(
        config_file,
        containers_dir=containers_dir,
        cgroupfs_dir=cgroupfs_dir,
        listen_addr=listen_addr,
        min_metadata_refresh_ms=min_metadata_refresh_ms,
        basicauth=basicauth,
        cgroup_version=cgroup_version,
        docker_cgroup_driver=docker_cgroup_driver,
        exclude_labels=exclude_labels,
        include_labels=include_labels,
    )
    logger.info("Starting Docker container metrics Prometheus exporter.")
    logger.debug("Debug logging is enabled.")

    collector = _startup(config)
    if config.basicauth is not None:
        logger.info("HTTP Basic auth will be required.")
    flask_app = create_app(collector, config.basicauth_header)
    serve_app(flask_app, config.listen_host, config.listen_port)


@app.command()
def scrape(
    config_file: Path | None = CONFIG_OPTION,
    containers_dir: Path | None = CONTAINERS_DIR_OPTION,
    cgroupfs_dir: Path | None = CGROUPFS_DIR_OPTION,
    cgroup_version: CgroupVersion | None = CGROUP_VERSION_OPTION,
    docker_cgroup_driver: CgroupDriver | None = DRIVER_OPTION,
    exclude_labels: list[str] | None = EXCLUDE_OPTION,
    include_labels: list[str] | None = INCLUDE_OPTION,
    verbose: int = VERBOSE_OPTION,
    json_logs: bool = JSON_LOGS_OPTION,
    log_file: Path | None = LOG_FILE_OPTION,
) -> None:
    """Run a single scrape and print the exposition text to stdout."""
    _setup_logging(verbose, json_logs, log_file)
    config = _load_config(
        config_file,
        containers_dir=containers_dir,
        cgroupfs_dir=cgroupfs_dir,
        cgroup_version=cgroup_version,
        docker_cgroup_driver=docker_cgroup_driver,
        exclude_labels=exclude_labels,
        include_labels=include_labels,
    )
    collector = _startup(config)
    try:
        output = collector.collect()
    except CgroupRootUnavailableError as e:
        console.print(f"[bold red]Failed getting metrics: {e}[/]")
        raise typer.Exit(1) from e
    typer.echo(output, nl=False)


@app.command()
def detect(
    config_file: Path | None = CONFIG_OPTION,
    cgroupfs_dir: Path | None = CGROUPFS_DIR_OPTION,
    cgroup_version: CgroupVersion | None = CGROUP_VERSION_OPTION,
    docker_cgroup_driver: CgroupDriver | None = DRIVER_OPTION,
    verbose: int = VERBOSE_OPTION,
) -> None:
    """Show the detected cgroup version and Docker cgroup driver."""
    _setup_logging(verbose, json_logs=False)
    config = _load_config(
        config_file,
        cgroupfs_dir=cgroupfs_dir,
        cgroup_version=cgroup_version,
        docker_cgroup_driver=docker_cgroup_driver,
    )
    detection = _detect(config)

    table = Table(title="cgroup topology")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("cgroupfs", str(config.cgroupfs_dir))
    table.add_row("cgroup version", detection.topology.version.value)
    table.add_row("Docker cgroup driver", detection.topology.driver.value)
    table.add_row("Confidence", "low" if detection.low_confidence else "high")
    Console().print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
