"""deferred-result CLI.

Commands for exercising deferred result cells without a web container:
simulate a single request end to end, or validate a settings file.
"""

from __future__ import annotations

import json
import threading
import time
from pathlib import Path
from typing import Any, Literal

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from deferred_result import __version__
from deferred_result.contracts import NO_RESULT, AsyncRequestTimeoutError, ErrorResult, Resolution
from deferred_result.core.cell import DeferredResult
from deferred_result.core.config import DeferredResultSettings, LoggingSettings, load_settings
from deferred_result.engine.coordinator import AsyncRequestCoordinator

__all__ = [
    "app",
]

app = typer.Typer(
    name="deferred-result",
    help="deferred-result: single-assignment result cells for async request processing.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"deferred-result version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from a .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """deferred-result: single-assignment result cells for async request processing."""
    from deferred_result.core.logging import configure_logging

    log_level = "DEBUG" if verbose else "WARNING"
    configure_logging(json_output=json_logs, level=log_level)
    # Explicit flags outrank a settings file loaded later by a command
    ctx.obj = {"verbose": verbose, "json_logs": json_logs}

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


def _format_validation_error(
    title: str,
    message: str,
    hint: str | None = None,
    details: list[str] | None = None,
) -> None:
    """Display a formatted validation error with optional hint and details."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console(stderr=True)

    content = Text()
    content.append(message, style="white")

    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")

    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    panel = Panel(
        content,
        title=f"[red bold]{title}[/]",
        border_style="red",
        padding=(0, 1),
    )
    console.print(panel)


def _load_settings_or_exit(settings_path: Path) -> DeferredResultSettings:
    """Load settings, printing a formatted error and exiting on failure."""
    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        _format_validation_error(
            title="YAML Syntax Error",
            message=f"Failed to parse {settings_path.name}",
            details=[str(e.problem)] if hasattr(e, "problem") else None,
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(1) from None
    except FileNotFoundError:
        _format_validation_error(
            title="File Not Found",
            message=f"Settings file does not exist: {settings_path}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except ValidationError as e:
        # Must come before ValueError - ValidationError inherits from it
        details = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            details.append(f"{loc}: {error['msg']}")
        _format_validation_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name}",
            details=details,
            hint="Check field names, types, and required values.",
        )
        raise typer.Exit(1) from None
    except ValueError as e:
        _format_validation_error(
            title="Configuration Error",
            message=str(e),
        )
        raise typer.Exit(1) from None


@app.command()
def validate(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Validate a settings file without running anything."""
    settings_path = Path(settings).expanduser()
    config = _load_settings_or_exit(settings_path)
    typer.echo(f"✓ Settings valid: {settings_path.name}")
    typer.echo(f"  coordinator.default_timeout_ms: {config.coordinator.default_timeout_ms}")
    typer.echo(f"  logging.level: {config.logging.level}")


def _apply_settings_logging(ctx: typer.Context, logging_settings: LoggingSettings) -> None:
    """Reconfigure logging from a settings file, keeping explicit CLI flags."""
    from deferred_result.core.logging import configure_logging

    flags = ctx.obj or {}
    level = "DEBUG" if flags.get("verbose") else logging_settings.level
    json_output = bool(flags.get("json_logs")) or logging_settings.json_output
    configure_logging(json_output=json_output, level=level)


_OUTCOME_STYLES: dict[str, tuple[str, str]] = {
    "value": ("✓", "green bold"),
    "error": ("✗", "red bold"),
    "timeout": ("⏱", "yellow bold"),
    "none": ("-", "dim"),
}


def _describe(resolution: Resolution | None) -> tuple[str, Any]:
    """Classify a dispatched resolution for display."""
    if resolution is None:
        return "none", None
    if isinstance(resolution, ErrorResult):
        if isinstance(resolution.error, AsyncRequestTimeoutError):
            return "timeout", str(resolution.error)
        return "error", str(resolution.error)
    return "value", resolution.value


@app.command()
def simulate(
    ctx: typer.Context,
    timeout_ms: int | None = typer.Option(
        None,
        "--timeout-ms",
        "-t",
        min=0,
        help="Cell timeout in milliseconds (default: coordinator default).",
    ),
    producer_delay_ms: int | None = typer.Option(
        None,
        "--producer-delay-ms",
        "-d",
        min=0,
        help="Delay before the producer answers. Omit for a producer that never answers.",
    ),
    value: str = typer.Option(
        "done",
        "--value",
        help="Value the producer supplies.",
    ),
    fallback: str | None = typer.Option(
        None,
        "--fallback",
        help="Value to resolve with if the timeout fires first.",
    ),
    fail: bool = typer.Option(
        False,
        "--fail",
        help="Producer reports an error instead of a value.",
    ),
    settings: str | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    output_format: Literal["console", "json"] = typer.Option(
        "console",
        "--format",
        "-f",
        help="Output format: 'console' (human-readable) or 'json' (structured JSON).",
    ),
) -> None:
    """Run one deferred request through the coordinator with a producer thread."""
    if settings is not None:
        config = _load_settings_or_exit(Path(settings).expanduser())
        _apply_settings_logging(ctx, config.logging)
    else:
        config = DeferredResultSettings()

    coordinator = AsyncRequestCoordinator(config.coordinator)
    effective_timeout = timeout_ms if timeout_ms is not None else config.coordinator.default_timeout_ms
    if effective_timeout == 0 and producer_delay_ms is None:
        _format_validation_error(
            title="Nothing Would Resolve",
            message="No timeout and no producer: the request would never complete.",
            hint="Pass --producer-delay-ms or a non-zero --timeout-ms.",
        )
        raise typer.Exit(1)

    cell: DeferredResult[str] = DeferredResult(
        timeout_ms=timeout_ms,
        timeout_result=fallback if fallback is not None else NO_RESULT,
    )
    producer_outcome: dict[str, bool] = {}

    producer_delay_s = (producer_delay_ms or 0) / 1000.0

    def produce() -> None:
        time.sleep(producer_delay_s)
        if fail:
            producer_outcome["accepted"] = cell.set_error(RuntimeError(value))
        else:
            producer_outcome["accepted"] = cell.set_result(value)

    started = time.perf_counter()
    request = coordinator.start(cell, dispatch=lambda resolution: None)

    producer: threading.Thread | None = None
    if producer_delay_ms is not None:
        producer = threading.Thread(target=produce, name="simulated-producer", daemon=True)
        producer.start()

    resolution = request.wait()
    elapsed_ms = (time.perf_counter() - started) * 1000
    if producer is not None:
        producer.join()

    outcome, payload = _describe(resolution)
    summary: dict[str, Any] = {
        "outcome": outcome,
        "payload": payload,
        "producer_accepted": producer_outcome.get("accepted"),
        "timed_out": request.timed_out,
        "timeout_ms": request.timeout_ms,
        "elapsed_ms": round(elapsed_ms, 1),
    }

    if output_format == "json":
        typer.echo(json.dumps(summary))
        return

    _print_summary(summary)


def _print_summary(summary: dict[str, Any]) -> None:
    """Render a simulate summary for humans."""
    from rich.console import Console
    from rich.markup import escape

    console = Console(highlight=False)
    symbol, style = _OUTCOME_STYLES[summary["outcome"]]

    console.print(f"[{style}]{symbol} Outcome: {summary['outcome']}[/]")
    if summary["payload"] is not None:
        console.print(f"  payload: {escape(str(summary['payload']))}")
    accepted = summary["producer_accepted"]
    console.print(f"  producer accepted: {'n/a' if accepted is None else accepted}")
    console.print(f"  timed out: {summary['timed_out']} (timeout {summary['timeout_ms']}ms)")
    console.print(f"  [dim]elapsed: {summary['elapsed_ms']}ms[/]")
