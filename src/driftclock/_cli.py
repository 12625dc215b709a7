"""Command-line interface (Typer-based).

``driftclock`` runs one sync round against the configured (or given)
server and prints the corrected time, the skew and whether the clock
is synchronized.  With ``--watch`` it keeps the service running and
prints a status line at the given interval until interrupted.

Exit codes:

- ``0`` — synchronized (or watch mode ended normally)
- ``1`` — configuration error
- ``3`` — runtime error
- ``4`` — the sync round did not succeed
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from collections.abc import Callable
from typing import Annotated, get_args

import typer
from pydantic import ValidationError

from driftclock._convert import to_iso8601
from driftclock._logging import configure_logging
from driftclock._service import TimeService
from driftclock._settings import LoggingSettings, Settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_RUNTIME_ERROR = 3
EXIT_NOT_SYNCHRONIZED = 4

# ---------------------------------------------------------------------------
# Allowed values (extracted from LoggingSettings Literal types)
# ---------------------------------------------------------------------------

_VALID_LOG_LEVELS: tuple[str, ...] = get_args(
    LoggingSettings.model_fields["level"].annotation,
)
_VALID_LOG_FORMATS: tuple[str, ...] = get_args(
    LoggingSettings.model_fields["format"].annotation,
)

ServiceFactory = Callable[[Settings], TimeService]


def format_status(service: TimeService) -> str:
    """One human-readable status block for *service*."""
    return "\n".join(
        [
            f"now: {to_iso8601(service.now())}",
            f"skew_ms: {service.skew}",
            f"synchronized: {str(service.synchronized).lower()}",
            f"server: {service.default_server}",
        ]
    )


async def _run_async(
    service: TimeService,
    *,
    server: str | None,
    watch: float | None,
) -> bool:
    if server is not None:
        service.default_server = server
    synchronized = await service.sync()
    typer.echo(format_status(service))
    if watch is None:
        return synchronized

    await service.start()
    try:
        while True:
            await asyncio.sleep(watch)
            typer.echo(format_status(service))
    finally:
        await service.stop()


def build_cli(service_factory: ServiceFactory = TimeService) -> typer.Typer:
    """Construct the Typer CLI.

    Args:
        service_factory: Builds the :class:`TimeService` from the
            loaded settings.  Tests inject one wired with fakes.

    Returns:
        A configured :class:`typer.Typer` ready to invoke.
    """
    cli = typer.Typer(
        help="Drift-corrected UTC time from a single NTP server.",
    )

    @cli.callback(invoke_without_command=True)
    def main(
        version_flag: Annotated[
            bool | None,
            typer.Option(
                "--version",
                is_eager=True,
                help="Show version and exit.",
            ),
        ] = None,
        server: Annotated[
            str | None,
            typer.Option("--server", help="NTP server to query."),
        ] = None,
        watch: Annotated[
            float | None,
            typer.Option(
                "--watch",
                min=0.1,
                help="Keep running, printing status every N seconds.",
            ),
        ] = None,
        log_level: Annotated[
            str | None,
            typer.Option("--log-level", help="Override log level."),
        ] = None,
        log_format: Annotated[
            str | None,
            typer.Option("--log-format", help="Override log format."),
        ] = None,
        env_file: Annotated[
            str,
            typer.Option("--env-file", help="Path to .env file."),
        ] = ".env",
    ) -> None:
        from driftclock import __version__

        # -- version ---------------------------------------------------------
        if version_flag:
            typer.echo(f"driftclock v{__version__}")
            raise typer.Exit()

        # -- validate enum-like options -------------------------------------
        if log_level is not None and log_level.upper() not in _VALID_LOG_LEVELS:
            raise typer.BadParameter(
                f"Invalid log level '{log_level}'. "
                f"Choose from: {', '.join(_VALID_LOG_LEVELS)}",
                param_hint="'--log-level'",
            )

        if log_format is not None and log_format.lower() not in _VALID_LOG_FORMATS:
            raise typer.BadParameter(
                f"Invalid log format '{log_format}'. "
                f"Choose from: {', '.join(_VALID_LOG_FORMATS)}",
                param_hint="'--log-format'",
            )

        # -- build settings -------------------------------------------------
        try:
            settings = Settings(_env_file=env_file)  # type: ignore[call-arg]
        except ValidationError as exc:
            logger.error("Configuration error: %s", exc)
            raise SystemExit(EXIT_CONFIG_ERROR) from exc

        # -- apply CLI overrides --------------------------------------------
        if log_level is not None:
            settings.logging = settings.logging.model_copy(
                update={"level": log_level.upper()},
            )

        if log_format is not None:
            settings.logging = settings.logging.model_copy(
                update={"format": log_format.lower()},
            )

        configure_logging(settings.logging, version=__version__)

        # -- run ------------------------------------------------------------
        synchronized = True
        try:
            service = service_factory(settings)
            with contextlib.suppress(KeyboardInterrupt):
                synchronized = asyncio.run(
                    _run_async(service, server=server, watch=watch),
                )
        except SystemExit:
            raise
        except Exception as exc:
            logger.error("Runtime error: %s", exc)
            sys.exit(EXIT_RUNTIME_ERROR)

        if not synchronized:
            raise typer.Exit(EXIT_NOT_SYNCHRONIZED)

    return cli


def main() -> None:
    """Console-script entry point."""
    build_cli()()
