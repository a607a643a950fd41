"""Command-line interface for ser."""

import logging
import sys
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional

import typer

from ser import __version__
from ser.codecs import launchd, systemd
from ser.config import Config, load_config, save_example_config
from ser.errors import SerError
from ser.interactive import collect_service_details
from ser.output.render import render_details, render_plain, render_table
from ser.platform import ListLevel, ServiceManager, get_manager


app = typer.Typer(
    help="A CLI tool for managing background services.",
    no_args_is_help=True,
    add_completion=False,
)

# Lets `ser new python -m http.server` pass -m through to the command.
COMMAND_SETTINGS = {"allow_interspersed_args": False}


class Format(str, Enum):
    """Service file formats for `ser generate`."""

    NATIVE = "native"
    SYSTEMD = "systemd"
    LAUNCHD = "launchd"


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"ser version {__version__}")
        raise typer.Exit()


@contextmanager
def handle_errors() -> Iterator[None]:
    """Report ser and OS errors on stderr and exit with status 1."""
    try:
        yield
    except (SerError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        raise typer.Exit(1)


def get_config(ctx: typer.Context) -> Config:
    return ctx.obj if isinstance(ctx.obj, Config) else Config()


def get_platform_manager(ctx: typer.Context) -> ServiceManager:
    try:
        return get_manager(get_config(ctx))
    except SerError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise typer.Exit(2)


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Print service manager commands before running them"
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug logging"
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        help="Path to configuration file (default: ~/.ser.yaml)"
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    )
) -> None:
    """
    Manage background services with systemd (Linux) or launchd (macOS).
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr
    )

    try:
        config = load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        print("Continuing with default settings...", file=sys.stderr)
        config = Config()

    if verbose:
        config.verbose = True
    ctx.obj = config


@app.command("list")
def list_command(
    ctx: typer.Context,
    all_services: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Show all services (system and user)"
    )
) -> None:
    """List background services."""
    manager = get_platform_manager(ctx)
    level = ListLevel.SYSTEM if all_services or get_config(ctx).show_all else ListLevel.DEFAULT

    with handle_errors():
        rows = manager.service_rows(level)

    if not rows:
        print("No services found.", file=sys.stderr)
        return

    if sys.stdout.isatty():
        print(render_table(rows))
    else:
        print(render_plain(rows))


app.command("status", hidden=True, help="Alias for list.")(list_command)


@app.command()
def show(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the service to show")
) -> None:
    """Show detailed information about a service."""
    manager = get_platform_manager(ctx)
    with handle_errors():
        details = manager.get_service_details(manager.resolve_service_name(name))
    print(render_details(details, color=sys.stdout.isatty()))


@app.command()
def start(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the service to start")
) -> None:
    """Start a service."""
    manager = get_platform_manager(ctx)
    with handle_errors():
        resolved = manager.resolve_service_name(name)
        if manager.is_service_running(resolved):
            print(f"Service '{name}' is already running.")
            return
        print(f"Starting service '{name}'...", end="", flush=True)
        manager.start_service(resolved)
    print(" done.")


@app.command()
def stop(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the service to stop")
) -> None:
    """Stop a service."""
    manager = get_platform_manager(ctx)
    with handle_errors():
        resolved = manager.resolve_service_name(name)
        print(f"Stopping service '{name}'...", end="", flush=True)
        manager.stop_service(resolved)
    print(" done.")


@app.command()
def restart(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the service to restart")
) -> None:
    """Restart a service."""
    manager = get_platform_manager(ctx)
    with handle_errors():
        resolved = manager.resolve_service_name(name)
        print(f"Restarting service '{name}'...", end="", flush=True)
        manager.restart_service(resolved)
    print(" done.")


@app.command(context_settings=COMMAND_SETTINGS)
def new(
    ctx: typer.Context,
    command: Optional[List[str]] = typer.Argument(None, help="Command to run as a service")
) -> None:
    """Create a new service interactively."""
    manager = get_platform_manager(ctx)
    print("Creating a new service...\n")

    with handle_errors():
        details = collect_service_details(command, validate=True)
        path = manager.create_service(details)
    print(f"Service '{details.name}' created successfully at {path}.")

    if typer.confirm("Start the service now?", default=True):
        with handle_errors():
            print(f"Starting service '{details.name}'...", end="", flush=True)
            manager.start_service(details.name)
        print(" done.")


app.command("create", hidden=True, context_settings=COMMAND_SETTINGS, help="Alias for new.")(new)


@app.command(context_settings=COMMAND_SETTINGS)
def generate(
    ctx: typer.Context,
    output_format: Format = typer.Option(
        Format.SYSTEMD,
        "--format",
        help="Output format: native (current platform), systemd or launchd"
    ),
    command: Optional[List[str]] = typer.Argument(None, help="Command to run as a service")
) -> None:
    """
    Generate service file content to stdout.

    Nothing is installed. For scheduled systemd services the matching
    .timer unit is printed after the .service unit.
    """
    if output_format == Format.NATIVE:
        output_format = Format(get_platform_manager(ctx).native_format)

    with handle_errors():
        details = collect_service_details(command, validate=False)
        if output_format == Format.LAUNCHD:
            print(launchd.generate_file(details))
            suggested = [Path.home() / "Library" / "LaunchAgents" / f"{details.name}.plist"]
        else:
            print(systemd.generate_file(details))
            suggested = [Path("/etc/systemd/system") / f"{details.name}.service"]
            if details.schedule is not None:
                print(systemd.generate_timer_file(details))
                suggested.append(Path("/etc/systemd/system") / f"{details.name}.timer")

    for path in suggested:
        print(f"{path} is the suggested file path.", file=sys.stderr)


@app.command()
def edit(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the service to edit"),
    editor: Optional[str] = typer.Option(
        None,
        "--editor",
        "-e",
        help="Editor to use (default: $EDITOR or vim)"
    )
) -> None:
    """Edit a service file."""
    manager = get_platform_manager(ctx)
    with handle_errors():
        path = manager.edit_service(manager.resolve_service_name(name), editor=editor)
    print(f"Service file edited: {path}")


@app.command()
def logs(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the service to show logs for"),
    lines: Optional[int] = typer.Option(
        None,
        "--lines",
        "-n",
        min=1,
        help="Number of lines to show (default: 50)"
    ),
    follow: bool = typer.Option(
        False,
        "--follow",
        "-f",
        help="Follow log output (like tail -f)"
    )
) -> None:
    """Show logs for a service."""
    manager = get_platform_manager(ctx)
    with handle_errors():
        resolved = manager.resolve_service_name(name)
        manager.show_logs(resolved, lines or get_config(ctx).log_lines, follow=follow)


@app.command("config")
def config_command(
    generate_config: Path = typer.Option(
        ...,
        "--generate",
        help="Write an example configuration file to this path"
    )
) -> None:
    """Write an example configuration file."""
    try:
        save_example_config(generate_config)
    except OSError as e:
        print(f"Error generating config: {e}", file=sys.stderr)
        raise typer.Exit(2)
    print(f"✓ Example configuration saved to {generate_config}", file=sys.stderr)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
