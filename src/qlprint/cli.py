"""
Command-Line Interface for Brother QL Printers.

Usage:
    qlprint info              - Show printer status
    qlprint print IMAGE...    - Print one or more images
    qlprint config            - Show or change saved defaults
"""

import logging
import sys

import click

from .errors import (
    ChannelIOError,
    DeviceReportedError,
    DeviceUnavailable,
    ImageLoadFailed,
    ImageTooWide,
    ProtocolTimeout,
    QLError,
)
from .printer import PageResult, PrintConfig, QLPrinter
from .settings import clear_settings, has_saved_settings, load_settings, save_settings
from .status import MediaType, render_status


def report_error(error: QLError) -> None:
    """Print a one-line description of a driver failure to stderr."""
    if isinstance(error, DeviceUnavailable):
        click.echo(f"{error}", err=True)
    elif isinstance(error, ImageLoadFailed):
        click.echo(f"Failed to load image '{error.item}': {error}", err=True)
    elif isinstance(error, ImageTooWide):
        click.echo(f"Failed to print '{error.item}': {error}", err=True)
    elif isinstance(error, ProtocolTimeout):
        click.echo(f"Printer stopped responding! ({error})", err=True)
    elif isinstance(error, DeviceReportedError):
        click.echo(f"{error}", err=True)
    elif isinstance(error, ChannelIOError):
        click.echo(f"Printer I/O error: {error}", err=True)
    else:
        click.echo(f"Printer error ({error.cause}): {error}", err=True)


@click.group()
@click.option("--debug/--no-debug", default=False, help="Enable debug output")
@click.pass_context
def main(ctx, debug):
    """Brother QL Label Printer CLI."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="[%(name)s] %(levelname)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["settings"] = load_settings()


@main.command()
@click.option("-p", "--printer", "device", help="Printer device (default /dev/usb/lp0)")
@click.option("-x", "--timeout", type=float, help="Seconds to wait for the status reply")
@click.pass_context
def info(ctx, device, timeout):
    """Print status information, then exit."""
    settings = ctx.obj["settings"]
    printer = QLPrinter(device or settings.device)

    try:
        status = printer.info(timeout if timeout is not None else settings.timeout)
        click.echo(render_status(status), nl=False)
    except QLError as e:
        report_error(e)
        sys.exit(1)
    finally:
        printer.close()


@main.command("print")
@click.argument("images", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("-p", "--printer", "device", help="Printer device (default /dev/usb/lp0)")
@click.option("-m", "--margin", type=click.IntRange(0, 0xFFFF), help="Margin (dots)")
@click.option("-a", "--autocut", is_flag=True, help="Enable auto-cut")
@click.option(
    "-C", "--continuous", is_flag=True,
    help="Require continuous-length tape (error if not loaded)",
)
@click.option(
    "-D", "--die-cut", is_flag=True,
    help="Require die-cut labels (error if not loaded)",
)
@click.option("-W", "--width", type=click.IntRange(0, 255), help="Require media width (mm)")
@click.option("-L", "--length", type=click.IntRange(0, 255), help="Require media length (mm)")
@click.option("-Q", "--quality", is_flag=True, help="Prioritise quality over speed")
@click.option("-n", "--copies", type=click.IntRange(min=1), default=1, help="Number of copies")
@click.option(
    "-t", "--threshold", type=click.IntRange(0, 255),
    help="Black/white threshold (default 128, i.e. 0-127 = black)",
)
@click.option(
    "-x", "--timeout", type=float,
    help="Seconds to wait for each page to print (default 5)",
)
@click.pass_context
def print_images(ctx, images, device, margin, autocut, continuous, die_cut,
                 width, length, quality, copies, threshold, timeout):
    """Print one or more image files."""
    if continuous and die_cut:
        raise click.UsageError("-C/--continuous and -D/--die-cut are mutually exclusive")

    settings = ctx.obj["settings"]
    timeout = timeout if timeout is not None else settings.timeout

    media_type = None
    if continuous:
        media_type = MediaType.CONTINUOUS
    elif die_cut:
        media_type = MediaType.DIECUT_LABELS

    config = PrintConfig(
        threshold=threshold if threshold is not None else settings.threshold,
        media_type=media_type,
        media_width=width,
        media_length=length,
        quality_priority=quality,
    )

    def page_done(result: PageResult) -> None:
        click.echo(f"{result.source} ({result.width}x{result.height}) OK")

    printer = QLPrinter(device or settings.device)
    try:
        printer.open()
        printer.initialize()
        printer.configure(
            margin=margin,
            autocut=autocut,
            autocut_every=min(len(images), 255),
            timeout=timeout,
        )
        printer.print_job(
            list(images),
            config,
            copies=copies,
            timeout=timeout,
            on_page=page_done,
        )
    except QLError as e:
        report_error(e)
        sys.exit(1)
    finally:
        printer.close()


@main.command()
@click.option("-p", "--printer", "device", help="Default printer device")
@click.option("-x", "--timeout", type=float, help="Default print timeout (seconds)")
@click.option("-t", "--threshold", type=click.IntRange(0, 255), help="Default threshold")
@click.option("--reset", is_flag=True, help="Forget all saved defaults")
@click.pass_context
def config(ctx, device, timeout, threshold, reset):
    """Show or change saved defaults."""
    if reset:
        if clear_settings():
            click.echo("Saved defaults cleared.")
        else:
            click.echo("No saved defaults.")
        return

    settings = ctx.obj["settings"]
    changed = False
    if device is not None:
        settings.device = device
        changed = True
    if timeout is not None:
        settings.timeout = timeout
        changed = True
    if threshold is not None:
        settings.threshold = threshold
        changed = True

    if changed:
        path = save_settings(settings)
        click.echo(f"Saved to {path}")
    elif not has_saved_settings():
        click.echo("Using built-in defaults.")

    click.echo(f"   device: {settings.device}")
    click.echo(f"  timeout: {settings.timeout}")
    click.echo(f"threshold: {settings.threshold}")


if __name__ == "__main__":
    main()
