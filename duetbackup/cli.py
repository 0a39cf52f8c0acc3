"""Command line interface for duetbackup."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from . import __version__
from .api import RRFClient
from .config import SYS_DIR, config
from .exceptions import DuetAPIError, DuetConfigError, DuetError
from .output import OutputFormatter
from .sync import Excludes, SyncEngine
from .utils import clean_path, format_size

logger = logging.getLogger(__name__)


def _make_client(ctx: Any) -> RRFClient:
    """Build a client from command line options and configuration.

    Raises:
        click.UsageError: If no domain is known or the configuration is invalid
    """
    domain = ctx.obj.get("domain")
    if not domain:
        if not config.is_configured():
            raise click.UsageError(
                "No controller configured. Pass --domain or run 'duetbackup init'."
            )
        domain = config.domain
    try:
        port = ctx.obj.get("port") or config.port
        timeout = config.timeout
    except DuetConfigError as e:
        raise click.UsageError(str(e)) from e
    return RRFClient(domain, port=port, timeout=timeout)


def _password(ctx: Any) -> str:
    password: Optional[str] = ctx.obj.get("password")
    return password if password is not None else config.password


@click.group()
@click.option(
    "--domain", "-d", envvar="DUET_DOMAIN", help="Host name or IP of the Duet"
)
@click.option(
    "--port",
    "-p",
    type=click.IntRange(1, 65535),
    default=None,
    help="HTTP port of the Duet (default: 80)",
)
@click.option(
    "--password", envvar="DUET_PASSWORD", default=None, help="Connection password"
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: Any,
    domain: Optional[str],
    port: Optional[int],
    password: Optional[str],
    quiet: bool,
    verbose: bool,
) -> None:
    """duetbackup - Back up files from a Duet running RepRapFirmware."""
    ctx.ensure_object(dict)
    ctx.obj["domain"] = domain
    ctx.obj["port"] = port
    ctx.obj["password"] = password
    ctx.obj["out"] = OutputFormatter(quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("duetbackup").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option("--domain", "-d", prompt="Host name or IP of the Duet", help="Domain")
@click.option(
    "--password",
    prompt="Connection password",
    default="reprap",
    hide_input=True,
    help="Connection password",
)
@click.pass_context
def init(ctx: Any, domain: str, password: str) -> None:
    """Save connection settings.

    Stores domain and password in ~/.config/duetbackup/config.
    """
    out: OutputFormatter = ctx.obj["out"]

    out.info(f"Connecting to {domain}...")
    client = RRFClient(domain)
    try:
        client.connect(password)
        client.disconnect()
        out.success("Connection successful")
    except DuetAPIError as e:
        out.warning(f"Could not connect: {e}")
        if not click.confirm("Save settings anyway?", default=False):
            out.info("Configuration not saved")
            ctx.exit(1)
    finally:
        client.close()

    config.save(domain=domain, password=password)
    out.success(f"Configuration saved to {config.get_config_path()}")


@main.command()
@click.pass_context
def status(ctx: Any) -> None:
    """Check that the Duet is reachable and the password is accepted."""
    out: OutputFormatter = ctx.obj["out"]
    client = _make_client(ctx)

    try:
        client.connect(_password(ctx))
        client.disconnect()
        out.success(f"Duet at {client.base_url} is available")
    except DuetAPIError as e:
        out.error(f"Duet at {client.base_url} is not available: {e}")
        ctx.exit(1)
    finally:
        client.close()


@main.command()
@click.argument("remote_dir", default=SYS_DIR)
@click.pass_context
def ls(ctx: Any, remote_dir: str) -> None:
    """List a directory on the Duet.

    REMOTE_DIR: Directory to list (default: 0:/sys)
    """
    out: OutputFormatter = ctx.obj["out"]
    client = _make_client(ctx)
    remote_dir = clean_path(remote_dir)

    try:
        client.connect(_password(ctx))
        filelist = client.get_filelist(remote_dir)
    except DuetAPIError as e:
        out.error(str(e))
        ctx.exit(1)
    finally:
        client.close()

    rows = [
        (
            "dir" if entry.is_dir else "file",
            entry.name + ("/" if entry.is_dir else ""),
            "" if entry.is_dir else format_size(entry.size),
            entry.modified_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
        for entry in filelist
    ]
    out.print_table(["Type", "Name", "Size", "Modified"], rows, title=remote_dir)


@main.command()
@click.argument("out_dir", type=click.Path(file_okay=False))
@click.option(
    "--dir-to-backup",
    "-r",
    default=SYS_DIR,
    show_default=True,
    help="Directory on the Duet to create a backup of",
)
@click.option(
    "--exclude",
    "-e",
    multiple=True,
    help="Exclude paths starting with this string (can be passed multiple times)",
)
@click.option(
    "--remove-local",
    is_flag=True,
    help="Remove files locally that have been deleted on the Duet",
)
@click.pass_context
def backup(
    ctx: Any,
    out_dir: str,
    dir_to_backup: str,
    exclude: tuple[str, ...],
    remove_local: bool,
) -> None:
    """Back up a directory of the Duet into OUT_DIR.

    Files are downloaded if they are missing locally or older than on the
    Duet. Local directories written by duetbackup carry a .duetbackup marker;
    with --remove-local only files and marked directories are ever deleted.

    Examples:
        duetbackup -d duet.local backup ./backup
        duetbackup -d duet.local backup ./gcodes -r 0:/gcodes -e 0:/gcodes/tmp
        duetbackup -d duet.local backup ./backup --remove-local
    """
    out: OutputFormatter = ctx.obj["out"]

    excludes = Excludes()
    for prefix in exclude:
        if not clean_path(prefix):
            raise click.BadParameter(
                "exclude prefix must not be empty", param_hint="'--exclude'"
            )
        excludes.add(prefix)

    client = _make_client(ctx)
    try:
        logger.debug("Trying to connect to Duet at %s", client.base_url)
        try:
            client.connect(_password(ctx))
        except DuetAPIError as e:
            logger.debug("Connect failed: %s", e)
            out.warning("Duet currently not available")
            ctx.exit(0)

        local_path = Path(out_dir).absolute()
        engine = SyncEngine(client, out)
        stats = engine.sync_folder(
            clean_path(dir_to_backup), local_path, excludes, remove_local
        )
    except KeyboardInterrupt:
        out.warning("\nBackup cancelled by user")
        ctx.exit(130)
    except DuetError as e:
        out.error(str(e))
        ctx.exit(1)
    finally:
        client.close()

    summary_items = [
        ("Directories", str(stats.directories)),
        ("Added", f"{stats.added} files"),
        ("Updated", f"{stats.updated} files"),
        ("Up-to-date", f"{stats.up_to_date} files"),
    ]
    if stats.excluded:
        summary_items.append(("Excluded", str(stats.excluded)))
    if remove_local:
        summary_items.append(("Removed", str(stats.removed)))
    out.print_summary("Backup Complete", summary_items)


if __name__ == "__main__":
    main()
