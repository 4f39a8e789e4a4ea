"""Command Line Interface for MBForge."""

import sys
import time
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table
from tqdm import tqdm

from .backup import (
    Backup,
    ProtectedDomain,
    RestoreExecutor,
    RestorePlan,
    RestoreRequest,
    expand_requests,
    load_archive,
    load_plan,
    verify_archive,
)
from .config import ForgeConfig, get_config, load_config, set_config
from .device import DiagnosticsTool, check_tool_available
from .errors import ForgeError
from .mbdb import FileMode, is_type, mode_string
from .util import calculate_file_hash, format_duration, format_size, setup_logging, sha1_hexdigest, timestamp_to_iso

console = Console()


def setup_cli_logging(verbose: bool, config: ForgeConfig):
    """Setup logging for CLI."""
    level = "DEBUG" if verbose else config.log_level
    setup_logging(level=level, log_file=config.log_file, console=Console(stderr=True))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--config", "-c", type=click.Path(exists=True, path_type=Path), help="Configuration file path")
@click.pass_context
def cli(ctx, verbose: bool, config: Optional[Path]):
    """MBForge - build and restore synthetic MBDB device backups."""
    ctx.ensure_object(dict)

    if config:
        forge_config = load_config(config)
        set_config(forge_config)
    else:
        forge_config = get_config()

    ctx.obj["config"] = forge_config
    setup_cli_logging(verbose, forge_config)


def _build_plan(
    path: Optional[str],
    contents: Optional[str],
    from_file: Optional[Path],
    plan: Optional[Path],
    domain_addressed: bool,
    owner: int,
    group: int,
    mode: str
) -> RestorePlan:
    """Turn command line arguments into a restore plan."""
    if plan:
        return load_plan(plan)

    if not path:
        raise click.UsageError("Give a restore PATH or --plan")
    if contents is None and from_file is None:
        raise click.UsageError("Give --contents or --from-file")
    if from_file is not None:
        contents = from_file.read_text(encoding="utf-8")

    request = RestoreRequest(
        path=path,
        contents=contents,
        owner=owner,
        group=group,
        mode=int(mode, 8),
        uses_domains=domain_addressed,
    )
    return RestorePlan(files=[request])


def _plan_options(func):
    """Options shared by commands that take restore requests."""
    options = [
        click.argument("path", required=False),
        click.option("--contents", help="File contents"),
        click.option("--from-file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
                     help="Read file contents from a local file"),
        click.option("--plan", type=click.Path(exists=True, dir_okay=False, path_type=Path),
                     help="YAML plan with several files"),
        click.option("--domain-addressed", "-d", is_flag=True,
                     help="PATH starts with its backup domain"),
        click.option("--owner", default=501, show_default=True, help="Owner uid"),
        click.option("--group", default=501, show_default=True, help="Group gid"),
        click.option("--mode", default="644", show_default=True, help="Octal permission bits"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@cli.command("restore")
@_plan_options
@click.option("--reboot", is_flag=True, help="Reboot the device afterwards")
@click.pass_context
def restore(ctx, path, contents, from_file, plan, domain_addressed, owner, group, mode, reboot):
    """Restore files to the connected device."""
    config: ForgeConfig = ctx.obj["config"]

    if not check_tool_available(config.tools.backup_tool):
        console.print(f"[red]Error: {config.tools.backup_tool} is not available or not in PATH[/red]")
        console.print("Please ensure libimobiledevice is installed and accessible.")
        sys.exit(1)

    try:
        restore_plan = _build_plan(path, contents, from_file, plan, domain_addressed, owner, group, mode)
    except (ForgeError, ValueError) as e:
        console.print(f"[red]Invalid restore request: {e}[/red]")
        sys.exit(1)

    executor = RestoreExecutor(config=config)
    start_time = time.time()

    with tqdm(total=100, desc="Restoring", unit="%") as pbar:
        def on_progress(percent: int):
            pbar.update(max(0, percent - pbar.n))

        result = executor.run(
            restore_plan.files,
            reboot=reboot or restore_plan.reboot,
            progress=on_progress,
            apps=restore_plan.apps,
        )

    if result.success:
        elapsed = format_duration(time.time() - start_time)
        console.print(f"[green]Restored {len(restore_plan.files)} file(s) in {elapsed}[/green]")
    else:
        console.print(f"[red]Restore failed: {result.error}[/red]")
        sys.exit(1)


@cli.command("build")
@click.argument("outdir", type=click.Path(file_okay=False, path_type=Path))
@_plan_options
@click.pass_context
def build(ctx, outdir, path, contents, from_file, plan, domain_addressed, owner, group, mode):
    """Assemble an archive into OUTDIR without touching a device."""
    config: ForgeConfig = ctx.obj["config"]

    try:
        restore_plan = _build_plan(path, contents, from_file, plan, domain_addressed, owner, group, mode)
        entries = expand_requests(restore_plan.files, config.archive.crash_reporter_dir)
        Backup(entries, restore_plan.apps).write_to_directory(outdir)
    except (ForgeError, ValueError) as e:
        console.print(f"[red]Build failed: {e}[/red]")
        sys.exit(1)

    console.print(f"[green]Wrote {len(entries)} entries to {outdir}[/green]")


@cli.command("inspect")
@click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--lenient", is_flag=True, help="Keep records decoded before a malformed one")
@click.option("--verify", "verify", is_flag=True, help="Check blobs against recorded hashes and sizes")
@click.pass_context
def inspect(ctx, directory: Path, lenient: bool, verify: bool):
    """List the records of an assembled archive."""
    config: ForgeConfig = ctx.obj["config"]
    lenient = lenient or config.archive.lenient_decode

    try:
        mbdb = load_archive(directory, lenient=lenient)
    except ForgeError as e:
        console.print(f"[red]Could not read archive: {e}[/red]")
        sys.exit(1)

    table = Table(title=f"Manifest.mbdb - {len(mbdb)} records")
    table.add_column("Mode", style="cyan")
    table.add_column("Owner", style="white")
    table.add_column("Size", style="white", justify="right")
    table.add_column("Modified", style="white")
    table.add_column("Domain", style="green")
    table.add_column("Path", style="white")
    table.add_column("Blob", style="dim")

    for record in mbdb:
        path = record.path if not record.link else f"{record.path} -> {record.link}"
        blob = record.file_id if is_type(record.mode, FileMode.S_IFREG) else ""
        table.add_row(
            mode_string(record.mode),
            f"{record.user_id}:{record.group_id}",
            format_size(record.size),
            timestamp_to_iso(record.mtime),
            record.domain,
            path,
            blob,
        )

    console.print(table)

    if verify:
        problems = verify_archive(directory, lenient=lenient)
        if problems:
            for problem in problems:
                console.print(f"[red]- {problem}[/red]")
            sys.exit(1)
        console.print("[green]All blobs match their records[/green]")


@cli.command("classify")
@click.argument("paths", nargs=-1, required=True)
def classify(paths: List[str]):
    """Show the protected domain bucket of restore paths."""
    table = Table(title="Domain classification")
    table.add_column("Path", style="white")
    table.add_column("Bucket", style="cyan")
    table.add_column("Domain", style="green")

    for path in paths:
        bucket = ProtectedDomain.from_path(path)
        table.add_row(path, bucket.directory, bucket.folder_name)

    console.print(table)


@cli.command("hash")
@click.argument("text", required=False)
@click.option("--file", "file_path", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Hash a file instead of TEXT")
def hash_command(text: Optional[str], file_path: Optional[Path]):
    """Print the SHA-1 of TEXT or a file."""
    if file_path is not None:
        digest = calculate_file_hash(file_path)
        if digest is None:
            console.print(f"[red]Could not read {file_path}[/red]")
            sys.exit(1)
    elif text is not None:
        digest = sha1_hexdigest(text)
    else:
        raise click.UsageError("Give TEXT or --file")

    click.echo(digest)


@cli.command("reboot")
@click.pass_context
def reboot(ctx):
    """Reboot the connected device."""
    tools = ctx.obj["config"].tools

    try:
        DiagnosticsTool(tools.diagnostics_tool, udid=tools.udid, timeout=tools.timeout).restart()
    except ForgeError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    console.print("[green]Device is rebooting[/green]")


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
