"""HostVault command line."""

from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional

import click

from hostvault import __version__
from hostvault.config import KDF_PROFILES, Config
from hostvault.errors import (
    ConflictError,
    CorruptVault,
    IntegrityFailure,
    LauncherUnavailable,
    VaultError,
)
from hostvault.logging_setup import setup_secure_logging
from hostvault.paths import get_data_dir, get_log_dir, get_vault_path
from hostvault.ssh.config_export import append_ssh_config, render_ssh_config
from hostvault.ssh.launcher import Launcher, SshpassLauncher
from hostvault.util.memory import wipe
from hostvault.util.platform_harden import (
    apply_platform_hardening,
    validate_system_requirements,
)
from hostvault.vault.models import CredentialRecord
from hostvault.vault.sources import EnvSecretSource, PromptSecretSource, SecretSource
from hostvault.vault.store import VaultSession, VaultStore

logger = logging.getLogger("hostvault")

MAX_CONFLICT_RETRIES = 1


# ============================================================================
#  Application context
# ============================================================================
class AppContext:
    def __init__(self, data_dir: Path, vault_path: Path, launcher: Optional[Launcher] = None):
        self.data_dir = data_dir
        self.vault_path = vault_path
        self.launcher = launcher or SshpassLauncher()

    def store(self) -> VaultStore:
        return VaultStore(self.vault_path, Config.get_kdf_profile(self.data_dir))

    def secret_source(self, confirm: bool = False) -> SecretSource:
        env = EnvSecretSource()
        if env.available():
            return env
        return PromptSecretSource(confirm=confirm)

    @contextmanager
    def unlocked(self) -> Iterator[VaultSession]:
        with self.store().unlock(self.secret_source()) as session:
            yield session

    def mutate(self, change: Callable[[VaultSession], None]) -> None:
        """Unlock, apply *change*, persist; re-read and retry on a conflict."""
        for attempt in range(MAX_CONFLICT_RETRIES + 1):
            try:
                with self.unlocked() as session:
                    change(session)
                    session.persist()
                return
            except ConflictError:
                if attempt == MAX_CONFLICT_RETRIES:
                    raise
                logger.warning("Conflict on persist, retrying with fresh contents")
                click.echo("Vault changed on disk; reloading and retrying.", err=True)


def reports_errors(fn):
    """Turn vault errors into one-line messages and exit status 1."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except IntegrityFailure:
            raise click.ClickException("Incorrect password or corrupted vault") from None
        except CorruptVault as exc:
            raise click.ClickException(f"Vault is corrupted: {exc}") from None
        except VaultError as exc:
            raise click.ClickException(str(exc)) from None

    return wrapper


def _format_record(record: CredentialRecord) -> str:
    line = f"{record.id[:8]}  {record.name:<20} {record.username}@{record.host}:{record.port}"
    if record.description:
        line += f"  - {record.description}"
    return line


def _echo_records(records) -> None:
    if not records:
        click.echo("No servers configured.")
        return
    for record in records:
        click.echo(_format_record(record))


# ============================================================================
#  Commands
# ============================================================================
@click.group()
@click.version_option(__version__, prog_name="hostvault")
@click.option(
    "--vault",
    "vault_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Vault file (default: platform data directory).",
)
@click.option("--verbose", is_flag=True, help="Log at debug level and echo log lines to stderr.")
@click.pass_context
def cli(ctx: click.Context, vault_path: Optional[Path], verbose: bool):
    """Secure SSH credential manager."""
    data_dir = get_data_dir()
    setup_secure_logging(
        get_log_dir(data_dir), logging.DEBUG if verbose else logging.INFO, console=verbose
    )
    apply_platform_hardening()
    if ctx.obj is None:
        ctx.obj = AppContext(data_dir, vault_path or get_vault_path(data_dir))


@cli.command()
@click.pass_obj
@reports_errors
def init(app: AppContext):
    """Create a new vault protected by a master password."""
    store = app.store()
    if store.exists():
        raise click.ClickException(f"Vault already exists at {store.vault_path}")
    try:
        validate_system_requirements(KDF_PROFILES[store.kdf_profile]["memory_cost"])
    except SystemError as exc:
        raise click.ClickException(str(exc)) from None
    store.initialize(app.secret_source(confirm=True))
    click.echo(f"Vault created at {store.vault_path}")


@cli.command()
@click.option("--name", prompt="Server name")
@click.option("--host", prompt="Host/IP")
@click.option("--port", type=click.IntRange(1, 65535), default=22, prompt="Port", show_default=True)
@click.option("--username", prompt="Username")
@click.option("--description", default="", prompt="Description (optional)", show_default=False)
@click.option("--tag", "tags", multiple=True, help="Tag the server (repeatable).")
@click.pass_obj
@reports_errors
def add(app: AppContext, name, host, port, username, description, tags):
    """Add a server."""
    password = bytearray(click.prompt("Server password", hide_input=True).encode("utf-8"))

    def build() -> CredentialRecord:
        return CredentialRecord(
            name=name,
            host=host,
            username=username,
            password=password,
            port=port,
            description=description or None,
            tags=tags,
        )

    def change(session: VaultSession) -> None:
        record = build()
        try:
            session.add_record(record)
        except VaultError:
            record.wipe()
            raise

    try:
        build().wipe()  # validate before asking for the master password
        app.mutate(change)
    finally:
        wipe(password)
    click.echo(f"Server '{name}' added.")


@cli.command("list")
@click.pass_obj
@reports_errors
def list_(app: AppContext):
    """List all servers."""
    with app.unlocked() as session:
        _echo_records(session.records)


@cli.command()
@click.argument("query")
@click.pass_obj
@reports_errors
def search(app: AppContext, query):
    """Search servers by name, host, or description."""
    with app.unlocked() as session:
        results = session.search(query)
        if not results:
            click.echo("No servers match your search.")
            return
        _echo_records(results)


@cli.command()
@click.argument("name")
@click.option("--reveal", is_flag=True, help="Also print the password.")
@click.pass_obj
@reports_errors
def show(app: AppContext, name, reveal):
    """Show one server, by name or id prefix."""
    with app.unlocked() as session:
        record = session.lookup(name)
        click.echo(f"ID: {record.id}")
        click.echo(f"Name: {record.name}")
        click.echo(f"Host: {record.host}:{record.port}")
        click.echo(f"User: {record.username}")
        if record.description:
            click.echo(f"Description: {record.description}")
        if record.tags:
            click.echo(f"Tags: {', '.join(record.tags)}")
        click.echo(f"Command: {record.ssh_command()}")
        if reveal:
            click.echo(f"Password: {record.password}")


@cli.command()
@click.argument("name")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_obj
@reports_errors
def remove(app: AppContext, name, yes):
    """Remove a server, by name or id prefix."""

    def change(session: VaultSession) -> None:
        record = session.lookup(name)
        if not yes and not click.confirm(
            f"Remove server '{record.name}' ({record.host})?", default=False
        ):
            raise click.Abort()
        session.remove_record(record.name)

    app.mutate(change)
    click.echo(f"Server '{name}' removed.")


@cli.command()
@click.argument("name", required=False)
@click.pass_obj
@reports_errors
def connect(app: AppContext, name):
    """Connect to a server (pick from a list when NAME is omitted)."""
    with app.unlocked() as session:
        if name:
            record = session.lookup(name)
        else:
            records = session.records
            if not records:
                click.echo("No servers available.")
                return
            for number, candidate in enumerate(records, start=1):
                click.echo(f"{number:>3}) {candidate.name} ({candidate.host})")
            choice = click.prompt("Select server", type=click.IntRange(1, len(records)))
            record = records[choice - 1]

        click.echo(f"Connecting to {record.username}@{record.host}:{record.port}...")
        try:
            status = app.launcher.connect(record)
        except LauncherUnavailable as exc:
            raise click.ClickException(str(exc)) from None

    if status != 0:
        click.echo("SSH connection failed.", err=True)
        raise SystemExit(status)


@cli.command("ssh-config")
@click.option("--write", is_flag=True, help="Append to ~/.ssh/config instead of printing.")
@click.pass_obj
@reports_errors
def ssh_config(app: AppContext, write):
    """Export servers as ssh_config host entries (without passwords)."""
    with app.unlocked() as session:
        if write:
            path = append_ssh_config(session.records)
            click.echo(f"Written SSH config entries to {path}")
        else:
            click.echo("# Preview: add these to ~/.ssh/config")
            click.echo(render_ssh_config(session.records))


@cli.command()
@click.pass_obj
@reports_errors
def passwd(app: AppContext):
    """Change the master password."""
    store = app.store()
    with store.unlock(app.secret_source()) as session:
        store.change_password(session, PromptSecretSource("New master password", confirm=True))
    click.echo("Master password changed.")


@cli.command()
@click.option("--target-ms", type=int, default=1000, show_default=True)
@click.pass_obj
def calibrate(app: AppContext, target_ms):
    """Pick the strongest KDF profile this machine runs within the target time."""
    profile = Config.calibrate_kdf(app.data_dir, target_ms)
    click.echo(f"KDF profile: {profile} (applies to new vaults and password changes)")


def main():
    """Application entry point."""
    cli(prog_name="hostvault")


if __name__ == "__main__":
    main()
