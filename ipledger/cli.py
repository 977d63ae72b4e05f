"""ipledger CLI — record and query IP ownership claims from the shell."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from ipledger import __version__

console = Console()


def _parse_identity(value: str):
    from ipledger.registry.errors import InvalidIdentityError
    from ipledger.registry.identity import Identity

    try:
        return Identity.from_text(value)
    except InvalidIdentityError as e:
        raise click.BadParameter(e.message)


def _parse_metadata(pairs: tuple) -> dict[str, str]:
    metadata = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Expected KEY=VALUE, got {pair!r}", param_hint="--meta")
        metadata[key] = value
    return metadata


def _status_label(status) -> str:
    colors = {"Active": "green", "Transferred": "cyan", "Expired": "yellow"}
    return f"[{colors.get(status.value, 'white')}]{status.value}[/]"


class _Host:
    """Per-invocation state: settings, the registry, and the caller."""

    def __init__(self, config: str | None, registry_dir: str | None, caller: str | None, verbose: bool):
        self.config = config
        self.registry_dir = registry_dir
        self.caller = caller
        self.verbose = verbose
        self._registry = None

    @property
    def settings(self):
        from ipledger.config import load_settings

        settings = load_settings(self.config)
        if self.registry_dir:
            settings.registry_dir = Path(self.registry_dir)
        if not self.verbose:
            settings.log_level = "WARNING"
        return settings

    @property
    def registry(self):
        if self._registry is None:
            from ipledger.config import build_registry

            self._registry = build_registry(self.settings)
        return self._registry

    def context(self):
        from ipledger.registry.context import SystemCallerContext

        if not self.caller:
            raise click.UsageError("This command needs a caller: pass --as PRINCIPAL or set IPLEDGER_CALLER")
        return SystemCallerContext(_parse_identity(self.caller))


pass_host = click.make_pass_decorator(_Host)


def _fail(ctx: click.Context, error) -> None:
    console.print(f"[red]Error:[/] {error.message}")
    ctx.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", default=None, help="YAML settings file")
@click.option("--registry-dir", "-r", default=None, help="Registry directory (overrides settings)")
@click.option("--as", "caller", envvar="IPLEDGER_CALLER", default=None, help="Caller principal for mutations")
@click.option("--verbose", "-v", is_flag=True, help="Log registry activity")
@click.pass_context
def main(ctx: click.Context, config, registry_dir, caller, verbose):
    """ipledger — an ownership ledger for intellectual-property claims.

    Register content hashes to an owner, transfer them, and look up who
    holds what.
    """
    ctx.obj = _Host(config, registry_dir, caller, verbose)


# ── Mutations ────────────────────────────────────────────────────────


file_option = click.option(
    "--file", "path", type=click.Path(exists=True, dir_okay=False), default=None,
    help="Use the SHA-256 of this file as FILE_HASH",
)


def _content_hash(file_hash: str | None, path: str | None) -> str:
    """FILE_HASH as given, or the lowercase hex SHA-256 of --file."""
    if (file_hash is None) == (path is None):
        raise click.UsageError("Pass either FILE_HASH or --file PATH")
    if path is None:
        return file_hash
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(1 << 16), b""):
            digest.update(chunk)
    return digest.hexdigest()


@main.command()
@click.argument("title")
@click.argument("file_hash", required=False)
@file_option
@click.option("--description", "-d", default="", help="Free-form description")
@click.option("--license", "license_type", "-l", default="", help="License classifier")
@click.option("--meta", "-m", multiple=True, help="Metadata entry KEY=VALUE (repeatable)")
@pass_host
@click.pass_context
def register(ctx, host: _Host, title, file_hash, path, description, license_type, meta):
    """Register FILE_HASH to the caller, replacing the caller's previous claim."""
    from ipledger.registry.errors import IPLedgerError

    file_hash = _content_hash(file_hash, path)
    caller_ctx = host.context()
    try:
        registration = host.registry.register_ip(
            caller_ctx, title, description, file_hash, license_type, _parse_metadata(meta)
        )
    except IPLedgerError as e:
        _fail(ctx, e)
        return
    console.print(f"  Registered [cyan]{registration.file_hash}[/] to {registration.owner}")


@main.command()
@click.argument("new_owner")
@click.argument("file_hash", required=False)
@file_option
@pass_host
@click.pass_context
def transfer(ctx, host: _Host, new_owner, file_hash, path):
    """Transfer the caller's registration of FILE_HASH to NEW_OWNER."""
    from ipledger.registry.errors import IPLedgerError

    file_hash = _content_hash(file_hash, path)
    caller_ctx = host.context()
    target = _parse_identity(new_owner)
    try:
        registration = host.registry.transfer_ownership(caller_ctx, file_hash, target)
    except IPLedgerError as e:
        _fail(ctx, e)
        return
    console.print(f"  Transferred [cyan]{file_hash}[/] to {registration.owner}")


@main.command(name="set-status")
@click.argument("status", type=click.Choice(["Active", "Transferred", "Expired"], case_sensitive=False))
@click.argument("file_hash", required=False)
@file_option
@pass_host
@click.pass_context
def set_status(ctx, host: _Host, status, file_hash, path):
    """Set the status of the caller's registration of FILE_HASH."""
    from ipledger.registry.errors import IPLedgerError
    from ipledger.registry.models import RegistrationStatus

    file_hash = _content_hash(file_hash, path)
    caller_ctx = host.context()
    try:
        registration = host.registry.update_registration_status(
            caller_ctx, file_hash, RegistrationStatus.parse(status)
        )
    except IPLedgerError as e:
        _fail(ctx, e)
        return
    console.print(f"  {file_hash} is now {_status_label(registration.status)}")


# ── Queries ──────────────────────────────────────────────────────────


@main.command()
@click.argument("owner", required=False)
@click.option("--json", "as_json", is_flag=True, help="Print the raw record")
@pass_host
def show(host: _Host, owner, as_json):
    """Show the registration held by OWNER (default: the --as caller)."""
    from ipledger.registry.codec import registration_to_dict

    if owner is None:
        if not host.caller:
            raise click.UsageError("Pass OWNER, or --as PRINCIPAL to show your own registration")
        owner = host.caller
    registration = host.registry.get_ip_registration(_parse_identity(owner))
    if registration is None:
        console.print(f"[yellow]No registration held by {owner}.[/]")
        return

    if as_json:
        click.echo(json.dumps(registration_to_dict(registration), indent=2))
        return

    console.print(f"\n[bold]{registration.title}[/]  {_status_label(registration.status)}")
    console.print(f"  Owner:       {registration.owner}")
    console.print(f"  File hash:   {registration.file_hash}")
    console.print(f"  License:     {registration.license_type or '-'}")
    console.print(f"  Registered:  {registration.timestamp}")
    if registration.description:
        console.print(f"  {registration.description}")
    for key, value in sorted(registration.metadata.items()):
        console.print(f"    {key} = {value}")
    if registration.transfer_history:
        console.print(f"  Transfers:   {len(registration.transfer_history)}")


@main.command()
@click.argument("owner")
@click.argument("file_hash", required=False)
@file_option
@pass_host
@click.pass_context
def verify(ctx, host: _Host, owner, file_hash, path):
    """Check that OWNER holds FILE_HASH. Exits 1 when it does not."""
    file_hash = _content_hash(file_hash, path)
    if host.registry.verify_ownership(_parse_identity(owner), file_hash):
        console.print(f"  [green]v[/] {owner} owns {file_hash}")
        return
    console.print(f"  [red]x[/] {owner} does not own {file_hash}")
    ctx.exit(1)


@main.command()
@click.argument("query")
@pass_host
def search(host: _Host, query):
    """Search titles, descriptions, and licenses (case-insensitive)."""
    results = host.registry.search_registrations(query)
    if not results:
        console.print("[yellow]No matching registrations found.[/]")
        return

    for registration in results:
        console.print(f"  [cyan]{registration.file_hash}[/] {registration.title} {_status_label(registration.status)}")
        console.print(f"    owner {registration.owner}  license {registration.license_type or '-'}")


@main.command()
@click.argument("file_hash")
@pass_host
@click.pass_context
def history(ctx, host: _Host, file_hash):
    """Show the transfer history of FILE_HASH, oldest first."""
    from ipledger.registry.errors import NotFoundError

    try:
        records = host.registry.get_transfer_history(file_hash)
    except NotFoundError as e:
        _fail(ctx, e)
        return

    if not records:
        console.print(f"[yellow]{file_hash} has never been transferred.[/]")
        return

    table = Table(title=f"Transfers of {file_hash}")
    table.add_column("#", style="dim", width=3)
    table.add_column("From")
    table.add_column("To", style="cyan")
    table.add_column("Time", justify="right")
    for i, record in enumerate(records, 1):
        table.add_row(str(i), str(record.from_owner), str(record.to_owner), str(record.timestamp))
    console.print(table)


@main.command(name="list")
@pass_host
def list_registrations(host: _Host):
    """List every registration in owner order."""
    registrations = host.registry.list_registrations()
    if not registrations:
        console.print("[yellow]Registry is empty.[/]")
        return

    table = Table(title=f"Registry ({len(registrations)} registrations)")
    table.add_column("Owner", style="cyan")
    table.add_column("File hash")
    table.add_column("Title")
    table.add_column("Status", justify="center")
    for registration in registrations:
        table.add_row(
            str(registration.owner),
            registration.file_hash,
            registration.title[:40],
            _status_label(registration.status),
        )
    console.print(table)


@main.command()
@click.option("--actor", default=None, help="Only events by this principal")
@click.option("--action", default=None, type=click.Choice(["register", "transfer", "update_status"]))
@click.option("--file-hash", default=None, help="Only events for this file hash")
@click.option("--format", "fmt", default="table", type=click.Choice(["table", "json", "csv"]))
@click.option("--limit", default=50, show_default=True)
@pass_host
def audit(host: _Host, actor, action, file_hash, fmt, limit):
    """Show the audit trail of registry mutations, newest first."""
    from ipledger.security.audit_log import AuditLogger

    settings = host.settings
    if not settings.audit_enabled:
        console.print("[yellow]Audit logging is disabled.[/]")
        return

    logger = AuditLogger(settings.audit_dir)
    filters = {"actor": actor, "action": action, "resource_id": file_hash, "limit": limit}
    if fmt != "table":
        click.echo(logger.export_events(fmt, **filters))
        return

    events = logger.get_events(**filters)
    if not events:
        console.print("[yellow]No audit events.[/]")
        return

    table = Table(title=f"Audit trail ({len(events)} events)")
    table.add_column("Recorded", style="dim")
    table.add_column("Actor")
    table.add_column("Action", style="cyan")
    table.add_column("File hash")
    table.add_column("Result", justify="center")
    for e in events:
        result = "[green]ok[/]" if e.success else f"[red]{e.error_code}[/]"
        table.add_row(e.recorded_at[:19], e.actor, e.action, e.resource_id, result)
    console.print(table)


@main.command()
@click.option("--public-key", type=click.Path(exists=True, dir_okay=False), default=None,
              help="Derive the principal controlled by this DER public key file")
@click.option("--anonymous", is_flag=True, help="Print the anonymous principal")
def identity(public_key, anonymous):
    """Print a principal for use with --as."""
    from ipledger.registry.identity import Identity

    if anonymous:
        click.echo(Identity.anonymous().to_text())
        return
    if public_key is None:
        raise click.UsageError("Pass --public-key FILE or --anonymous")
    click.echo(Identity.self_authenticating(Path(public_key).read_bytes()).to_text())


if __name__ == "__main__":
    main()
