"""Command line entry point for the bucket client."""
import json
import logging

import click

from .codec import encode_object
from .controller import NotConnectedError, StorageController
from .errors import StorageError
from .profiles import CREDENTIAL_MODES, DEFAULT_API_ENDPOINT, ConnectionProfile


def _fail(exc: Exception) -> None:
    raise click.ClickException(str(exc)) from exc


def _service(ctx: click.Context):
    controller: StorageController = ctx.obj
    profile = ctx.meta.get("profile")
    try:
        if profile:
            service = controller.connect_with_profile(profile)
            ctx.call_on_close(controller.disconnect)
            return service
        return controller.require_service()
    except (ValueError, NotConnectedError) as exc:
        _fail(exc)


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option("--profile", "-p", envvar="GCS_REMOTE_PROFILE", help="Saved connection profile to use.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, profile, verbose):
    """Barebones client for the Cloud Storage JSON API."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if ctx.obj is None:
        ctx.obj = StorageController()
    ctx.meta["profile"] = profile


@cli.command("list")
@click.argument("prefix", required=False)
@click.option("--max-entries", type=click.IntRange(min=1), default=None)
@click.option("--delimiter", default=None, help="Group keys into folders, e.g. '/'.")
@click.option("--json", "as_json", is_flag=True, help="Print one JSON object per entry.")
@click.pass_context
def list_command(ctx, prefix, max_entries, delimiter, as_json):
    """List objects, one page at a time."""
    service = _service(ctx)
    try:
        for page in service.list(prefix, max_entries, delimiter=delimiter):
            for folder in page.common_prefixes:
                click.echo(json.dumps({"prefix": folder}) if as_json else folder)
            for entry in page.keys:
                if as_json:
                    click.echo(json.dumps(encode_object(entry)))
                else:
                    click.echo(f"{entry.size_bytes:>12}  {entry.key}")
    except StorageError as exc:
        _fail(exc)


@cli.command()
@click.argument("key")
@click.pass_context
def stat(ctx, key):
    """Show metadata for one object."""
    service = _service(ctx)
    try:
        entry = service.stat(key)
    except StorageError as exc:
        _fail(exc)
    click.echo(json.dumps(encode_object(entry), indent=2))


@cli.command()
@click.argument("key")
@click.argument("destination", type=click.Path(dir_okay=False, allow_dash=True))
@click.pass_context
def download(ctx, key, destination):
    """Download KEY to DESTINATION ('-' for stdout)."""
    service = _service(ctx)
    try:
        if destination == "-":
            out = click.get_binary_stream("stdout")
            with service.download(key) as handle:
                for chunk in handle.byte_stream:
                    out.write(chunk)
            out.flush()
        else:
            service.download_to_file(key, destination)
    except StorageError as exc:
        _fail(exc)


@cli.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False, allow_dash=True))
@click.argument("key")
@click.option("--content-type", default=None)
@click.pass_context
def upload(ctx, source, key, content_type):
    """Upload SOURCE ('-' for stdin) to KEY."""
    service = _service(ctx)
    try:
        if source == "-":
            service.upload(click.get_binary_stream("stdin"), key, content_type=content_type)
        else:
            service.upload_file(source, key, content_type=content_type)
    except StorageError as exc:
        _fail(exc)


@cli.command()
@click.argument("keys", nargs=-1, required=True)
@click.pass_context
def delete(ctx, keys):
    """Delete one or more objects with batch requests."""
    service = _service(ctx)
    try:
        statuses = service.delete_many(list(keys))
    except StorageError as exc:
        _fail(exc)
    failed = False
    for key in keys:
        status = statuses[key]
        click.echo(f"{status}  {key}")
        failed = failed or not 200 <= status < 300
    if failed:
        ctx.exit(1)


@cli.group()
def profiles():
    """Manage saved connection profiles."""


@profiles.command("list")
@click.pass_obj
def profiles_list(controller: StorageController):
    for profile in controller.list_profiles():
        click.echo(f"{profile.name}\t{profile.bucket}\t{profile.credentials_mode}\t{profile.api_endpoint}")


@profiles.command("add")
@click.argument("name")
@click.option("--bucket", required=True)
@click.option("--endpoint", default=DEFAULT_API_ENDPOINT, show_default=True)
@click.option("--mode", type=click.Choice(CREDENTIAL_MODES), default="adc", show_default=True)
@click.option("--credentials-path", default="", help="Service account JSON for --mode service_account.")
@click.option("--token", default="", help="Access token for --mode token; stored in the keychain.")
@click.pass_obj
def profiles_add(controller: StorageController, name, bucket, endpoint, mode, credentials_path, token):
    controller.save_profile(
        ConnectionProfile(
            name=name,
            bucket=bucket,
            api_endpoint=endpoint,
            credentials_mode=mode,
            credentials_path=credentials_path,
            token=token,
        )
    )
    click.echo(f"Saved profile '{name}'")


@profiles.command("remove")
@click.argument("name")
@click.pass_obj
def profiles_remove(controller: StorageController, name):
    try:
        controller.delete_profile(name)
    except ValueError as exc:
        _fail(exc)
    click.echo(f"Removed profile '{name}'")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
