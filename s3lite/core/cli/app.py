"""s3lite CLI entry point."""

import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer

from s3lite import __version__
from s3lite.core.client import S3Client
from s3lite.core.config.helpers import parse_bytes
from s3lite.core.exceptions import ConfigError, S3ClientError, S3Error
from s3lite.core.multipart.chunked_uploader import put_multipart
from s3lite.core.utils.http_errors import extract_error_detail

app = typer.Typer(add_completion=False, help="s3lite object store client.")


def _version_callback(value: bool) -> bool:
    if value:
        typer.echo(__version__)
        raise typer.Exit()
    return value


@app.callback()
def callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the s3lite version and exit.",
        callback=_version_callback,
        is_eager=True,
        is_flag=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log every request to stderr."
    ),
) -> None:
    """Handle global CLI options."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _client() -> S3Client:
    try:
        return S3Client.from_env()
    except ConfigError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=2)


def _fail(exc: S3ClientError) -> NoReturn:
    if isinstance(exc, S3Error):
        typer.echo(
            f"Store error (HTTP {exc.status_code}): {extract_error_detail(exc)}",
            err=True,
        )
        endpoint = exc.new_endpoint()
        if endpoint:
            typer.echo(f"Store suggests retrying against {endpoint}", err=True)
    else:
        typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.command("put")
def put(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    key: str = typer.Argument(..., help="Object key to upload to."),
    content_type: str = typer.Option("", "--content-type", "-t"),
    chunk_size: Optional[str] = typer.Option(
        None,
        "--chunk-size",
        help="Force a multipart upload with parts of this size (e.g. 8mb).",
    ),
    progress: bool = typer.Option(
        False, "--progress", help="Show a progress bar for multipart uploads."
    ),
) -> None:
    """Upload FILE to KEY."""
    part_size = None
    if chunk_size is not None:
        try:
            part_size = parse_bytes(chunk_size)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--chunk-size")

    client = _client()
    size = file.stat().st_size
    try:
        with file.open("rb") as handle:
            if part_size is not None:
                put_multipart(
                    client,
                    handle,
                    size,
                    key,
                    content_type=content_type,
                    chunk_size=part_size,
                    progress=progress,
                )
            else:
                client.put(
                    handle, size, key, content_type=content_type, progress=progress
                )
    except S3ClientError as exc:
        _fail(exc)
    typer.echo(f"Uploaded {size} bytes to {key}")


@app.command("get")
def get(
    key: str = typer.Argument(..., help="Object key to fetch."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write to this file instead of stdout."
    ),
) -> None:
    """Download KEY."""
    client = _client()
    try:
        stored = client.get(key)
    except S3ClientError as exc:
        _fail(exc)

    if output is None:
        typer.echo(stored.body, nl=False)
    else:
        output.write_bytes(stored.body)


@app.command("head")
def head(key: str = typer.Argument(..., help="Object key to inspect.")) -> None:
    """Show the metadata of KEY."""
    client = _client()
    try:
        info = client.head(key)
    except S3ClientError as exc:
        _fail(exc)

    typer.echo(f"size: {info.size_bytes}")
    typer.echo(f"etag: {info.etag or '-'}")
    typer.echo(f"content-type: {info.content_type or '-'}")


@app.command("test")
def self_test() -> None:
    """Write a short object and read it back to check the configuration."""
    client = _client()
    try:
        client.test()
    except S3ClientError as exc:
        _fail(exc)
    typer.echo(f"Round trip against bucket {client.bucket} succeeded")


def main() -> None:
    app()
