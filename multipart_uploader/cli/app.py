"""Typer CLI for resumable multipart uploads."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import typer
from tqdm import tqdm

from multipart_uploader import __version__
from multipart_uploader.config_manager.config import ConfigManager
from multipart_uploader.config_manager.helpers import parse_header
from multipart_uploader.config_manager.uploader_config import UploaderConfig
from multipart_uploader.const import DEFAULT_STATE_DB_PATH
from multipart_uploader.event_emitter import UploadEmitter
from multipart_uploader.exceptions import ConfigurationError, MultipartUploadError
from multipart_uploader.state_management.kv_store_sqlite import SqliteKeyValueStore
from multipart_uploader.state_management.resume_store import ResumeStore
from multipart_uploader.uploader import MultipartUploader

logger = logging.getLogger(__name__)

app = typer.Typer(
    add_completion=False, help="Resumable multipart upload command line interface."
)


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
        "-v",
        help="Show the multipart-uploader version and exit.",
        callback=_version_callback,
        is_eager=True,
        is_flag=True,
    ),
) -> None:
    """Handle global CLI option for --version."""
    return None


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _parse_metadata(items: list[str]) -> dict[str, str]:
    metadata: dict[str, str] = {}
    for item in items:
        key, separator, value = item.partition("=")
        if not separator or not key:
            raise typer.BadParameter(
                f"Invalid metadata {item!r}; expected key=value", param_hint="--metadata"
            )
        metadata[key] = value
    return metadata


def _parse_headers(items: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for item in items:
        try:
            name, value = parse_header(item)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--header") from exc
        headers[name] = value
    return headers


def _resolve_config(config_path: Path | None, overrides: dict[str, Any]) -> UploaderConfig:
    try:
        return ConfigManager(config_path).resolve_effective_config(overrides)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        raise typer.Exit(code=1) from exc


def build_uploader(config: UploaderConfig) -> MultipartUploader:
    """Create the uploader used by the ``upload`` command."""
    return MultipartUploader(config)


async def _run_upload(
    uploader: MultipartUploader,
    file: Path,
    identity: str | None,
    metadata: dict[str, str],
    content_type: str | None,
    show_progress: bool,
) -> str:
    with tqdm(total=100, unit="%", desc=file.name, disable=not show_progress) as pbar:

        def on_progress(percentage: int) -> None:
            pbar.update(percentage - pbar.n)

        def on_resumed(percentage: int, record: Any) -> None:
            logger.info(
                "Resuming %s from %d%% (%d/%d parts finished)",
                record.original_identity,
                percentage,
                len(record.finished_parts),
                record.total_parts,
            )

        uploader.emitter.on(UploadEmitter.TOTAL_PROGRESS, on_progress)
        uploader.emitter.on(UploadEmitter.UPLOAD_RESUMED, on_resumed)
        try:
            async with uploader:
                return await uploader.upload(
                    file,
                    identity=identity,
                    metadata=metadata or None,
                    content_type=content_type,
                )
        finally:
            uploader.emitter.remove_listener(UploadEmitter.TOTAL_PROGRESS, on_progress)
            uploader.emitter.remove_listener(UploadEmitter.UPLOAD_RESUMED, on_resumed)


@app.command("upload")
def upload(
    file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="File to upload.",
    ),
    endpoint: str | None = typer.Option(
        None, "--endpoint", "-e", help="Control-plane base URL."
    ),
    namespace: str | None = typer.Option(
        None, "--namespace", help="Route prefix on the control plane."
    ),
    header: list[str] = typer.Option(
        [], "--header", "-H", help="Extra control-plane header, 'Name: value'."
    ),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        dir_okay=False,
        help="YAML file with uploader configuration.",
    ),
    concurrency: int | None = typer.Option(
        None, "--concurrency", help="Maximum concurrent part transfers."
    ),
    part_min_size: str | None = typer.Option(
        None, "--part-min-size", help="Minimum part size, e.g. 10mb."
    ),
    max_parts: int | None = typer.Option(
        None, "--max-parts", help="Maximum number of parts."
    ),
    state_db: Path | None = typer.Option(
        None, "--state-db", help="SQLite file holding resume records."
    ),
    identity: str | None = typer.Option(
        None, "--identity", help="Resume key; defaults to the file name."
    ),
    content_type: str | None = typer.Option(
        None, "--content-type", help="Content type of the uploaded object."
    ),
    metadata: list[str] = typer.Option(
        [], "--metadata", "-m", help="Object metadata as key=value."
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Hide the progress bar."),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    """Upload a file, resuming a previous interrupted attempt if one exists."""
    overrides: dict[str, Any] = {
        "endpoint": endpoint,
        "namespace": namespace,
        "headers": _parse_headers(header) or None,
        "concurrency_limit": concurrency,
        "part_min_size_bytes": part_min_size,
        "max_num_parts": max_parts,
        "state_db_path": str(state_db) if state_db else None,
        "debug_mode": True if debug else None,
    }
    config = _resolve_config(config_path, overrides)
    _configure_logging(config.debug_mode)

    try:
        uploader = build_uploader(config)
        target_key = asyncio.run(
            _run_upload(
                uploader,
                file,
                identity,
                _parse_metadata(metadata),
                content_type,
                show_progress=not quiet,
            )
        )
    except MultipartUploadError as exc:
        logger.error("%s", exc)
        typer.echo(
            "Upload failed; run the same command again to resume.", err=True
        )
        raise typer.Exit(code=1) from exc

    typer.echo(target_key)


def _open_resume_store(
    config_path: Path | None, state_db: Path | None
) -> tuple[ResumeStore, SqliteKeyValueStore]:
    config = _resolve_config(
        config_path, {"state_db_path": str(state_db) if state_db else None}
    )
    kv_store = SqliteKeyValueStore(Path(config.state_db_path or DEFAULT_STATE_DB_PATH))
    return ResumeStore(kv_store, config.resume_namespace), kv_store


@app.command("show")
def show(
    identity: str = typer.Argument(..., help="Identity of the upload."),
    config_path: Path | None = typer.Option(
        None, "--config", "-c", exists=True, dir_okay=False
    ),
    state_db: Path | None = typer.Option(
        None, "--state-db", help="SQLite file holding resume records."
    ),
) -> None:
    """Print the persisted resume record for an identity."""
    resume_store, kv_store = _open_resume_store(config_path, state_db)

    async def _show() -> str | None:
        try:
            await kv_store.init_async_store()
            record = await resume_store.get(identity)
        finally:
            await kv_store.close()
        return None if record is None else record.model_dump_json(indent=2)

    output = asyncio.run(_show())
    if output is None:
        typer.echo(f"No resumable upload for {identity!r}.", err=True)
        raise typer.Exit(code=1)
    typer.echo(output)


@app.command("forget")
def forget(
    identity: str = typer.Argument(..., help="Identity of the upload."),
    config_path: Path | None = typer.Option(
        None, "--config", "-c", exists=True, dir_okay=False
    ),
    state_db: Path | None = typer.Option(
        None, "--state-db", help="SQLite file holding resume records."
    ),
) -> None:
    """Delete the persisted resume record so the next upload starts fresh."""
    resume_store, kv_store = _open_resume_store(config_path, state_db)

    async def _forget() -> None:
        try:
            await kv_store.init_async_store()
            await resume_store.remove(identity)
        finally:
            await kv_store.close()

    asyncio.run(_forget())
    typer.echo(f"Forgot {identity!r}.")


def main() -> None:
    """CLI entrypoint for the multipart-upload command."""
    app()


if __name__ == "__main__":
    main()
