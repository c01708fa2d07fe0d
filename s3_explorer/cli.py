# cli.py
from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, List

import typer
from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from .core import (
    DEFAULT_LIMIT,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    collect_keys,
    get_http_session,
    list_keys,
)
from .download import DEFAULT_CONCURRENCY, ProgressCounter, fetch_all, fetch_single
from .errors import ConfigError, diagnostics_logger, get_logger, setup_logging
from .utils import filter_keys, human_bytes, read_url_file, read_yaml

app = typer.Typer(add_completion=False, help="Enumerate and loot public S3-compatible buckets")

# ---------------- Settings kept in Typer context ----------------
@dataclass
class Settings:
    verbose: bool = False
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    cfg: Optional[dict] = None

DEFAULT_CONFIG = "config/config.yaml"

# ---------------- Helpers ----------------
def _load_cfg(config_path: Optional[str]) -> dict:
    """
    Load YAML config if present, otherwise return {}.
    An explicitly given path must exist and hold a mapping.
    """
    path = config_path or DEFAULT_CONFIG
    if not config_path and not Path(path).exists():
        return {}
    try:
        cfg = read_yaml(path)
    except ConfigError as e:
        raise typer.BadParameter(str(e), param_hint="--config")
    if not isinstance(cfg, dict):
        raise typer.BadParameter(f"{path}: expected a mapping at top level", param_hint="--config")
    return cfg

def _section(cfg: Optional[dict], name: str) -> dict:
    section = (cfg or {}).get(name) or {}
    if not isinstance(section, dict):
        raise typer.BadParameter(f"section '{name}' must be a mapping", param_hint="--config")
    return section

def _pick(value, section: dict, name: str, default):
    """CLI flag -> YAML -> built-in default."""
    if value is not None:
        return value
    return section.get(name, default)

def _as_bool(raw) -> bool:
    if isinstance(raw, bool):
        return raw
    raise ValueError(raw)

def _pick_as(cast, value, section: dict, name: str, default):
    """_pick, converting the YAML value; bad values are reported against --config."""
    raw = _pick(value, section, name, default)
    try:
        return cast(raw)
    except (TypeError, ValueError):
        raise typer.BadParameter(f"{name}: invalid value {raw!r}", param_hint="--config")

def _resolve_sources(url: Optional[str], url_file: Optional[str]) -> List[str]:
    if url and url_file:
        raise typer.BadParameter("Use either --url or --url-file, not both")
    if url:
        return [url]
    if url_file:
        try:
            return read_url_file(url_file)
        except ConfigError as e:
            raise typer.BadParameter(str(e), param_hint="--url-file")
    raise typer.BadParameter("Either --url or --url-file must be specified")

def _gather_keys(settings: Settings, session, url: Optional[str], url_file: Optional[str], limit: Optional[int]) -> List[str]:
    sources = _resolve_sources(url, url_file)
    lcfg = _section(settings.cfg, "listing")
    limit_val = _pick_as(int, limit, lcfg, "limit", DEFAULT_LIMIT)
    log = diagnostics_logger("s3_explorer.core", settings.verbose)
    if url_file:
        return collect_keys(
            session,
            sources,
            limit=limit_val,
            prefix_with_source=True,
            timeout=settings.timeout,
            log=log,
        )
    return list_keys(session, sources[0], limit=limit_val, timeout=settings.timeout, log=log)

# ---------------- Root options (global) ----------------
@app.callback()
def _root(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", "--debug", help="Verbose logging and per-item error details"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="HTTP timeout in seconds"),
    user_agent: Optional[str] = typer.Option(None, "--user-agent", help="User-Agent header"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    """
    Set up global Settings and logging once.
    """
    level = logging.DEBUG if verbose else logging.INFO
    setup_logging(level=level)

    cfg = _load_cfg(config)
    hcfg = _section(cfg, "http")
    ctx.obj = Settings(
        verbose=verbose,
        timeout=_pick_as(float, timeout, hcfg, "timeout", DEFAULT_TIMEOUT),
        user_agent=_pick_as(str, user_agent, hcfg, "user_agent", DEFAULT_USER_AGENT),
        cfg=cfg,
    )

# ---------------- KEYS ----------------
@app.command("keys")
def cmd_keys(
    ctx: typer.Context,
    url: Optional[str] = typer.Option(None, "--url", "-u", help="Bucket URL to retrieve keys from"),
    url_file: Optional[str] = typer.Option(None, "--url-file", "-U", help="File containing bucket URLs, one per line"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help=f"Max keys per bucket (default {DEFAULT_LIMIT})"),
    needle: Optional[str] = typer.Option(None, "--filter", "-f", help="Only show keys containing this substring"),
):
    settings: Settings = ctx.obj
    session = get_http_session(settings.user_agent)
    keys = _gather_keys(settings, session, url, url_file, limit)
    for key in filter_keys(keys, needle):
        typer.echo(f"Key: {key}")

# ---------------- GET ----------------
@app.command("get")
def cmd_get(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Key to download (or a full object URL)"),
    url: Optional[str] = typer.Option(None, "--url", "-u", help="Bucket URL the key belongs to"),
    to: Optional[str] = typer.Option(None, "--to", help="Local destination directory"),
):
    settings: Settings = ctx.obj
    dcfg = _section(settings.cfg, "download")
    base_url = url or ""
    if not base_url and "://" not in key:
        raise typer.BadParameter("Provide --url or pass a full object URL as KEY")
    session = get_http_session(settings.user_agent)
    fetch_single(
        session,
        base_url,
        key,
        dst_root=_pick(to, dcfg, "to", "."),
        timeout=settings.timeout,
        log=diagnostics_logger("s3_explorer.download", settings.verbose),
        echo=typer.echo,
    )

# ---------------- DOWNLOAD ----------------
@app.command("download")
def cmd_download(
    ctx: typer.Context,
    url: Optional[str] = typer.Option(None, "--url", "-u", help="Bucket URL to retrieve keys from"),
    url_file: Optional[str] = typer.Option(None, "--url-file", "-U", help="File containing bucket URLs, one per line"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help=f"Max keys per bucket (default {DEFAULT_LIMIT})"),
    needle: Optional[str] = typer.Option(None, "--filter", "-f", help="Only download keys containing this substring"),
    threads: Optional[int] = typer.Option(
        None,
        "--threads",
        "-t",
        help=f"Concurrent downloads (default {DEFAULT_CONCURRENCY})",
        min=1,
    ),
    to: Optional[str] = typer.Option(None, "--to", help="Local destination directory"),
    progress: Optional[bool] = typer.Option(None, "--progress/--no-progress", help="Show progress bar"),
    show_errors: bool = typer.Option(False, "--show-errors/--no-show-errors", help="Print failed keys"),
):
    log = get_logger("s3_explorer.cli.download")
    settings: Settings = ctx.obj
    dcfg = _section(settings.cfg, "download")

    threads_val = _pick_as(int, threads, dcfg, "threads", DEFAULT_CONCURRENCY)
    if threads_val < 1:
        raise typer.BadParameter("must be >= 1", param_hint="--threads")
    dst = _pick(to, dcfg, "to", ".")
    progress_val = _pick_as(_as_bool, progress, dcfg, "progress", True)

    session = get_http_session(settings.user_agent)
    keys = filter_keys(_gather_keys(settings, session, url, url_file, limit), needle)
    # combined sources yield absolute keys
    base_url = "" if url_file else url

    bar = tqdm(total=len(keys), desc="Download", unit="obj") if progress_val and keys else None
    counter = ProgressCounter(on_tick=bar.update if bar else None)
    # keep --verbose log lines from tearing the bar
    redirect = logging_redirect_tqdm() if bar else nullcontext()
    try:
        with redirect:
            res = fetch_all(
                session,
                base_url,
                keys,
                concurrency=threads_val,
                dst_root=dst,
                counter=counter,
                timeout=settings.timeout,
                log=diagnostics_logger("s3_explorer.download", settings.verbose),
            )
    finally:
        if bar:
            bar.close()

    log.info(
        "Downloaded=%d Errors=%d Total=%d Bytes=%s Dest=%s Threads=%d",
        res["stats"]["downloaded"],
        res["stats"]["errors_count"],
        res["stats"]["total"],
        human_bytes(res["stats"]["bytes"]),
        res["stats"]["dst_root"],
        threads_val,
    )

    if show_errors:
        for e in res.get("errors", []):
            typer.echo(f"[ERROR] {e}")
