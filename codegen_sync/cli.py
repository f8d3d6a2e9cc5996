from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from codegen_sync.adapters.github.client_factory import GitHubClientFactory
from codegen_sync.common.logging_config import configure_logging
from codegen_sync.configs.configs_store import SqliteConfigsStore
from codegen_sync.configs.owlbot_yaml import InvalidOwlBotConfigError
from codegen_sync.configs.refresh import refresh_configs_from_github, register_config_text
from codegen_sync.copy.copy_state_store import SqliteCopyStateStore
from codegen_sync.domain.entities import GithubRepo
from codegen_sync.pipeline.config import ScanConfig
from codegen_sync.pipeline.progress_ui import progress_ui
from codegen_sync.scan.scheduler import scan_and_create_pull_requests


app = typer.Typer(add_completion=False)


def _load_config(config: str) -> ScanConfig:
    path = Path(config).expanduser()
    if not path.exists():
        typer.echo(f"No config at {path}; using defaults.")
        return ScanConfig()
    return ScanConfig.load(path)


def _parse_repo(value: str) -> GithubRepo:
    try:
        return GithubRepo.parse(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command()
def scan(
    config: str = typer.Option("scan_config.toml", help="Path to scan_config.toml"),
    source_repo: Optional[str] = typer.Option(None, help="Override [source].repo"),
    clone_depth: Optional[int] = typer.Option(None, help="Override [source].clone_depth"),
    draft: Optional[bool] = typer.Option(None, help="Override [scan].draft_pull_requests"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log touched files too"),
) -> None:
    """Scan source history and create or update downstream pull requests."""
    cfg = _load_config(config)
    outs = cfg.outputs.resolve()
    outs.ensure_dirs()
    configure_logging(logging.DEBUG if verbose else logging.INFO, log_dir=str(outs.logs_dir))

    if clone_depth is not None and clone_depth < 1:
        raise typer.BadParameter("--clone-depth must be at least 1")

    factory = GitHubClientFactory.from_env(cfg.github.token_env_var, cfg.github.api_base_url)
    configs_store = SqliteConfigsStore(outs.state_db)
    copy_state_store = SqliteCopyStateStore(outs.state_db)
    try:
        with progress_ui() as ui:
            count = scan_and_create_pull_requests(
                source_repo or cfg.source.repo,
                factory,
                configs_store,
                clone_depth or cfg.source.clone_depth,
                copy_state_store,
                cfg.scan.combine_pulls_threshold,
                cfg.scan.nested_delimiters(),
                cfg.scan.max_yaml_count_per_pull_request,
                cfg.scan.draft_pull_requests if draft is None else draft,
                work_dir=outs.work_dir,
                clone_url_template=cfg.github.clone_url_template,
                on_progress=ui.on_progress,
            )
    finally:
        configs_store.close()
        copy_state_store.close()
    typer.echo(f"Executed {count} todo(s).")


@app.command()
def register_config(
    repo: str = typer.Argument(..., help="Downstream repository, e.g. googleapis/nodejs-vision"),
    yaml_file: str = typer.Argument(..., help="Local .OwlBot.yaml to register"),
    yaml_path: str = typer.Option(
        "/.github/.OwlBot.yaml", help="Path of the config within the downstream repo"
    ),
    config: str = typer.Option("scan_config.toml", help="Path to scan_config.toml"),
) -> None:
    """Parse a local .OwlBot.yaml and store it in the config store."""
    cfg = _load_config(config)
    outs = cfg.outputs.resolve()
    outs.ensure_dirs()
    target = _parse_repo(repo)
    text = Path(yaml_file).expanduser().read_text(encoding="utf-8")
    store = SqliteConfigsStore(outs.state_db)
    try:
        stored = register_config_text(store=store, repo=target, yaml_path=yaml_path, text=text)
    except InvalidOwlBotConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc
    finally:
        store.close()
    typer.echo(f"{target} now has {len(stored)} config(s).")


@app.command()
def refresh_configs(
    repo: str = typer.Argument(..., help="Downstream repository, e.g. googleapis/nodejs-vision"),
    yaml_path: list[str] = typer.Option(
        ["/.github/.OwlBot.yaml"], help="Config paths to fetch; repeat for several"
    ),
    config: str = typer.Option("scan_config.toml", help="Path to scan_config.toml"),
) -> None:
    """Fetch a repo's .OwlBot.yaml files from GitHub into the config store."""
    cfg = _load_config(config)
    outs = cfg.outputs.resolve()
    outs.ensure_dirs()
    configure_logging(logging.INFO, log_dir=str(outs.logs_dir))
    target = _parse_repo(repo)
    factory = GitHubClientFactory.from_env(cfg.github.token_env_var, cfg.github.api_base_url)
    store = SqliteConfigsStore(outs.state_db)
    try:
        stored = refresh_configs_from_github(
            github=factory.get_client(), store=store, repo=target, yaml_paths=yaml_path
        )
    finally:
        store.close()
    typer.echo(f"Stored {len(stored)} config(s) for {target}.")


@app.command()
def init_config(
    path: str = typer.Argument(
        "scan_config.toml",
        help="Where to write the scan configuration TOML",
    ),
) -> None:
    """Write an example scan_config.toml."""
    template = Path(__file__).resolve().parent / "pipeline" / "scan_config.example.toml"
    if not template.exists():
        raise RuntimeError(f"Missing template file: {template}")

    out = Path(path).expanduser()
    if out.exists():
        raise typer.BadParameter(f"Refusing to overwrite existing file: {out}")

    out.write_text(template.read_text())
    typer.echo(f"Wrote {out} (edit it, then run: codegen-sync scan --config {out})")
