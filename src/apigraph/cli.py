from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from apigraph.config import Settings, get_settings
from apigraph.errors import ApiGraphError, CompilationError
from apigraph.graph.export import to_dot, to_json_payload
from apigraph.orchestrator.pipeline import CompileResult, run_compile_file, run_deploy_file
from apigraph.store.sqlite_store import DeploymentSQLiteStore


app = typer.Typer(no_args_is_help=True, add_completion=False)

graph_app = typer.Typer(no_args_is_help=True)
app.add_typer(graph_app, name="graph")

deployments_app = typer.Typer(no_args_is_help=True)
app.add_typer(deployments_app, name="deployments")

console = Console()


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(None, help="Override APIGRAPH_LOG_LEVEL"),
) -> None:
    try:
        settings = Settings(log_level=log_level) if log_level else get_settings()
    except ValidationError as exc:
        raise typer.BadParameter(
            f"unknown log level: {log_level}", param_hint="--log-level"
        ) from exc
    level = settings.log_level
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _definition_path(file: str) -> Path:
    path = Path(file).expanduser().resolve()
    if not path.exists():
        raise typer.BadParameter(f"Definition file does not exist: {path}")
    if not path.is_file():
        raise typer.BadParameter(f"Definition path is not a file: {path}")
    return path


def _compile_or_exit(file: str, exclude: Optional[List[str]] = None) -> CompileResult:
    path = _definition_path(file)
    try:
        return run_compile_file(path, exclude_fields=exclude)
    except CompilationError as exc:
        _print_violations(exc)
        raise typer.Exit(code=1)
    except ApiGraphError as exc:
        console.print(f"[bold red]error:[/bold red] {exc.message}")
        for problem in exc.details.get("errors", []):
            console.print(f"  {problem}")
        raise typer.Exit(code=1)


def _print_violations(exc: CompilationError) -> None:
    console.print(f"[bold red]{exc.message}[/bold red]")
    table = Table(show_header=True, header_style="bold")
    table.add_column("KIND", no_wrap=True)
    table.add_column("ENTRY", no_wrap=True)
    table.add_column("FIELD", no_wrap=True)
    table.add_column("PROBLEM")
    for v in exc.violations:
        table.add_row(v.kind, f"{v.entry_type} {v.key}", v.field, v.message)
    console.print(table)


@app.command()
def validate(
    file: str = typer.Argument(..., help="Path to the API definition (JSON)"),
) -> None:
    result = _compile_or_exit(file)
    console.print(f"[bold green]ok[/bold green] {result.api_name}: definition is valid")


@app.command("compile")
def compile_cmd(
    file: str = typer.Argument(..., help="Path to the API definition (JSON)"),
    format: str = typer.Option("table", help="Output format: table|json"),
) -> None:
    result = _compile_or_exit(file)

    if format.lower() == "json":
        payload = to_json_payload(result.graph, result.api_name, result.fingerprint)
        typer.echo(json.dumps(payload, indent=2))
        return

    console.print(f"[bold green]apigraph[/bold green] compile: {result.api_name}")
    console.print(f"Stage: {result.stage_name}")
    console.print(f"Fingerprint: {result.fingerprint}")
    console.print("")

    table = Table(show_header=True, header_style="bold")
    table.add_column("METHOD", no_wrap=True)
    table.add_column("PATH")
    table.add_column("KEY")
    table.add_column("AUTHORIZER")
    table.add_column("INTEGRATION")

    for m in sorted(result.graph.methods.values(), key=lambda x: (x.resource_path, x.http_method)):
        auth = f"{m.authorizer.authorizer_id} ({m.authorizer.source})" if m.authorizer else "-"
        table.add_row(m.http_method, m.resource_path, m.key, auth, m.integration_key or "-")

    console.print(table)


@app.command()
def fingerprint(
    file: str = typer.Argument(..., help="Path to the API definition (JSON)"),
    exclude_field: Optional[List[str]] = typer.Option(
        None, "--exclude-field", help="Entry field left out of the fingerprint (repeatable)"
    ),
) -> None:
    exclude = exclude_field if exclude_field else None
    result = _compile_or_exit(file, exclude=exclude)
    # print raw so the digest can be captured by scripts
    typer.echo(result.fingerprint)


@graph_app.command("export")
def graph_export(
    file: str = typer.Argument(..., help="Path to the API definition (JSON)"),
    format: str = typer.Option("json", help="Export format: json|dot"),
    out: Optional[str] = typer.Option(None, help="Output path (default: print to stdout)"),
) -> None:
    fmt = format.lower().strip()
    if fmt not in ("json", "dot"):
        raise typer.BadParameter("format must be one of: json, dot")

    result = _compile_or_exit(file)
    if fmt == "json":
        text = json.dumps(to_json_payload(result.graph, result.api_name, result.fingerprint), indent=2)
    else:
        text = to_dot(result.graph, result.api_name)

    if out:
        out_path = Path(out).expanduser()
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text, encoding="utf-8")
        console.print(f"[bold green]Wrote[/bold green] {fmt} graph to: {out_path}")
    else:
        typer.echo(text)


@app.command()
def deploy(
    file: str = typer.Argument(..., help="Path to the API definition (JSON)"),
    db: Optional[str] = typer.Option(None, help="Deployment history DB (default: from settings)"),
) -> None:
    path = _definition_path(file)
    db_path = Path(db).expanduser() if db else None

    try:
        result = run_deploy_file(path, db_path=db_path)
    except CompilationError as exc:
        _print_violations(exc)
        raise typer.Exit(code=1)
    except ApiGraphError as exc:
        console.print(f"[bold red]error:[/bold red] {exc.message}")
        raise typer.Exit(code=1)

    record = result.outcome.record
    console.print(f"[bold]DB:[/bold] {result.db_path}")
    console.print(f"Fingerprint: {record.fingerprint}")
    if result.outcome.created:
        console.print(f"[bold green]deployed[/bold green] {record.api_name} as {record.deployment_id}")
    else:
        console.print(f"unchanged: {record.api_name} already deployed as {record.deployment_id}")


@deployments_app.command("list")
def deployments_list(
    api: str = typer.Argument(..., help="API name"),
    db: Optional[str] = typer.Option(None, help="Deployment history DB (default: from settings)"),
    limit: int = typer.Option(50, help="Max rows to print"),
    format: str = typer.Option("table", help="Output format: table|json"),
) -> None:
    db_path = Path(db).expanduser() if db else get_settings().default_db_path()
    try:
        rows = DeploymentSQLiteStore(db_path).list_deployments(api, limit=limit)
    except ApiGraphError as exc:
        console.print(f"[bold red]error:[/bold red] {exc.message}")
        raise typer.Exit(code=1)

    if format.lower() == "json":
        payload = [
            {
                "deployment_id": r.deployment_id,
                "fingerprint": r.fingerprint,
                "stage_name": r.stage_name,
                "state": r.state,
                "created_at": r.created_at,
            }
            for r in rows
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    console.print(f"[bold]Deployments:[/bold] {len(rows)} (showing up to {limit})")
    table = Table(show_header=True, header_style="bold")
    table.add_column("DEPLOYMENT", no_wrap=True)
    table.add_column("FINGERPRINT", no_wrap=True)
    table.add_column("STAGE")
    table.add_column("STATE")
    table.add_column("CREATED", no_wrap=True)
    for r in rows:
        table.add_row(r.deployment_id[:12], r.fingerprint[:12], r.stage_name, r.state, str(r.created_at))
    console.print(table)


@app.command()
def ping() -> None:
    console.print("pong")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
