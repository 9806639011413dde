"""Command line interface for the provisioning service."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from provisioner import ProjectCreationWorkflow, StackRunner
from provisioner.config import load_config
from provisioner.contracts import ProjectCreationRequest, stack_identity
from provisioner.errors import ProvisionerError
from provisioner.templates import TemplateCatalog

app = typer.Typer(help="CLI for provisioning projects")

# Command groups
templates_app = typer.Typer(help="Commands for browsing templates")
project_app = typer.Typer(help="Commands for creating projects")

app.add_typer(templates_app, name="templates")
app.add_typer(project_app, name="project")


@app.callback()
def main() -> None:
    """Provisioner CLI entry point."""
    pass


@app.command("serve")
def serve(
    host: str = "0.0.0.0",
    port: int = 8080,
    log_level: str = typer.Option("info", help="Python logging level"),
    config: Optional[Path] = typer.Option(None, help="Path to a YAML config file"),
) -> None:
    """
    Run the HTTP API.

    Example:
        provisioner serve --port 8080 --config ./config.yaml
    """
    import uvicorn

    from provisioner.api import create_app

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    application = create_app(load_config(str(config) if config else None))
    uvicorn.run(application, host=host, port=port, log_level=log_level.lower())


@templates_app.command("list")
def templates_list(
    config: Optional[Path] = typer.Option(None, help="Path to a YAML config file"),
) -> None:
    """List templates available in the programs directory."""
    settings = load_config(str(config) if config else None)
    templates = TemplateCatalog(settings.programs_dir).list()
    if not templates:
        typer.echo("No templates found")
        return
    for template in templates:
        description = template.description or "No description"
        typer.echo(f"{template.name}\t{template.version}\t{description}")


@project_app.command("create")
def project_create(
    request_path: Path,
    config: Optional[Path] = typer.Option(None, help="Path to a YAML config file"),
) -> None:
    """
    Create a project from a JSON request file and print its outputs.

    Example:
        provisioner project create ./shopdemo.json
        # {"gitRepositoryUrl": "https://github.com/org/shopdemo", ...}
    """
    if not request_path.exists():
        typer.secho("Request file does not exist", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    settings = load_config(str(config) if config else None)
    request = ProjectCreationRequest.model_validate_json(request_path.read_text())
    workflow = ProjectCreationWorkflow(StackRunner(config=settings), config=settings)
    try:
        outputs = asyncio.run(workflow.create_project(request))
    except ProvisionerError as exc:
        typer.secho(f"Project creation failed: {exc.message}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(outputs, indent=2, default=str))


@app.command("stack-name")
def stack_name(project_name: str, resource_type: str) -> None:
    """Print the stack name used for a project and resource type."""
    typer.echo(stack_identity(project_name, resource_type))


if __name__ == "__main__":  # pragma: no cover
    app()
