"""Click CLI entry point for GraphSpace."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click

from graphspace import __version__
from graphspace.analysis import evaluate_point, format_point_value
from graphspace.compiler import compile_expression
from graphspace.errors import GraphSpaceError
from graphspace.expr_tree import to_text, variables
from graphspace.exporter import export_csv, export_glb, export_json, export_stl
from graphspace.logging_config import setup_logging
from graphspace.models import COLOR_MODES, Domain
from graphspace.normalize import rewrite_stages
from graphspace.parser import open_workspace
from graphspace.warning_policy import WarningPolicy
from graphspace.workspace import Workspace, report_diagnostics

EXPORT_FORMATS = ("stl", "csv", "json", "glb")


def _build_warning_policy(
    warn_as_error: str | None, suppress_warning: str | None
) -> WarningPolicy | None:
    try:
        return WarningPolicy.from_options(warn_as_error, suppress_warning)
    except ValueError as e:
        raise click.ClickException(str(e)) from e


def _infer_format(output: Path) -> str:
    suffix = output.suffix.lower().lstrip(".")
    if suffix not in EXPORT_FORMATS:
        raise click.ClickException(
            f"Cannot infer export format from {output.name!r}; use --format "
            f"({'|'.join(EXPORT_FORMATS)})"
        )
    return suffix


@click.group()
@click.version_option(version=__version__, prog_name="graphspace")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write log output to this file.",
)
def main(verbose: bool = False, log_file: Path | None = None) -> None:
    """GraphSpace: compile, sample and export surfaces z = f(x, y)."""
    setup_logging(
        logging.DEBUG if verbose else logging.WARNING,
        log_file=str(log_file) if log_file is not None else None,
    )


@main.command()
@click.argument("expression")
def check(expression: str) -> None:
    """Show how EXPRESSION is rewritten and whether it is accepted."""
    stages = rewrite_stages(expression)
    click.echo(f"input:      {stages.raw}")
    click.echo(f"normalized: {stages.normalized}")
    click.echo(f"multiplied: {stages.multiplied}")
    click.echo(f"resolved:   {stages.resolved}")
    try:
        evaluator = compile_expression(expression)
    except GraphSpaceError as e:
        raise click.ClickException(str(e))
    names = ", ".join(sorted(variables(evaluator.tree))) or "(none)"
    click.echo(f"parsed:     {to_text(evaluator.tree)}")
    click.echo(f"variables:  {names}")
    click.echo("OK")


@main.command("eval")
@click.argument("expression")
@click.argument("x", type=float)
@click.argument("y", type=float)
def eval_point(expression: str, x: float, y: float) -> None:
    """Evaluate EXPRESSION at the point (X, Y)."""
    result = evaluate_point(expression, x, y)
    click.echo(format_point_value(result))
    if result.status == "error":
        click.echo(result.message or "Evaluation failed", err=True)
        click.get_current_context().exit(1)


@main.command()
@click.argument("expression")
@click.option("--xmin", type=float, default=-5.0, show_default=True)
@click.option("--xmax", type=float, default=5.0, show_default=True)
@click.option("--ymin", type=float, default=-5.0, show_default=True)
@click.option("--ymax", type=float, default=5.0, show_default=True)
@click.option("--resolution", type=int, default=50, show_default=True)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Output format.",
)
def analyze(
    expression: str,
    xmin: float,
    xmax: float,
    ymin: float,
    ymax: float,
    resolution: int,
    output_format: str = "text",
) -> None:
    """Sample EXPRESSION and report its range, area, volume and extrema."""
    try:
        domain = Domain(xmin=xmin, xmax=xmax, ymin=ymin, ymax=ymax, resolution=resolution)
    except ValueError as e:
        raise click.ClickException(f"Invalid domain: {e}") from e

    workspace = Workspace(domain=domain)
    equation = workspace.add_equation(expression)
    if equation.last_error is not None:
        raise click.ClickException(equation.last_error)
    if equation.mesh is None:
        raise click.ClickException("Expression is empty")

    stats = workspace.analyze(equation.id)
    extrema = workspace.find_extrema(equation.id)

    if output_format == "json":
        payload = {
            "expression": expression,
            "domain": domain.model_dump(),
            **stats.as_dict(),
            "min": list(extrema.min_vertex) if extrema.min_vertex is not None else None,
            "max": list(extrema.max_vertex) if extrema.max_vertex is not None else None,
        }
        click.echo(json.dumps(payload, indent=2))
        return

    click.echo(f"Z range:      [{stats.z_min:.2f}, {stats.z_max:.2f}]")
    click.echo(f"Surface area: {stats.surface_area:.2f}")
    click.echo(f"Volume:       {stats.volume:.2f}")
    for label, vertex in (("Minimum", extrema.min_vertex), ("Maximum", extrema.max_vertex)):
        if vertex is None:
            continue
        x, y, z = vertex
        click.echo(f"{label + ':':<14}({x:.2f}, {y:.2f}, {z:.2f})")


@main.command()
@click.argument("workspace_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    required=True,
    help="Output file path.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(EXPORT_FORMATS),
    default=None,
    help="Export format. Inferred from the output suffix when omitted.",
)
@click.option(
    "--color-mode",
    type=click.Choice(COLOR_MODES),
    default=None,
    help="Override the workspace color mode (GLB vertex colors).",
)
@click.option(
    "--warn-as-error",
    "warn_as_error",
    type=str,
    default=None,
    help="Comma-separated W-codes to treat as errors (e.g. W01,W02).",
)
@click.option(
    "--suppress-warning",
    "suppress_warning",
    type=str,
    default=None,
    help="Comma-separated W-codes to suppress (e.g. W03).",
)
def export(
    workspace_file: Path,
    output: Path,
    output_format: str | None = None,
    color_mode: str | None = None,
    warn_as_error: str | None = None,
    suppress_warning: str | None = None,
) -> None:
    """Compute the surfaces of a workspace file and export them."""
    warning_policy = _build_warning_policy(warn_as_error, suppress_warning)
    fmt = output_format or _infer_format(output)

    try:
        workspace = open_workspace(workspace_file)
        if color_mode is not None:
            workspace.set_color_mode(color_mode)
        report_diagnostics(workspace, warning_policy)

        if fmt == "json":
            export_json(workspace, output)
        elif fmt == "csv":
            export_csv(workspace.surfaces(), output)
        elif fmt == "stl":
            export_stl(workspace.surfaces(), output)
        else:
            export_glb(workspace.surfaces(), output, color_mode=workspace.color_mode)
        click.echo(f"Exported: {output}")
    except GraphSpaceError as e:
        raise click.ClickException(str(e))
