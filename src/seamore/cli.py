# cli.py
from __future__ import annotations

import sys
from pathlib import Path

import click

from seamore.commands import TOOL_HINTS, missing_system_commands
from seamore.runner import default_workers, load_workflow, run_chains
from seamore.steps import STEP_REGISTRY
from seamore.ui.console import Console, get_console, set_console


DEFAULT_WORKFLOW = "seamore_workflow.py"


def find_workflow_files(directory: Path = Path(".")) -> list[Path]:
    # the default name plus any `<experiment>_workflow.py` next to it
    return sorted({*directory.glob(DEFAULT_WORKFLOW), *directory.glob("*_workflow.py")})


def discover_workflow(workflow_arg: str | None) -> Path:
    """Resolve `--workflow`, or pick the only workflow file in the working directory; exits 1 otherwise."""
    console = get_console()

    if workflow_arg:
        candidates = [Path(workflow_arg), Path(f"{workflow_arg}.py")]
        found = next((p for p in candidates if p.is_file()), None)
        if found is None:
            console.print_error(
                "Workflow file not found",
                f"No such workflow: {workflow_arg}",
                suggestion="Pass the path of a python file defining workflow() or TASKS:\n  seamore run --workflow hist_workflow.py",
            )
            sys.exit(1)
        return found

    workflow_files = find_workflow_files()
    if len(workflow_files) == 1:
        return workflow_files[0]

    if not workflow_files:
        console.print_error(
            "No workflow file found",
            f"Neither {DEFAULT_WORKFLOW} nor any *_workflow.py in {Path.cwd()}.",
            suggestion="Create one, or name it explicitly:\n  seamore run --workflow hist_workflow.py",
        )
    else:
        console.print_error(
            "Several workflow files found",
            "Pick one of:",
            details=[str(f) for f in workflow_files],
            suggestion=f"seamore run --workflow {workflow_files[0]}",
        )
    sys.exit(1)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces, planned paths and commands)",
)
@click.pass_context
def cli(ctx, debug):
    """seamore: resumable conversion of model output into CMIP files."""
    set_console(Console(debug=debug))
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.option(
    "--workflow",
    default=None,
    help=f"Workflow file path (defaults to {DEFAULT_WORKFLOW} if present)",
)
@click.option("--jobs", "-j", default=None, type=click.IntRange(min=1), help="Number of chains to run in parallel")
@click.pass_context
def run(ctx, workflow, jobs):
    """Run all chains of a workflow."""
    console = get_console()
    workflow_path = discover_workflow(workflow)

    try:
        tasks = load_workflow(workflow_path)
        workers = jobs or default_workers()
        console.print_run_started(workflow=workflow_path.name, chain_count=len(tasks), workers=workers)

        results = run_chains(tasks, max_workers=workers)
        console.print_results(results)

        if any(v == "failed" for v in results.values()):
            sys.exit(1)

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


@cli.command()
def check():
    """Check that all external tools are on PATH."""
    console = get_console()
    missing = missing_system_commands()
    if missing:
        console.print_error(
            "Missing external tools",
            "The following commands were not found:",
            details=[f"{name}: {TOOL_HINTS[name]}" for name in missing],
        )
        sys.exit(1)
    console.print_info("All external tools found.")


@cli.command()
def stages():
    """List the stage names a chain may use."""
    console = get_console()
    console.print_header("Stages")
    for name, spec in sorted(STEP_REGISTRY.items()):
        console.print_info(f"{name:32} {spec.tag}")


if __name__ == "__main__":
    cli()
