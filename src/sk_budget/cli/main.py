"""
SK Budget Tracker CLI

Command-line interface for the SK budget tracker.
Provides commands for budget setup, project allocations, project
documents, and the health server.

Usage:
    sk-budget init --db council.db
    sk-budget budget import abyip_2025.csv
    sk-budget budget categories
    sk-budget project create --title "Liga ng Kabataan"
    sk-budget allocation set --project <id> --amount 25000 --category "SPORTS DEVELOPMENT"
    sk-budget serve --port 8080
"""

import json
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from sk_budget.budget.invariants import NO_BUDGET_MESSAGE
from sk_budget.budget.models import ReconciliationReport, UsageStatus
from sk_budget.kernel.errors import CatalogIngestionError, ProjectNotFound, UnknownStep
from sk_budget.kernel.logging import configure_logging
from sk_budget.projects.models import ProjectStep
from sk_budget.skb import SKBudget

# Logging goes to stderr (keeps stdout clean for --json output)
configure_logging()

app = typer.Typer(
    name="sk-budget",
    help="SK Budget Tracker - ABYIP budget allocation and project documents",
    add_completion=False,
)

# Sub-apps
budget_app = typer.Typer(help="Budget catalog commands")
allocation_app = typer.Typer(help="Project allocation commands")
project_app = typer.Typer(help="Project workflow commands")

app.add_typer(budget_app, name="budget")
app.add_typer(allocation_app, name="allocation")
app.add_typer(project_app, name="project")

# Global state
DEFAULT_DB = Path(".sk_budget.db")

DbOption = Annotated[
    Optional[Path],
    typer.Option("--db", envvar="SK_BUDGET_DB", help="Database path"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]

STATUS_MARKERS = {
    UsageStatus.OK: "✓",
    UsageStatus.WARNING: "!",
    UsageStatus.CRITICAL: "✗",
}


def get_skb(db_path: Optional[Path] = None) -> SKBudget:
    """Get SKBudget instance"""
    db = db_path or DEFAULT_DB
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'sk-budget init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    return SKBudget(db)


def require_budget(skb: SKBudget) -> None:
    """Exit with the setup hint when no budget catalog has been imported"""
    if not skb.is_configured:
        typer.echo(f"Error: {NO_BUDGET_MESSAGE}", err=True)
        typer.echo("Use 'sk-budget budget import <file>' to upload it", err=True)
        raise typer.Exit(1)


def money(skb: SKBudget, amount: float) -> str:
    return skb.policy.format_amount(amount)


def echo_report(skb: SKBudget, report: ReconciliationReport) -> None:
    """Print a reconciliation report"""
    if report.is_clean:
        typer.echo("  Allocations: consistent with the budget")
        return

    typer.echo("  Allocations: OUT OF BALANCE")
    if report.exceeds_total:
        typer.echo(
            f"    Total allocated {money(skb, report.total_allocated)} "
            f"exceeds budget {money(skb, report.total_budget)}"
        )
    for over in report.overcommitted:
        typer.echo(
            f"    {over.category}: {money(skb, over.allocated)} allocated, "
            f"ceiling {money(skb, over.ceiling)} (short {money(skb, over.deficit)})"
        )
        typer.echo(f"      Projects: {', '.join(over.project_ids)}")
    for orphan in report.orphaned:
        typer.echo(
            f"    {orphan.project_id}: {money(skb, orphan.allocated_amount)} in "
            f"missing category '{orphan.category}'"
        )


# Initialization command


@app.command()
def init(
    db: Annotated[
        Path,
        typer.Option(envvar="SK_BUDGET_DB", help="Database path"),
    ] = DEFAULT_DB,
) -> None:
    """Initialize a new tracker database"""
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    SKBudget(db)
    typer.echo(f"✓ Initialized SK budget database: {db}")


# Budget commands


@budget_app.command("import")
def budget_import(
    path: Annotated[Path, typer.Argument(help="CSV, JSON or extraction-response file")],
    fmt: Annotated[
        Optional[str],
        typer.Option("--format", help="csv, json or extracted (default: from extension)"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Upload the ABYIP budget, replacing the current catalog"""
    skb = get_skb(db)

    if not path.exists():
        typer.echo(f"Error: File not found: {path}", err=True)
        raise typer.Exit(1)

    try:
        report = skb.import_budget(path, fmt=fmt)
    except CatalogIngestionError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    catalog = skb.catalog
    typer.echo(f"✓ Imported budget from {path.name}")
    typer.echo(f"  Total: {money(skb, catalog.total_budget)}")
    typer.echo(f"  Categories: {len(catalog.items)}")
    echo_report(skb, report)


@budget_app.command("show")
def budget_show(
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show total, allocated and available budget"""
    skb = get_skb(db)
    require_budget(skb)

    summary = skb.summary()
    if json_output:
        typer.echo(json.dumps(summary.model_dump(mode="json"), indent=2))
        return

    typer.echo("\nBudget Overview")
    typer.echo(f"  Total: {money(skb, summary.total)}")
    typer.echo(f"  Allocated: {money(skb, summary.allocated)}")
    typer.echo(f"  Available: {money(skb, summary.available)}")
    typer.echo(f"  Used: {summary.percentage_used:.1f}%")
    typer.echo(f"  {STATUS_MARKERS[summary.status]} {summary.status_message}")
    if skb.engine.is_over_allocated():
        typer.echo(
            f"  Over-allocated by {money(skb, skb.engine.over_allocation_amount())}"
        )


@budget_app.command("categories")
def budget_categories(
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show usage of every PPA category"""
    skb = get_skb(db)
    require_budget(skb)

    statuses = skb.category_statuses()
    if json_output:
        typer.echo(json.dumps([s.model_dump(mode="json") for s in statuses], indent=2))
        return

    typer.echo(f"Categories: {len(statuses)}")
    for status in statuses:
        typer.echo(f"\n  {STATUS_MARKERS[status.status]} {status.category}")
        typer.echo(f"    Ceiling: {money(skb, status.total)}")
        typer.echo(f"    Used: {money(skb, status.used)} ({status.percentage:.1f}%)")
        typer.echo(f"    Available: {money(skb, status.available)}")


@budget_app.command("reconcile")
def budget_reconcile(
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Check every allocation against the current budget"""
    skb = get_skb(db)
    require_budget(skb)

    report = skb.reconcile()
    if json_output:
        data = report.model_dump(mode="json", by_alias=True)
        data["exceeds_total"] = report.exceeds_total
        data["is_clean"] = report.is_clean
        typer.echo(json.dumps(data, indent=2))
    else:
        typer.echo("\nReconciliation")
        echo_report(skb, report)

    if not report.is_clean:
        raise typer.Exit(1)


# Allocation commands


@allocation_app.command("set")
def allocation_set(
    project_id: Annotated[str, typer.Option("--project", help="Project ID")],
    amount: Annotated[float, typer.Option("--amount", help="Amount to allocate")],
    category: Annotated[str, typer.Option("--category", help="PPA category")],
    description: Annotated[
        Optional[str],
        typer.Option("--description", help="Allocation note"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Allocate (or re-allocate) budget to a project"""
    skb = get_skb(db)
    require_budget(skb)

    if skb.get_project(project_id) is None:
        typer.echo(f"Error: Project not found: {project_id}", err=True)
        raise typer.Exit(1)

    result = skb.validate(amount, category, project_id=project_id)
    if not result.valid:
        typer.echo(f"Error: {result.message}", err=True)
        raise typer.Exit(1)

    if not skb.allocate(project_id, amount, category, description):
        typer.echo("Error: Allocation was rejected; budget changed since the check", err=True)
        raise typer.Exit(1)

    typer.echo(f"✓ Allocated {money(skb, amount)} from {category} to {project_id}")
    typer.echo(f"  Category available: {money(skb, skb.engine.category_available(category))}")
    typer.echo(f"  Total available: {money(skb, skb.engine.total_available())}")


@allocation_app.command("check")
def allocation_check(
    amount: Annotated[float, typer.Option("--amount", help="Amount to check")],
    category: Annotated[str, typer.Option("--category", help="PPA category")],
    project_id: Annotated[
        Optional[str],
        typer.Option("--project", help="Project whose current allocation is released first"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Check whether an allocation would fit, without committing it"""
    skb = get_skb(db)
    require_budget(skb)

    result = skb.validate(amount, category, project_id=project_id)
    if result.valid:
        typer.echo(f"✓ {money(skb, amount)} fits in {category}")
        return

    typer.echo(f"✗ {result.message}")
    raise typer.Exit(1)


@allocation_app.command("show")
def allocation_show(
    project_id: Annotated[str, typer.Option("--project", help="Project ID")],
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show a project's allocation"""
    skb = get_skb(db)

    allocation = skb.get_allocation(project_id)
    if allocation is None:
        typer.echo(f"Error: No allocation for project: {project_id}", err=True)
        raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps(allocation.to_record(), indent=2))
        return

    typer.echo(f"\nAllocation: {allocation.project_id}")
    typer.echo(f"  Category: {allocation.category}")
    typer.echo(f"  Amount: {money(skb, allocation.allocated_amount)}")
    if allocation.description:
        typer.echo(f"  Description: {allocation.description}")


@allocation_app.command("list")
def allocation_list(
    category: Annotated[
        Optional[str],
        typer.Option("--category", help="Only allocations in this category"),
    ] = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List all allocations"""
    skb = get_skb(db)

    if category:
        allocations = skb.engine.allocations_for_category(category)
    else:
        allocations = skb.list_allocations()

    if json_output:
        typer.echo(json.dumps([a.to_record() for a in allocations], indent=2))
        return

    typer.echo(f"Allocations: {len(allocations)}")
    for allocation in allocations:
        typer.echo(
            f"  {allocation.project_id}: {money(skb, allocation.allocated_amount)} "
            f"({allocation.category})"
        )


@allocation_app.command("remove")
def allocation_remove(
    project_id: Annotated[str, typer.Option("--project", help="Project ID")],
    db: DbOption = None,
) -> None:
    """Release a project's allocation back to its category"""
    skb = get_skb(db)

    skb.remove_allocation(project_id)
    typer.echo(f"✓ Removed allocation for {project_id}")


# Project commands


@project_app.command("create")
def project_create(
    title: Annotated[str, typer.Option("--title", help="Project title")],
    description: Annotated[
        str,
        typer.Option("--description", help="Project description"),
    ] = "",
    db: DbOption = None,
) -> None:
    """Create a new project"""
    skb = get_skb(db)

    project = skb.create_project(title, description)

    typer.echo(f"✓ Created project: {project.id}")
    typer.echo(f"  Title: {project.title}")


@project_app.command("list")
def project_list(
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List all projects"""
    skb = get_skb(db)

    summaries = skb.project_summaries()

    if json_output:
        typer.echo(json.dumps([s.model_dump(mode="json") for s in summaries], indent=2))
        return

    typer.echo(f"Projects: {len(summaries)}")
    for summary in summaries:
        typer.echo(f"\n  {summary.project_id}")
        typer.echo(f"    Title: {summary.title}")
        typer.echo(f"    Progress: {summary.completed_steps}/{len(ProjectStep)} steps")
        if summary.allocated_amount is not None:
            typer.echo(
                f"    Budget: {money(skb, summary.allocated_amount)} ({summary.category})"
            )


@project_app.command("show")
def project_show(
    project_id: Annotated[str, typer.Option("--id", help="Project ID")],
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show project details and workflow steps"""
    skb = get_skb(db)

    project = skb.get_project(project_id)
    if project is None:
        typer.echo(f"Error: Project not found: {project_id}", err=True)
        raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps(project.model_dump(mode="json"), indent=2))
        return

    typer.echo(f"\nProject: {project.id}")
    typer.echo(f"  Title: {project.title}")
    if project.description:
        typer.echo(f"  Description: {project.description}")
    typer.echo(f"  Created: {project.created_at}")
    typer.echo(f"  Last modified: {project.last_modified}")
    typer.echo(f"  Progress: {project.progress_percent():.0f}%")

    allocation = skb.get_allocation(project.id)
    if allocation is not None:
        typer.echo(
            f"  Budget: {money(skb, allocation.allocated_amount)} ({allocation.category})"
        )

    typer.echo("\n  Steps:")
    for step in ProjectStep:
        document = project.document(step)
        marker = "✓" if document.is_completed else " "
        size = len(document.content)
        typer.echo(f"    [{marker}] {step.label} ({size} chars)")


@project_app.command("write")
def project_write(
    project_id: Annotated[str, typer.Option("--id", help="Project ID")],
    step: Annotated[str, typer.Option("--step", help="Workflow step")],
    content_file: Annotated[
        Path,
        typer.Option("--file", help="File holding the document content"),
    ],
    db: DbOption = None,
) -> None:
    """Replace the document of one workflow step"""
    skb = get_skb(db)

    content = content_file.read_text(encoding="utf-8")
    try:
        project = skb.update_step_document(project_id, step, content)
    except (ProjectNotFound, UnknownStep) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"✓ Updated {step} document for {project.id}")


@project_app.command("toggle")
def project_toggle(
    project_id: Annotated[str, typer.Option("--id", help="Project ID")],
    step: Annotated[str, typer.Option("--step", help="Workflow step")],
    db: DbOption = None,
) -> None:
    """Mark a workflow step complete (or not complete)"""
    skb = get_skb(db)

    try:
        project = skb.toggle_step_completion(project_id, step)
    except (ProjectNotFound, UnknownStep) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    completed = project.documents[ProjectStep(step.lower())].is_completed
    state = "complete" if completed else "not complete"
    typer.echo(f"✓ Step {step} marked {state}")
    typer.echo(f"  Progress: {project.progress_percent():.0f}%")


@project_app.command("delete")
def project_delete(
    project_id: Annotated[str, typer.Option("--id", help="Project ID")],
    db: DbOption = None,
) -> None:
    """Delete a project and release its allocation"""
    skb = get_skb(db)

    skb.delete_project(project_id)
    typer.echo(f"✓ Deleted project {project_id}")


# Server command


@app.command()
def serve(
    port: Annotated[int, typer.Option("--port", help="Health server port")] = 8080,
    metrics_port: Annotated[
        Optional[int],
        typer.Option("--metrics-port", help="Also expose Prometheus metrics on this port"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Run the health check server"""
    from sk_budget.health_server import initialize_health_server, run_health_server
    from sk_budget.kernel.metrics import start_metrics_server

    skb = get_skb(db)
    initialize_health_server(db or DEFAULT_DB, skb)

    if metrics_port is not None:
        start_metrics_server(port=metrics_port)
        typer.echo(f"✓ Metrics on http://0.0.0.0:{metrics_port}/metrics")

    typer.echo(f"✓ Health server on http://0.0.0.0:{port}/health")
    run_health_server(port=port)


def main() -> None:
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
