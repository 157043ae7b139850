"""Command Line Interface for Patient-Contracts.

Validates patient documents and bulk import files against the canonical
contracts and prints every violation found.

Security Impact:
    - Violations are printed with paths, kinds and messages only; offending
      values are never echoed back
    - Validation policy comes from the environment so every run of the same
      deployment applies the same rules
"""

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from patient_contracts import __version__
from patient_contracts.adapters.sources import JSONPatientSource, get_source
from patient_contracts.domain.batch import BulkImportReport, ItemStatus
from patient_contracts.domain.enums import ImportSource
from patient_contracts.domain.errors import ContractError, ValidationErrors
from patient_contracts.domain.normalization import to_payload
from patient_contracts.domain.validation import VALIDATORS, validate_bulk_import
from patient_contracts.infrastructure.logging_config import setup_logging
from patient_contracts.infrastructure.settings import settings

app = typer.Typer(
    name="patient-contracts",
    help="Patient-Contracts: validate patient records and requests",
    add_completion=False
)
console = Console()

logger = logging.getLogger(__name__)

STATUS_STYLES = {
    ItemStatus.VALID: "green",
    ItemStatus.FAILED: "red",
    ItemStatus.SKIPPED: "yellow",
}


def print_violations(errors: ValidationErrors, title: str = "Violations") -> None:
    """Print a table of violations."""
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Path", style="cyan")
    table.add_column("Kind")
    table.add_column("Message")
    for violation in errors:
        table.add_row(violation.path or "(root)", violation.kind.value, violation.message)
    console.print(table)


def print_report(report: BulkImportReport) -> None:
    """Print one row per imported patient followed by a summary."""
    table = Table(title="Import Report", show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Status")
    table.add_column("Action")
    table.add_column("Duplicate of", justify="right")
    table.add_column("Violations")
    for outcome in report.outcomes:
        style = STATUS_STYLES[outcome.status]
        violations = "; ".join(
            f"{violation.path}: {violation.message}" for violation in (outcome.errors or ())
        )
        table.add_row(
            str(outcome.index),
            f"[{style}]{outcome.status.value}[/{style}]",
            outcome.action.value if outcome.action else "-",
            str(outcome.duplicate_of) if outcome.duplicate_of is not None else "-",
            violations or "-",
        )
    console.print(table)

    summary = report.summary()
    summary_table = Table(show_header=False, box=None, padding=(0, 2))
    summary_table.add_row("Total:", f"[bold]{summary['total']:,}[/bold]")
    summary_table.add_row("Valid:", f"[green]{summary['valid']:,}[/green]")
    summary_table.add_row(
        "Failed:", f"[red]{summary['failed']:,}[/red]" if summary['failed'] else f"{summary['failed']:,}"
    )
    summary_table.add_row("Skipped:", f"{summary['skipped']:,}")
    if not report.request.validate_only:
        actions = ", ".join(f"{name}={count}" for name, count in summary["actions"].items())
        summary_table.add_row("Planned actions:", actions)
    console.print(summary_table)


@app.command()
def validate(
    input_file: Path = typer.Argument(..., help="JSON document to validate", exists=True, dir_okay=False),
    kind: str = typer.Option("patient", "--kind", "-k", help=f"Contract to validate against: {', '.join(VALIDATORS)}"),
    show_normalized: bool = typer.Option(False, "--show-normalized", help="Print the normalized payload on success"),
) -> None:
    """Validate a single JSON document against one contract.

    Examples:
        patient-contracts validate patient.json
        patient-contracts validate change.json --kind update
    """
    validator = VALIDATORS.get(kind)
    if validator is None:
        console.print(f"[red]✗[/red] Unknown kind '{kind}'. Choose one of: {', '.join(VALIDATORS)}")
        raise typer.Exit(code=2)

    try:
        document = JSONPatientSource().load_document(str(input_file))
    except ContractError as e:
        console.print(f"[red]✗[/red] {str(e)}")
        raise typer.Exit(code=1)

    result = validator(document, policy=settings.policy)
    if result.is_failure():
        print_violations(result.errors, title=f"{kind}: {len(result.errors)} violation(s)")
        raise typer.Exit(code=1)

    if isinstance(result.value, BulkImportReport):
        print_report(result.value)
        if not result.value.all_valid:
            raise typer.Exit(code=1)
    else:
        console.print(f"[green]✓[/green] {input_file.name} is a valid {kind} document")
        if show_normalized:
            console.print_json(json.dumps(to_payload(result.value)))


@app.command(name="import")
def import_patients(
    input_file: Path = typer.Argument(..., help="Patients file (JSON, JSONL, CSV or TSV)", exists=True, dir_okay=False),
    organization_id: str = typer.Option(..., "--organization-id", help="Organization receiving the patients"),
    imported_by: str = typer.Option(..., "--imported-by", help="User performing the import"),
    source: Optional[ImportSource] = typer.Option(None, "--source", help="Origin system of the records"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report planned actions without importing"),
    validate_only: bool = typer.Option(False, "--validate-only", help="Report validity only"),
    skip_duplicates: bool = typer.Option(True, "--skip-duplicates/--no-skip-duplicates", help="Skip duplicate records instead of failing them"),
    update_existing: bool = typer.Option(False, "--update-existing", help="Plan updates for patients that already exist"),
) -> None:
    """Validate a bulk import file and report the outcome of every patient.

    Exits with code 1 when the envelope or any patient fails validation.

    Examples:
        patient-contracts import patients.csv --organization-id ORG --imported-by USER --dry-run
    """
    try:
        reader = get_source(str(input_file))
        patients = list(reader.read(str(input_file)))
    except ContractError as e:
        console.print(f"[red]✗[/red] {str(e)}")
        raise typer.Exit(code=1)

    if source is None:
        source = ImportSource.CSV if input_file.suffix.lower() in ('.csv', '.tsv') else ImportSource.LEGACY_SYSTEM

    console.print(f"\n[bold blue]Patient-Contracts Import[/bold blue]")
    console.print(f"[dim]Input file:[/dim] {input_file}")
    console.print(f"[dim]Records read:[/dim] {len(patients):,}")
    console.print()

    envelope = {
        "organizationId": organization_id,
        "source": source.value,
        "patients": patients,
        "importedBy": imported_by,
        "validateOnly": validate_only,
        "skipDuplicates": skip_duplicates,
        "updateExisting": update_existing,
        "dryRun": dry_run,
    }
    result = validate_bulk_import(envelope, policy=settings.policy)
    if result.is_failure():
        print_violations(result.errors, title="Import request rejected")
        raise typer.Exit(code=1)

    report = result.value
    print_report(report)
    if not report.all_valid:
        console.print(f"\n[yellow]⚠[/yellow] {len(report.failed)} patient(s) failed validation")
        raise typer.Exit(code=1)
    console.print(f"\n[green]✓[/green] All patients passed validation")


@app.command()
def info() -> None:
    """Display the active configuration."""
    console.print("[bold blue]Patient-Contracts Configuration[/bold blue]\n")

    info_table = Table(show_header=False, box=None, padding=(0, 2))
    info_table.add_row("Application:", settings.app_name)
    info_table.add_row("Version:", settings.app_version)
    info_table.add_row("Log level:", settings.log_level)
    info_table.add_row("JSON logs:", str(settings.log_json))
    policy = settings.policy
    info_table.add_row("Auto-promote primary:", str(policy.auto_promote_primary))
    info_table.add_row("Require revocation details:", str(policy.require_revocation_details))
    info_table.add_row("Contracts:", ", ".join(VALIDATORS))
    console.print(info_table)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"Patient-Contracts v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    version: Optional[bool] = typer.Option(
        None, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    """Patient-Contracts: validate patient records and requests."""
    setup_logging(use_json=settings.log_json, log_level="DEBUG" if verbose else settings.log_level)


if __name__ == "__main__":
    app()
