"""Command-line entry point for Account Book reconciliation."""

import json
from typing import Annotated, Any, Callable, Optional, TypeVar

import typer
from pydantic import BaseModel

from account_book.config import get_settings
from account_book.logging_setup import configure_logging
from account_book.orchestrator import ReconciliationFlow, create_app_components
from account_book.reconciliation import ConfigurationError, InvalidPaymentDateError
from account_book.services.storage import NotFoundError, StorageError

T = TypeVar("T")

app = typer.Typer(
    name="account-book",
    help="Reconcile credit-card statements against bank withdrawals",
    no_args_is_help=True,
    add_completion=False,
)


def get_flow() -> ReconciliationFlow:
    """Build the reconciliation flow from environment settings."""
    settings = get_settings()
    configure_logging(settings.app.effective_log_level)
    flow, _ledger, _executor = create_app_components(settings)
    return flow


def _emit(payload: Any) -> None:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json", by_alias=True)
    elif isinstance(payload, list):
        payload = [item.model_dump(mode="json", by_alias=True) for item in payload]
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


def _run(action: Callable[[], T]) -> T:
    """Map domain failures to exit codes: 2 for caller errors, 1 for storage."""
    try:
        return action()
    except (NotFoundError, ConfigurationError, InvalidPaymentDateError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)
    except StorageError as e:
        typer.echo(f"Storage error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def reconcile(
    card_id: Annotated[str, typer.Argument(help="Card (institution) id")],
    billing_month: Annotated[str, typer.Argument(help="Billing month, YYYY-MM")],
) -> None:
    """Reconcile one card's billing month and print the report."""
    flow = get_flow()
    report = _run(lambda: flow.reconcile(card_id, billing_month))
    _emit(report)


@app.command("list")
def list_reports(
    card: Annotated[Optional[str], typer.Option(help="Only reports for this card")] = None,
    month: Annotated[
        Optional[str], typer.Option(help="Only reports for this billing month (YYYY-MM)")
    ] = None,
    start_month: Annotated[
        Optional[str], typer.Option("--from", help="Earliest billing month, inclusive (YYYY-MM)")
    ] = None,
    end_month: Annotated[
        Optional[str], typer.Option("--to", help="Latest billing month, inclusive (YYYY-MM)")
    ] = None,
) -> None:
    """List stored reconciliation reports, oldest first."""
    flow = get_flow()
    summaries = _run(lambda: flow.list_reconciliations(
        card_id=card,
        billing_month=month,
        start_month=start_month,
        end_month=end_month,
    ))
    _emit(summaries)


@app.command()
def show(
    report_id: Annotated[str, typer.Argument(help="Reconciliation report id")],
) -> None:
    """Print one reconciliation report with its per-charge records."""
    flow = get_flow()
    report = _run(lambda: flow.get_reconciliation(report_id))
    _emit(report)


if __name__ == "__main__":
    app()
