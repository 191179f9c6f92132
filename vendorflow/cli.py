"""Command line interface for operating vendorflow workflows."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer

from vendorflow.config import load_config
from vendorflow.exceptions import VendorflowError
from vendorflow.service import VendorApprovalService, build_service

T = TypeVar("T")

app = typer.Typer(help="CLI for vendorflow approval workflows")

# Command groups
application_app = typer.Typer(help="Commands for managing applications")
approver_app = typer.Typer(help="Commands for approvers")
callback_app = typer.Typer(help="Deliver callbacks from the workflow engine")

app.add_typer(application_app, name="application")
app.add_typer(approver_app, name="approver")
app.add_typer(callback_app, name="callback")


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, help="Path to a YAML config file"),
    log_level: str = typer.Option("WARNING", help="Logging level"),
) -> None:
    """vendorflow CLI entry point."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"config_path": str(config) if config else None}


def _run(
    ctx: typer.Context, action: Callable[[VendorApprovalService], Awaitable[T]]
) -> T:
    """Build a service, run ``action`` on it and map domain errors to exit 1."""

    async def runner() -> T:
        service = build_service(load_config((ctx.obj or {}).get("config_path")))
        try:
            return await action(service)
        finally:
            await service.close()

    try:
        return asyncio.run(runner())
    except VendorflowError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _read_json(source: str) -> dict[str, Any]:
    """Accept inline JSON or a path to a JSON file."""
    try:
        text = Path(source).read_text() if Path(source).is_file() else source
    except OSError:
        text = source
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        typer.secho("Payload is not valid JSON", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    if not isinstance(data, dict):
        typer.secho("Payload must be a JSON object", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    return data


@application_app.command("submit")
def application_submit(
    ctx: typer.Context,
    form: str,
    base_url: Optional[str] = typer.Option(None, help="Public base URL for documents"),
) -> None:
    """
    Submit an application form and start its workflow.

    Args:
        form: Inline JSON or path to a JSON file with the form fields

    Example:
        vendorflow application submit form.json --base-url https://vendors.example.com
    """
    form_data = _read_json(form)
    receipt = _run(ctx, lambda s: s.submit_application(form_data, base_url=base_url))
    typer.echo(receipt.workflow_id)


@application_app.command("respond")
def application_respond(
    ctx: typer.Context,
    workflow_id: str,
    approver_id: int,
    decision: str,
    reason: Optional[str] = typer.Option(None, help="Reason for the decision"),
) -> None:
    """Record an approver decision (APPROVED or REJECTED)."""
    ack = _run(
        ctx,
        lambda s: s.record_approver_response(
            workflow_id, approver_id, decision.upper(), reason
        ),
    )
    typer.echo(ack.message)


@application_app.command("status")
def application_status(ctx: typer.Context, workflow_id: str) -> None:
    """
    Show status, current step and approver decisions for a workflow.

    Example:
        vendorflow application status wf_0123456789ab
        # Output: Workflow wf_0123456789ab: RUNNING
        #         Step: 1 approved, 2 pending
        #         - approver1: APPROVED
    """
    view = _run(ctx, lambda s: s.get_workflow_status(workflow_id))
    typer.echo(f"Workflow {view.workflow_id}: {view.status.value}")
    typer.echo(f"Business: {view.business_name} <{view.applicant_email}>")
    typer.echo(f"Step: {view.current_step}")
    for name, decision in view.approver_statuses.items():
        typer.echo(f"- {name}: {decision.value}")


@application_app.command("list")
def application_list(ctx: typer.Context) -> None:
    """List all applications with their status."""
    summaries = _run(ctx, lambda s: s.list_applications())
    if not summaries:
        typer.echo("No applications found")
        return
    for item in summaries:
        wf = item.workflow
        typer.echo(
            f"{wf.workflow_id}\t{wf.status.value}\t{wf.business_name}\t{item.file_count} file(s)"
        )


@approver_app.command("queue")
def approver_queue(ctx: typer.Context, approver_id: int) -> None:
    """List running applications still waiting on an approver."""
    queue = _run(ctx, lambda s: s.pending_for_approver(approver_id))
    if not queue:
        typer.echo("No pending applications")
        return
    for item in queue:
        typer.echo(f"{item.workflow_id}\t{item.business_name}\t{item.applicant_email}")


@callback_app.command("approve")
def callback_approve(ctx: typer.Context, payload: str) -> None:
    """Deliver a final-approval callback payload."""
    data = _read_json(payload)
    ack = _run(ctx, lambda s: s.handle_approval_callback(data))
    typer.echo(ack.message)


@callback_app.command("reject")
def callback_reject(ctx: typer.Context, payload: str) -> None:
    """Deliver a final-rejection callback payload."""
    data = _read_json(payload)
    ack = _run(ctx, lambda s: s.handle_rejection_callback(data))
    typer.echo(ack.message)


@app.command("transactions")
def transactions(
    ctx: typer.Context,
    workflow_id: Optional[str] = typer.Option(None, help="Only this workflow"),
) -> None:
    """Show the audit log, newest first."""
    entries = _run(ctx, lambda s: s.list_transactions(workflow_id))
    if not entries:
        typer.echo("No transactions found")
        return
    for entry in entries:
        typer.echo(
            f"{entry.created_at:%Y-%m-%d %H:%M:%S}\t{entry.workflow_id}\t"
            f"{entry.type}\t{entry.status}\t{entry.details}"
        )


@app.command("health")
def health(ctx: typer.Context) -> None:
    """Report storage health."""
    status = _run(ctx, lambda s: s.health())
    typer.echo(json.dumps(status, indent=2, default=str))
    if status.get("status") != "healthy":
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
