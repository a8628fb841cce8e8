"""
CLI: ``day2ops plan`` - inspect and manipulate plan records.

Every command addresses one record by plan name and machine within a
namespace, against the SQL plan store at ``--store`` (or
``DAY2OPS_STORE_URL``).
"""

from __future__ import annotations

import typer

from day2ops.cli.utils import console, fail, open_store, print_dict, print_json, print_table
from day2ops.core.errors import Day2Error
from day2ops.core.hashing import checksum_matches, plan_checksum
from day2ops.plan.codec import decode_output, decode_plan, encode_output
from day2ops.plan.store import PlanRecord, PlanTarget

app = typer.Typer(no_args_is_help=True)

_NAMESPACE = typer.Option("default", "--namespace", "-n", help="Namespace of the plan record")
_STORE = typer.Option(None, "--store", "-s", help="SQLAlchemy URL of the plan store")
_JSON = typer.Option(False, "--json")


def _state(record: PlanRecord) -> str:
    if record.plan is None:
        return "empty"
    if checksum_matches(record.plan, record.applied_checksum):
        return "applied"
    if checksum_matches(record.plan, record.failed_checksum):
        return "failed"
    return "pending"


def _read(store, target: PlanTarget) -> PlanRecord:
    record = store.read(target)
    if record is None:
        console.print(f"[red]No plan record for {target}[/red]")
        raise typer.Exit(1)
    return record


@app.command("list")
def list_plans(
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Only this namespace"),
    store_url: str | None = _STORE,
    json_out: bool = _JSON,
) -> None:
    """List every plan record with its state and grant."""
    try:
        store = open_store(store_url)
        rows = []
        for target in store.list_targets(namespace):
            record = store.read(target) or PlanRecord()
            rows.append({
                "namespace": target.namespace,
                "plan": target.plan_name,
                "machine": target.machine,
                "state": _state(record),
                "granted": store.is_granted(target),
            })
    except Day2Error as e:
        fail(e)

    if json_out:
        print_json(rows)
    else:
        print_table(rows, title="Plans")


@app.command("show")
def show_plan(
    plan: str = typer.Argument(..., help="Plan name, e.g. restore-r1"),
    machine: str = typer.Argument(..., help="Target machine"),
    namespace: str = _NAMESPACE,
    store_url: str | None = _STORE,
    json_out: bool = _JSON,
) -> None:
    """Show the instructions and state of one plan record."""
    target = PlanTarget(namespace, plan, machine)
    try:
        store = open_store(store_url)
        record = _read(store, target)
        instructions = decode_plan(record.plan) if record.plan else []
        granted = store.is_granted(target)
    except Day2Error as e:
        fail(e)

    summary = {
        "target": str(target),
        "state": _state(record),
        "granted": granted,
        "checksum": plan_checksum(record.plan) if record.plan else None,
        "applied_checksum": record.applied_checksum,
        "failed_checksum": record.failed_checksum,
    }
    rows = [
        {
            "name": i.name,
            "command": i.command,
            "args": " ".join(i.args),
            "save_output": i.save_output,
        }
        for i in instructions
    ]

    if json_out:
        print_json({**summary, "instructions": rows})
        return
    print_dict(summary, title=f"Plan: {target}")
    print_table(rows, title="Instructions")


@app.command()
def checksum(
    plan: str = typer.Argument(..., help="Plan name"),
    machine: str = typer.Argument(..., help="Target machine"),
    namespace: str = _NAMESPACE,
    store_url: str | None = _STORE,
) -> None:
    """Print the SHA-256 of the stored plan bytes."""
    try:
        record = _read(open_store(store_url), PlanTarget(namespace, plan, machine))
    except Day2Error as e:
        fail(e)
    if record.plan is None:
        console.print("[red]Plan record has no plan[/red]")
        raise typer.Exit(1)
    typer.echo(plan_checksum(record.plan))


@app.command()
def output(
    plan: str = typer.Argument(..., help="Plan name"),
    machine: str = typer.Argument(..., help="Target machine"),
    namespace: str = _NAMESPACE,
    failed: bool = typer.Option(False, "--failed", help="Decode the failure output instead"),
    store_url: str | None = _STORE,
    json_out: bool = _JSON,
) -> None:
    """Decode the output the remote executor reported."""
    try:
        record = _read(open_store(store_url), PlanTarget(namespace, plan, machine))
        decoded = decode_output(record.failed_output if failed else record.applied_output)
    except Day2Error as e:
        fail(e)

    text = {name: value.decode("utf-8", errors="replace") for name, value in decoded.items()}
    if json_out:
        print_json(text)
        return
    if not text:
        console.print("[dim]No output.[/dim]")
        return
    for name, value in text.items():
        console.print(f"[bold cyan]{name}[/bold cyan]")
        console.print(value, markup=False)


@app.command()
def permit(
    plan: str = typer.Argument(..., help="Plan name"),
    machine: str = typer.Argument(..., help="Target machine"),
    namespace: str = _NAMESPACE,
    store_url: str | None = _STORE,
) -> None:
    """Grant the remote executor rights to run the plan."""
    target = PlanTarget(namespace, plan, machine)
    try:
        open_store(store_url).grant(target)
    except Day2Error as e:
        fail(e)
    console.print(f"[green]Permitted[/green] {target}")


@app.command()
def revoke(
    plan: str = typer.Argument(..., help="Plan name"),
    machine: str = typer.Argument(..., help="Target machine"),
    namespace: str = _NAMESPACE,
    store_url: str | None = _STORE,
) -> None:
    """Remove the remote executor's rights to run the plan."""
    target = PlanTarget(namespace, plan, machine)
    try:
        open_store(store_url).revoke(target)
    except Day2Error as e:
        fail(e)
    console.print(f"[yellow]Revoked[/yellow] {target}")


@app.command()
def report(
    plan: str = typer.Argument(..., help="Plan name"),
    machine: str = typer.Argument(..., help="Target machine"),
    namespace: str = _NAMESPACE,
    result: list[str] | None = typer.Option(
        None, "--result", "-r", help="Instruction output as NAME=TEXT (repeatable)"
    ),
    failed: bool = typer.Option(False, "--failed", help="Report the plan as failed"),
    store_url: str | None = _STORE,
) -> None:
    """Record a plan as executed, the way the remote executor does."""
    outputs: dict[str, bytes] = {}
    for item in result or []:
        name, sep, value = item.partition("=")
        if not sep:
            console.print(f"[red]Error: expected NAME=TEXT, got {item!r}[/red]")
            raise typer.Exit(1)
        outputs[name] = value.encode("utf-8")

    target = PlanTarget(namespace, plan, machine)
    try:
        store = open_store(store_url)
        record = _read(store, target)
        if record.plan is None:
            console.print("[red]Plan record has no plan[/red]")
            raise typer.Exit(1)
        digest = plan_checksum(record.plan)
        if failed:
            store.report_failed(target, digest, encode_output(outputs))
        else:
            store.report_applied(target, digest, encode_output(outputs))
    except Day2Error as e:
        fail(e)
    console.print(f"[green]Reported[/green] {target} {'failed' if failed else 'applied'}")
