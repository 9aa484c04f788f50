#!/usr/bin/env python3
"""
CLI tool for the k3d Cluster provider.
Provides a plan/apply style interface for managing k3d clusters
"""

import json

import click
import yaml
from tabulate import tabulate

from config import get_config
from errors import ProviderError
from main import build_provider, setup_logging
from models import Action, AttributeChange, ResourceSpec, ResourceState
from state import StateRecord, StateStore
from validation import validate_against_schema

RESOURCE_FILE_SCHEMA = {
    "type": "object",
    "required": ["name"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "properties": {
            "type": "object",
            "properties": {
                "config": {"type": "string"},
                "name": {"type": "string"},
                "version": {"type": "string"},
            },
        },
    },
}


def _load_resource_file(filename):
    """Read a resource definition from a YAML/JSON file"""
    with open(filename, "r") as f:
        if filename.endswith(".json"):
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    is_valid, error = validate_against_schema(data or {}, RESOURCE_FILE_SCHEMA)
    if not is_valid:
        raise click.ClickException(f"Invalid resource file {filename}: {error}")
    return data["name"], data.get("properties") or {}


def _diff_rows(provider, spec, last_state):
    if last_state is None:
        return [[key, "", "(create)"] for key in sorted(spec.to_dict())]
    changes = provider.diff(spec, last_state)
    return [[key, change.value, ""] for key, change in sorted(changes.changes.items())]


class ProviderGroup(click.Group):
    """Command group that reports provider errors as CLI errors"""

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except ProviderError as e:
            raise click.ClickException(str(e))


@click.group(cls=ProviderGroup)
@click.option("--state-file", envvar="PROVIDER_STATE_FILE", help="Path to the state file")
@click.option("--backend", envvar="PROVIDER_BACKEND", help="Cluster backend to use")
@click.pass_context
def cli(ctx, state_file, backend):
    """k3d Cluster provider CLI - create, update and tear down k3d clusters"""
    config = get_config()
    setup_logging(config)
    try:
        provider = build_provider(config, backend_name=backend)
    except ValueError as e:
        raise click.ClickException(str(e))

    ctx.obj = {
        "provider": provider,
        "store": StateStore(state_file or config.provider.state_file),
    }


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.pass_obj
def preview(obj, filename):
    """Show what applying a resource file would do"""
    provider = obj["provider"]
    resource_name, inputs = _load_resource_file(filename)

    spec = provider.check(resource_name, inputs)

    record = obj["store"].get(resource_name)
    last_state = record.state if record else None
    action, _ = provider.reconcile(
        record.resource_id if record else None,
        spec,
        last_state,
        preview=True,
        resource_name=resource_name,
    )

    click.echo(f"Resource: {resource_name}")
    click.echo(f"Action: {action.value}")
    rows = _diff_rows(provider, spec, last_state)
    click.echo(tabulate(rows, headers=["Attribute", "Change", "Note"], tablefmt="grid"))


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.pass_obj
def up(obj, filename):
    """Create or update a cluster from a resource file"""
    provider = obj["provider"]
    store = obj["store"]
    resource_name, inputs = _load_resource_file(filename)

    record = store.get(resource_name)
    spec = provider.check(resource_name, inputs)
    action, state = provider.reconcile(
        record.resource_id if record else None,
        spec,
        record.state if record else None,
        resource_name=resource_name,
    )

    if state is None:
        store.remove(resource_name)
    elif action != Action.NOOP:
        store.put(StateRecord(resource_name, state.name, state))

    click.echo(f"Resource: {resource_name}")
    click.echo(f"Action: {action.value}")
    if state is not None:
        click.echo(f"Cluster: {state.name}")


@cli.command()
@click.argument("resource_name")
@click.pass_obj
def refresh(obj, resource_name):
    """Refresh recorded state from the live cluster"""
    provider = obj["provider"]
    store = obj["store"]

    record = store.get(resource_name)
    if record is None:
        raise click.ClickException(f"No state recorded for {resource_name}")

    state = provider.read(record.resource_id, record.state)

    if state is None:
        store.remove(resource_name)
        click.echo(f"Cluster {record.resource_id} no longer exists; state dropped")
        return

    recorded = ResourceSpec.from_dict(record.state.to_dict())
    changes = provider.diff(recorded, state)
    store.put(StateRecord(resource_name, record.resource_id, state))
    if changes.has_changes:
        drifted = [
            key
            for key, change in sorted(changes.changes.items())
            if change != AttributeChange.UNCHANGED
        ]
        click.echo(f"Drift detected: {', '.join(drifted)}")
    else:
        click.echo("No drift detected")


@cli.command()
@click.argument("resource_name")
@click.confirmation_option(prompt="Are you sure you want to delete this cluster?")
@click.pass_obj
def destroy(obj, resource_name):
    """Delete a cluster and forget its state"""
    provider = obj["provider"]
    store = obj["store"]

    record = store.get(resource_name)
    if record is None:
        raise click.ClickException(f"No state recorded for {resource_name}")

    provider.delete(record.resource_id, record.state)

    store.remove(resource_name)
    click.echo(f"Cluster {record.resource_id} deleted")


@cli.command(name="list")
@click.pass_obj
def list_resources(obj):
    """List recorded clusters"""
    rows = []
    for record in obj["store"].list():
        props = record.state.to_dict(redact=True)
        rows.append(
            [
                record.resource_name,
                record.resource_id,
                props.get("version", "-"),
                props.get("kubeConfig", "-"),
                record.updated_at,
            ]
        )

    headers = ["Resource", "Cluster", "Version", "KubeConfig", "Updated"]
    click.echo(tabulate(rows, headers=headers, tablefmt="grid"))


@cli.command()
@click.argument("resource_name")
@click.option("--output", "-o", type=click.Choice(["json", "yaml"]), default="yaml")
@click.option("--show-secrets", is_flag=True, help="Print secret outputs in plaintext")
@click.pass_obj
def show(obj, resource_name, output, show_secrets):
    """Show recorded state of a cluster"""
    record = obj["store"].get(resource_name)
    if record is None:
        raise click.ClickException(f"No state recorded for {resource_name}")

    data = {
        "resource": resource_name,
        "id": record.resource_id,
        "type": record.type,
        "outputs": record.state.to_dict(redact=not show_secrets),
        "secretOutputs": ResourceState.secret_outputs(),
    }
    if output == "json":
        click.echo(json.dumps(data, indent=2))
    else:
        click.echo(yaml.safe_dump(data, default_flow_style=False, sort_keys=False))


@cli.command()
@click.argument("resource_name")
@click.pass_obj
def kubeconfig(obj, resource_name):
    """Print the kubeconfig of a cluster"""
    record = obj["store"].get(resource_name)
    if record is None or not record.state.kube_config:
        raise click.ClickException(f"No kubeconfig recorded for {resource_name}")
    click.echo(record.state.kube_config, nl=False)


if __name__ == "__main__":
    cli()
