"""tenantforge CLI: Typer app for schema checks, renders and deploys."""

from __future__ import annotations

import itertools
import json
import logging
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="tenantforge",
    help="Build and deploy per-tenant email automation workflows.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
):
    """Configure logging for all subcommands."""
    from tenantforge.config import load_config

    level = "DEBUG" if verbose else load_config().logging.level
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _fail(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1)


def _parse_credentials(pairs: list[str]) -> dict[str, str]:
    from tenantforge.models import ProviderKind

    ids: dict[str, str] = {}
    kinds = [k.value for k in ProviderKind]
    for pair in pairs:
        kind, sep, value = pair.partition("=")
        if not sep or kind not in kinds:
            _fail(f"Invalid --credential {pair!r}; expected KIND=ID with KIND in {', '.join(kinds)}")
        ids[kind] = value
    return ids


def _read_mapping(path: Path | None) -> dict:
    import yaml

    if path is None:
        return {}
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        _fail(f"{path} must contain a mapping")
    return data


# --- Database commands ---

db_app = typer.Typer(help="Database management commands.")
app.add_typer(db_app, name="db")


@db_app.callback(invoke_without_command=True)
def db_callback(
    ctx: typer.Context,
    reset: bool = typer.Option(False, "--reset", help="Wipe and recreate the database."),
    stats: bool = typer.Option(False, "--stats", help="Show row counts for all tables."),
):
    """Database management."""
    from tenantforge.config import load_config
    from tenantforge.database import db_stats, get_db, init_db, reset_db

    config = load_config()

    if reset:
        conn = reset_db(config)
        typer.echo("Database reset and initialized.")
        conn.close()
        return

    if stats:
        conn = get_db(config)
        init_db(conn)
        typer.echo("Table row counts:")
        for table, count in db_stats(conn).items():
            status = f"{count}" if count >= 0 else "missing"
            typer.echo(f"  {table:20s} {status}")
        conn.close()
        return

    typer.echo(ctx.get_help())


# --- Schema commands ---

schemas_app = typer.Typer(help="Inspect and check the schema registry.")
app.add_typer(schemas_app, name="schemas")


@schemas_app.command("list")
def schemas_list():
    """List registered business types with their aliases."""
    from tenantforge.config import load_config
    from tenantforge.pipeline import bridge_from_config

    registry = bridge_from_config(load_config()).registry
    for name in registry.business_types:
        aliases = registry.aliases(name)
        suffix = f"  (aliases: {', '.join(aliases)})" if aliases else ""
        typer.echo(f"{name}{suffix}")


@schemas_app.command("show")
def schemas_show(
    business_types: list[str] = typer.Argument(..., help="One or more business types, in priority order."),
):
    """Print the merged folder tree for a business-type selection."""
    from tenantforge.config import load_config
    from tenantforge.errors import TenantForgeError
    from tenantforge.models import BusinessInfo, TenantConfig
    from tenantforge.pipeline import bridge_from_config

    bridge = bridge_from_config(load_config())
    tenant = TenantConfig(
        tenant_id="preview",
        business_types=business_types,
        business=BusinessInfo(name="Preview"),
    )
    try:
        config = bridge.build(tenant)
    except TenantForgeError as e:
        _fail(str(e))

    for category in config.folders.categories:
        typer.echo(category.name)
        for sub in category.subcategories:
            typer.echo(f"  {sub.name}")
            for tertiary in sub.tertiary:
                typer.echo(f"    {tertiary}")
    for note in config.notes:
        typer.echo(f"note: {note.message}")


@schemas_app.command("check")
def schemas_check(
    pairs: bool = typer.Option(True, "--pairs/--no-pairs", help="Also check every pair of business types."),
):
    """Build every business type (and pair) and report cross-layer errors."""
    from tenantforge.config import load_config
    from tenantforge.errors import TenantForgeError
    from tenantforge.models import BusinessInfo, TenantConfig
    from tenantforge.pipeline import bridge_from_config

    bridge = bridge_from_config(load_config())
    names = bridge.registry.business_types
    selections = [[n] for n in names]
    if pairs:
        selections.extend(list(p) for p in itertools.permutations(names, 2))

    failures = 0
    for selection in selections:
        tenant = TenantConfig(
            tenant_id="check",
            business_types=selection,
            business=BusinessInfo(name="Check"),
        )
        try:
            bridge.build(tenant)
        except TenantForgeError as e:
            failures += 1
            typer.echo(f"FAIL {' + '.join(selection)}: {e}")

    typer.echo(f"Checked {len(selections)} selections, {failures} failures.")
    if failures:
        raise typer.Exit(1)


# --- Build commands ---

@app.command()
def render(
    tenant_file: Path = typer.Argument(..., exists=True, help="Tenant record (YAML or JSON)."),
    credential: list[str] = typer.Option([], "--credential", "-c", help="KIND=ID, repeatable."),
    labels: Optional[Path] = typer.Option(None, "--labels", exists=True, help="YAML/JSON of folder path -> label id."),
    voice: Optional[Path] = typer.Option(None, "--voice", exists=True, help="Voice profile (YAML or JSON)."),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the workflow JSON here."),
):
    """Render a tenant's workflow document without deploying it."""
    from tenantforge.config import load_config
    from tenantforge.credentials import StaticCredentialResolver, StoredCredentialResolver
    from tenantforge.database import get_db, init_db
    from tenantforge.errors import TenantForgeError
    from tenantforge.models import load_tenant, load_voice_profile
    from tenantforge.pipeline import DeploymentPipeline, bridge_from_config
    from tenantforge.provisioning import StaticLabelProvisioner
    from tenantforge.templates import TemplateStore

    config = load_config()
    conn = None
    if credential:
        ids = {**config.credentials.shared, **_parse_credentials(credential)}
        resolver = StaticCredentialResolver(ids)
    else:
        conn = get_db(config)
        init_db(conn)
        resolver = StoredCredentialResolver(conn, shared=config.credentials.shared)

    pipeline = DeploymentPipeline(
        bridge=bridge_from_config(config),
        credentials=resolver,
        provisioner=StaticLabelProvisioner(_read_mapping(labels)),
        templates=TemplateStore(config.registry.templates_dir or None),
    )
    try:
        tenant = load_tenant(tenant_file)
        profile = load_voice_profile(voice) if voice else None
        result = pipeline.render(tenant, profile)
    except TenantForgeError as e:
        _fail(str(e))
    finally:
        if conn is not None:
            conn.close()

    for note in result.notes:
        typer.echo(f"note: {note.message}", err=True)
    for warning in result.warnings:
        typer.echo(f"warning: {warning}", err=True)

    text = json.dumps(result.document, indent=2, ensure_ascii=False)
    if out:
        out.write_text(text + "\n")
        typer.echo(f"Wrote {out} ({len(result.warnings)} warnings).")
    else:
        typer.echo(text)


@app.command()
def deploy(
    tenant_file: Path = typer.Argument(..., exists=True, help="Tenant record (YAML or JSON)."),
    labels: Optional[Path] = typer.Option(None, "--labels", exists=True, help="YAML/JSON of folder path -> label id."),
    voice: Optional[Path] = typer.Option(None, "--voice", exists=True, help="Voice profile (YAML or JSON)."),
):
    """Render and create/update the tenant's workflow in the engine (inactive)."""
    from tenantforge.config import load_config
    from tenantforge.credentials import StoredCredentialResolver
    from tenantforge.database import get_db, init_db
    from tenantforge.engine import WorkflowEngineClient
    from tenantforge.errors import TenantForgeError
    from tenantforge.models import load_tenant, load_voice_profile
    from tenantforge.pipeline import DeploymentPipeline, bridge_from_config
    from tenantforge.provisioning import StaticLabelProvisioner
    from tenantforge.templates import TemplateStore

    config = load_config()
    conn = get_db(config)
    init_db(conn)

    pipeline = DeploymentPipeline(
        bridge=bridge_from_config(config),
        credentials=StoredCredentialResolver(conn, shared=config.credentials.shared),
        provisioner=StaticLabelProvisioner(_read_mapping(labels)),
        templates=TemplateStore(config.registry.templates_dir or None),
        transport=WorkflowEngineClient(
            base_url=config.engine.base_url,
            api_key=config.engine.api_key,
            timeout=config.engine.timeout,
            max_retries=config.engine.max_retries,
        ),
        db=conn,
    )
    try:
        tenant = load_tenant(tenant_file)
        profile = load_voice_profile(voice) if voice else None
        result = pipeline.deploy(tenant, profile)
    except TenantForgeError as e:
        _fail(str(e))
    finally:
        conn.close()

    for warning in result.warnings:
        typer.echo(f"warning: {warning}", err=True)
    state = "active" if result.active else "inactive"
    typer.echo(f"Deployed workflow {result.workflow_id} (version {result.version}, {state}).")


@app.command()
def deployments(
    tenant: Optional[str] = typer.Option(None, "--tenant", "-t", help="Filter by tenant id."),
):
    """List recorded deployments."""
    from tenantforge.config import load_config
    from tenantforge.database import get_db, init_db
    from tenantforge.deployments import list_deployments

    config = load_config()
    conn = get_db(config)
    init_db(conn)
    rows = list_deployments(conn, tenant)
    conn.close()

    if not rows:
        typer.echo("No deployments recorded.")
        return
    for row in rows:
        typer.echo(
            f"{row['tenant_id']:20s} v{row['version']:<3d} {row['workflow_id']:20s} "
            f"{' + '.join(row['business_types'])}  ({row['warning_count']} warnings)"
        )
