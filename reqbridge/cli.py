"""reqbridge CLI - import, export, resolve and send .http request files."""

import sys

import click

TOOL_HELP = """\
reqbridge — Bridge between .http files and stored request collections.

Imports .http / .rest files as collections, exports collections back to
.http text, resolves {{variables}} and sends requests.

\b
MODES
─────
  Send:       reqbridge FILE [REQUEST]
  Import:     reqbridge --import FILE [--name NAME] [--summary]
  Export:     reqbridge --export COLLECTION [-o OUT] [--dotenv]
  Export all: reqbridge --export-all [-o OUT] [--dotenv]
  Resolve:    reqbridge --resolve TEXT [--collection NAME] [--env ENV]
  Check:      reqbridge --check COLLECTION [--env ENV]
  Activate:   reqbridge --activate ENV
  List:       reqbridge --list

\b
SEND MODE
─────────
  reqbridge api.http                 # every request, in file order
  reqbridge api.http login           # only the request named "login"

  Each response is kept under its request name for later requests:
    Authorization: Bearer {{login.response.body.token}}

\b
PLACEHOLDERS
────────────
  \b
  {{name}}                          Variable (see precedence below)
  {{$dotenv NAME}}                  Value from the workspace .env file
  {{$env:NAME}}                     Process environment variable
  {{$guid}} / {{$uuid}}             Random UUID v4
  {{$timestamp [offset unit]}}      ISO 8601 UTC, e.g. {{$timestamp -1 d}}
  {{$timestamp_unix}} / {{$unix}}   Unix seconds
  {{$date}} / {{$time}}             Current UTC date / time
  {{$localdatetime rfc1123}}        Local time, rfc1123 or iso8601
  {{$randomint [min max]}}          Random integer, bounds inclusive
  {{req.response.body.path}}        Value from an earlier response
  {{req.response.headers.Name}}     Header from an earlier response
  {{req.response.status}}           Status code of an earlier response

  Placeholders that cannot be resolved are left as written.

\b
VARIABLE PRECEDENCE
───────────────────
  \b
  1. Collection variables   (@name = value lines, --collection)
  2. Environment variables  (--env, else the active environment)
  3. .env file              (env_file from config)
  Built-ins are computed only when no tier defines the same name.

\b
IMPORT
──────
  reqbridge --import api.http --name "My API" --summary

  Variables used by the requests are sorted into three groups:
    @name = value lines     stored in a new environment with their values
    known elsewhere         already defined in another environment
    missing                 stored in the new environment with empty values

\b
CONFIG FILE FORMAT (.reqbridge.yaml)
────────────────────────────────────
  Config resolution order:
    1. -c/--config flag (explicit path)
    2. .reqbridge.yaml / .reqbridge.yml / reqbridge.yaml / reqbridge.yml in CWD
    3. ~/.reqbridge/config.yaml (global)

  \b
  defaults:
    timeout: 30                     # seconds
    follow_redirects: true
    env_file: .env                  # source of {{$dotenv NAME}}
    storage_dir: .reqbridge         # relative to the config file
    log_level: WARNING
"""


@click.command(
    cls=click.Command,
    help=TOOL_HELP,
    context_settings={"max_content_width": 88},
)
@click.argument("http_file", required=False)
@click.argument("request_name", required=False)
@click.option(
    "-c",
    "--config",
    "config_file",
    default=None,
    help="Config file path. Default: .reqbridge.yaml in CWD, then ~/.reqbridge/config.yaml.",
)
@click.option(
    "--storage-dir",
    "storage_dir_override",
    default=None,
    help="Where collections and environments are stored. Default: from config or ~/.reqbridge/.",
)
@click.option("--import", "import_file", default=None, metavar="FILE", help="Import a .http/.rest file.")
@click.option("--name", "collection_name", default=None, help="Collection name for --import.")
@click.option("--summary", is_flag=True, default=False, help="Print the markdown import report.")
@click.option("--export", "export_collection", default=None, metavar="COLLECTION", help="Export one collection.")
@click.option("--export-all", "export_all", is_flag=True, default=False, help="Export every collection.")
@click.option("-o", "--output", "output_file", default=None, help="Write the export to a file instead of stdout.")
@click.option("--dotenv", is_flag=True, default=False, help="Export {{X}} as {{$dotenv X}}.")
@click.option("--resolve", "resolve_input", default=None, metavar="TEXT", help="Resolve placeholders in TEXT.")
@click.option("--check", "check_collection", default=None, metavar="COLLECTION", help="List undefined variables.")
@click.option("--activate", "activate_env", default=None, metavar="ENV", help="Activate an environment.")
@click.option("--list", "show_list", is_flag=True, default=False, help="List collections and environments.")
@click.option("--env", "env_name", default=None, help="Environment for resolution. Default: the active one.")
@click.option("--collection", "context_collection", default=None, help="Collection whose variables apply.")
@click.option("--timeout", type=int, default=None, help="Request timeout in seconds. Default: 30.")
@click.option("--verbose", is_flag=True, default=False, help="Include response headers in output.")
@click.option("--log-level", default=None, help="Logging level (DEBUG, INFO, WARNING, ERROR).")
def main(
    http_file,
    request_name,
    config_file,
    storage_dir_override,
    import_file,
    collection_name,
    summary,
    export_collection,
    export_all,
    output_file,
    dotenv,
    resolve_input,
    check_collection,
    activate_env,
    show_list,
    env_name,
    context_collection,
    timeout,
    verbose,
    log_level,
):
    """Import, export, resolve and send .http requests."""
    from reqbridge.commands import Services
    from reqbridge.core import (
        configure_logging,
        load_config,
        load_dotenv_vars,
        resolve_config_path,
        resolve_storage_dir,
    )
    from reqbridge.errors import ReqbridgeError
    from reqbridge.storage import FileStorage

    # --- Load config ---
    config_path = resolve_config_path(config_file)
    config = load_config(config_path)
    defaults = config.get("defaults", {})
    configure_logging(log_level or defaults.get("log_level"))

    dotenv_vars = load_dotenv_vars(".", defaults.get("env_file"))
    storage = FileStorage(resolve_storage_dir(storage_dir_override, config))
    services = Services(storage=storage, dotenv_variables=dotenv_vars)

    # --- Dispatch ---
    try:
        if show_list:
            _cmd_list(services)
            return

        if activate_env:
            _cmd_activate(services, activate_env)
            return

        if import_file:
            _cmd_import(services, import_file, collection_name, summary)
            return

        if export_collection:
            _cmd_export(services, export_collection, output_file, dotenv)
            return

        if export_all:
            _cmd_export_all(services, output_file, dotenv)
            return

        if resolve_input is not None:
            _cmd_resolve(services, resolve_input, context_collection, env_name)
            return

        if check_collection:
            _cmd_check(services, check_collection, env_name)
            return

        if http_file:
            _cmd_send(
                services,
                http_file,
                request_name,
                context_collection,
                env_name,
                defaults,
                timeout,
                verbose,
            )
            return
    except ReqbridgeError as e:
        click.echo(f"ERROR: {e.message}", err=True)
        sys.exit(1)

    # Nothing matched, show help
    ctx = click.get_current_context()
    click.echo(ctx.get_help())
    ctx.exit(1)


# ── Subcommand implementations ──────────────────────────────────────────


def _cmd_list(services):
    collections = services.storage.get_collections()
    environments = services.storage.get_environments()
    if not collections and not environments:
        click.echo("No collections or environments stored.")
        return

    click.echo(f"Collections: {len(collections)}")
    for c in collections:
        click.echo(f"  {c.name}  ({len(c.requests)} requests)  [{c.id}]")
    click.echo()
    click.echo(f"Environments: {len(environments)}")
    for env in environments:
        marker = "*" if env.is_active else " "
        click.echo(f"{marker} {env.name}  ({len(env.variables)} variables)  [{env.id}]")


def _cmd_activate(services, env_ref):
    from reqbridge.commands import ActivateEnvironment, run_command

    env = run_command(ActivateEnvironment(env_ref), services)
    click.echo(f"Active environment: {env.name}")


def _cmd_import(services, path, collection_name, show_summary):
    from reqbridge.commands import ImportFile, run_command
    from reqbridge.transfer import format_import_summary

    result = run_command(ImportFile(path, collection_name), services)
    if show_summary:
        click.echo(format_import_summary(result))
        return

    click.echo(f"Imported {result.request_count} request(s) into '{result.collection_name}'")
    if result.created_environment_name:
        click.echo(f"Created environment '{result.created_environment_name}'")
    if result.placeholder_variables:
        click.echo(f"Variables needing values: {', '.join(result.placeholder_variables)}")
    if result.defined_in_environments:
        click.echo(f"Defined in other environments: {', '.join(result.defined_in_environments)}")


def _cmd_export(services, collection_ref, output_file, dotenv):
    from reqbridge.commands import ExportCollection, run_command
    from reqbridge.storage import find_collection
    from reqbridge.transfer import export_collection

    if output_file:
        count = run_command(ExportCollection(collection_ref, output_file, dotenv), services)
        click.echo(f"Exported {count} request(s) to {output_file}")
        return

    collection = find_collection(services.storage, collection_ref)
    if collection is None:
        click.echo(f"ERROR: Collection '{collection_ref}' not found.", err=True)
        sys.exit(1)
    click.echo(export_collection(collection, dotenv=dotenv))


def _cmd_export_all(services, output_file, dotenv):
    from reqbridge.commands import ExportAll, run_command
    from reqbridge.transfer import export_collections

    if output_file:
        n_collections, n_requests = run_command(ExportAll(output_file, dotenv=dotenv), services)
        click.echo(f"Exported {n_collections} collection(s), {n_requests} request(s) to {output_file}")
        return

    collections = services.storage.get_collections()
    if not collections:
        click.echo("ERROR: No collections to export.", err=True)
        sys.exit(1)
    click.echo(export_collections(collections, dotenv=dotenv))


def _cmd_resolve(services, text, collection_ref, env_ref):
    from reqbridge.commands import ResolveText, run_command

    resolution = run_command(ResolveText(text, collection_ref, env_ref), services)
    click.echo(resolution.text)
    _warn_unresolved(resolution.unresolved)


def _cmd_check(services, collection_ref, env_ref):
    from reqbridge.commands import AnalyzeCollection, run_command

    report = run_command(AnalyzeCollection(collection_ref, env_ref), services)
    if not report:
        click.echo("All variables are defined.")
        return
    click.echo(f"Undefined variables in {len(report)} request(s):\n")
    for name, variables in report.items():
        click.echo(f"  {name}: {', '.join(variables)}")
    sys.exit(1)


def _cmd_send(
    services,
    http_file,
    request_name,
    collection_ref,
    env_ref,
    defaults,
    timeout,
    verbose,
):
    """Parse an .http file, then resolve and send its requests in order.

    File-level @variables act as collection variables, on top of any
    --collection variables. Every response is stored under its request
    name so later requests in the same run can reference it.
    """
    from reqbridge.chaining import StoredResponse
    from reqbridge.commands import context_for
    from reqbridge.executor import execute_request
    from reqbridge.filters import format_output
    from reqbridge.parser import parse_http_file, parsed_request_to_request
    from reqbridge.resolver import resolve_request
    from reqbridge.transfer import read_http_file

    parsed = parse_http_file(read_http_file(http_file))
    requests = [parsed_request_to_request(p) for p in parsed.requests]
    if request_name:
        requests = [r for r in requests if r.name == request_name]
        if not requests:
            available = ", ".join(r.name for r in parsed.requests if r.name) or "none"
            click.echo(
                f"ERROR: Request '{request_name}' not found in {http_file}. Available: {available}",
                err=True,
            )
            sys.exit(1)
    if not requests:
        click.echo(f"ERROR: No requests found in {http_file}.", err=True)
        sys.exit(1)

    ctx = context_for(services, collection_ref, env_ref)
    ctx.collection_variables.update(parsed.variables)

    failed = False
    for i, request in enumerate(requests):
        resolved = resolve_request(request, ctx)
        _warn_unresolved(resolved.unresolved, label=request.name)
        result = execute_request(
            method=resolved.method,
            url=resolved.url,
            headers=resolved.headers,
            body=resolved.body,
            timeout=_resolve_timeout(timeout, defaults.get("timeout")),
            follow_redirects=defaults.get("follow_redirects", True),
        )
        if i:
            click.echo()
        label = request.name if len(requests) > 1 else None
        if result.error:
            click.echo(f"ERROR: {request.name}: {result.error}", err=True)
            failed = True
            continue
        click.echo(format_output(result, verbose=verbose, label=label))
        services.responses.put(request.name, StoredResponse.from_result(result))

    if failed:
        sys.exit(1)


# ── Helpers ──────────────────────────────────────────────────────────────


def _warn_unresolved(names, label=None):
    if not names:
        return
    prefix = f"{label}: " if label else ""
    click.echo(f"WARNING: {prefix}unresolved variables: {', '.join(sorted(names))}", err=True)


def _resolve_timeout(*sources, default=30):
    """Return the first truthy timeout from sources, or default."""
    for t in sources:
        if t:
            return t
    return default
