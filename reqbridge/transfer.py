"""reqbridge transfer - importing .http files as collections and exporting them back.

Import flow:
  read file → parse → (reject if no requests / no name) → build collection
  → analyse variables → build environment if needed → persist → summary

Nothing is persisted until the collection and environment are fully built;
if the environment cannot be saved the collection is removed again.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from reqbridge.errors import FileReadError, FileWriteError, ValidationError
from reqbridge.models import (
    Collection,
    Environment,
    Request,
    create_collection,
    create_environment,
    create_variable,
)
from reqbridge.parser import parse_http_file, parsed_request_to_request
from reqbridge.resolver import VariableContext
from reqbridge.serializer import collection_banner, serialize_collection, serialize_to_http_file
from reqbridge.storage import Storage, find_collection, find_environment
from reqbridge.variables import extract_from_request, extract_from_requests, transform_variables_for_export

logger = logging.getLogger(__name__)

HTTP_FILE_SUFFIXES = (".http", ".rest")


@dataclass
class VariableAnalysis:
    """Variables used by imported requests, split by where their value comes from.

    from_file           declared with ``@name = value`` in the file
    defined_elsewhere   already present in some existing environment
    missing             defined nowhere; created with an empty value
    """

    used: set[str] = field(default_factory=set)
    from_file: dict[str, str] = field(default_factory=dict)
    defined_elsewhere: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)

    @property
    def needs_environment(self) -> bool:
        return bool(self.from_file or self.missing)


@dataclass
class ImportSummary:
    collection_name: str
    collection_id: str
    request_count: int
    created_environment_name: str | None = None
    created_environment_id: str | None = None
    environment_variables: list[str] = field(default_factory=list)
    placeholder_variables: list[str] = field(default_factory=list)
    used_variables: list[str] = field(default_factory=list)
    defined_in_environments: list[str] = field(default_factory=list)
    active_environment_name: str | None = None

    @property
    def has_active_environment(self) -> bool:
        return self.active_environment_name is not None


# ── Files ────────────────────────────────────────────────────────────────


def read_http_file(path: str | Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise FileReadError(f"Cannot read {path}: {e}") from e


def write_http_file(path: str | Path, content: str) -> Path:
    p = Path(path)
    try:
        p.write_text(content, encoding="utf-8")
    except OSError as e:
        raise FileWriteError(f"Cannot write {path}: {e}") from e
    return p


def default_collection_name(path: str | Path) -> str:
    """File name without its .http / .rest extension."""
    p = Path(path)
    if p.suffix.lower() in HTTP_FILE_SUFFIXES:
        return p.stem
    return p.name or "Imported Collection"


# ── Import ───────────────────────────────────────────────────────────────


def analyze_variables(
    requests: list[Request],
    file_variables: dict[str, str],
    environments: list[Environment],
) -> VariableAnalysis:
    used = extract_from_requests(requests)
    defined = {v.name for env in environments for v in env.variables}
    analysis = VariableAnalysis(used=used, from_file=dict(file_variables))
    for name in sorted(used):
        if name in file_variables:
            continue
        if name in defined:
            analysis.defined_elsewhere.append(name)
        else:
            analysis.missing.append(name)
    return analysis


def build_environment(name: str, analysis: VariableAnalysis) -> Environment | None:
    """Environment holding file-level values plus empty placeholders, or None."""
    if not analysis.needs_environment:
        return None
    env = create_environment(name)
    for var_name, value in analysis.from_file.items():
        env.variables.append(create_variable(var_name, value))
    for var_name in analysis.missing:
        env.variables.append(create_variable(var_name, ""))
    return env


def import_http_content(content: str, collection_name: str | None, storage: Storage) -> ImportSummary:
    """Import .http text as a new collection (and environment when needed)."""
    name = (collection_name or "").strip()
    if not name:
        raise ValidationError("Collection name is required.")

    parsed = parse_http_file(content)
    if not parsed.requests:
        raise ValidationError("No requests found in the file.")

    collection = create_collection(name)
    collection.requests = [parsed_request_to_request(p, normalize_dotenv=True) for p in parsed.requests]

    environments = storage.get_environments()
    active = storage.get_active_environment()
    analysis = analyze_variables(collection.requests, parsed.variables, environments)
    environment = build_environment(name, analysis)

    storage.save_collection(collection)
    if environment is not None:
        try:
            storage.save_environment(environment)
        except Exception:
            logger.warning("Environment save failed; removing collection %r", name)
            storage.delete_collection(collection.id)
            raise

    logger.info(
        "Imported %d request(s) into %r (%d variable(s) need values)",
        len(collection.requests),
        name,
        len(analysis.missing),
    )
    return ImportSummary(
        collection_name=name,
        collection_id=collection.id,
        request_count=len(collection.requests),
        created_environment_name=environment.name if environment else None,
        created_environment_id=environment.id if environment else None,
        environment_variables=sorted(analysis.from_file),
        placeholder_variables=list(analysis.missing),
        used_variables=sorted(analysis.used),
        defined_in_environments=list(analysis.defined_elsewhere),
        active_environment_name=active.name if active else None,
    )


def import_http_file(
    path: str | Path,
    storage: Storage,
    collection_name: str | None = None,
) -> ImportSummary:
    content = read_http_file(path)
    if collection_name is None:
        collection_name = default_collection_name(path)
    return import_http_content(content, collection_name, storage)


def format_import_summary(summary: ImportSummary) -> str:
    """Markdown report of an import."""
    lines = [f'# Import Summary: "{summary.collection_name}"', ""]
    lines += [f"**Imported {summary.request_count} request(s)**", ""]

    if summary.created_environment_name:
        lines += [f'**Created environment:** "{summary.created_environment_name}"', ""]
        if summary.environment_variables:
            lines += [f"### Variables with values: {len(summary.environment_variables)}", ""]
            lines += [f"- `{v}`" for v in summary.environment_variables]
            lines.append("")
        if summary.placeholder_variables:
            lines += [f"### Variables needing values: {len(summary.placeholder_variables)}", ""]
            lines.append(
                "These variables were found in requests but had no defined value. "
                "Edit the environment to set their values:",
            )
            lines.append("")
            lines += [f"- `{v}`" for v in summary.placeholder_variables]
            lines.append("")

    if summary.defined_in_environments:
        lines += ["## Additional Variables", ""]
        lines += [f"### Already available in other environments: {len(summary.defined_in_environments)}", ""]
        lines += [f"- `{v}`" for v in summary.defined_in_environments]
        lines.append("")

    lines += ["## Environment Status", ""]
    created = summary.created_environment_name
    if summary.has_active_environment:
        lines.append(f'**Active environment:** "{summary.active_environment_name}"')
        if created and created != summary.active_environment_name:
            lines += ["", f'> Consider activating "{created}" to use the imported variables']
    else:
        lines += ["**No active environment selected**", ""]
        if created:
            lines.append(f'> Activate "{created}" to use the imported variables')
        else:
            lines.append("> Select an environment to resolve variables at runtime")
    lines.append("")

    if summary.placeholder_variables or not summary.has_active_environment:
        lines += ["## Recommended Next Steps", ""]
        step = 1
        if summary.placeholder_variables and created:
            lines += [f"### {step}. Set values for placeholder variables", ""]
            lines += [f"   - `{v}`" for v in summary.placeholder_variables]
            lines.append("")
            step += 1
        if not summary.has_active_environment:
            target = f'"{created}"' if created else "an environment"
            lines += [f"### {step}. Activate {target}", ""]
            lines.append(f"   reqbridge --activate {created or '<ENV>'}")
            lines.append("")

    return "\n".join(lines)


# ── Export ───────────────────────────────────────────────────────────────


def export_collection(collection: Collection, dotenv: bool = False) -> str:
    return serialize_collection(collection, dotenv=dotenv)


def export_collections(collections: list[Collection], dotenv: bool = False) -> str:
    """Several collections in one file, each introduced by a comment banner."""
    sections: list[str] = []
    for collection in collections:
        lines = collection_banner(collection)
        lines.append("")
        if collection.variables:
            for name, value in collection.variables.items():
                value = transform_variables_for_export(value) if dotenv else value
                lines.append(f"@{name} = {value}")
            lines.append("")
        lines.append(serialize_to_http_file(collection.requests, dotenv=dotenv))
        sections.append("\n".join(lines))
    return "\n\n\n".join(sections)


def export_collection_to_file(
    storage: Storage,
    collection_ref: str,
    path: str | Path,
    dotenv: bool = False,
) -> int:
    """Write one collection to path. Returns the number of requests written."""
    collection = find_collection(storage, collection_ref)
    if collection is None:
        raise ValidationError(f"Collection '{collection_ref}' not found.")
    if not collection.requests:
        raise ValidationError("Collection has no requests to export.")
    write_http_file(path, export_collection(collection, dotenv=dotenv))
    return len(collection.requests)


def export_all_to_file(
    storage: Storage,
    path: str | Path,
    collection_refs: list[str] | None = None,
    dotenv: bool = False,
) -> tuple[int, int]:
    """Write several collections to path. Returns (collections, requests)."""
    if collection_refs:
        collections = []
        for ref in collection_refs:
            found = find_collection(storage, ref)
            if found is None:
                raise ValidationError(f"Collection '{ref}' not found.")
            collections.append(found)
    else:
        collections = storage.get_collections()
    if not collections:
        raise ValidationError("No collections to export.")
    write_http_file(path, export_collections(collections, dotenv=dotenv))
    return len(collections), sum(len(c.requests) for c in collections)


# ── Environments and diagnostics ─────────────────────────────────────────


def activate_environment(storage: Storage, environment_ref: str | None) -> Environment | None:
    """Make one environment active (None deactivates all)."""
    if environment_ref is None:
        storage.set_active_environment_id(None)
        return None
    env = find_environment(storage, environment_ref)
    if env is None:
        raise ValidationError(f"Environment '{environment_ref}' not found.")
    storage.set_active_environment_id(env.id)
    env.is_active = True
    return env


def find_undefined_variables(collection: Collection, context: VariableContext) -> dict[str, list[str]]:
    """Per request name, the plain variables no tier of context defines."""
    report: dict[str, list[str]] = {}
    for request in collection.requests:
        missing = sorted(n for n in extract_from_request(request) if context.lookup(n) is None)
        if missing:
            report[request.name] = missing
    return report
