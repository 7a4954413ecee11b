"""reqbridge commands - typed operations for front ends that do not use the CLI.

Each command is a small dataclass; run_command() dispatches it against the
services it needs and returns the operation's result unchanged.
"""

from dataclasses import dataclass, field

from reqbridge.chaining import InMemoryResponseStore, ResponseStore
from reqbridge.errors import ValidationError
from reqbridge.resolver import Resolution, VariableContext, build_context, resolve_text_report
from reqbridge.storage import Storage, find_collection, find_environment
from reqbridge.transfer import (
    activate_environment,
    export_all_to_file,
    export_collection_to_file,
    find_undefined_variables,
    import_http_file,
)


@dataclass
class Services:
    storage: Storage
    responses: ResponseStore = field(default_factory=InMemoryResponseStore)
    dotenv_variables: dict[str, str] = field(default_factory=dict)


@dataclass
class ImportFile:
    path: str
    collection_name: str | None = None


@dataclass
class ExportCollection:
    collection: str
    path: str
    dotenv: bool = False


@dataclass
class ExportAll:
    path: str
    collections: list[str] | None = None
    dotenv: bool = False


@dataclass
class ResolveText:
    text: str
    collection: str | None = None
    environment: str | None = None


@dataclass
class AnalyzeCollection:
    collection: str
    environment: str | None = None


@dataclass
class ActivateEnvironment:
    environment: str | None


Command = ImportFile | ExportCollection | ExportAll | ResolveText | AnalyzeCollection | ActivateEnvironment


def context_for(
    services: Services,
    collection_ref: str | None = None,
    environment_ref: str | None = None,
) -> VariableContext:
    """Build a resolution context from names or ids.

    Without an explicit environment the active one (if any) is used.
    """
    collection_id = None
    if collection_ref:
        collection = find_collection(services.storage, collection_ref)
        if collection is None:
            raise ValidationError(f"Collection '{collection_ref}' not found.")
        collection_id = collection.id

    if environment_ref:
        env = find_environment(services.storage, environment_ref)
        if env is None:
            raise ValidationError(f"Environment '{environment_ref}' not found.")
    else:
        env = services.storage.get_active_environment()

    return build_context(
        services.storage,
        collection_id=collection_id,
        current_environment_id=env.id if env else None,
        dotenv_variables=services.dotenv_variables,
        responses=services.responses,
    )


def run_command(command: Command, services: Services):
    if isinstance(command, ImportFile):
        return import_http_file(command.path, services.storage, command.collection_name)
    if isinstance(command, ExportCollection):
        return export_collection_to_file(services.storage, command.collection, command.path, dotenv=command.dotenv)
    if isinstance(command, ExportAll):
        return export_all_to_file(services.storage, command.path, command.collections, dotenv=command.dotenv)
    if isinstance(command, ResolveText):
        ctx = context_for(services, command.collection, command.environment)
        return resolve_text_report(command.text, ctx)
    if isinstance(command, AnalyzeCollection):
        collection = find_collection(services.storage, command.collection)
        if collection is None:
            raise ValidationError(f"Collection '{command.collection}' not found.")
        ctx = context_for(services, collection.id, command.environment)
        return find_undefined_variables(collection, ctx)
    if isinstance(command, ActivateEnvironment):
        return activate_environment(services.storage, command.environment)
    raise TypeError(f"Unknown command: {type(command).__name__}")


__all__ = [
    "ActivateEnvironment",
    "AnalyzeCollection",
    "Command",
    "ExportAll",
    "ExportCollection",
    "ImportFile",
    "Resolution",
    "ResolveText",
    "Services",
    "context_for",
    "run_command",
]
