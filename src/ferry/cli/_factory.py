"""Shared construction of AWS adapters, stores and engines for CLI commands.

Commands never create boto3 clients directly; tests patch the functions in
this module to inject fakes.
"""

from __future__ import annotations

import click

from ferry.aws.autoscaling import AutoScalingFleetDriver
from ferry.aws.ecr import EcrRegistryClient
from ferry.aws.s3 import S3ObjectClient
from ferry.aws.session import ClientFactory
from ferry.config import FerrySettings
from ferry.environment import Environment
from ferry.errors import FerryError
from ferry.schemas.artifacts import BindingMetadata
from ferry.store.objects import ObjectArtifactStore
from ferry.store.registry import RegistryArtifactStore


def get_settings(ctx: click.Context) -> FerrySettings:
    settings = ctx.find_root().ensure_object(dict).get("settings")
    if settings is None:
        settings = FerrySettings()
        ctx.find_root().obj["settings"] = settings
    return settings


def get_environment(ctx: click.Context) -> Environment:
    env = ctx.find_root().ensure_object(dict).get("environment")
    if env is None:
        env = get_settings(ctx).resolved_environment()
        ctx.find_root().obj["environment"] = env
    return env


def resolve_region(ctx: click.Context, region: str | None) -> str:
    """Region from the option, else from settings.

    Raises:
        click.UsageError: If neither provides one.
    """
    resolved = region or get_settings(ctx).region
    if not resolved:
        raise click.UsageError("No AWS region given; pass --region or set FERRY_REGION.")
    return resolved


def create_client_factory(region: str) -> ClientFactory:
    return ClientFactory(region)


def create_registry_client(region: str) -> EcrRegistryClient:
    factory = create_client_factory(region)
    return EcrRegistryClient(factory.client("ecr"), region, sts_client=factory.client("sts"))


def create_registry_store(region: str, known_aliases: tuple[str, ...] = ()) -> RegistryArtifactStore:
    return RegistryArtifactStore(create_registry_client(region), known_aliases=known_aliases)


def create_object_store(region: str, binding: BindingMetadata | None = None) -> ObjectArtifactStore:
    factory = create_client_factory(region)
    return ObjectArtifactStore(S3ObjectClient(factory.client("s3"), region), binding=binding)


def create_fleet_driver(region: str) -> AutoScalingFleetDriver:
    return AutoScalingFleetDriver(create_client_factory(region).client("autoscaling"), region)


def resolve_container_binding(
    region: str,
    environment: Environment,
    repository: str | None,
    latest_tag: str | None = None,
    commit_tag: str | None = None,
) -> BindingMetadata:
    """Binding metadata written on object aliases.

    Without a container repository only the environment is recorded. With
    one, the commit tag defaults to the tag co-bound with the container's
    live alias.

    Raises:
        FerryError: If the commit tag cannot be resolved from the registry.
    """
    if repository is None:
        return BindingMetadata(environment=environment.medium())

    alias_tag = environment.container_latest_tag(latest_tag)
    if commit_tag is None:
        client = create_registry_client(region)
        commit_tag = client.resolve_commit_tag_from_alias(
            repository,
            alias_tag,
            exclude=[environment.container_rollback_tag()],
        )
        if commit_tag is None:
            raise FerryError(
                f"Container commit tag is not resolvable from ECR for repository "
                f"'{repository}' and alias tag '{alias_tag}'; pass --container-commit-tag"
            )

    return BindingMetadata(
        environment=environment.medium(),
        container_repository=repository,
        container_latest_tag=alias_tag,
        container_commit_tag=commit_tag,
    )


__all__ = [
    "create_fleet_driver",
    "create_object_store",
    "create_registry_client",
    "create_registry_store",
    "get_environment",
    "get_settings",
    "resolve_container_binding",
    "resolve_region",
]
