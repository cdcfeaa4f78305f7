"""Deployment environments and the alias names derived from them.

An environment has a name (development, staging, test, production) and an
index for parallel stacks of the same kind. Index 1 renders without a
suffix, so `prod` and `prod2` are the first and second production stacks.

Container aliases are environment scoped: the live tag is the environment's
medium name (`prod`) and the rollback tag is `rollback_<env>`. Object aliases
are fixed permalinks (`latest`, `rollback`) because each object set already
lives under its own prefix.

Example:
    >>> env = Environment.parse("production", index=2)
    >>> str(env)
    'prod2'
    >>> env.container_rollback_tag()
    'rollback_prod2'
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

OBJECT_LATEST_ALIAS = "latest"
OBJECT_ROLLBACK_ALIAS = "rollback"


class EnvironmentName(str, Enum):
    """Known environment kinds.

    Values are the long names; `medium` gives the compact form used in tags
    and resource names.
    """

    DEVELOPMENT = "development"
    STAGING = "staging"
    TEST = "test"
    PRODUCTION = "production"

    @property
    def medium(self) -> str:
        return _MEDIUM[self]

    @classmethod
    def parse(cls, value: str) -> EnvironmentName:
        """Parse a long name or its alias (dev, stag, test, prod).

        Raises:
            ValueError: If the value names no known environment.
        """
        key = value.strip().lower()
        for member in cls:
            if key in (member.value, member.medium):
                return member
        choices = ", ".join(sorted(ENVIRONMENT_CHOICES))
        raise ValueError(f"Unknown environment {value!r}; expected one of: {choices}")


_MEDIUM = {
    EnvironmentName.DEVELOPMENT: "dev",
    EnvironmentName.STAGING: "stag",
    EnvironmentName.TEST: "test",
    EnvironmentName.PRODUCTION: "prod",
}

ENVIRONMENT_CHOICES: frozenset[str] = frozenset(
    [m.value for m in EnvironmentName] + [m.medium for m in EnvironmentName]
)


class Environment(BaseModel):
    """A deployment environment: a kind plus a stack index.

    Attributes:
        name: Environment kind.
        index: Stack index, starting at 1.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: EnvironmentName = Field(
        default=EnvironmentName.DEVELOPMENT,
        description="Environment kind",
    )
    index: int = Field(
        default=1,
        ge=1,
        le=255,
        description="Stack index; 1 renders without suffix",
    )

    @classmethod
    def parse(cls, value: str, index: int = 1) -> Environment:
        return cls(name=EnvironmentName.parse(value), index=index)

    def _suffix(self) -> str:
        return "" if self.index == 1 else str(self.index)

    def medium(self) -> str:
        return f"{self.name.medium}{self._suffix()}"

    def __str__(self) -> str:
        return self.medium()

    def container_latest_tag(self, override: str | None = None) -> str:
        """Live tag for container artifact sets (defaults to the environment)."""
        return override or self.medium()

    def container_rollback_tag(self, override: str | None = None) -> str:
        """Rollback tag for container artifact sets."""
        return override or f"rollback_{self.medium()}"


__all__ = [
    "ENVIRONMENT_CHOICES",
    "OBJECT_LATEST_ALIAS",
    "OBJECT_ROLLBACK_ALIAS",
    "Environment",
    "EnvironmentName",
]
