"""Task router: maps an artifact to the worker roles that should review it."""

import logging
from collections.abc import Iterable, Mapping, Sequence

from review_conductor.errors import ConfigurationError
from review_conductor.models.artifact import Artifact, ArtifactKind
from review_conductor.models.roles import WorkerRole

logger = logging.getLogger(__name__)

DEFAULT_ROUTING: dict[ArtifactKind, tuple[str, ...]] = {
    ArtifactKind.WEB_APPLICATION: (
        "security",
        "architecture",
        "performance",
        "code-quality",
        "testing",
    ),
    ArtifactKind.SERVICE: ("security", "architecture", "performance", "code-quality", "testing"),
    ArtifactKind.LIBRARY: ("architecture", "code-quality", "documentation", "testing"),
    ArtifactKind.CLI: ("security", "code-quality"),
    ArtifactKind.DATA_PIPELINE: ("performance", "code-quality"),
    ArtifactKind.INFRASTRUCTURE: ("security",),
    ArtifactKind.DOCUMENTATION: ("documentation",),
    ArtifactKind.UNKNOWN: ("code-quality",),
}

DEFAULT_FALLBACK_ROLES: tuple[str, ...] = ("code-quality",)


class TaskRouter:
    """Deterministic routing from artifact kind to an ordered set of roles.

    Roles come back in registry order, with the dependencies of every selected
    role included.
    """

    def __init__(
        self,
        roles: Iterable[WorkerRole],
        routing_table: Mapping[ArtifactKind | str, Sequence[str]] | None = None,
        default_roles: Sequence[str] = DEFAULT_FALLBACK_ROLES,
    ) -> None:
        """Initialize the router.

        Args:
            roles: Registered roles, in priority/registry order
            routing_table: Kind to role-name mapping (defaults to DEFAULT_ROUTING)
            default_roles: Roles for kinds missing from the table
        """
        self.roles: dict[str, WorkerRole] = {role.name: role for role in roles}
        table = DEFAULT_ROUTING if routing_table is None else routing_table
        self.routing_table: dict[ArtifactKind, tuple[str, ...]] = {
            ArtifactKind.parse(kind): tuple(names) for kind, names in table.items()
        }
        self.default_roles = tuple(default_roles)

    def roles_for_kind(self, kind: ArtifactKind) -> tuple[str, ...]:
        """Role names configured for a kind, falling back to the default set."""
        names = self.routing_table.get(kind)
        if not names:
            logger.debug(f"No routing for kind {kind.value}, using default roles")
            return self.default_roles
        return names

    def route(self, artifact: Artifact, override: Sequence[str] | None = None) -> list[WorkerRole]:
        """Select roles for an artifact.

        Args:
            artifact: Artifact to route
            override: Explicit role names replacing the kind-based selection

        Returns:
            Ordered list of roles, dependencies included

        Raises:
            ConfigurationError: Unknown role names or an empty selection
        """
        if override is not None:
            names = list(override)
        else:
            names = list(self.roles_for_kind(artifact.kind))

        unknown = [name for name in names if name not in self.roles]
        if unknown:
            raise ConfigurationError(f"Unknown roles: {', '.join(unknown)}")

        selected = self._with_dependencies(names)
        if not selected:
            raise ConfigurationError(
                f"Router produced an empty role set for artifact {artifact.id} "
                f"(kind: {artifact.kind.value})"
            )

        roles = [role for name, role in self.roles.items() if name in selected]
        logger.info(
            f"Routed artifact {artifact.id} ({artifact.kind.value}) to "
            f"{', '.join(role.name for role in roles)}"
        )
        return roles

    def _with_dependencies(self, names: Iterable[str]) -> set[str]:
        """Transitive closure of role dependencies."""
        selected: set[str] = set()
        pending: list[tuple[str, str | None]] = [(name, None) for name in names]
        while pending:
            name, required_by = pending.pop()
            if name in selected:
                continue
            role = self.roles.get(name)
            if role is None:
                raise ConfigurationError(f"Role {required_by} depends on unknown role {name}")
            selected.add(name)
            pending.extend((dep, name) for dep in role.depends_on)
        return selected
