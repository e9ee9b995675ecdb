"""Configuration loading and validation for Review Conductor."""

import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from review_conductor.models.artifact import ArtifactKind
from review_conductor.models.roles import ExecutionMode
from review_conductor.orchestrator.aggregator import validate_weights
from review_conductor.orchestrator.router import DEFAULT_FALLBACK_ROLES, DEFAULT_ROUTING
from review_conductor.workers import default_workers


@dataclass
class RoleSettings:
    """Configuration for a single worker role."""

    name: str
    enabled: bool = True
    depends_on: list[str] | None = None  # None keeps the built-in dependencies
    mode: str | None = None  # "parallel" or "sequential"; None keeps the built-in mode
    timeout_seconds: float | None = None
    weight: float | None = None


@dataclass
class SchedulerSettings:
    """Scheduler configuration."""

    default_timeout_seconds: float = 60.0
    max_parallel_workers: int = 5


@dataclass
class SessionSettings:
    """Session retention configuration."""

    max_retained: int = 100  # Finished sessions kept before the oldest are archived


@dataclass
class AggregatorSettings:
    """Aggregator configuration."""

    similarity_threshold: float = 0.85
    line_tolerance: int = 0


@dataclass
class QualityGateSettings:
    """Quality gate configuration."""

    min_confidence: float = 0.6
    density_ceiling: float = 25.0
    density_weight: float = 0.2


@dataclass
class RoutingSettings:
    """Routing table configuration."""

    table: dict[str, list[str]] = field(
        default_factory=lambda: {kind.value: list(names) for kind, names in DEFAULT_ROUTING.items()}
    )
    default_roles: list[str] = field(default_factory=lambda: list(DEFAULT_FALLBACK_ROLES))


@dataclass
class GitHubSettings:
    """GitHub integration configuration."""

    token: str = ""
    webhook_secret: str | None = None
    base_url: str | None = None


@dataclass
class ServerSettings:
    """Server configuration."""

    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class Config:
    """Complete application configuration."""

    roles: list[RoleSettings] = field(default_factory=list)
    role_weights: dict[str, Any] = field(default_factory=dict)
    role_timeouts: dict[str, Any] = field(default_factory=dict)
    routing: RoutingSettings = field(default_factory=RoutingSettings)
    scheduler: SchedulerSettings = field(default_factory=SchedulerSettings)
    sessions: SessionSettings = field(default_factory=SessionSettings)
    aggregator: AggregatorSettings = field(default_factory=AggregatorSettings)
    quality_gate: QualityGateSettings = field(default_factory=QualityGateSettings)
    github: GitHubSettings = field(default_factory=GitHubSettings)
    server: ServerSettings = field(default_factory=ServerSettings)


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file and environment.

    Args:
        config_path: Path to config file (default: config.yaml)

    Returns:
        Loaded configuration
    """
    # Find config file
    if config_path is None:
        config_path = Path("config.yaml")
        if not config_path.exists():
            config_path = Path("config.example.yaml")

    # Load from file if exists
    raw_config: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw_config = yaml.safe_load(f) or {}

    # Expand environment variables
    raw_config = _expand_env_vars(raw_config)

    # Parse configuration
    return _parse_config(raw_config)


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in config."""
    if isinstance(obj, str):
        if obj.startswith("${") and obj.endswith("}"):
            env_var = obj[2:-1]
            return os.environ.get(env_var, "")
        return obj
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


def _parse_config(raw: dict[str, Any]) -> Config:
    """Parse raw config dict into Config object."""
    # Roles
    roles = []
    for role_raw in raw.get("roles", []):
        roles.append(
            RoleSettings(
                name=role_raw["name"],
                enabled=role_raw.get("enabled", True),
                depends_on=role_raw.get("depends_on"),
                mode=role_raw.get("mode"),
                timeout_seconds=role_raw.get("timeout_seconds"),
                weight=role_raw.get("weight"),
            )
        )

    # Routing
    routing_raw = raw.get("routing", {})
    routing = RoutingSettings()
    if "table" in routing_raw:
        routing.table.update(
            {str(kind): list(names or []) for kind, names in routing_raw["table"].items()}
        )
    if "default_roles" in routing_raw:
        routing.default_roles = list(routing_raw["default_roles"] or [])

    # Scheduler settings
    sched_raw = raw.get("scheduler", {})
    scheduler = SchedulerSettings(
        default_timeout_seconds=sched_raw.get("default_timeout_seconds", 60.0),
        max_parallel_workers=sched_raw.get("max_parallel_workers", 5),
    )

    # Session retention
    sessions_raw = raw.get("sessions", {})
    sessions = SessionSettings(max_retained=sessions_raw.get("max_retained", 100))

    # Aggregator settings
    agg_raw = raw.get("aggregator", {})
    aggregator = AggregatorSettings(
        similarity_threshold=agg_raw.get("similarity_threshold", 0.85),
        line_tolerance=agg_raw.get("line_tolerance", 0),
    )

    # Quality gate
    gate_raw = raw.get("quality_gate", {})
    quality_gate = QualityGateSettings(
        min_confidence=gate_raw.get("min_confidence", 0.6),
        density_ceiling=gate_raw.get("density_ceiling", 25.0),
        density_weight=gate_raw.get("density_weight", 0.2),
    )

    # GitHub config
    github_raw = raw.get("github", {})
    github = GitHubSettings(
        token=github_raw.get("token") or os.environ.get("GITHUB_TOKEN", ""),
        webhook_secret=github_raw.get("webhook_secret") or os.environ.get("GITHUB_WEBHOOK_SECRET"),
        base_url=github_raw.get("base_url"),
    )

    # Server settings
    server_raw = raw.get("server", {})
    server = ServerSettings(
        host=server_raw.get("host", "0.0.0.0"),
        port=server_raw.get("port", 8080),
    )

    return Config(
        roles=roles,
        role_weights=dict(raw.get("role_weights", {}) or {}),
        role_timeouts=dict(raw.get("role_timeouts", {}) or {}),
        routing=routing,
        scheduler=scheduler,
        sessions=sessions,
        aggregator=aggregator,
        quality_gate=quality_gate,
        github=github,
        server=server,
    )


def role_graph(
    config: Config, registered: Mapping[str, Sequence[str]] | None = None
) -> dict[str, list[str]]:
    """Dependency graph of the enabled roles after configured overrides.

    Args:
        config: Configuration with role overrides
        registered: Role name to built-in dependencies (defaults to the built-in workers)

    Returns:
        Role name to dependency list, in registry order
    """
    if registered is None:
        registered = {name: worker.role.depends_on for name, worker in default_workers().items()}
    graph = {name: list(deps) for name, deps in registered.items()}
    for settings in config.roles:
        if settings.name not in graph:
            continue
        if not settings.enabled:
            del graph[settings.name]
        elif settings.depends_on is not None:
            graph[settings.name] = list(settings.depends_on)
    return graph


def validate_config(
    config: Config, registered: Mapping[str, Sequence[str]] | None = None
) -> list[str]:
    """Validate configuration and return list of errors.

    Args:
        config: Configuration to validate
        registered: Role name to built-in dependencies of the available workers
            (defaults to the built-in workers)

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []

    if registered is None:
        registered = {name: worker.role.depends_on for name, worker in default_workers().items()}
    known_roles = role_graph(config, registered)

    errors.extend(validate_weights(config.role_weights))
    for name in list(config.role_weights) + list(config.role_timeouts):
        if name not in registered:
            errors.append(f"Setting for unknown role {name}")
    for role in config.roles:
        if role.name not in registered:
            errors.append(f"No worker registered for configured role {role.name}")
        if role.weight is not None:
            errors.extend(validate_weights({role.name: role.weight}))
        if role.timeout_seconds is not None and not _positive(role.timeout_seconds):
            errors.append(f"Timeout for role {role.name} must be positive")
        if role.mode is not None and role.mode not in {m.value for m in ExecutionMode}:
            errors.append(f"Unknown execution mode for role {role.name}: {role.mode}")

    for name, timeout in config.role_timeouts.items():
        if not _positive(timeout):
            errors.append(f"Timeout for role {name} must be positive, got {timeout!r}")
    if not _positive(config.scheduler.default_timeout_seconds):
        errors.append("scheduler.default_timeout_seconds must be positive")
    if config.scheduler.max_parallel_workers < 1:
        errors.append("scheduler.max_parallel_workers must be at least 1")
    if not isinstance(config.sessions.max_retained, int) or config.sessions.max_retained < 1:
        errors.append("sessions.max_retained must be a positive integer")

    if not 0.0 <= config.quality_gate.min_confidence <= 1.0:
        errors.append(
            f"quality_gate.min_confidence must be between 0 and 1, "
            f"got {config.quality_gate.min_confidence}"
        )
    if not _positive(config.quality_gate.density_ceiling):
        errors.append("quality_gate.density_ceiling must be positive")
    if not 0.0 <= config.quality_gate.density_weight <= 1.0:
        errors.append("quality_gate.density_weight must be between 0 and 1")
    if not 0.0 <= config.aggregator.similarity_threshold <= 1.0:
        errors.append("aggregator.similarity_threshold must be between 0 and 1")

    if not config.routing.default_roles:
        errors.append("routing.default_roles must not be empty")
    for kind, names in config.routing.table.items():
        if ArtifactKind.parse(kind) is ArtifactKind.UNKNOWN and kind != ArtifactKind.UNKNOWN.value:
            errors.append(f"Unknown artifact kind in routing table: {kind}")
        for name in names:
            if name not in known_roles:
                errors.append(f"Routing for {kind} references unknown role {name}")
    for name in config.routing.default_roles:
        if name not in known_roles:
            errors.append(f"routing.default_roles references unknown role {name}")

    for name, deps in known_roles.items():
        for dep in deps:
            if dep not in known_roles:
                errors.append(f"Role {name} depends on unknown role {dep}")
    cycle = _find_cycle(known_roles)
    if cycle:
        errors.append(f"Dependency cycle between roles: {' -> '.join(cycle)}")

    return errors


def _positive(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def _find_cycle(graph: dict[str, list[str]]) -> list[str] | None:
    """Return one dependency cycle as a path, or None."""
    visiting: list[str] = []
    done: set[str] = set()

    def visit(node: str) -> list[str] | None:
        if node in visiting:
            return visiting[visiting.index(node):] + [node]
        if node in done or node not in graph:
            return None
        visiting.append(node)
        for dep in graph[node]:
            cycle = visit(dep)
            if cycle:
                return cycle
        visiting.pop()
        done.add(node)
        return None

    for node in graph:
        cycle = visit(node)
        if cycle:
            return cycle
    return None
