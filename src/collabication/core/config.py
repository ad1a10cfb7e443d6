"""
Layered application configuration with Pydantic validation.

The resolved ``AppConfig`` is produced once at startup from three ranked
sources: the compiled defaults, the preset for the active environment and the
runtime overrides read from ``COLLABICATION_*`` environment variables through
Dynaconf. Later sources win field by field at every depth; anything a source
leaves ``UNSET`` keeps the lower-ranked value.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar, Optional, get_origin

from dynaconf import Dynaconf
from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model, field_validator
from pydantic.alias_generators import to_camel

from .merge import UNSET, deep_merge, set_path, strip_unset

logger = logging.getLogger(__name__)

ENVVAR_PREFIX = "COLLABICATION"
ENVIRONMENT_VARIABLE = f"{ENVVAR_PREFIX}_ENV"
DEFAULT_ENVIRONMENT = "development"
LOG_LEVELS = ("debug", "info", "warn", "warning", "error", "critical")


class ConfigError(RuntimeError):
    """Raised when a configuration source does not match the default schema."""

    def __init__(self, message: str, paths: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.paths = paths


class _ConfigSection(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ApiConfig(_ConfigSection):
    """Backend HTTP endpoint settings."""

    base_url: str = Field(default="/api", min_length=1)
    timeout: int = Field(default=30000, gt=0, description="Request timeout in milliseconds.")


class CollaborationConfig(_ConfigSection):
    """Real-time collaboration server connection."""

    server_url: str = Field(default="wss://collab.example.com", min_length=1)
    reconnect_interval: int = Field(default=2000, gt=0)
    max_reconnect_attempts: int = Field(default=10, ge=0)


class GithubConfig(_ConfigSection):
    auth_redirect_url: str = Field(default="https://app.example.com/auth/github/callback")
    scope: str = Field(default="repo user")


class StorageKeysConfig(_ConfigSection):
    """Names of the durable storage keys used by the desktop client."""

    auth_token: str = Field(default="collabication-auth-token")
    github_token: str = Field(default="collabication-github-token")
    user_settings: str = Field(default="collabication-user-settings")
    editor_state: str = Field(default="collabication-editor-state")
    recent_files: str = Field(default="collabication-recent-files")


class FeatureFlags(_ConfigSection):
    offline_mode: bool = True
    real_time_collaboration: bool = True
    agent_assistance: bool = True
    file_history: bool = True
    auto_save: bool = True


class AppInfoConfig(_ConfigSection):
    """Application identity and document handling limits."""

    DEFAULT_DOCUMENT_TYPES: ClassVar[tuple[str, ...]] = (
        "md",
        "txt",
        "js",
        "ts",
        "jsx",
        "tsx",
        "py",
        "json",
        "html",
        "css",
    )

    name: str = Field(default="Collabication")
    version: str = Field(default="0.1.0")
    document_types: tuple[str, ...] = Field(default=DEFAULT_DOCUMENT_TYPES, min_length=1)
    max_file_size: int = Field(default=10 * 1024 * 1024, gt=0, description="Bytes.")
    auto_save_interval: int = Field(default=5000, gt=0)


class LoggingConfig(_ConfigSection):
    """Client log routing."""

    level: str = Field(default="error")
    enable_console: bool = False
    enable_remote: bool = False
    remote_endpoint: str = Field(default="/api/logs")

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        normalised = value.strip().lower()
        if normalised not in LOG_LEVELS:
            raise ValueError(f"level must be one of {', '.join(LOG_LEVELS)}")
        return normalised

    @property
    def python_level(self) -> int:
        """Equivalent ``logging`` module level."""
        if self.level == "warn":
            return logging.WARNING
        return logging.getLevelName(self.level.upper())


class ContentSecurityPolicy(_ConfigSection):
    default_src: tuple[str, ...] = ("'self'",)
    script_src: tuple[str, ...] = ("'self'", "'unsafe-inline'")
    style_src: tuple[str, ...] = ("'self'", "'unsafe-inline'")
    img_src: tuple[str, ...] = ("'self'", "data:")
    connect_src: tuple[str, ...] = ("'self'", "wss://*.example.com")


class SecurityConfig(_ConfigSection):
    allowed_origins: tuple[str, ...] = Field(default=("https://app.example.com",), min_length=1)
    content_security_policy: ContentSecurityPolicy = Field(default_factory=ContentSecurityPolicy)


class PerformanceConfig(_ConfigSection):
    """UI throttling knobs (milliseconds and pixels)."""

    debounce_time: int = Field(default=300, ge=0)
    throttle_time: int = Field(default=100, ge=0)
    lazy_load_threshold: int = Field(default=1000, ge=0)
    max_concurrent_downloads: int = Field(default=5, ge=1)


class AppConfig(_ConfigSection):
    """
    Fully resolved, immutable application configuration.

    Every leaf is required to hold a concrete value; the model is only ever
    built from the merged source tree, never from a partial one.
    """

    api: ApiConfig = Field(default_factory=ApiConfig)
    collaboration: CollaborationConfig = Field(default_factory=CollaborationConfig)
    github: GithubConfig = Field(default_factory=GithubConfig)
    storage: StorageKeysConfig = Field(default_factory=StorageKeysConfig)
    features: FeatureFlags = Field(default_factory=FeatureFlags)
    app: AppInfoConfig = Field(default_factory=AppInfoConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    performance: PerformanceConfig = Field(default_factory=PerformanceConfig)


def _partial_model(model: type[BaseModel]) -> type[BaseModel]:
    """Mirror ``model`` with every field, at every depth, optional."""
    fields: dict[str, Any] = {}
    for name, info in model.model_fields.items():
        annotation = info.annotation
        if (
            get_origin(annotation) is None
            and isinstance(annotation, type)
            and issubclass(annotation, BaseModel)
        ):
            annotation = _partial_model(annotation)
        fields[name] = (Optional[annotation], Field(default=None, alias=info.alias))  # noqa: UP007
    return create_model(
        f"Partial{model.__name__}",
        __config__=ConfigDict(extra="forbid", populate_by_name=True),
        **fields,
    )


PartialAppConfig = _partial_model(AppConfig)


def normalise_environment(name: str | None) -> str:
    return (name or "").strip().lower()


def current_environment() -> str:
    """Active environment name (``COLLABICATION_ENV``, default ``development``)."""
    return normalise_environment(os.environ.get(ENVIRONMENT_VARIABLE)) or DEFAULT_ENVIRONMENT


def default_config(environment: str = DEFAULT_ENVIRONMENT) -> AppConfig:
    """
    Canonical defaults for ``environment``.

    Development builds point at local services and log verbosely to the
    console; every other environment targets the deployed endpoints.
    """

    development = normalise_environment(environment) == "development"
    production = normalise_environment(environment) == "production"
    if not development:
        return AppConfig(logging=LoggingConfig(enable_remote=production))

    return AppConfig(
        api=ApiConfig(base_url="http://localhost:4000"),
        collaboration=CollaborationConfig(server_url="ws://localhost:1234"),
        github=GithubConfig(auth_redirect_url="http://localhost:3000/auth/github/callback"),
        logging=LoggingConfig(level="debug", enable_console=True),
        security=SecurityConfig(
            allowed_origins=("http://localhost:3000",),
            content_security_policy=ContentSecurityPolicy(
                connect_src=("'self'", "ws://localhost:1234")
            ),
        ),
    )


ENVIRONMENT_PRESETS: dict[str, dict[str, Any]] = {
    "development": {
        "api": {"base_url": "http://localhost:4000"},
        "collaboration": {"server_url": "ws://localhost:1234"},
        "logging": {"level": "debug"},
    },
    "production": {
        "api": {"base_url": "/api"},
        "logging": {"level": "error"},
    },
    "test": {
        "api": {"base_url": "http://localhost:4000"},
        "features": {
            "offline_mode": False,
            "real_time_collaboration": False,
            "agent_assistance": False,
        },
        "logging": {"level": "error", "enable_console": False, "enable_remote": False},
    },
}


@dataclass(frozen=True)
class EnvVariable:
    """One recognised environment variable and the config leaf it feeds."""

    suffix: str
    path: tuple[str, ...]
    raw_text: bool = False

    @property
    def name(self) -> str:
        return f"{ENVVAR_PREFIX}_{self.suffix}"


ENV_VARIABLES: tuple[EnvVariable, ...] = (
    EnvVariable("API_URL", ("api", "base_url"), raw_text=True),
    EnvVariable("API_TIMEOUT", ("api", "timeout")),
    EnvVariable("COLLAB_SERVER_URL", ("collaboration", "server_url"), raw_text=True),
    EnvVariable("COLLAB_RECONNECT_INTERVAL", ("collaboration", "reconnect_interval")),
    EnvVariable("GITHUB_CALLBACK_URL", ("github", "auth_redirect_url"), raw_text=True),
    EnvVariable("VERSION", ("app", "version"), raw_text=True),
    EnvVariable("LOG_LEVEL", ("logging", "level"), raw_text=True),
)


def read_env_overrides(settings: Dynaconf | None = None) -> dict[str, Any]:
    """
    Build the raw runtime override tree from ``COLLABICATION_*`` variables.

    Every recognised leaf is present in the result; variables that are unset
    or empty map to ``UNSET``. Dynaconf parses typed values (``"5000"`` becomes
    ``5000``); string leaves keep the variable's text verbatim.
    """

    settings = settings or Dynaconf(
        envvar_prefix=ENVVAR_PREFIX,
        load_dotenv=True,
        environments=False,
    )
    overrides: dict[str, Any] = {}
    for variable in ENV_VARIABLES:
        value = settings.get(variable.suffix, UNSET)
        if value is not UNSET and variable.raw_text and not isinstance(value, str):
            value = os.environ.get(variable.name, str(value))
        if value is None or value == "":
            value = UNSET
        set_path(overrides, variable.path, value)
    defined = sorted(v.name for v in ENV_VARIABLES if _defined(overrides, v.path))
    if defined:
        logger.debug("Environment overrides present: %s", ", ".join(defined))
    return overrides


def _defined(tree: Mapping[str, Any], path: tuple[str, ...]) -> bool:
    node: Any = tree
    for key in path:
        node = node.get(key, UNSET) if isinstance(node, Mapping) else UNSET
    return node is not UNSET


def load_presets_file(path: str | Path) -> dict[str, dict[str, Any]]:
    """
    Read environment presets from a YAML/TOML/JSON file.

    Each top-level key names an environment; its body is a partial config.
    """

    preset_path = Path(path)
    if not preset_path.exists():
        raise ConfigError(f"Presets file {preset_path} does not exist.")
    settings = Dynaconf(
        settings_files=[str(preset_path)],
        envvar_prefix=f"{ENVVAR_PREFIX}_PRESETS",
        environments=False,
    )
    presets: dict[str, dict[str, Any]] = {}
    for key, value in settings.as_dict().items():
        if not isinstance(value, dict):
            raise ConfigError(
                f"Preset {key.lower()!r} in {preset_path} must be a mapping.", (key.lower(),)
            )
        presets[normalise_environment(key)] = value
    logger.debug("Loaded presets %s from %s", sorted(presets), preset_path)
    return presets


def _describe_errors(label: str, exc: ValidationError) -> ConfigError:
    paths: list[str] = []
    details: list[str] = []
    for error in exc.errors():
        path = ".".join(str(part) for part in error["loc"])
        paths.append(path)
        details.append(f"{path} ({error['msg']})")
    return ConfigError(f"Invalid configuration in {label}: {'; '.join(details)}", tuple(paths))


def _partial_tree(source: Mapping[str, Any] | BaseModel | None, label: str) -> dict[str, Any]:
    """Validate a source against the partial schema and return only its set fields."""
    if source is None:
        return {}
    if isinstance(source, BaseModel):
        source = source.model_dump(exclude_unset=not isinstance(source, AppConfig))
    try:
        partial = PartialAppConfig.model_validate(source)
    except ValidationError as exc:
        raise _describe_errors(label, exc) from exc
    return partial.model_dump(exclude_unset=True)


def resolve_config(
    defaults: AppConfig,
    environment_name: str,
    presets: Mapping[str, Mapping[str, Any] | BaseModel],
    raw_env_overrides: Mapping[str, Any] | BaseModel | None,
) -> AppConfig:
    """
    Merge ``defaults``, the preset for ``environment_name`` and the runtime overrides.

    Preset names match case-insensitively; unknown environment names select
    no preset. Overrides are stripped of ``UNSET`` leaves before merging.
    Raises ``ConfigError`` listing the offending paths when a source disagrees
    with the default schema.
    """

    environment = normalise_environment(environment_name)
    by_name = {normalise_environment(name): body for name, body in presets.items()}
    preset_source = by_name.get(environment)
    if preset_source is None:
        logger.debug("No preset registered for environment %r", environment)
    preset = _partial_tree(preset_source, f"preset {environment!r}")

    if isinstance(raw_env_overrides, Mapping):
        raw_env_overrides = strip_unset(raw_env_overrides)
    overrides = _partial_tree(raw_env_overrides, "environment overrides")

    merged = deep_merge(deep_merge(defaults.model_dump(), preset), overrides)
    try:
        return AppConfig.model_validate(merged)
    except ValidationError as exc:
        raise _describe_errors("resolved configuration", exc) from exc


class ConfigResolver:
    """
    Startup facade that gathers the configuration sources and resolves them once.

    The resolved config is read-only afterwards; consumers receive this
    object (or the ``AppConfig`` it exposes) explicitly.
    """

    def __init__(
        self,
        *,
        environment: str | None = None,
        defaults: AppConfig | None = None,
        presets: Mapping[str, Mapping[str, Any]] | None = None,
        presets_file: str | Path | None = None,
        env_overrides: Mapping[str, Any] | None = None,
    ) -> None:
        self._environment = normalise_environment(environment) or current_environment()
        self._defaults = defaults or default_config(self._environment)
        merged_presets: dict[str, Any] = dict(ENVIRONMENT_PRESETS if presets is None else presets)
        if presets_file is not None:
            for name, body in load_presets_file(presets_file).items():
                base = _partial_tree(merged_presets.get(name), f"preset {name!r}")
                merged_presets[name] = deep_merge(base, _partial_tree(body, f"preset {name!r}"))
        self._presets = merged_presets
        raw_overrides = read_env_overrides() if env_overrides is None else env_overrides
        self._config = resolve_config(
            self._defaults, self._environment, self._presets, raw_overrides
        )
        logger.info("Resolved configuration for environment %s", self._environment)

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def environment(self) -> str:
        return self._environment

    @property
    def is_development(self) -> bool:
        return self._environment == "development"

    @property
    def is_production(self) -> bool:
        return self._environment == "production"

    @property
    def is_test(self) -> bool:
        return self._environment == "test"

    @property
    def api(self) -> ApiConfig:
        return self._config.api

    @property
    def collaboration(self) -> CollaborationConfig:
        return self._config.collaboration

    @property
    def github(self) -> GithubConfig:
        return self._config.github

    @property
    def storage(self) -> StorageKeysConfig:
        return self._config.storage

    @property
    def features(self) -> FeatureFlags:
        return self._config.features

    @property
    def app(self) -> AppInfoConfig:
        return self._config.app

    @property
    def logging(self) -> LoggingConfig:
        return self._config.logging

    @property
    def security(self) -> SecurityConfig:
        return self._config.security

    @property
    def performance(self) -> PerformanceConfig:
        return self._config.performance


__all__ = [
    "ENVIRONMENT_PRESETS",
    "ENV_VARIABLES",
    "ApiConfig",
    "AppConfig",
    "AppInfoConfig",
    "CollaborationConfig",
    "ConfigError",
    "ConfigResolver",
    "ContentSecurityPolicy",
    "EnvVariable",
    "FeatureFlags",
    "GithubConfig",
    "LoggingConfig",
    "PartialAppConfig",
    "PerformanceConfig",
    "SecurityConfig",
    "StorageKeysConfig",
    "current_environment",
    "default_config",
    "load_presets_file",
    "read_env_overrides",
    "resolve_config",
]
