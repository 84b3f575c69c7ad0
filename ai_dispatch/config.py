"""
Configuration management for the AI dispatch system.
Supports YAML configuration loading with environment variable substitution.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .models import GENERATION_CATEGORIES, FallbackCandidate, ModelRoute


class ConfigError(Exception):
    """Configuration related errors"""
    pass


SUPPORTED_PROVIDERS: tuple[str, ...] = (
    "openai",
    "claude",
    "gemini",
    "groq",
    "deepseek",
    "kimi",
    "openrouter",
)

SPEED_TIERS: tuple[str, ...] = ("fast", "medium", "slow")

# logical id -> (provider, provider model, optional fallback logical id)
DEFAULT_ROUTES: dict[str, tuple[str, str, str | None]] = {
    "gpt-4": ("openai", "gpt-4o", "gpt-3.5-turbo"),
    "gpt-4o": ("openai", "gpt-4o", "gpt-3.5-turbo"),
    "gpt-4-turbo": ("openai", "gpt-4-turbo-preview", "gpt-3.5-turbo"),
    "gpt-3.5-turbo": ("openai", "gpt-3.5-turbo", None),
    "claude-3-opus": ("claude", "claude-3-opus-20240229", "claude-3-haiku"),
    "claude-3-sonnet": ("claude", "claude-3-5-sonnet-20241022", "claude-3-haiku"),
    "claude-3-5-sonnet-20241022": ("claude", "claude-3-5-sonnet-20241022", "claude-3-haiku"),
    "claude-3-haiku": ("claude", "claude-3-haiku-20240307", None),
    "gemini-pro": ("gemini", "gemini-1.5-pro", None),
    "gemini-flash": ("gemini", "gemini-1.5-flash-latest", None),
    "deepseek-chat": ("deepseek", "deepseek-chat", None),
    "deepseek-coder": ("deepseek", "deepseek-coder", None),
    "grok-2": ("groq", "llama-3.3-70b-versatile", None),
    "moonshot-v1": ("kimi", "moonshot-v1-8k", None),
    "kimi": ("kimi", "moonshot-v1-8k", None),
}

DEFAULT_ROUTE_ID = "grok-2"

# Ordered from lowest latency / highest reliability to slowest
DEFAULT_FALLBACK_CHAIN: tuple[FallbackCandidate, ...] = (
    FallbackCandidate("gemini", "gemini-1.5-flash-latest", "Gemini Flash", "fast"),
    FallbackCandidate("groq", "llama-3.3-70b-versatile", "Groq Llama 3.3", "fast"),
    FallbackCandidate("openai", "gpt-4o-mini", "GPT-4o mini", "medium"),
    FallbackCandidate("deepseek", "deepseek-chat", "DeepSeek Chat", "medium"),
    FallbackCandidate("claude", "claude-3-haiku-20240307", "Claude 3 Haiku", "medium"),
    FallbackCandidate("kimi", "moonshot-v1-8k", "Kimi", "slow"),
)

# Tokens debited per generation
DEFAULT_MODEL_COSTS: dict[str, int] = {
    "grok-2": 300,
    "gemini-flash": 200,
    "gemini-pro": 1200,
    "gpt-3.5-turbo": 500,
    "gpt-4": 2500,
    "gpt-4o": 2500,
    "gpt-4-turbo": 4000,
    "claude-3-haiku": 700,
    "claude-3-sonnet": 3000,
    "claude-3-5-sonnet-20241022": 3000,
    "claude-3-opus": 15000,
    "deepseek-chat": 400,
    "deepseek-coder": 400,
    "moonshot-v1": 300,
    "kimi": 300,
}

DEFAULT_COST_PER_MESSAGE = 1000

DEFAULT_FREE_LIMITS: dict[str, int] = {
    "image": 5,
    "video": 1,
    "song": 1,
    "tts": 2,
    "ppt": 1,
    "chat": 50,
}

# Keys copied from templates are never sent
PLACEHOLDER_KEY_MARKERS = ("your-", "YOUR_")
MIN_API_KEY_LENGTH = 11


def is_usable_api_key(api_key: Any) -> bool:
    """False for missing, empty, placeholder or too-short keys."""
    if not api_key:
        return False
    key = str(api_key).strip()
    if len(key) < MIN_API_KEY_LENGTH:
        return False
    return not any(marker in key for marker in PLACEHOLDER_KEY_MARKERS)


@dataclass
class ProviderConfig:
    """Configuration for a single AI provider"""
    api_key: str
    base_url: str | None = None
    timeout: float = 60.0
    proxy_url: str | None = None


@dataclass
class PricingConfig:
    """Token cost per message for each logical model"""
    default_cost: int = DEFAULT_COST_PER_MESSAGE
    models: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_MODEL_COSTS))


@dataclass
class QuotaConfig:
    """Monthly free-tier generation limits per category"""
    free_limits: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_FREE_LIMITS))


@dataclass
class DispatchConfig:
    """Latency bounds for the fallback chain. None means unbounded."""
    attempt_timeout: float | None = None
    deadline: float | None = None


@dataclass
class StoreConfig:
    """Remote quota/balance store connection settings"""
    url: str | None = None
    api_key: str | None = None
    timeout: float = 10.0


@dataclass
class ProxyConfig:
    """Proxy configuration for outbound HTTP requests"""
    enable: bool = False
    host: str | None = None
    port: int | None = None


@dataclass
class HttpClientConfig:
    """HTTP client connection pool configuration"""
    max_connections: int = 100
    max_keepalive_connections: int = 20
    timeout: float = 60.0


def _default_routes() -> dict[str, ModelRoute]:
    return {
        logical_id: ModelRoute(logical_id, provider, model, fallback)
        for logical_id, (provider, model, fallback) in DEFAULT_ROUTES.items()
    }


@dataclass
class Config:
    """Complete system configuration"""
    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    routes: dict[str, ModelRoute] = field(default_factory=_default_routes)
    default_route: str = DEFAULT_ROUTE_ID
    fallback_chain: list[FallbackCandidate] = field(default_factory=lambda: list(DEFAULT_FALLBACK_CHAIN))
    category_fallback_chains: dict[str, list[FallbackCandidate]] = field(default_factory=dict)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    quota: QuotaConfig = field(default_factory=QuotaConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    http_client: HttpClientConfig = field(default_factory=HttpClientConfig)


def find_env_file(config_path: Path) -> Path | None:
    """Nearest .env in the config file's directory or one of its parents."""
    start = config_path if config_path.is_dir() else config_path.parent
    for directory in (start, *start.parents):
        candidate = directory / ".env"
        if candidate.is_file():
            return candidate
    return None


def load_env_file(env_path: Path | None) -> None:
    """Export KEY=VALUE lines; variables that already hold a value win."""
    if env_path is None:
        return
    try:
        content = env_path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"Warning: Failed to read {env_path}: {e}")
        return

    for line in content.splitlines():
        name, sep, value = line.strip().partition("=")
        name = name.strip()
        if not sep or not name or name.startswith("#"):
            continue
        if not os.environ.get(name):
            os.environ[name] = value.strip().strip("'\"")


class ConfigManager:
    """
    Configuration manager for the AI dispatch system.

    Supports:
    - Loading configuration from YAML files (or an already parsed mapping)
    - Environment variable substitution (${VAR_NAME} syntax)
    - Built-in defaults for routes, fallback chain, pricing and quotas
    - One-time validation at startup
    """

    ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')

    def __init__(self, config_path: str | Path | None = None):
        """
        Initialize ConfigManager.

        Args:
            config_path: Path to YAML configuration file. If None, uses default config.yaml
        """
        self._config: Config | None = None
        self._config_path = Path(config_path) if config_path else Path("config.yaml")

    @classmethod
    def from_dict(cls, raw: dict) -> "ConfigManager":
        """Build a manager from an already parsed configuration mapping."""
        manager = cls()
        manager._config = manager.load_dict(raw)
        return manager

    @property
    def config(self) -> Config:
        """Get the loaded configuration, loading it if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    def _resolve_path(self, config_path: str | Path | None) -> Path:
        return Path(config_path) if config_path else self._config_path

    def load(self, config_path: str | Path | None = None) -> Config:
        """
        Read and parse the YAML file, exporting a nearby .env first.

        Args:
            config_path: Optional path to override the default config path

        Returns:
            Loaded Config object

        Raises:
            ConfigError: If the file is missing, unreadable, empty or invalid
        """
        path = self._resolve_path(config_path)
        load_env_file(find_env_file(path))

        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ConfigError(f"Configuration file not found: {path}")
        except OSError as e:
            raise ConfigError(f"Cannot read configuration file {path}: {e}")

        try:
            raw = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")
        if raw is None:
            raise ConfigError(f"Configuration file is empty: {path}")

        self._config = self.load_dict(raw)
        return self._config

    def load_dict(self, raw: Any) -> Config:
        """Parse a raw configuration mapping into a Config object."""
        if not isinstance(raw, dict):
            raise ConfigError("Configuration must be a YAML mapping")
        return self._parse_config(raw)

    def get_env_vars_used(self, config_path: str | Path | None = None) -> set[str]:
        """Names of every ${VAR} referenced anywhere in the config file."""
        path = self._resolve_path(config_path)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ConfigError(f"Configuration file not found: {path}")
        return set(self.ENV_VAR_PATTERN.findall(text))

    def _expand_env(self, value: Any, skip_missing: bool = False) -> Any:
        """
        Expand ${VAR} references in every string of a parsed config tree.

        A missing variable raises ConfigError unless skip_missing is set; then
        it expands to "", and a string made only of missing references
        becomes None.
        """
        if isinstance(value, dict):
            return {key: self._expand_env(item, skip_missing) for key, item in value.items()}
        if isinstance(value, list):
            return [self._expand_env(item, skip_missing) for item in value]
        if not isinstance(value, str):
            return value

        missing: list[str] = []

        def lookup(match: re.Match) -> str:
            name = match.group(1)
            if name in os.environ:
                return os.environ[name]
            if not skip_missing:
                raise ConfigError(f"Environment variable not set: {name}")
            missing.append(name)
            return ""

        expanded = self.ENV_VAR_PATTERN.sub(lookup, value)
        if missing and not expanded.strip():
            return None
        return expanded

    @staticmethod
    def _section(raw: dict, name: str) -> dict:
        section = raw.get(name)
        if section is None:
            return {}
        if not isinstance(section, dict):
            raise ConfigError(f"'{name}' section must be a mapping")
        return section

    @staticmethod
    def _optional_float(value: Any, name: str) -> float | None:
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"'{name}' must be a number")

    @staticmethod
    def _int(value: Any, name: str) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"'{name}' must be an integer")

    def _parse_candidates(self, items: Any, name: str) -> list[FallbackCandidate]:
        if not isinstance(items, list):
            raise ConfigError(f"'{name}' must be a list")
        candidates = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                raise ConfigError(f"'{name}[{index}]' must be a mapping")
            provider = item.get('provider')
            model = item.get('model')
            if not provider or not model:
                raise ConfigError(f"'{name}[{index}]' requires 'provider' and 'model'")
            candidates.append(FallbackCandidate(
                provider=str(provider),
                provider_model=str(model),
                display_name=str(item.get('name') or provider),
                speed_tier=item.get('speed', 'medium'),
            ))
        return candidates

    def _parse_config(self, raw: dict) -> Config:
        """Parse raw configuration dictionary into Config object."""
        config = Config()

        # Substitute env vars everywhere except providers, which skip missing keys
        providers_raw = raw.get('providers')
        raw = self._expand_env({k: v for k, v in raw.items() if k != 'providers'})

        if providers_raw is not None:
            if not isinstance(providers_raw, dict):
                raise ConfigError("'providers' section must be a mapping")

            for provider_name, provider_data in providers_raw.items():
                if not isinstance(provider_data, dict):
                    raise ConfigError(f"Provider '{provider_name}' configuration must be a mapping")

                provider_data = self._expand_env(provider_data, skip_missing=True)

                # Skip provider if api_key is missing, empty or a placeholder
                api_key = provider_data.get('api_key')
                if not is_usable_api_key(api_key):
                    continue

                timeout = self._optional_float(provider_data.get('timeout'), f"providers.{provider_name}.timeout")
                config.providers[provider_name] = ProviderConfig(
                    api_key=str(api_key),
                    base_url=provider_data.get('base_url'),
                    timeout=timeout if timeout is not None else 60.0,
                )

        routes_raw = self._section(raw, 'routes')
        for logical_id, route_data in routes_raw.items():
            if not isinstance(route_data, dict):
                raise ConfigError(f"Route '{logical_id}' must be a mapping")
            provider = route_data.get('provider')
            model = route_data.get('model')
            if not provider or not model:
                raise ConfigError(f"Route '{logical_id}' requires 'provider' and 'model'")
            config.routes[logical_id] = ModelRoute(
                logical_model_id=logical_id,
                provider=str(provider),
                provider_model=str(model),
                fallback_model=route_data.get('fallback'),
            )

        if 'default_route' in raw:
            config.default_route = str(raw['default_route'])

        fallback_raw = self._section(raw, 'fallback')
        if 'default' in fallback_raw:
            config.fallback_chain = self._parse_candidates(fallback_raw['default'], 'fallback.default')
        categories_raw = fallback_raw.get('categories') or {}
        if not isinstance(categories_raw, dict):
            raise ConfigError("'fallback.categories' must be a mapping")
        for category, items in categories_raw.items():
            config.category_fallback_chains[category] = self._parse_candidates(
                items, f"fallback.categories.{category}"
            )

        pricing_raw = self._section(raw, 'pricing')
        if 'default_cost' in pricing_raw:
            config.pricing.default_cost = self._int(pricing_raw['default_cost'], 'pricing.default_cost')
        models_raw = pricing_raw.get('models') or {}
        if not isinstance(models_raw, dict):
            raise ConfigError("'pricing.models' must be a mapping")
        for model_id, cost in models_raw.items():
            config.pricing.models[model_id] = self._int(cost, f"pricing.models.{model_id}")

        quota_raw = self._section(raw, 'quota')
        limits_raw = quota_raw.get('free_limits') or {}
        if not isinstance(limits_raw, dict):
            raise ConfigError("'quota.free_limits' must be a mapping")
        for category, limit in limits_raw.items():
            config.quota.free_limits[category] = self._int(limit, f"quota.free_limits.{category}")

        dispatch_raw = self._section(raw, 'dispatch')
        config.dispatch = DispatchConfig(
            attempt_timeout=self._optional_float(dispatch_raw.get('attempt_timeout'), 'dispatch.attempt_timeout'),
            deadline=self._optional_float(dispatch_raw.get('deadline'), 'dispatch.deadline'),
        )

        store_raw = self._section(raw, 'store')
        store_timeout = self._optional_float(store_raw.get('timeout'), 'store.timeout')
        config.store = StoreConfig(
            url=store_raw.get('url'),
            api_key=store_raw.get('api_key'),
            timeout=store_timeout if store_timeout is not None else 10.0,
        )

        proxy_raw = self._section(raw, 'proxy')
        if proxy_raw:
            port = proxy_raw.get('port')
            config.proxy = ProxyConfig(
                enable=bool(proxy_raw.get('enable', False)),
                host=proxy_raw.get('host'),
                port=self._int(port, 'proxy.port') if port is not None else None,
            )

        http_client_raw = self._section(raw, 'http_client')
        if http_client_raw:
            config.http_client = HttpClientConfig(
                max_connections=self._int(http_client_raw.get('max_connections', 100), 'http_client.max_connections'),
                max_keepalive_connections=self._int(
                    http_client_raw.get('max_keepalive_connections', 20), 'http_client.max_keepalive_connections'
                ),
                timeout=float(http_client_raw.get('timeout', 60.0)),
            )

        proxy_url = self._proxy_url(config.proxy)
        if proxy_url:
            for provider_config in config.providers.values():
                provider_config.proxy_url = proxy_url

        return config

    @staticmethod
    def _proxy_url(proxy: ProxyConfig) -> str | None:
        if not proxy.enable or not proxy.host:
            return None
        host = proxy.host.rstrip("/")
        if proxy.port:
            return f"{host}:{proxy.port}"
        return host

    def validate(self) -> None:
        """
        Validate the loaded configuration once at startup.

        Raises:
            ConfigError: Listing every problem found
        """
        config = self.config
        errors = []

        default_route = config.routes.get(config.default_route)
        if default_route is None:
            errors.append(f"default_route '{config.default_route}' is not a configured route")
        elif default_route.provider not in SUPPORTED_PROVIDERS:
            errors.append(f"default_route '{config.default_route}' uses unsupported provider '{default_route.provider}'")

        for logical_id, route in config.routes.items():
            if route.provider not in SUPPORTED_PROVIDERS:
                errors.append(f"route '{logical_id}' uses unsupported provider '{route.provider}'")

        chains = {"fallback.default": config.fallback_chain}
        for category, chain in config.category_fallback_chains.items():
            if category not in GENERATION_CATEGORIES:
                errors.append(f"fallback.categories has unknown category '{category}'")
            chains[f"fallback.categories.{category}"] = chain
        for name, chain in chains.items():
            for candidate in chain:
                if candidate.provider not in SUPPORTED_PROVIDERS:
                    errors.append(f"{name} uses unsupported provider '{candidate.provider}'")
                if candidate.speed_tier not in SPEED_TIERS:
                    errors.append(f"{name} candidate '{candidate.display_name}' has invalid speed '{candidate.speed_tier}'")

        if config.pricing.default_cost < 0:
            errors.append("pricing.default_cost cannot be negative")
        for model_id, cost in config.pricing.models.items():
            if cost < 0:
                errors.append(f"pricing.models.{model_id} cannot be negative")

        for category, limit in config.quota.free_limits.items():
            if limit < 0:
                errors.append(f"quota.free_limits.{category} cannot be negative")

        for name in ("attempt_timeout", "deadline"):
            value = getattr(config.dispatch, name)
            if value is not None and value <= 0:
                errors.append(f"dispatch.{name} must be positive")

        if errors:
            raise ConfigError("Invalid configuration: " + "; ".join(errors))

    def get_provider_config(self, provider: str) -> ProviderConfig:
        """
        Get configuration for a specific provider.

        Raises:
            ConfigError: If provider is not configured
        """
        if provider not in self.config.providers:
            raise ConfigError(f"Provider not configured: {provider}")
        return self.config.providers[provider]

    def get_available_providers(self) -> list[str]:
        """List provider names that have valid API keys configured."""
        return list(self.config.providers.keys())

    def get_fallback_chain(self, category: str | None = None) -> list[FallbackCandidate]:
        """
        Get the ordered fallback chain for a generation category.

        Categories without an override share the default chain.
        """
        if category and category in self.config.category_fallback_chains:
            return list(self.config.category_fallback_chains[category])
        return list(self.config.fallback_chain)
