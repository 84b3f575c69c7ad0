"""
Model resolver: maps logical model ids to concrete provider routes.
"""

from .config import ConfigError, ConfigManager
from .models import ModelRoute


class ModelResolver:
    """
    Exact-match lookup of a logical model id in the route table.

    Unknown ids resolve to the configured default route, never to an
    undefined provider.
    """

    def __init__(self, config_manager: ConfigManager):
        """
        Initialize ModelResolver.

        Args:
            config_manager: ConfigManager holding the route table

        Raises:
            ConfigError: If the default route is missing from the table
        """
        self._config_manager = config_manager
        config = config_manager.config
        if config.default_route not in config.routes:
            raise ConfigError(f"default_route '{config.default_route}' is not a configured route")

    @property
    def default_route(self) -> ModelRoute:
        config = self._config_manager.config
        return config.routes[config.default_route]

    def resolve(self, logical_model_id: str) -> ModelRoute:
        """
        Resolve a logical model id.

        Args:
            logical_model_id: Id chosen by the caller

        Returns:
            The matching ModelRoute, or the default route when unknown
        """
        return self._config_manager.config.routes.get(logical_model_id, self.default_route)

    def is_known(self, logical_model_id: str) -> bool:
        return logical_model_id in self._config_manager.config.routes

    def list_models(self, provider: str | None = None) -> list[str]:
        """List logical model ids, optionally only those served by one provider."""
        routes = self._config_manager.config.routes
        return [
            logical_id for logical_id, route in routes.items()
            if provider is None or route.provider == provider
        ]
