"""
Pricing table: token cost of one generation per logical model.
"""

import math

from .config import ConfigManager
from .models import ModelCost


class PricingTable:
    """
    Static per-message token prices.

    Unrecognized model ids are charged the configured default cost.
    """

    CHARS_PER_TOKEN = 4

    def __init__(self, config_manager: ConfigManager):
        self._config_manager = config_manager

    def get_cost(self, model_id: str) -> ModelCost:
        """
        Get the token cost for a logical model.

        Args:
            model_id: Logical model id

        Returns:
            ModelCost, flagged is_default when the id has no explicit price
        """
        pricing = self._config_manager.config.pricing
        if model_id in pricing.models:
            return ModelCost(model_id=model_id, cost_per_message=pricing.models[model_id])
        return ModelCost(model_id=model_id, cost_per_message=pricing.default_cost, is_default=True)

    def list_models(self) -> dict[str, int]:
        return dict(self._config_manager.config.pricing.models)

    @classmethod
    def estimate_tokens(cls, text: str) -> int:
        """Rough token count (~4 characters per token for English text)."""
        return math.ceil(len(text) / cls.CHARS_PER_TOKEN)
