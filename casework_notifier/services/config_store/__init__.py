from casework_notifier.services.config_store.resolver import ConfigurationResolver
from casework_notifier.services.config_store.tiers import (
    ConfigTier,
    InMemoryTier,
    PostgresDurableTier,
    RedisCacheTier,
)
from casework_notifier.services.config_store.variables_sheet import (
    ConfigSourceError,
    VariablesSheetStore,
)

__all__ = [
    "ConfigSourceError",
    "ConfigTier",
    "ConfigurationResolver",
    "InMemoryTier",
    "PostgresDurableTier",
    "RedisCacheTier",
    "VariablesSheetStore",
]
