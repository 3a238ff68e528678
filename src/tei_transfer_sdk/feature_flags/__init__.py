from .flags import CASCADE_ENROLLMENT_LOCATION, FeatureFlagStore
from .provider import DictFlagProvider, EnvFlagProvider, FeatureFlagProvider

__all__ = [
    "CASCADE_ENROLLMENT_LOCATION",
    "DictFlagProvider",
    "EnvFlagProvider",
    "FeatureFlagProvider",
    "FeatureFlagStore",
]
