from __future__ import annotations

from dataclasses import dataclass, field

from .provider import EnvFlagProvider, FeatureFlagProvider

CASCADE_ENROLLMENT_LOCATION = "cascade_enrollment_location"


@dataclass
class FeatureFlagStore:
    provider: FeatureFlagProvider = field(default_factory=EnvFlagProvider)

    def enabled(self, key: str, *, default: bool = False) -> bool:
        if self.provider.is_enabled(key):
            return True
        return default
