"""
Chaos switches for resilience drills.

An admin turns chaos on for an endpoint (optionally for a single HTTP
method); matching requests then fail at random.
"""

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class _ChaosSetting:
    chaos: bool
    method: Optional[str] = None


class ChaosManager:
    def __init__(self):
        self._endpoints: dict[str, _ChaosSetting] = {}

    def set_chaos(self, endpoint: str, chaos: bool, method: Optional[str] = None) -> None:
        self._endpoints[endpoint] = _ChaosSetting(chaos=chaos, method=method.upper() if method else None)
        logger.warning(f"Chaos {'enabled' if chaos else 'disabled'} for {method or '*'} {endpoint}")

    def has_chaos(self, endpoint: str, method: Optional[str] = None) -> bool:
        setting = self._endpoints.get(endpoint)
        if setting is None or not setting.chaos:
            return False
        if setting.method is None:
            return True
        return method is not None and method.upper() == setting.method
