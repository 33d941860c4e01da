"""EvoFit automation configuration system."""

from evofit_automation.config.manager import ConfigManager
from evofit_automation.config.schema import AutomationConfig

__all__ = ["AutomationConfig", "ConfigManager"]
