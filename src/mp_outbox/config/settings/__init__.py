"""Config settings – 12-factor env-based configuration."""
from mp_outbox.config.settings.base import Settings
from mp_outbox.config.settings.dispatch import DispatchSettings
from mp_outbox.config.settings.factory import SettingsFactory
from mp_outbox.config.settings.loaders import DotenvSettingsLoader, EnvSettingsLoader, SettingsLoader

__all__ = [
    "DispatchSettings",
    "DotenvSettingsLoader",
    "EnvSettingsLoader",
    "Settings",
    "SettingsFactory",
    "SettingsLoader",
]
