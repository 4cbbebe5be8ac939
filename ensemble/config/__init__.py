from .settings import Config, EnsembleSettings, config, load_settings, save_settings

__all__ = ["Config", "EnsembleSettings", "config", "load_settings", "save_settings"]
