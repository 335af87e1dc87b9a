from .ini_config import AppSettings, IniConfig, default_app_data_dir

__all__ = [
    "AppSettings",
    "IniConfig",
    "default_app_data_dir",
]
