import copy
import json
import logging


DEFAULT_CONFIG = {
    "server": {
        "host": "0.0.0.0",
        "port": 5000,
        "cors_origins": ["*"]
    },
    "presence": {
        "ttl_seconds": 10,
        "sweep_interval_seconds": 15
    },
    "messages": {
        "default_limit": 100
    },
    "storage": {
        "backend": "sqlite",
        "sqlite_path": "batepapo.db",
        "mongo_uri": "mongodb://localhost:27017",
        "mongo_database": "batepapo"
    },
    "logging": {
        "level": "INFO",
        "file": None
    }
}


def _merge(base, override):
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


class ConfigManager:
    def __init__(self, config_path=None):
        self.config_path = config_path
        self._config = copy.deepcopy(DEFAULT_CONFIG)
        if config_path:
            self.load_config()

    def load_config(self):
        try:
            with open(self.config_path, 'r') as f:
                loaded = json.load(f)
        except FileNotFoundError:
            logging.error(f"Config file {self.config_path} not found. Using default values.")
            return
        except json.JSONDecodeError:
            logging.error(f"Invalid config file format in {self.config_path}. Using default values.")
            return
        if not isinstance(loaded, dict):
            logging.error(f"Config file {self.config_path} must hold a JSON object. Using default values.")
            return
        _merge(self._config, loaded)

    def get_server_config(self):
        return self._config.get("server", {})

    def get_presence_config(self):
        return self._config.get("presence", {})

    def get_messages_config(self):
        return self._config.get("messages", {})

    def get_storage_config(self):
        return self._config.get("storage", {})

    def get_logging_config(self):
        return self._config.get("logging", {})

    def update_config(self, section, key, value):
        if section in self._config and key in self._config[section]:
            self._config[section][key] = value
            return True
        return False
