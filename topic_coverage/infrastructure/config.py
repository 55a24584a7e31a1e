"""
Configuration providers implementing the ConfigurationProvider interface.

Defaults live in get_default_configuration(); load_configuration() overlays a
provider's dotted keys and a handful of environment variables on top of them.
"""
import os
import copy
import json
from typing import Any, Dict, List, Optional
from dotenv import load_dotenv

from ..core.interfaces import ConfigurationProvider
from ..utils import logger


def _is_float(value: str) -> bool:
    try:
        float(value)
        return True
    except ValueError:
        return False


def coerce_value(value: str) -> Any:
    """Convert "true"/"false", integers and floats from their string form."""
    if value.lower() in ('true', 'false'):
        return value.lower() == 'true'
    if value.isdigit():
        return int(value)
    if _is_float(value):
        return float(value)
    return value


class EnvironmentConfigProvider(ConfigurationProvider):
    """Configuration provider using environment variables."""

    def __init__(self):
        load_dotenv()
        self._cache: Dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value from environment, coercing bools and numbers."""
        if key in self._cache:
            return self._cache[key]

        value = os.getenv(key)
        if value is None:
            return default

        value = coerce_value(value)
        self._cache[key] = value
        return value

    def set(self, key: str, value: Any) -> None:
        """Set configuration value (for this session only)."""
        self._cache[key] = value
        os.environ[key] = str(value)


class JSONConfigProvider(ConfigurationProvider):
    """Configuration provider using JSON files with dotted key access."""

    def __init__(self, config_file: str = "config.json"):
        self.config_file = config_file
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        if not os.path.exists(self.config_file):
            return
        try:
            with open(self.config_file, 'r') as f:
                self._config = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Could not read config file {self.config_file}: {e}")
            self._config = {}

    def get(self, key: str, default: Any = None) -> Any:
        return get_path(self._config, key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value and save to file."""
        keys = key.split('.')
        config = self._config
        for k in keys[:-1]:
            config = config.setdefault(k, {})
        config[keys[-1]] = value
        self._save_config()

    def keys(self) -> List[str]:
        """Dotted paths of every leaf value in the file."""
        return list(_flatten(self._config))

    def _save_config(self) -> None:
        try:
            with open(self.config_file, 'w') as f:
                json.dump(self._config, f, indent=2)
        except IOError as e:
            logger.error(f"Could not write config file {self.config_file}: {e}")


class LayeredConfigProvider(ConfigurationProvider):
    """Configuration provider that layers multiple sources."""

    def __init__(self, providers: List[ConfigurationProvider]):
        self.providers = providers

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value from first provider that has it."""
        for provider in self.providers:
            value = provider.get(key, None)
            if value is not None:
                return value
        return default

    def set(self, key: str, value: Any) -> None:
        """Set configuration value in the first provider."""
        if self.providers:
            self.providers[0].set(key, value)


def create_default_config_provider(config_file: str = "config.json") -> ConfigurationProvider:
    """Create a default layered configuration provider."""
    return LayeredConfigProvider([
        EnvironmentConfigProvider(),
        JSONConfigProvider(config_file)
    ])


def get_default_configuration() -> Dict[str, Any]:
    """Get default system configuration."""
    return {
        'embedding': {
            'provider': 'openai',
            'model': 'text-embedding-3-small',
            'max_input_chars': 8000,
        },
        'llm': {
            'topic_provider': 'openai',
            'openai_model': 'gpt-4o-mini',
            'query_providers': ['gemini', 'openai'],
            'gemini_model': 'gemini-1.5-flash',
        },
        'analysis': {
            'similarity_threshold': 0.7,
            'max_chunk_size': 1000,
            'min_chunk_size': 50,
            'query_batch_size': 5,
            'query_batch_delay': 0.5,
            'gap_threshold': 10,
            'min_queries': 10,
            'target_query_count': 20,
        },
        'scraping': {
            'concurrency': 3,
            'batch_delay': 1.0,
            'timeout': 30,
            'max_retries': 3,
            'max_content_chars': 50000,
            'user_agent': ('Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
                           '(KHTML, like Gecko) Chrome/120.0 Safari/537.36'),
        },
        'cache': {
            'backend': 'memory',
            'ttl': 86400,
            'max_size': 1000,
            'cleanup_interval': 300,
            'redis_url': None,
        },
        'discovery': {
            'result_count': 5,
        },
        'logging': {
            'format': 'standard',
        },
    }


# Environment variable -> dotted configuration path
ENV_OVERRIDES = {
    'EMBEDDING_PROVIDER': 'embedding.provider',
    'EMBEDDING_MODEL': 'embedding.model',
    'SIMILARITY_THRESHOLD': 'analysis.similarity_threshold',
    'CACHE_BACKEND': 'cache.backend',
    'REDIS_URL': 'cache.redis_url',
    'LOG_FORMAT': 'logging.format',
}


def _flatten(config: Dict[str, Any], prefix: str = ''):
    for key, value in config.items():
        path = f"{prefix}{key}"
        if isinstance(value, dict):
            yield from _flatten(value, f"{path}.")
        else:
            yield path


def set_path(config: Dict[str, Any], path: str, value: Any) -> None:
    """Assign a value at a dotted path, creating intermediate sections."""
    keys = path.split('.')
    section = config
    for k in keys[:-1]:
        section = section.setdefault(k, {})
    section[keys[-1]] = value


def get_path(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """Read a value at a dotted path."""
    value = config
    for k in path.split('.'):
        if isinstance(value, dict) and k in value:
            value = value[k]
        else:
            return default
    return value


def load_configuration(provider: Optional[ConfigurationProvider] = None,
                       environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Defaults, then the provider's values for known keys, then env overrides."""
    config = copy.deepcopy(get_default_configuration())

    if provider is not None:
        for path in list(_flatten(config)):
            value = provider.get(path, None)
            if value is not None:
                set_path(config, path, value)

    env = os.environ if environ is None else environ
    for variable, path in ENV_OVERRIDES.items():
        raw = env.get(variable)
        if raw:
            set_path(config, path, coerce_value(raw))

    return config
