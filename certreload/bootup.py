'''Helper module for building configuration and loader instances whenever the watcher starts'''
import logging
from pathlib import Path
from typing import Any, Callable, Final, Optional

from certreload.config.loader_config import LoaderConfig, LoggingConfig
from certreload.loader import CertificateLoader

import pytomlpp

__all__ = ('load_config_mapping',
           'create_loader_config',
           'create_logging_config',
           'configure_logging',
           'create_loader')

_RELATIVE_PATH_KEYS: Final[tuple[str, ...]] = ('certificate_filepath', 'key_filepath', 'cafile')

def load_config_mapping(filepath: Path) -> dict[str, Any]:
    '''Load a TOML configuration file, flattening all of its tables into a single mapping'''
    loaded_constants: dict[str, Any] = pytomlpp.load(filepath)

    flattened_dict: dict[str, Any] = {}
    leftover_mappings: list[dict[str, Any]] = [loaded_constants]
    while leftover_mappings:
        mapping = leftover_mappings.pop()
        for k, v in mapping.items():
            if isinstance(v, dict):
                leftover_mappings.append(mapping[k])
                continue
            flattened_dict.update({k:v})

    return flattened_dict

def create_loader_config(filepath: Path,
                         on_reload: Optional[Callable[[], Any]] = None,
                         on_error: Optional[Callable[[Exception], Any]] = None,
                         **overrides: Any) -> LoaderConfig:
    '''Build a LoaderConfig from a TOML file. Relative credential paths are resolved against the file's directory'''
    flattened_dict: dict[str, Any] = load_config_mapping(filepath)
    flattened_dict.update({k:v for k, v in overrides.items() if v is not None})

    config_root: Final[Path] = filepath.resolve().parent
    for key in _RELATIVE_PATH_KEYS:
        if flattened_dict.get(key):
            flattened_dict[key] = config_root / Path(flattened_dict[key])

    return LoaderConfig.model_validate({**flattened_dict, 'on_reload' : on_reload, 'on_error' : on_error})

def create_logging_config(filepath: Optional[Path] = None, **overrides: Any) -> LoggingConfig:
    flattened_dict: dict[str, Any] = load_config_mapping(filepath) if filepath else {}
    flattened_dict.update({k:v for k, v in overrides.items() if v is not None})
    return LoggingConfig.model_validate(flattened_dict)

def configure_logging(logging_config: LoggingConfig) -> None:
    logging.basicConfig(level=logging_config.log_level, format=logging_config.log_format, force=True)

def create_loader(config: LoaderConfig) -> CertificateLoader:
    return CertificateLoader(config)
