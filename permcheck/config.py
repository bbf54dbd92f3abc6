import configparser
import logging
import os
import os.path
from configparser import RawConfigParser
from contextlib import contextmanager
from typing import Callable, Dict, Generator, List, Optional, TypeVar

from permcheck.common.exception import ConfigError

base_logger = logging.getLogger("permcheck.config")

T = TypeVar("T")

# Defaults for the [permcheck] section
DEFAULT_CACHE_TIME = 3600.0
DEFAULT_MAX_RETRIES = 0
DEFAULT_RETRY_INTERVAL = 1.0

# Possible paths for base configuration files
CONFIG_FILES = {
    "permcheck": ["/etc/permcheck/permcheck.conf", "/usr/etc/permcheck/permcheck.conf"],
    "logging": ["/etc/permcheck/logging.conf", "/usr/etc/permcheck/logging.conf"],
}

# Paths to directories in which options can be overriden using configuration
# snippets
CONFIG_SNIPPETS_DIRS = {
    "permcheck": ["/usr/etc/permcheck/permcheck.conf.d", "/etc/permcheck/permcheck.conf.d"],
    "logging": ["/usr/etc/permcheck/logging.conf.d", "/etc/permcheck/logging.conf.d"],
}

CONFIG_ENV = {
    "permcheck": os.environ.get("PERMCHECK_CONFIG", ""),
    "logging": os.environ.get("PERMCHECK_LOGGING_CONFIG", ""),
}

# Single instance
_config: Optional[Dict[str, RawConfigParser]] = None


def reset() -> None:
    """Forget every configuration read so far."""
    global _config
    _config = None


@contextmanager
def use_config_file(component: str, path: str) -> Generator[None, None, None]:
    """Read the configuration of component from path within the block only."""
    saved = CONFIG_ENV.get(component, "")
    CONFIG_ENV[component] = path
    reset()
    try:
        yield
    finally:
        CONFIG_ENV[component] = saved
        reset()


def _read(component: str, parser: RawConfigParser, paths: List[str]) -> List[str]:
    """Read paths into parser and return the ones that could be opened.

    Raises:
        ConfigError: If one of the files is not valid INI
    """
    for path in paths:
        if os.path.exists(path) and not os.access(path, os.R_OK):
            base_logger.error("Config file %s for component %s exists but is not readable", path, component)
    try:
        return parser.read(paths)
    except configparser.Error as e:
        raise ConfigError(f"cannot parse configuration of {component}: {e}") from e


def _read_installed(component: str, parser: RawConfigParser) -> None:
    for path in CONFIG_FILES[component]:
        # The first base configuration file found is used, the others are
        # ignored
        if _read(component, parser, [path]):
            base_logger.info("Reading configuration from %s", path)
            break
    else:
        base_logger.debug("Config file not found in %s, using defaults", CONFIG_FILES[component])
        return

    for d in CONFIG_SNIPPETS_DIRS.get(component, []):
        if not os.path.isdir(d):
            continue
        snippets = sorted(os.path.join(d, f) for f in os.listdir(d) if os.path.isfile(os.path.join(d, f)))
        if _read(component, parser, snippets):
            base_logger.info("Applied configuration snippets from %s", d)


def get_config(component: str) -> RawConfigParser:
    """Return the configuration of component, reading it on first use.

    * If a configuration path is set through the PERMCHECK_CONFIG (or
    PERMCHECK_LOGGING_CONFIG) environment variable, use the configuration from
    this file and ignore configuration from other files.
    * Otherwise the first existing file listed in CONFIG_FILES for the
    component is the base configuration file.
    * Snippets found in the CONFIG_SNIPPETS_DIRS directories are applied on top
    of it, in sorted order.

    Raises:
        ConfigError: If the component is unknown or a file is not valid INI
    """
    global _config

    if _config is None:
        _config = {}

    if component in _config:
        return _config[component]

    if component not in CONFIG_ENV or component not in CONFIG_FILES:
        raise ConfigError(f"unknown configuration component '{component}'")

    # RawConfigParser, so that format strings of the logging component are
    # left alone
    parser = RawConfigParser()
    env_path = CONFIG_ENV[component]
    if env_path and os.path.isfile(env_path):
        _read(component, parser, [env_path])
        base_logger.info("Reading configuration from %s", env_path)
    else:
        if env_path:
            base_logger.info(
                "Configuration file %s for %s set through environment variable not found, falling back to installed configuration",
                env_path,
                component,
            )
        _read_installed(component, parser)

    _config[component] = parser
    return parser


def _get_env(component: str, option: str, section: Optional[str]) -> Optional[str]:
    opt_section = f"_{section.upper()}" if section else ""
    env_name = f"PERMCHECK_{component.upper()}{opt_section}_{option.upper()}"
    env_value = os.environ.get(env_name, None)
    if env_value is not None:
        base_logger.info("Option %s of component %s overridden by environment variable %s", option, component, env_name)
        env_value = env_value.strip('" ')

    return env_value


def _convert(component: str, option: str, kind: str, convert: Callable[[], T]) -> T:
    try:
        return convert()
    except ValueError as e:
        raise ConfigError(f"option {option} of {component} must be {kind}: {e}") from e


def get(component: str, option: str, section: Optional[str] = None, fallback: str = "") -> str:
    env_value = _get_env(component, option, section)
    if env_value is not None:
        return env_value

    return get_config(component).get(section or component, option, fallback=fallback).strip('" ')


def getint(component: str, option: str, section: Optional[str] = None, fallback: int = -1) -> int:
    env_value = _get_env(component, option, section)
    if env_value is not None:
        return _convert(component, option, "an integer", lambda: int(env_value))

    parser = get_config(component)
    return _convert(
        component, option, "an integer", lambda: parser.getint(section or component, option, fallback=fallback)
    )


def getfloat(component: str, option: str, section: Optional[str] = None, fallback: float = -1.0) -> float:
    env_value = _get_env(component, option, section)
    if env_value is not None:
        return _convert(component, option, "a number", lambda: float(env_value))

    parser = get_config(component)
    return _convert(
        component, option, "a number", lambda: parser.getfloat(section or component, option, fallback=fallback)
    )


def getboolean(component: str, option: str, section: Optional[str] = None, fallback: bool = False) -> bool:
    env_value = _get_env(component, option, section)
    if env_value is not None:
        # An unrecognized override is ignored
        return RawConfigParser.BOOLEAN_STATES.get(env_value.lower(), fallback)

    parser = get_config(component)
    return _convert(
        component, option, "a boolean", lambda: parser.getboolean(section or component, option, fallback=fallback)
    )

