"""Configuration loader for Jira Bug Metrics.

Options come from an optional YAML file and from environment variables. A
value set in the file wins over the environment, which wins over the
built-in default.
"""

import logging
import os

import yaml
from pydicti import odicti

from .exceptions import ConfigError
from .type_utils import expand_key, force_int, force_positive_int, normalize_value
from .visibility import parse_visibility

logger = logging.getLogger(__name__)

# (configuration key, option key, environment variable)
CONNECTION_KEYS = [
    ("domain", "domain", "JIRA_HOST"),
    ("username", "username", "JIRA_EMAIL"),
    ("password", "password", "JIRA_API_TOKEN"),
    ("cloud id", "cloud_id", "JIRA_CLOUD_ID"),
    ("timeout", "timeout", None),
]

PROJECT_KEYS = [
    ("key", "project_key", "JIRA_PROJECT_KEY"),
    ("board id", "board_id", "JIRA_BOARD_ID"),
]

FIELD_KEYS = [
    ("severity", "severity_field", "JIRA_FIELD_SEVERITY"),
    ("bug reason", "reason_field", "JIRA_FIELD_BUG_REASON"),
    ("environment", "environment_field", "JIRA_FIELD_ENVIRONMENT"),
    ("component", "component_field", "JIRA_FIELD_COMPONENT"),
]

PERIOD_KEYS = [
    ("sprints per period", "sprints_per_period", "SPRINTS_PER_PERIOD"),
    ("max sprints", "max_sprints", "MAX_SPRINTS"),
    ("sprint analysis count", "sprint_analysis_count", "SPRINT_ANALYSIS_COUNT"),
]

POSITIVE_INT_KEYS = {
    "timeout",
    "board_id",
    "sprints_per_period",
    "max_sprints",
    "sprint_analysis_count",
}

# option key -> environment variable reported when the value is missing
REQUIRED_CONNECTION = [
    ("domain", "JIRA_HOST"),
    ("username", "JIRA_EMAIL"),
    ("password", "JIRA_API_TOKEN"),
]
REQUIRED_SETTINGS = [
    ("project_key", "JIRA_PROJECT_KEY"),
    ("board_id", "JIRA_BOARD_ID"),
]


def _create_default_options():
    """Create default options dictionary."""
    return {
        "connection": {
            "domain": None,
            "username": None,
            "password": None,
            "cloud_id": None,
            "timeout": 30,
        },
        "settings": {
            "project_key": None,
            "board_id": None,
            "severity_field": "customfield_10001",
            "reason_field": "customfield_10002",
            "environment_field": "environment",
            "component_field": "",
            "sprints_per_period": 4,
            "max_sprints": 40,
            "sprint_analysis_count": 50,
            "visibility": {},
        },
        "output_directory": None,
    }


def _case_insensitive(value):
    """Recursively turn parsed YAML mappings into case-insensitive dicts."""
    if isinstance(value, dict):
        return odicti([(str(k), _case_insensitive(v)) for k, v in value.items()])
    if isinstance(value, list):
        return [_case_insensitive(v) for v in value]
    return value


def _parse_yaml(data):
    try:
        config = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse configuration file: {e}") from None

    if config is None:
        return odicti()
    if not isinstance(config, dict):
        raise ConfigError("Configuration file must contain a mapping of sections")

    return _case_insensitive(config)


def _apply_section(config_section, key_mappings, target, environ):
    """Copy values for one section, preferring the file over the environment."""
    config_section = config_section or {}

    for config_key, option_key, env_var in key_mappings:
        if config_key in config_section and config_section[config_key] is not None:
            value = config_section[config_key]
        elif env_var:
            value = environ.get(env_var)
        else:
            value = None

        value = normalize_value(value)
        if value is None:
            continue

        if option_key in POSITIVE_INT_KEYS:
            value = force_positive_int(option_key, value)
        else:
            value = str(value)

        target[option_key] = value


def config_to_options(data=None, environ=None):
    """Parse an optional YAML configuration string and the environment into
    an options dictionary with `connection` and `settings` sections.

    Args:
        data: YAML text of the configuration file, or None
        environ: Mapping of environment variables (default: ``os.environ``)

    Returns:
        Options dictionary

    Raises:
        ConfigError: If the file cannot be parsed or a value has the wrong type
    """
    if environ is None:
        environ = os.environ

    config = _parse_yaml(data) if data else odicti()
    options = _create_default_options()
    settings = options["settings"]

    _apply_section(
        config.get("connection"), CONNECTION_KEYS, options["connection"], environ
    )
    _apply_section(config.get("project"), PROJECT_KEYS, settings, environ)
    _apply_section(config.get("fields"), FIELD_KEYS, settings, environ)
    _apply_section(config.get("periods"), PERIOD_KEYS, settings, environ)

    settings["visibility"] = parse_visibility(config.get("visibility"), environ)

    output_config = config.get("output") or {}
    if expand_key("output_directory") in output_config:
        options["output_directory"] = str(output_config[expand_key("output_directory")])

    logger.debug("Resolved settings: %s", settings)
    return options


def validate_options(options, require_project=True):
    """Check that everything needed to reach Jira is configured.

    With ``require_project`` off only the connection is required, which is
    enough to look around the site before choosing a project and board.

    Raises:
        ConfigError: Naming every missing environment variable
    """
    missing = [
        env_var
        for option_key, env_var in REQUIRED_CONNECTION
        if not options["connection"].get(option_key)
    ]
    if require_project:
        missing += [
            env_var
            for option_key, env_var in REQUIRED_SETTINGS
            if not options["settings"].get(option_key)
        ]

    if missing:
        raise ConfigError(
            f"Missing required configuration: {', '.join(missing)}. "
            "Set them in the environment (.env.local) or the configuration file."
        )

    # Values set directly on the options dict bypass the loader's conversions
    for key in ("board_id", "sprints_per_period", "max_sprints", "sprint_analysis_count"):
        if options["settings"][key] is not None:
            options["settings"][key] = force_positive_int(key, options["settings"][key])
    options["connection"]["timeout"] = force_int(
        "timeout", options["connection"]["timeout"]
    )

    return options
