"""Dashboard section visibility flags.

Each dashboard section can be hidden with a ``SHOW_*`` environment variable
or a key in the ``Visibility`` section of the configuration file. Two
sections, trackers and test coverage, are hidden unless switched on.
"""

# (output key, configuration key, environment variable, default)
SECTIONS = (
    ("sprintBacklog", "sprint backlog", "SHOW_SPRINT_BACKLOG", True),
    ("environment", "environment", "SHOW_ENVIRONMENT", True),
    ("resolution", "resolution", "SHOW_RESOLUTION", True),
    ("priority", "priority", "SHOW_PRIORITY", True),
    ("components", "components", "SHOW_COMPONENTS", True),
    ("trackers", "trackers", "SHOW_TRACKERS", False),
    ("reasons", "reasons", "SHOW_REASONS", True),
    ("testCoverage", "test coverage", "SHOW_TEST_COVERAGE", False),
)


def parse_visibility_flag(value, default=True):
    """Interpret a visibility flag.

    Unset or blank values fall back to ``default``. Anything other than
    ``0`` or ``false`` (any case) switches the section on.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value

    value = str(value).strip()
    if not value:
        return default

    return value != "0" and value.lower() != "false"


def parse_visibility(config_section, environ):
    """Resolve all section flags, configuration file first, then environment."""
    config_section = config_section or {}
    visibility = {}

    for output_key, config_key, env_var, default in SECTIONS:
        if config_key in config_section:
            value = config_section[config_key]
        else:
            value = environ.get(env_var)
        visibility[output_key] = parse_visibility_flag(value, default)

    return visibility
