"""Exceptions raised while converting a demo to JSON."""


class ConversionError(Exception):
    """Base class: anything that aborts a conversion run."""


class ConfigError(ConversionError):
    """Bad tick rate, unreadable input or unwritable output."""


class DemoParseError(ConversionError):
    """demoparser2 failed while reading the demo."""


class OutputError(ConversionError):
    """The JSON document could not be written."""
