class ForestError(ValueError):
    """Base class for errors raised by the decision forest."""


class ConfigurationError(ForestError):
    """An option, or a combination of options, can never be honoured."""


class DataError(ForestError):
    """The feature table or label vector is malformed."""
