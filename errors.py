class HoeffdingForestError(ValueError):
    """Base class for input and configuration errors raised by the forest."""


class ConfigurationError(HoeffdingForestError):
    """Invalid forest size, subset size, class count or learner parameters."""


class DimensionMismatchError(HoeffdingForestError):
    """Input vector length does not match the dataset dimensionality."""


class LabelRangeError(HoeffdingForestError):
    """Label outside ``[0, num_classes)``."""
