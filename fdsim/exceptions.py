class ConfigurationError(ValueError):
    """Invalid simulation, grid, split or model configuration."""


class ShapeError(ValueError):
    """Array or table does not match its declared axes or shape."""
