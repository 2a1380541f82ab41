"""Arena Token Monitor - Avalanche token launch tracking and alerting."""

__version__ = "0.1.0"
