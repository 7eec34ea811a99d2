"""Classical and quantal-response value iteration for discrete capital models."""

__version__ = "0.1.0"
