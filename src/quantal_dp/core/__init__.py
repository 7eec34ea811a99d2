"""Core parameter, type and error definitions."""
