"""OpenGIN explorer core: entity detail views over the OpenGIN graph store."""

__version__ = "0.1.0"
