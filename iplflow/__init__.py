"""Handshaking pipeline dataflow components: pipes, arbiters, forks, pipe groups and invocations."""

__version__ = "1.1.1"
__all__ = ["core", "pipes", "special", "composite", "invocation"]