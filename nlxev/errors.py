"""Exceptions raised while loading Neuralynx event logs."""


class InvalidInputError(ValueError):
    """Bad load arguments or an unreadable/ill-formed source file."""


class MalformedBitfieldError(ValueError):
    """A TTL code that is not a valid unsigned 16-bit bitfield."""
