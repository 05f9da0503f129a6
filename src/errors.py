# src/errors.py
"""
Exception hierarchy for the indicator pipeline.

File- and schema-level problems (ConfigError, ParseError, ColumnNotFoundError,
TypeConversionError) abort the run. UnresolvedMappingError is only raised when
a caller asks for strict country mapping; by default unresolved names are
reported, not raised.

Each class also derives from the closest builtin so that callers written
against KeyError / ValueError keep working.
"""
from __future__ import annotations


class PipelineError(Exception):
    """Base class for every error raised by the pipeline."""


class ConfigError(PipelineError):
    """
    Invalid configuration: missing input file, bad header-skip count,
    malformed config values.
    """


class ParseError(PipelineError, ValueError):
    """A delimited file could not be tokenized."""

    def __init__(self, path, line=None, detail: str = ""):
        self.path = str(path)
        self.line = line
        self.detail = detail
        where = f"{self.path}, line {line}" if line is not None else self.path
        msg = f"Could not parse {where}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class ColumnNotFoundError(PipelineError, KeyError):
    """A referenced column does not exist (after name normalisation)."""

    def __init__(self, missing, available=None, context: str = ""):
        self.missing = list(missing)
        self.available = list(available) if available is not None else None
        prefix = f"[{context}] " if context else ""
        msg = f"{prefix}column(s) not found: {self.missing}"
        if self.available is not None:
            msg += f" (available: {self.available})"
        super().__init__(msg)

    def __str__(self):
        # KeyError.__str__ would repr() the message
        return self.args[0]


class TypeConversionError(PipelineError, ValueError):
    """A key label could not be coerced to the requested type."""

    def __init__(self, value, target: str = "int"):
        self.value = value
        self.target = target
        super().__init__(f"Cannot convert {value!r} to {target}")


class UnresolvedMappingError(PipelineError):
    """Raised by strict country mapping when some names have no code."""

    def __init__(self, names):
        self.names = list(names)
        super().__init__(
            f"{len(self.names)} entity name(s) could not be mapped to a code: {self.names}"
        )


class EmptySelectionError(PipelineError, ValueError):
    """A filtered view that a consumer needs has no rows."""
