from __future__ import annotations


class SolutionsAgentError(Exception):
    """Base class for engine errors."""


class ConfigurationError(SolutionsAgentError):
    """Provider credentials or settings are missing. Not retriable."""


class RetrievalError(SolutionsAgentError):
    """Catalog query failed. Recovered locally as zero candidates."""


class GenerationError(SolutionsAgentError):
    """Text-generation provider call failed for this turn."""
