"""Error taxonomy shared by the growth engine and its services.

Both classes subclass the builtin the routes already map
(``ValueError`` → 400, ``LookupError`` → 404), so callers that only know
about the builtins keep working.
"""

from __future__ import annotations


class ValidationError(ValueError):
	"""Input rejected before any computation ran."""


class NotFoundError(LookupError):
	"""A batch or measurement does not exist for the given tenant."""
