"""Check registry — named CheckDefinitions in registration order.

Populated once at startup, then sealed. After sealing the mapping is never
mutated, so concurrent readers need no locking.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from .definition import CheckDefinition
from .errors import DuplicateNameError, NotFoundError, RegistryError

logger = logging.getLogger(__name__)


class CheckRegistry:
    """Holds registered checks keyed by name."""

    def __init__(self, definitions: Iterable[CheckDefinition] = ()) -> None:
        self._checks: dict[str, CheckDefinition] = {}
        self._sealed = False
        for d in definitions:
            self.register(d)

    def register(self, definition: CheckDefinition) -> None:
        """Add a definition. Raises DuplicateNameError if the name is taken."""
        if self._sealed:
            raise RegistryError("Registry is sealed; checks are registered at startup only")
        if definition.name in self._checks:
            raise DuplicateNameError(definition.name)
        self._checks[definition.name] = definition
        logger.debug("Registered check %s (roles=%s)", definition.name,
                     sorted(r.value for r in definition.required_roles))

    def seal(self) -> None:
        if not self._sealed:
            self._sealed = True
            logger.info("Check registry sealed with %d checks", len(self._checks))

    @property
    def sealed(self) -> bool:
        return self._sealed

    def get(self, name: str) -> CheckDefinition:
        try:
            return self._checks[name]
        except KeyError:
            raise NotFoundError(name) from None

    def resolve(self, names: Iterable[str]) -> list[CheckDefinition]:
        """Look up every name before anything runs; the first unknown one raises."""
        return [self.get(n) for n in names]

    def list(self) -> list[str]:
        return list(self._checks)

    def __contains__(self, name: object) -> bool:
        return name in self._checks

    def __len__(self) -> int:
        return len(self._checks)

    def to_dict(self) -> list[dict[str, Any]]:
        """Serialize registered checks for the API."""
        return [
            {
                "name": d.name,
                "description": d.description,
                "roles": sorted(r.value for r in d.required_roles),
            }
            for d in self._checks.values()
        ]
