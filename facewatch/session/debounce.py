"""Per-identity presence tracking that turns per-cycle matches into appearances."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

LOGGER = logging.getLogger("facewatch.session.debounce")


class PresenceDebouncer:
    """Announces an identity once per continuous presence.

    Presence is tracked per name: an identity stays present while every processed
    cycle accepts it, and its presence ends on the first processed cycle that does
    not. Other faces in the same frame, matched or not, never affect it.
    """

    def __init__(self) -> None:
        # name -> index of the last cycle that accepted it
        self._present: Dict[str, int] = {}
        self.last_announced: Optional[str] = None

    @property
    def present(self) -> List[str]:
        return list(self._present.keys())

    def update(self, accepted: Iterable[str], cycle_index: int) -> List[str]:
        """Record one processed cycle; return names that newly appeared, in face order."""
        appeared: List[str] = []
        current: Dict[str, int] = {}
        for name in accepted:
            if name in current:
                continue
            current[name] = cycle_index
            if name not in self._present:
                appeared.append(name)
        for name in self._present:
            if name not in current:
                LOGGER.debug("%s left view at cycle %d", name, cycle_index)
        self._present = current
        if appeared:
            self.last_announced = appeared[-1]
        elif not current:
            self.last_announced = None
        return appeared

    def reset(self) -> None:
        self._present.clear()
        self.last_announced = None
