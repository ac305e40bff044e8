"""Symbol sequence accumulation with a cooldown gate.

Stabilized symbols arrive every frame while a sign is held; the cooldown
turns that stream into discrete acceptances. Accepted symbols go into a
rolling buffer whose string form feeds vocabulary matching.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger("sign_engine.sequences")


@dataclass(frozen=True)
class SymbolAccepted:
    """Fired when a symbol passes the cooldown and joins the sequence."""
    label: str
    sequence: str  # concatenated buffer after acceptance
    timestamp_ms: float


class SequenceAccumulator:
    """Debounce plus ring buffer. Knows nothing about sign semantics.

    A symbol arriving less than `cooldown_ms` after the last accepted one is
    dropped, not queued.
    """

    def __init__(
        self,
        cooldown_ms: float = 2000.0,
        max_symbols: int = 10,
        suppress_repeats: bool = False,
    ):
        self.cooldown_ms = cooldown_ms
        self.max_symbols = max_symbols
        self.suppress_repeats = suppress_repeats
        self._symbols: deque[str] = deque(maxlen=max_symbols)
        self._last_accept_ms: Optional[float] = None

    def accept(self, symbol: str, timestamp_ms: Optional[float] = None) -> Optional[SymbolAccepted]:
        """Try to append a symbol.

        Returns:
            SymbolAccepted on acceptance, None if rejected.
        """
        now = timestamp_ms if timestamp_ms is not None else time.monotonic() * 1000.0

        if self._last_accept_ms is not None and now - self._last_accept_ms < self.cooldown_ms:
            return None

        if self.suppress_repeats and self._symbols and self._symbols[-1] == symbol:
            return None

        self._symbols.append(symbol)
        self._last_accept_ms = now
        text = self.text
        logger.debug("Accepted %s, sequence now %s", symbol, text)
        return SymbolAccepted(label=symbol, sequence=text, timestamp_ms=now)

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    @property
    def text(self) -> str:
        return "".join(self._symbols)

    @property
    def last_accept_ms(self) -> Optional[float]:
        return self._last_accept_ms

    def clear(self):
        """Empty the buffer and reset the cooldown clock."""
        self._symbols.clear()
        self._last_accept_ms = None

    def __len__(self) -> int:
        return len(self._symbols)
