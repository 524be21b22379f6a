from __future__ import annotations

from enum import Enum


class Timeframe(Enum):
    """Analysis timeframe requested by the caller."""
    INTRADAY = "Intraday"
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"

    @classmethod
    def parse(cls, value: "Timeframe | str | None") -> "Timeframe":
        """Parse 'Intraday'/'daily'/... into a Timeframe. Unknown values fall back to DAILY."""
        if isinstance(value, cls):
            return value
        if value:
            key = str(value).strip().lower()
            for tf in cls:
                if tf.value.lower() == key or tf.name.lower() == key:
                    return tf
        return cls.DAILY
