"""Exception and diagnostic types raised or recorded by the scanner."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Optional, Union


class GuardrailsError(Exception):
    """Base class for scanner errors."""


class ConfigError(GuardrailsError):
    """Rule configuration is missing or malformed."""


@dataclass(frozen=True)
class ScanError:
    """A rule failed while processing one token.

    Recorded by the engine as a diagnostic next to the violations; it never
    aborts the scan of the file.
    """

    rule: str
    position: int
    message: str
    line: Optional[int] = None

    def to_dict(self) -> Dict[str, Union[str, int, None]]:
        return asdict(self)
