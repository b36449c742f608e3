from __future__ import annotations

from typing import List, Optional


class FormatError(ValueError):
    """Raised when input bytes cannot be turned into a canonical record."""

    def __init__(self, message: str, hints: Optional[List[str]] = None, diagnostic: Optional[str] = None):
        self.message = message
        self.hints = list(hints or [])
        self.diagnostic = diagnostic
        super().__init__(self.__str__())

    def __str__(self) -> str:
        text = self.message
        if self.diagnostic:
            text = f"{text}: {self.diagnostic}"
        if self.hints:
            text += "\n" + "\n".join(f"- {hint}" for hint in self.hints)
        return text


DecodeError = FormatError
