# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class ChainError(Exception):
    """
    Structured chain error with enough context for:
      - clean CLI output
      - telling which step of which chain gave up
    """
    kind = "chain_error"

    def __init__(self, message: str, *, step: str | None = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.step = step
        self.details = dict(details or {})

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        if self.step:
            lines.append(f"step={self.step}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


class InfeasibleRequestError(ChainError):
    """The request can never be satisfied with the inputs at hand (e.g. 7 years -> decade)."""
    kind = "infeasible_request"


class UnsupportedConversionError(ChainError):
    kind = "unsupported_conversion"

    def __init__(self, conversion: str, source: str, target: str, *, step: str | None = None):
        super().__init__(
            f"no {conversion} conversion from '{source}' to '{target}'",
            step=step,
            details={"from": source, "to": target},
        )
        self.conversion = conversion
        self.source = source
        self.target = target


class StructuralPolicyError(ChainError):
    kind = "structural_policy"


class UnknownStageError(ChainError, ValueError):
    kind = "unknown_stage"


class IncompleteChainError(ChainError):
    kind = "incomplete_chain"


@dataclass
class CommandFailure(Exception):
    command: str
    argv: List[str]
    exit_code: int
    stderr: str = ""
    hint: str | None = field(default=None)

    def __str__(self) -> str:
        msg = f"{self.command} failed (exit={self.exit_code}): {' '.join(self.argv)}"
        if self.stderr:
            msg += f"\n{self.stderr.strip()}"
        if self.hint:
            msg += f"\nhint: {self.hint}"
        return msg
