"""
Rich terminal output for esmc-gate.

Human-readable output goes to stderr so stdout carries only the JSON
result. Provides:
- Consistent symbol vocabulary (no emoji)
- Activation decision and follow-up question rendering
- Cache status lines
- Error display
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Literal

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .activation import ActivationDecision
from .result_cache import CacheCheck, CacheLoad, CacheSave

# ============================================================================
# Visual Language
# ============================================================================


class Symbol(str, Enum):
    """Semantic symbols for gate output."""

    GATE = "◆"  # Checkpoint activated
    PASS = "◇"  # Checkpoint not activated
    HIT = "✓"  # Cache hit / success
    MISS = "○"  # Cache miss
    EXPIRED = "⊘"  # TTL expired
    ERROR = "✗"  # Error/failure
    WARNING = "⚠"  # Warning/caution
    SAVE = "▶"  # Write operation


class Color(str, Enum):
    """Semantic colors for gate output."""

    GATE = "cyan"
    PASS = "green"
    HIT = "green"
    MISS = "yellow"
    EXPIRED = "yellow"
    ERROR = "red"
    WARNING = "yellow"
    SAVE = "blue"
    DIM = "dim"


SYMBOL_COLORS: dict[Symbol, Color] = {
    Symbol.GATE: Color.GATE,
    Symbol.PASS: Color.PASS,
    Symbol.HIT: Color.HIT,
    Symbol.MISS: Color.MISS,
    Symbol.EXPIRED: Color.EXPIRED,
    Symbol.ERROR: Color.ERROR,
    Symbol.WARNING: Color.WARNING,
    Symbol.SAVE: Color.SAVE,
}


# ============================================================================
# Configuration
# ============================================================================


@dataclass
class OutputConfig:
    """Configuration for console output."""

    verbosity: Literal["quiet", "normal", "verbose"] = "normal"
    colors: bool = True
    silent: bool = False
    panel_width: int | None = None  # Auto-detect if None

    @classmethod
    def from_env(cls, silent: bool = False) -> OutputConfig:
        """
        Load configuration from environment variables.

        Respects NO_COLOR, ESMC_COLORS, ESMC_VERBOSITY and ESMC_SILENT.
        An explicit ``silent=True`` always wins.
        """
        no_color = os.environ.get("NO_COLOR") is not None

        verbosity = os.environ.get("ESMC_VERBOSITY", "normal")
        if verbosity not in ("quiet", "normal", "verbose"):
            verbosity = "normal"

        colors_env = os.environ.get("ESMC_COLORS", "").lower()
        colors = not no_color and colors_env != "false"

        silent_env = os.environ.get("ESMC_SILENT", "").lower() in ("1", "true", "yes")

        return cls(
            verbosity=verbosity,  # type: ignore[arg-type]
            colors=colors,
            silent=silent or silent_env,
        )


# ============================================================================
# Gate Console
# ============================================================================


class GateConsole:
    """Rich-formatted console output for checkpoint and cache commands."""

    def __init__(self, config: OutputConfig | None = None):
        self.config = config or OutputConfig.from_env()
        self.console = Console(
            stderr=True,
            no_color=not self.config.colors,
            width=self.config.panel_width,
            highlight=False,
        )

    def _should_emit(self, level: str) -> bool:
        """Check if output at ``level`` should be shown."""
        if self.config.silent:
            return False
        levels = ["quiet", "normal", "verbose"]
        event_level = levels.index(level) if level in levels else 1
        return event_level <= levels.index(self.config.verbosity)

    def _line(self, symbol: Symbol, label: str) -> Text:
        text = Text()
        text.append(f"{symbol.value} ", style=f"bold {SYMBOL_COLORS[symbol].value}")
        text.append(label, style="bold")
        return text

    # -------------------------------------------------------------------------
    # Checkpoint
    # -------------------------------------------------------------------------

    def emit_decision(self, decision: ActivationDecision) -> None:
        """Show the checkpoint decision and, when activated, its questions."""
        if not self._should_emit("normal"):
            return

        if decision.activate:
            text = self._line(Symbol.GATE, "L5 checkpoint: strategic mode required")
        else:
            text = self._line(Symbol.PASS, "L5 checkpoint: not activated")

        active = [name for name, hit in decision.triggers.items() if hit]
        text.append(
            f" ({decision.active_count}/{decision.threshold} triggers",
            style=Color.DIM.value,
        )
        if active:
            text.append(f": {', '.join(active)}", style=Color.DIM.value)
        text.append(")", style=Color.DIM.value)
        self.console.print(text)

        if decision.questions:
            self.emit_questions(decision)

    def emit_questions(self, decision: ActivationDecision) -> None:
        """Render the follow-up questions as a table."""
        table = Table(show_header=True, header_style="bold", expand=False)
        table.add_column("Dimension", style=Color.GATE.value, no_wrap=True)
        table.add_column("Question")
        if self._should_emit("verbose"):
            table.add_column("Rationale", style=Color.DIM.value)

        for q in decision.questions:
            row = [q.dimension, f"{q.question}\n{q.elaboration}"]
            if self._should_emit("verbose"):
                row.append(q.rationale)
            table.add_row(*row)

        self.console.print(table)

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------

    def emit_cache_check(self, status: CacheCheck) -> None:
        if not self._should_emit("normal"):
            return

        data = status.to_dict()
        if status.cached:
            text = self._line(Symbol.HIT, f"Cache hit {status.hash}")
            text.append(
                f" (age {data['age_minutes']}m, {data['ttl_remaining_minutes']}m remaining)",
                style=Color.DIM.value,
            )
        elif status.reason == "ttl_expired":
            text = self._line(Symbol.EXPIRED, f"Cache expired {status.hash}")
            text.append(f" (age {data['age_minutes']}m, removed)", style=Color.DIM.value)
        else:
            text = self._line(Symbol.MISS, f"Cache miss {status.hash}")
        self.console.print(text)

    def emit_cache_load(self, result: CacheLoad) -> None:
        if result.loaded:
            if self._should_emit("normal"):
                age = (result.data or {}).get("cache_age_minutes")
                text = self._line(Symbol.HIT, f"Loaded {result.hash}")
                text.append(f" (age {age}m)", style=Color.DIM.value)
                self.console.print(text)
        elif result.error:
            self.emit_error(result.error, error_type=result.reason)
        elif self._should_emit("normal"):
            reason = (result.reason or "cache_miss").replace("_", " ")
            self.console.print(
                self._line(Symbol.MISS, f"Nothing to load for {result.hash} ({reason})")
            )

    def emit_cache_save(self, result: CacheSave) -> None:
        if not result.saved:
            self.emit_error(result.error or "save failed", error_type="save_error")
            return
        if self._should_emit("normal"):
            text = self._line(Symbol.SAVE, f"Saved {result.hash}")
            if result.entry and self._should_emit("verbose"):
                text.append(f" -> {result.entry}", style=Color.DIM.value)
            self.console.print(text)

    def emit_purge(self, removed: list[str]) -> None:
        if not self._should_emit("normal"):
            return
        noun = "entry" if len(removed) == 1 else "entries"
        self.console.print(self._line(Symbol.EXPIRED, f"Purged {len(removed)} expired {noun}"))

    # -------------------------------------------------------------------------
    # Errors
    # -------------------------------------------------------------------------

    def emit_warning(self, message: str, warning_type: str | None = None) -> None:
        """Show a warning line for a non-fatal problem."""
        if not self._should_emit("normal"):
            return

        text = Text()
        text.append(f"{Symbol.WARNING.value} ", style=f"bold {Color.WARNING.value}")
        if warning_type:
            text.append(f"{warning_type}: ", style=f"bold {Color.WARNING.value}")
        text.append(message)
        self.console.print(text)

    def emit_error(self, error: str, error_type: str | None = None) -> None:
        """Show an error line. Errors are shown in quiet mode too."""
        if self.config.silent:
            return

        text = Text()
        text.append(f"{Symbol.ERROR.value} ", style=f"bold {Color.ERROR.value}")
        if error_type:
            text.append(f"{error_type}: ", style=f"bold {Color.ERROR.value}")
        text.append(error)
        self.console.print(text)

    def print_error_panel(
        self, error_type: str, message: str, suggestion: str | None = None
    ) -> None:
        """Print an error panel, used for usage errors."""
        if self.config.silent:
            return

        text = Text()
        text.append(f"{Symbol.ERROR.value} ", style=f"bold {Color.ERROR.value}")
        text.append(f"{error_type}\n", style=f"bold {Color.ERROR.value}")
        text.append(message)
        if suggestion:
            text.append(f"\n\nUsage: {suggestion}", style=Color.DIM.value)

        self.console.print(Panel(text, border_style=Color.ERROR.value, padding=(0, 1)))


def get_console(config: OutputConfig | None = None) -> GateConsole:
    """Get a configured gate console instance."""
    return GateConsole(config)


__all__ = [
    "SYMBOL_COLORS",
    "Color",
    "GateConsole",
    "OutputConfig",
    "Symbol",
    "get_console",
]
