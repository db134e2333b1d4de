"""
Output - Console output formatting.

Provides pretty-printed output with colors and formatting.
"""

import sys
from typing import Optional

from ..application.sync import SyncResult, SyncStatus


class Colors:
    """ANSI color codes."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"

    BG_YELLOW = "\033[43m"


class Symbols:
    """Unicode symbols for output."""

    CHECK = "✓"
    CROSS = "✗"
    ARROW = "→"
    DOT = "•"
    WARN = "⚠"
    INFO = "ℹ"
    GEAR = "⚙"

    BOX_H = "─"


class Console:
    """Console output helper with colors and formatting."""

    MAX_LISTED = 10

    def __init__(self, color: bool = True, verbose: bool = False):
        self.color = color and sys.stdout.isatty()
        self.verbose = verbose

    def _c(self, text: str, *codes: str) -> str:
        """Apply color codes to text."""
        if not self.color:
            return text
        return "".join(codes) + text + Colors.RESET

    def print(self, text: str = "") -> None:
        """Print text."""
        print(text)

    def header(self, text: str) -> None:
        """Print a header."""
        width = max(len(text) + 4, 50)
        border = Colors.CYAN + Symbols.BOX_H * width + Colors.RESET if self.color else "-" * width

        self.print()
        self.print(border)
        self.print(self._c(f"  {text}", Colors.BOLD, Colors.CYAN))
        self.print(border)
        self.print()

    def section(self, text: str) -> None:
        """Print a section header."""
        self.print()
        self.print(self._c(f"{Symbols.ARROW} {text}", Colors.BOLD, Colors.BLUE))

    def success(self, text: str) -> None:
        self.print(self._c(f"  {Symbols.CHECK} {text}", Colors.GREEN))

    def error(self, text: str) -> None:
        self.print(self._c(f"  {Symbols.CROSS} {text}", Colors.RED))

    def warning(self, text: str) -> None:
        self.print(self._c(f"  {Symbols.WARN} {text}", Colors.YELLOW))

    def info(self, text: str) -> None:
        self.print(self._c(f"  {Symbols.INFO} {text}", Colors.CYAN))

    def detail(self, text: str) -> None:
        """Print detail text (dimmed)."""
        self.print(self._c(f"    {text}", Colors.DIM))

    def table(self, headers: list[str], rows: list[list[str]]) -> None:
        """Print a simple table."""
        # Calculate column widths
        widths = [len(h) for h in headers]
        for row in rows:
            for i, cell in enumerate(row):
                if i < len(widths):
                    widths[i] = max(widths[i], len(str(cell)))

        header_line = "  " + "  ".join(
            self._c(h.ljust(widths[i]), Colors.BOLD)
            for i, h in enumerate(headers)
        )
        self.print(header_line)
        self.print("  " + "  ".join("-" * w for w in widths))

        for row in rows:
            row_line = "  " + "  ".join(
                str(cell).ljust(widths[i]) if i < len(widths) else str(cell)
                for i, cell in enumerate(row)
            )
            self.print(row_line)

    def progress(self, current: int, total: int, message: str = "") -> None:
        """Print progress bar."""
        if total <= 0:
            return
        width = 30
        filled = int(width * current / total)
        bar = "█" * filled + "░" * (width - filled)
        pct = int(100 * current / total)

        sys.stdout.write(f"\r  [{bar}] {pct}% {message:<24}")
        sys.stdout.flush()

        if current >= total:
            self.print()

    def dry_run_banner(self) -> None:
        """Print dry-run mode banner."""
        self.print()
        banner = f"  {Symbols.GEAR} DRY-RUN MODE - No changes will be made"
        if self.color:
            self.print(f"{Colors.BG_YELLOW}{Colors.BOLD}{banner}{Colors.RESET}")
        else:
            self.print(f"*** {banner} ***")
        self.print()

    def sync_result(self, result: SyncResult) -> None:
        """Print sync result summary."""
        self.section("Sync Summary")
        self.print()

        if result.dry_run:
            self.info("Mode: DRY-RUN (no changes made)")
        else:
            self.info("Mode: LIVE EXECUTION")
        if result.run_id:
            self.detail(f"Run {result.run_id}")

        self.print()

        rows = [
            [entity_type.label, str(s.succeeded), str(s.skipped), str(s.failed),
             str(s.created), str(s.updated)]
            for entity_type, s in result.by_type.items()
        ]
        rows.append(["Total", str(result.succeeded), str(result.skipped), str(result.failed),
                     str(result.created), str(result.updated)])
        self.table(["Type", "Synced", "Skipped", "Failed", "Created", "Updated"], rows)

        if result.archived:
            self.print()
            self.info(f"{result.archived} remote page(s) of deleted entities retired")

        if result.failures:
            self.print()
            self.error(f"{len(result.failures)} failure(s):")
            for failure in result.failures[:self.MAX_LISTED]:
                self.detail(str(failure))
            if len(result.failures) > self.MAX_LISTED:
                self.detail(f"... and {len(result.failures) - self.MAX_LISTED} more")

        self.print()
        if result.status == SyncStatus.ABORTED:
            self.error(f"Sync aborted: {result.error}")
        elif result.status == SyncStatus.CANCELLED:
            self.warning("Sync cancelled; remaining entities stay dirty")
        elif result.success:
            self.success("Sync completed successfully!")
        else:
            self.error("Sync completed with errors")

    def confirm(self, message: str) -> bool:
        """Ask for confirmation."""
        prompt = self._c(f"\n{Symbols.WARN} {message} (y/N): ", Colors.YELLOW)
        try:
            response = input(prompt).strip().lower()
            return response in ("y", "yes")
        except (EOFError, KeyboardInterrupt):
            self.print()
            return False

    def key_value(self, key: str, value: Optional[str]) -> None:
        self.print(f"    {Symbols.DOT} {key}: {value if value else self._c('(not set)', Colors.DIM)}")
