"""Rich styling derived from the configured theme."""

from __future__ import annotations

from rich import box
from rich.console import Console, RenderableType
from rich.panel import Panel
from rich.style import Style
from rich.table import Table
from rich.text import Text

from bluerat.core.config import Theme


class StyledWidget:
    def __init__(self, theme: Theme) -> None:
        self.theme = theme

    @property
    def normal(self) -> Style:
        return Style(color=self.theme.fg_normal_color, bgcolor=self.theme.bg_normal_color)

    @property
    def connected(self) -> Style:
        return Style(color=self.theme.fg_connected_color, bgcolor=self.theme.bg_connected_color)

    @property
    def new_device(self) -> Style:
        return Style(color=self.theme.fg_new_device_color, bgcolor=self.theme.bg_new_device_color)

    @property
    def selected(self) -> Style:
        return Style(color=self.theme.fg_selected_color, bgcolor=self.theme.bg_selected_color)

    @property
    def header(self) -> Style:
        return Style(color=self.theme.fg_header_color, bgcolor=self.theme.bg_header_color, bold=True)

    def _box(self) -> box.Box | None:
        if not self.theme.borders:
            return None
        return box.ROUNDED if self.theme.rounded_borders else box.SQUARE

    def table(
        self,
        title: str | None,
        columns: list[tuple[str, str]],
        *,
        show_header: bool = True,
        expand: bool = True,
    ) -> Table:
        """Empty table with one column per ``(name, justify)`` pair."""
        table = Table(
            title=title,
            box=self._box(),
            border_style=self.theme.border_color,
            header_style=self.header,
            style=self.normal,
            show_header=show_header,
            padding=(0, self.theme.column_spacing // 2),
            expand=expand,
        )
        for name, justify in columns:
            table.add_column(name, justify=justify)
        return table

    def first_row_line(self, *, title: bool = True, show_header: bool = True) -> int:
        """Line of the first body row of a :meth:`table`, counted from its top."""
        line = 1 if title else 0
        if self.theme.borders:
            line += 1
        if show_header:
            line += 2 if self.theme.borders else 1
        return line

    def table_height(self, rows: int, *, title: bool = True, show_header: bool = True) -> int:
        bottom = 1 if self.theme.borders else 0
        return self.first_row_line(title=title, show_header=show_header) + rows + bottom

    def width(self, renderable: RenderableType) -> int:
        return Console().measure(renderable).maximum

    def panel(self, message: str, title: str | None = None) -> Panel:
        return Panel(
            Text(message),
            title=title,
            box=self._box() or box.SQUARE,
            border_style=self.theme.border_color,
        )
