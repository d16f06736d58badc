from __future__ import annotations

from contextlib import contextmanager
from datetime import date

from nicegui import ui

from planboard.allocation.capacity import CapacityOverview
from planboard.board import BoardView, LineView
from planboard.core.models import CapacityStatus
from planboard.layout.geometry import block_geometry, row_height_for


_THEME_APPLIED = False

STATUS_COLORS: dict[CapacityStatus, str] = {
    CapacityStatus.AVAILABLE: "#16a34a",  # green-600
    CapacityStatus.TIGHT: "#f59e0b",  # amber-500
    CapacityStatus.OVERLOADED: "#dc2626",  # red-600
}

STATUS_LABELS: dict[CapacityStatus, str] = {
    CapacityStatus.AVAILABLE: "Available",
    CapacityStatus.TIGHT: "Tight",
    CapacityStatus.OVERLOADED: "Overloaded",
}

UNIT_WIDTH = 36
ROW_HEIGHT = 28
LINE_LABEL_WIDTH = 160


def apply_theme() -> None:
    try:
        ui.colors(
            primary="#2563eb",  # blue-600
            secondary="#0ea5e9",  # sky-500
            positive="#16a34a",
            negative="#dc2626",
            warning="#f59e0b",
        )
    except Exception:
        # Keep running even if NiceGUI changes the API.
        pass

    ui.add_css(
        """
        body { background: #f8fafc; }
        .pb-container { max-width: 1400px; margin: 0 auto; padding: 16px; }
        .pb-subtitle { color: #475569; }
        .pb-header { border-bottom: 1px solid rgba(15, 23, 42, 0.08); }
        .pb-timeline { overflow-x: auto; border: 1px solid rgba(15, 23, 42, 0.08); background: white; }
        .pb-block { position: absolute; border-radius: 4px; font-size: 11px; color: white;
                    padding: 0 4px; overflow: hidden; white-space: nowrap; background: #2563eb; }
        .pb-block-clamped { border-right: 3px dashed #0f172a; }
        .pb-daycell { position: absolute; top: 0; bottom: 0; border-left: 1px solid rgba(15, 23, 42, 0.06); }
        """
    )


def ensure_theme() -> None:
    """Apply theme once, but only when called from within a page context."""
    global _THEME_APPLIED
    if _THEME_APPLIED:
        return
    apply_theme()
    _THEME_APPLIED = True


@contextmanager
def page_container():
    with ui.element("div").classes("pb-container"):
        yield


def render_nav(active: str | None = None, *, title: str = "Production Planning Board") -> None:
    ensure_theme()
    active_key = active or "board"
    sections: list[tuple[str, str, str]] = [
        ("board", "Board", "/"),
        ("allocate", "Allocate", "/allocate"),
        ("config", "Config", "/config"),
    ]
    with ui.header().classes("pb-header bg-white text-slate-900"):
        with ui.row().classes("w-full items-center justify-between gap-4 px-4 py-2"):
            ui.label(title).classes("text-xl md:text-2xl font-semibold leading-none")
            with ui.row().classes("items-center gap-1"):
                for key, label, path in sections:
                    props = "dense no-caps color=primary" + (" unelevated" if key == active_key else " flat")
                    ui.button(label, on_click=lambda p=path: ui.navigate.to(p)).props(props)


def status_badge(status: CapacityStatus | None) -> None:
    if status is None:
        ui.badge("-").props("color=grey-6")
        return
    ui.badge(STATUS_LABELS[status]).style(f"background: {STATUS_COLORS[status]} !important")


def render_overview(overview: CapacityOverview) -> None:
    with ui.row().classes("w-full gap-4"):
        for label, value in (
            ("Lines", f"{overview.line_count}"),
            ("Capacity", f"{overview.total_capacity:,.0f}"),
            ("Allocated", f"{overview.total_allocated:,.0f}"),
            ("Avg. utilization", f"{overview.average_utilization:.0f}%"),
        ):
            with ui.card().classes("p-3 min-w-[140px]"):
                ui.label(label).classes("text-xs text-slate-500")
                ui.label(value).classes("text-xl font-semibold")
        with ui.card().classes("p-3"):
            ui.label("By status").classes("text-xs text-slate-500")
            with ui.row().classes("gap-2"):
                for status, n in overview.by_status.items():
                    ui.label(f"{STATUS_LABELS[status]}: {n}").style(f"color: {STATUS_COLORS[status]}")


def render_capacity_cards(lines: list[LineView]) -> None:
    with ui.element("div").classes("w-full grid gap-3 grid-cols-2 md:grid-cols-4"):
        for lv in lines:
            ln = lv.line
            status = lv.status
            with ui.card().classes("p-3"):
                with ui.row().classes("w-full items-center justify-between"):
                    ui.label(ln.display_name).classes("font-semibold")
                    status_badge(status)
                sub = " / ".join(s for s in (ln.factory, ln.unit, ln.line_type) if s)
                if sub:
                    ui.label(sub).classes("text-xs text-slate-500")
                ui.linear_progress(value=min(lv.utilization, 100.0) / 100.0, show_value=False).style(
                    f"color: {STATUS_COLORS[status]}"
                )
                ui.label(f"{ln.allocated:,.0f} / {ln.capacity:,.0f} ({lv.utilization:.0f}%)").classes("text-sm")


def render_timeline(board: BoardView, days: list[date]) -> None:
    """Draw each visible line as a row with its stacked blocks."""
    width = len(days) * UNIT_WIDTH
    with ui.element("div").classes("pb-timeline w-full"):
        with ui.row().classes("no-wrap gap-0"):
            ui.element("div").style(f"min-width: {LINE_LABEL_WIDTH}px")
            for d in days:
                ui.label(d.strftime("%d-%m")).classes("text-xs text-center text-slate-500").style(
                    f"min-width: {UNIT_WIDTH}px; width: {UNIT_WIDTH}px"
                )

        for lv in board.lines:
            height = row_height_for(max(lv.lanes, 1), row_height=ROW_HEIGHT)
            with ui.row().classes("no-wrap gap-0 items-stretch").style("border-top: 1px solid rgba(15,23,42,0.08)"):
                with ui.column().classes("gap-0 px-2 justify-center").style(f"min-width: {LINE_LABEL_WIDTH}px"):
                    ui.label(lv.line.display_name).classes("text-sm font-medium")
                    ui.label(f"{lv.utilization:.0f}%").classes("text-xs").style(
                        f"color: {STATUS_COLORS[lv.status]}"
                    )
                with ui.element("div").style(f"position: relative; width: {width}px; height: {height}px"):
                    for i in range(len(days)):
                        ui.element("div").classes("pb-daycell").style(f"left: {i * UNIT_WIDTH}px")
                    for t in lv.tasks:
                        g = block_geometry(t, unit_width=UNIT_WIDTH, row_height=ROW_HEIGHT)
                        block = ui.element("div").classes("pb-block" + (" pb-block-clamped" if t.clamped else ""))
                        block.style(
                            f"left: {g.left}px; top: {g.top}px; width: {g.width - 2}px; "
                            f"height: {g.height}px; line-height: {g.height}px"
                        )
                        with block:
                            ui.label(t.label or t.task_id)
                            tip = f"{t.task_id}: units {t.start_index}-{t.end_index}"
                            if t.start_clamped:
                                tip += " (started before the window)"
                            if t.clamped:
                                tip += f" (continues beyond the window, shown to {t.effective_end_index})"
                            ui.tooltip(tip)
