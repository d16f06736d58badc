from __future__ import annotations

import inspect
import logging
from datetime import date, timedelta

from nicegui import ui

from planboard.allocation.capacity import (
    evaluate_bulk,
    filter_by_group,
    pending_line_selection,
    suggest_lines,
    summarize_lines,
    summary_by_factory,
)
from planboard.board import plan_board, planned_dates
from planboard.core.errors import PlanningError
from planboard.core.models import ALL_LINES, AllocationRequest
from planboard.data.repository import Repository
from planboard.layout.timeline import displayed_units
from planboard.ui.widgets import (
    page_container,
    render_capacity_cards,
    render_nav,
    render_overview,
    render_timeline,
    status_badge,
)

logger = logging.getLogger(__name__)


def register_pages(repo: Repository) -> None:
    def board_title() -> str:
        return repo.get_config(key="board_name") or "Production Planning Board"

    def days_shown() -> int:
        return max(1, repo.get_config_int(key="board_days_shown", default=28))

    def group_options() -> dict[str, str]:
        opts = {ALL_LINES: "All lines"}
        for g in repo.get_planning_groups():
            opts[g.group_id] = g.name
        return opts

    def resolve_group(group_id: str | None):
        if not group_id or group_id == ALL_LINES:
            return ALL_LINES
        return repo.get_planning_group(group_id) or ALL_LINES

    @ui.page("/")
    def board_page(group: str = ALL_LINES, start: str | None = None) -> None:
        render_nav(active="board", title=board_title())
        with page_container():
            try:
                window_start = date.fromisoformat(start) if start else date.today()
            except ValueError:
                window_start = date.today()
            days = displayed_units(window_start, days_shown())

            with ui.row().classes("w-full items-center gap-4"):
                ui.label("Planning board").classes("text-2xl font-semibold")
                ui.select(
                    group_options(),
                    value=group if group in group_options() else ALL_LINES,
                    label="Planning group",
                    on_change=lambda e: ui.navigate.to(f"/?group={e.value}&start={window_start.isoformat()}"),
                ).classes("w-64")
                ui.button(
                    icon="chevron_left",
                    on_click=lambda: ui.navigate.to(
                        f"/?group={group}&start={(window_start - timedelta(days=7)).isoformat()}"
                    ),
                ).props("flat dense")
                ui.label(f"{days[0].isoformat()} .. {days[-1].isoformat()}").classes("pb-subtitle")
                ui.button(
                    icon="chevron_right",
                    on_click=lambda: ui.navigate.to(
                        f"/?group={group}&start={(window_start + timedelta(days=7)).isoformat()}"
                    ),
                ).props("flat dense")
            ui.separator()

            lines = repo.get_line_snapshots()
            if not lines:
                ui.label("No production lines yet. Import them in Config.").classes("text-slate-500")
                return

            scope = resolve_group(group)
            try:
                board = plan_board(
                    repo.get_board_tasks(window_start=window_start),
                    lines,
                    displayed_units_length=len(days),
                    group=scope,
                    max_lanes=repo.get_config_int(key="board_max_lanes", default=12),
                )
            except PlanningError as ex:
                logger.warning("Board layout failed: %s", ex)
                ui.notify(f"Cannot draw the board: {ex}", color="negative")
                return

            render_overview(summarize_lines(filter_by_group(lines, scope)))
            render_capacity_cards(list(board.lines))

            if board.clamped:
                ui.label(
                    f"{len(board.clamped)} order(s) continue past the visible window: "
                    + ", ".join(t.task_id for t in board.clamped)
                ).classes("text-sm text-amber-700")
            if board.start_clamped:
                ui.label(
                    f"{len(board.start_clamped)} order(s) started before the visible window: "
                    + ", ".join(t.task_id for t in board.start_clamped)
                ).classes("text-sm text-slate-500")
            if board.excluded:
                ui.label(
                    f"{len(board.excluded)} order(s) start after the visible window: "
                    + ", ".join(x.task.task_id for x in board.excluded)
                ).classes("text-sm text-slate-500")

            render_timeline(board, days)

    @ui.page("/allocate")
    def allocate_page(group: str = ALL_LINES) -> None:
        render_nav(active="allocate", title=board_title())
        with page_container():
            ui.label("Bulk allocation").classes("text-2xl font-semibold")
            ui.label(
                "Pick a line per order, evaluate the batch against capacity, then commit the accepted orders."
            ).classes("pb-subtitle")

            scope = resolve_group(group)
            ui.select(
                group_options(),
                value=group if group in group_options() else ALL_LINES,
                label="Planning group",
                on_change=lambda e: ui.navigate.to(f"/allocate?group={e.value}"),
            ).classes("w-64")

            lines = repo.get_line_snapshots()
            visible = filter_by_group(lines, scope)
            orders = repo.get_unscheduled_orders()
            if not orders:
                ui.label("All orders are scheduled.").classes("text-slate-500")
                return
            if not visible:
                ui.label("No lines in this planning group.").classes("text-slate-500")
                return

            line_options = {ln.line_id: f"{ln.display_name} ({ln.utilization:.0f}%)" for ln in visible}
            allow_overbooking = repo.get_config_bool(key="allow_overbooking")
            choice: dict[str, str | None] = {}

            def pick(order_id: str, line_id: str | None) -> None:
                choice[order_id] = line_id
                # shown verdicts no longer match the selection
                results_box.clear()

            with ui.card().classes("w-full"):
                for o in orders:
                    order_id = str(o["order_id"])
                    suggested = suggest_lines(visible, float(o["quantity"]), group=ALL_LINES)
                    choice[order_id] = suggested[0].line_id if suggested else None
                    with ui.row().classes("w-full items-center gap-4"):
                        ui.label(str(o.get("order_code") or order_id)).classes("w-40 font-medium")
                        ui.label(str(o.get("buyer") or "")).classes("w-40 text-slate-600")
                        ui.label(f"{float(o['quantity']):,.0f}").classes("w-24 text-right")
                        ui.label(str(o.get("delivery_date") or "")).classes("w-28 text-slate-600")
                        ui.select(
                            line_options,
                            value=choice[order_id],
                            label="Line",
                            clearable=True,
                            on_change=lambda e, oid=order_id: pick(oid, e.value),
                        ).classes("w-64")

            results_box = ui.column().classes("w-full")

            def build_requests() -> list[AllocationRequest]:
                return [
                    AllocationRequest(
                        order_id=str(o["order_id"]),
                        requested_quantity=float(o["quantity"]),
                        candidate_line_id=choice.get(str(o["order_id"])),
                    )
                    for o in orders
                ]

            def evaluate() -> None:
                requests = build_requests()
                missing = pending_line_selection(requests)
                if missing:
                    ui.notify(f"{len(missing)} order(s) still need a line", color="warning")
                evaluation = evaluate_bulk(requests, lines, group=scope, allow_overload=allow_overbooking)

                results_box.clear()
                with results_box:
                    with ui.row().classes("gap-6"):
                        ui.label(f"Accepted: {len(evaluation.accepted)}")
                        ui.label(f"Rejected: {len(evaluation.rejected)}")
                        ui.label(f"Lines touched: {len(evaluation.lines)}")
                        ui.label(f"Avg. utilization: {evaluation.average_utilization:.0f}%")
                    for r in evaluation.results:
                        with ui.row().classes("items-center gap-4"):
                            ui.icon("check_circle" if r.accepted else "cancel").style(
                                f"color: {'#16a34a' if r.accepted else '#dc2626'}"
                            )
                            ui.label(str(r.order_id)).classes("w-40")
                            ui.label(str(r.line_id or "-")).classes("w-32")
                            proj = r.projected_utilization
                            ui.label(f"{proj:.0f}%" if proj is not None else "-").classes("w-16 text-right")
                            status_badge(r.status)
                            if r.reason is not None:
                                ui.label(r.reason.value).classes("text-sm text-slate-600")
                    for factory, items in summary_by_factory(evaluation, lines).items():
                        ui.label(f"{factory}: " + ", ".join(f"{r.order_id} -> {r.line_id}" for r in items)).classes(
                            "text-sm"
                        )

            def commit() -> None:
                # verdicts are recomputed from the current selections and line loads
                current = repo.get_line_snapshots()
                evaluation = evaluate_bulk(build_requests(), current, group=scope, allow_overload=allow_overbooking)
                accepted = evaluation.accepted
                if not accepted:
                    ui.notify("Nothing accepted to commit", color="warning")
                    return
                try:
                    dates = planned_dates(
                        accepted,
                        {str(o["order_id"]): o for o in orders},
                        current,
                        period_days=days_shown(),
                        default_start=date.today(),
                    )
                    repo.commit_allocations(accepted, dates=dates)
                except Exception as ex:
                    logger.exception("Commit of bulk allocation failed")
                    ui.notify(f"Error committing allocations: {ex}", color="negative")
                    return
                if evaluation.rejected:
                    ui.notify(f"{len(evaluation.rejected)} order(s) left unscheduled", color="warning")
                ui.notify(f"Committed {len(accepted)} order(s)")
                ui.navigate.to(f"/allocate?group={group}")

            with ui.row().classes("gap-2"):
                ui.button("Evaluate", icon="rule", on_click=evaluate).props("unelevated color=primary")
                ui.button("Commit accepted", icon="save", on_click=commit).props("unelevated color=positive")

    @ui.page("/config")
    def config_page() -> None:
        render_nav(active="config", title=board_title())
        with page_container():
            ui.label("Configuration").classes("text-2xl font-semibold")

            with ui.card().classes("p-4 w-[min(520px,100%)]"):
                ui.label("Board").classes("text-lg font-semibold")
                name = ui.input("Board name", value=board_title()).classes("w-full")
                days = ui.number("Days shown", value=days_shown(), min=1, max=180, step=1).classes("w-full")
                lanes = ui.number(
                    "Max stacked lanes",
                    value=repo.get_config_int(key="board_max_lanes", default=12),
                    min=1,
                    max=50,
                    step=1,
                ).classes("w-full")
                overbook = ui.switch("Allow overbooking (accept with warning)", value=repo.get_config_bool(key="allow_overbooking"))

                def save_cfg() -> None:
                    try:
                        repo.set_config(key="board_name", value=str(name.value or "").strip() or "Production Planning Board")
                        repo.set_config(key="board_days_shown", value=str(int(days.value or 28)))
                        repo.set_config(key="board_max_lanes", value=str(int(lanes.value or 12)))
                        repo.set_config(key="allow_overbooking", value="1" if overbook.value else "0")
                    except Exception as ex:
                        ui.notify(f"Error saving configuration: {ex}", color="negative")
                        return
                    ui.notify("Configuration saved")

                ui.button("Save", icon="save", on_click=save_cfg).props("unelevated color=primary")

            def uploader(kind: str, label: str):
                async def handle_upload(e):
                    try:
                        content = None
                        if hasattr(e, "content"):
                            content = e.content.read()
                        elif hasattr(e, "file"):
                            f = e.file
                            if inspect.iscoroutinefunction(f.read):
                                content = await f.read()
                            else:
                                content = f.read()
                        if content is None:
                            raise ValueError("upload event carries no file content")
                        n = repo.import_excel_bytes(kind=kind, content=content)
                        ui.notify(f"Imported {n} {kind}")
                    except Exception as ex:
                        logger.exception("Import of %s failed", kind)
                        ui.notify(f"Error importing {kind}: {ex}", color="negative")

                ui.upload(label=label, on_upload=handle_upload).props("accept=.xlsx max-files=1")

            with ui.row().classes("w-full gap-4 items-stretch"):
                with ui.card().classes("p-4 w-[min(520px,100%)]"):
                    ui.label("Production lines").classes("text-lg font-semibold")
                    ui.label("Columns: Line ID, Line Name, Factory, Unit, Line Type, Capacity").classes("pb-subtitle")
                    uploader("lines", "Lines (.xlsx)")
                with ui.card().classes("p-4 w-[min(520px,100%)]"):
                    ui.label("Orders").classes("text-lg font-semibold")
                    ui.label("Columns: Order ID, Order Code, Buyer, Style, Quantity, Ship Date").classes("pb-subtitle")
                    uploader("orders", "Orders (.xlsx)")

            with ui.card().classes("p-4 w-full"):
                ui.label("Recent changes").classes("text-lg font-semibold")
                rows = [
                    {"id": a.id, "timestamp": a.timestamp, "category": a.category, "message": a.message, "details": a.details or ""}
                    for a in repo.get_recent_audit_entries(limit=50)
                ]
                ui.table(
                    columns=[
                        {"name": "timestamp", "label": "When", "field": "timestamp"},
                        {"name": "category", "label": "Category", "field": "category"},
                        {"name": "message", "label": "Message", "field": "message"},
                        {"name": "details", "label": "Details", "field": "details"},
                    ],
                    rows=rows,
                    row_key="id",
                ).classes("w-full").props("dense flat bordered")
