import argparse
import json
from collections import deque
from pathlib import Path
from typing import Any, Deque, Dict, Optional

from dotenv import load_dotenv

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.traceback import Traceback

from .core.logging_setup import configure_logging
from .core.settings import get_settings
from .devices.agg import draw_png
from .pipeline.build import build
from .pipeline.render import render
from .services import alt_text, derive_spec, load_table
from .utils.audit import AuditLogger

console = Console(soft_wrap=False)

EVENT_LABELS: Dict[str, str] = {
    "data_loaded": "data loaded",
    "spec_ready": "specification ready",
    "build_start": "build started",
    "stage": "build stage",
    "scale_range": "position ranges",
    "build_done": "build finished",
    "render_layers": "layers drawn",
    "render_panels": "panels assembled",
    "render_guides": "guides assembled",
    "render_done": "render finished",
    "png_written": "PNG written",
    "artifact_written": "run persisted",
}


def _trim(text: str, limit: int = 70) -> str:
    text = text.strip()
    return text if len(text) <= limit else f"{text[: limit - 1]}..."


def _detail_for_event(event: str, payload: Dict[str, Any]) -> str:
    if event == "data_loaded":
        return f"{payload.get('rows', 0)} rows / {len(payload.get('columns', []))} columns"
    if event == "build_start":
        return f"{payload.get('layers')} layer(s), {payload.get('facet')}, {payload.get('coord')}"
    if event == "stage":
        return f"{payload.get('stage')}: rows {payload.get('rows')}"
    if event == "scale_range":
        return f"{payload.get('phase')}: x {payload.get('x')} y {payload.get('y')}"
    if event == "build_done":
        return f"{payload.get('panels')} panel(s)"
    if event == "render_guides":
        return f"{payload.get('guides')} guide(s) at {', '.join(payload.get('positions', [])) or '-'}"
    if event == "render_done":
        return f"{payload.get('cells')} cells, {payload.get('removed_rows')} rows removed"
    if event in ("png_written", "artifact_written"):
        return _trim(str(payload.get("path", "")), 50)
    return ""


def _format_event(event: str, payload: Dict[str, Any]) -> str:
    label = EVENT_LABELS.get(event, event)
    if event == "stage":
        return f"[cyan]> {payload.get('stage')}[/] {payload.get('rows')}"
    if event == "scale_range":
        return f"[blue]range[/] {payload.get('phase')}"
    if event == "render_done":
        removed = payload.get("removed_rows", 0)
        color = "green" if not removed else "yellow"
        return f"[{color}]rendered[/] {payload.get('cells')} cells, {removed} rows removed"
    if event in ("build_done", "png_written"):
        return f"[bold green]{label}[/]"
    return f"[dim]{label}[/]"


def _build_progress_panel(state: Dict[str, Any]) -> Panel:
    table = Table.grid(padding=(0, 2))
    table.add_column(justify="right", style="cyan", no_wrap=True)
    table.add_column(justify="left", style="bold white")
    table.add_row("Phase", state.get("phase", "-"))
    table.add_row("Stage", state.get("stage", "-"))
    table.add_row("Detail", state.get("detail") or "-")
    return Panel(table, title="Progress", border_style="bright_magenta")


def _build_log_panel(logs: Deque[str]) -> Panel:
    if not logs:
        body = Text("waiting...", style="dim")
    else:
        body = Text()
        for idx, raw in enumerate(logs):
            if idx:
                body.append("\n")
            body.append_text(Text.from_markup(raw))
    return Panel(body, title="Events", border_style="grey50")


def _render(state: Dict[str, Any], logs: Deque[str]) -> Group:
    return Group(_build_progress_panel(state), _build_log_panel(logs))


def _read_spec(path: str) -> Dict[str, Any]:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Invalid JSON in {path}: {exc}") from exc


def main(argv: Optional[list] = None) -> None:
    load_dotenv()
    parser = argparse.ArgumentParser(prog="gramviz", description="Build and render a declarative plot document.")
    parser.add_argument("spec_json")
    parser.add_argument("--data", default=None, help="CSV, JSON or Excel file replacing spec.data")
    parser.add_argument("--sheet", default=None)
    parser.add_argument("--out", default="plot.png")
    parser.add_argument("--no-audit", action="store_true")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(level=settings.log_level)
    document = _read_spec(args.spec_json)
    canvas = document.get("canvas") or {}

    state: Dict[str, Any] = {"phase": "starting", "stage": "-", "detail": ""}
    event_log: Deque[str] = deque(maxlen=10)
    result: Dict[str, Any] = {}
    error: Optional[Exception] = None

    with Live(_render(state, event_log), refresh_per_second=8, console=console) as live:

        def handle_progress(event: str, payload: Dict[str, Any]) -> None:
            state["phase"] = EVENT_LABELS.get(event, event)
            if event == "stage":
                state["stage"] = str(payload.get("stage"))
            detail = _detail_for_event(event, payload)
            if detail:
                state["detail"] = detail
            event_log.appendleft(_format_event(event, payload))
            live.update(_render(state, event_log))

        try:
            data = None
            if args.data:
                data = load_table(args.data, args.sheet)
                handle_progress("data_loaded", {"rows": len(data), "columns": list(data.columns)})
            spec = derive_spec(document, data)
            handle_progress("spec_ready", {})
            built = build(spec, progress_callback=handle_progress)
            table = render(built, progress_callback=handle_progress)
            png = draw_png(
                table,
                float(canvas.get("width_in", settings.width_in)),
                float(canvas.get("height_in", settings.height_in)),
                int(canvas.get("dpi", settings.dpi)),
                path=args.out,
            )
            handle_progress("png_written", {"path": args.out})
            result = {"built": built, "table": table, "png": png}
            if settings.persist_runs and not args.no_audit:
                run_dir = AuditLogger(settings.storage_root).persist(
                    run_inputs={"spec": document, "data": args.data, "sheet": args.sheet},
                    layers=built.summary()["layers"],
                    cells=table.to_dict(),
                    diagnostics=table.diagnostics.to_json(),
                    png=png,
                )
                result["run_dir"] = run_dir
                handle_progress("artifact_written", {"path": str(run_dir)})
        except Exception as exc:  # pragma: no cover - propagate but prettify
            error = exc
            state["phase"] = "failed"
            state["detail"] = _trim(str(exc))
            event_log.appendleft(f"[bold red]error[/] {_trim(str(exc), 60)}")
            live.update(_render(state, event_log))

    if error is not None:
        console.print(Traceback.from_exception(type(error), error, error.__traceback__))
        raise SystemExit(1)

    console.rule("done")
    built, table = result["built"], result["table"]

    layers = Table(show_header=True, header_style="bold cyan")
    layers.add_column("#", style="cyan", no_wrap=True)
    layers.add_column("geom", style="bold white")
    layers.add_column("stat", style="white")
    layers.add_column("rows", justify="right")
    layers.add_column("removed", justify="right", style="yellow")
    for row in built.summary()["layers"]:
        removed = table.diagnostics.removed_rows(row["index"])
        layers.add_row(str(row["index"]), row["geom"], row["stat"], str(row["rows"]), str(removed))
    console.print(Panel(layers, title="Layers", border_style="green"))

    notable = [rec for rec in table.diagnostics.records if rec.kind.value != "stage"]
    if notable:
        diag_table = Table(show_header=True, header_style="bold cyan")
        diag_table.add_column("kind", style="magenta")
        diag_table.add_column("stage", style="white")
        diag_table.add_column("layer", justify="center")
        diag_table.add_column("message", style="white", overflow="fold")
        for rec in notable:
            diag_table.add_row(rec.kind.value, rec.stage, "-" if rec.layer is None else str(rec.layer), rec.msg)
        console.print(Panel(diag_table, title="Diagnostics", border_style="yellow"))

    summary = Table.grid(padding=(0, 2))
    summary.add_column(style="cyan", justify="right", no_wrap=True)
    summary.add_column(style="bold white")
    summary.add_row("PNG", _trim(args.out, 60))
    if result.get("run_dir"):
        summary.add_row("Run", _trim(str(result["run_dir"]), 60))
    summary.add_row("Alt text", alt_text(built))
    console.print(Panel(summary, title="Result", border_style="green"))


if __name__ == "__main__":
    main()
