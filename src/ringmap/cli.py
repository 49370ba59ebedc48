"""CLI entrypoint for the ringmap renderer."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Any, Sequence

from .config import AppConfig, load_config
from .engine import EngineHandle
from .host import FigureContainer, FigureScheduler
from .lifecycle import (
    AsyncioScheduler,
    BootstrapError,
    BootstrapReport,
    LifecycleController,
    format_bootstrap_lines,
)
from .models import METRIC_MODES, GeoPoint, MarkerFeature
from .sources import BoundaryRepository, load_markers
from .util import parse_lon_lat, setup_logging
from .validate import Validator, format_report_lines

LOGGER = logging.getLogger("ringmap.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ringmap",
        description="Azimuthal equidistant world map with reference rings.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="config.yaml", help="Path to YAML config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    def add_view(p: argparse.ArgumentParser) -> None:
        p.add_argument("--center", default=None, help="Map center as LON,LAT (defaults to view.home).")
        p.add_argument("--mode", choices=METRIC_MODES, default=None, help="Ring metric mode.")

    render_p = subparsers.add_parser("render", help="Render the map headlessly to a file.")
    add_common(render_p)
    add_view(render_p)
    render_p.add_argument(
        "--output",
        default="ringmap.png",
        help="Output image path; format follows the suffix (png, svg, pdf).",
    )

    show_p = subparsers.add_parser("show", help="Open an interactive map window.")
    add_common(show_p)
    add_view(show_p)

    validate_p = subparsers.add_parser("validate", help="Validate config and input files.")
    add_common(validate_p)

    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    log_path = cfg.paths.logs_dir / "ringmap.log" if cfg.paths.logs_dir is not None else None
    setup_logging(log_path, verbose=args.verbose)
    return cfg


def _resolve_center(raw: str | None) -> GeoPoint | None:
    if raw is None:
        return None
    lon, lat = parse_lon_lat(raw)
    return GeoPoint(lon=lon, lat=lat)


def _load_inputs(cfg: AppConfig) -> tuple[BoundaryRepository, list[MarkerFeature]]:
    if cfg.paths.boundaries is None:
        raise ValueError("paths.boundaries is not configured")
    repo = BoundaryRepository(cfg.paths.boundaries, cfg.engine.basemap)
    markers = load_markers(cfg.paths.markers) if cfg.paths.markers is not None else []
    return repo, markers


def _run_validate(cfg: AppConfig) -> int:
    report = Validator(cfg).run()
    for line in format_report_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _run_render(cfg: AppConfig, *, center: GeoPoint | None, mode: str | None, output: Path) -> int:
    from matplotlib.backends.backend_agg import FigureCanvasAgg
    from matplotlib.figure import Figure

    repo, markers = _load_inputs(cfg)
    fig_cfg = cfg.engine.view.figure
    fig = Figure(figsize=(fig_cfg.width_px / fig_cfg.dpi, fig_cfg.height_px / fig_cfg.dpi), dpi=fig_cfg.dpi)
    FigureCanvasAgg(fig)
    container = FigureContainer(fig)

    async def _bootstrap() -> tuple[bool, LifecycleController]:
        settled: asyncio.Future[bool] = asyncio.get_running_loop().create_future()

        def _settle(ok: bool) -> None:
            if not settled.done():
                settled.set_result(ok)

        def _on_ready(_handle: EngineHandle) -> None:
            _settle(True)

        def _on_failure(_error: BootstrapError) -> None:
            _settle(False)

        controller = LifecycleController(
            container,
            AsyncioScheduler(),
            repo.load_async,
            markers,
            cfg.engine,
            on_ready=_on_ready,
            on_failure=_on_failure,
        )
        if mode is not None:
            controller.set_metric_mode(mode)
        await controller.mount()
        return await settled, controller

    ok, controller = asyncio.run(_bootstrap())
    _log_bootstrap(controller.report)
    if not ok:
        controller.dispose()
        LOGGER.error("Render aborted: engine did not become ready.")
        return 1

    if center is not None:
        controller.navigate_to(center)
    output.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output, facecolor=fig.get_facecolor())
    LOGGER.info("Map written to %s", output)
    controller.dispose()
    return 0


def _run_show(cfg: AppConfig, *, center: GeoPoint | None, mode: str | None) -> int:
    import matplotlib.pyplot as plt

    repo, markers = _load_inputs(cfg)
    # The GUI loop owns timers, so load up front and hand the result over.
    boundaries = repo.load()

    async def _preloaded() -> Sequence[Any]:
        return boundaries

    fig_cfg = cfg.engine.view.figure
    fig = plt.figure(figsize=(fig_cfg.width_px / fig_cfg.dpi, fig_cfg.height_px / fig_cfg.dpi), dpi=fig_cfg.dpi)
    container = FigureContainer(fig)

    def _on_ready(handle: EngineHandle) -> None:
        if center is not None:
            handle.navigate_to(center)

    controller = LifecycleController(
        container,
        FigureScheduler(fig.canvas),
        _preloaded,
        markers,
        cfg.engine,
        on_ready=_on_ready,
    )
    if mode is not None:
        controller.set_metric_mode(mode)

    def _on_key(event: Any) -> None:
        if event.key == "h":
            controller.navigate_home()
        elif event.key == "m":
            current = controller.engine.metric_mode
            controller.set_metric_mode("radius" if current == "distance" else "distance")

    fig.canvas.mpl_connect("key_press_event", _on_key)
    fig.canvas.mpl_connect("close_event", lambda _event: controller.dispose())
    asyncio.run(controller.mount())
    LOGGER.info("Keys: h = home, m = toggle ring metric")
    plt.show()
    _log_bootstrap(controller.report)
    return 0 if controller.report.ok else 1


def _log_bootstrap(report: BootstrapReport) -> None:
    for line in format_bootstrap_lines(report):
        if line.startswith("[ERROR]"):
            LOGGER.error(line)
        else:
            LOGGER.info(line)


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = str(args.command)
    if command == "validate":
        return _run_validate(cfg)
    if command == "render":
        return _run_render(
            cfg,
            center=_resolve_center(args.center),
            mode=args.mode,
            output=Path(args.output),
        )
    if command == "show":
        return _run_show(cfg, center=_resolve_center(args.center), mode=args.mode)
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        return _dispatch(args)
    except (FileNotFoundError, ValueError) as exc:
        LOGGER.error("%s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
