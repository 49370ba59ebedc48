"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, cast

import yaml

from .models import METRIC_MODES, GeoPoint, MetricMode
from .projection import DEFAULT_MODE_FACTORS, DEFAULT_PADDING_PX

# Bounded container-acquisition policy: fixed delay, fixed attempt budget.
DEFAULT_SIZING_RETRY_DELAY_S = 0.1
DEFAULT_SIZING_MAX_ATTEMPTS = 50
DEFAULT_RESIZE_DEBOUNCE_S = 0.2

# Center of Taiwan.
DEFAULT_HOME = GeoPoint(lon=120.982025, lat=23.973875)

DEFAULT_VISITED_COUNTRIES: tuple[str, ...] = (
    "Australia",
    "Austria",
    "Belgium",
    "Brunei",
    "China",
    "Czechia",
    "Denmark",
    "Estonia",
    "Finland",
    "France",
    "Germany",
    "Greece",
    "Greenland",
    "Hungary",
    "Iceland",
    "Italy",
    "Japan",
    "Laos",
    "Luxembourg",
    "Malaysia",
    "Mexico",
    "Mongolia",
    "Netherlands",
    "North Korea",
    "Norway",
    "Philippines",
    "Poland",
    "Qatar",
    "Singapore",
    "Slovakia",
    "South Korea",
    "Spain",
    "Sweden",
    "Switzerland",
    "Thailand",
    "United Kingdom",
    "United States of America",
    "Vietnam",
)


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _str_list(value: Any, field_name: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Expected list for '{field_name}'")
    out: list[str] = []
    for idx, item in enumerate(value):
        out.append(_str(item, f"{field_name}[{idx}]"))
    return tuple(out)


def _metric_mode(value: Any, field_name: str) -> MetricMode:
    mode = _str(value, field_name).casefold()
    if mode not in METRIC_MODES:
        raise ValueError(f"{field_name} must be one of: " + ", ".join(METRIC_MODES))
    return cast(MetricMode, mode)


def _optional_path(value: Any, field_name: str, root_dir: Path) -> Path | None:
    if value is None:
        return None
    p = Path(_str(value, field_name))
    return p if p.is_absolute() else root_dir / p


@dataclass(frozen=True, slots=True)
class PathsConfig:
    boundaries: Path | None
    markers: Path | None
    logs_dir: Path | None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> PathsConfig:
        return cls(
            boundaries=_optional_path(raw.get("boundaries"), "paths.boundaries", root_dir),
            markers=_optional_path(raw.get("markers"), "paths.markers", root_dir),
            logs_dir=_optional_path(raw.get("logs_dir"), "paths.logs_dir", root_dir),
        )


@dataclass(frozen=True, slots=True)
class FigureConfig:
    width_px: int = 1000
    height_px: int = 800
    dpi: int = 100

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> FigureConfig:
        default = cls()
        out = cls(
            width_px=_int(raw.get("width_px", default.width_px), "view.figure.width_px"),
            height_px=_int(raw.get("height_px", default.height_px), "view.figure.height_px"),
            dpi=_int(raw.get("dpi", default.dpi), "view.figure.dpi"),
        )
        if out.width_px <= 0 or out.height_px <= 0 or out.dpi <= 0:
            raise ValueError("view.figure width_px, height_px and dpi must be > 0")
        return out


@dataclass(frozen=True, slots=True)
class ViewConfig:
    home: GeoPoint = DEFAULT_HOME
    metric_mode: MetricMode = "distance"
    padding_px: float = DEFAULT_PADDING_PX
    mode_factors: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_MODE_FACTORS))
    figure: FigureConfig = FigureConfig()

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ViewConfig:
        default = cls()
        home_raw = raw.get("home")
        home = default.home if home_raw is None else GeoPoint.from_mapping(
            _mapping(home_raw, "view.home"), field_name="view.home"
        )
        padding_px = _float(raw.get("padding_px", default.padding_px), "view.padding_px")
        if padding_px < 0:
            raise ValueError("view.padding_px must be >= 0")

        factors_raw = _mapping(raw.get("mode_factors"), "view.mode_factors")
        mode_factors = dict(default.mode_factors)
        for mode, value in factors_raw.items():
            name = _metric_mode(mode, "view.mode_factors key")
            factor = _float(value, f"view.mode_factors.{name}")
            if factor <= 0:
                raise ValueError(f"view.mode_factors.{name} must be > 0")
            mode_factors[name] = factor

        return cls(
            home=home,
            metric_mode=_metric_mode(raw.get("metric_mode", default.metric_mode), "view.metric_mode"),
            padding_px=padding_px,
            mode_factors=mode_factors,
            figure=FigureConfig.from_mapping(_mapping(raw.get("figure"), "view.figure")),
        )


@dataclass(frozen=True, slots=True)
class LifecycleConfig:
    sizing_retry_delay_s: float = DEFAULT_SIZING_RETRY_DELAY_S
    sizing_max_attempts: int = DEFAULT_SIZING_MAX_ATTEMPTS
    resize_debounce_s: float = DEFAULT_RESIZE_DEBOUNCE_S

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> LifecycleConfig:
        default = cls()
        retry_delay = _float(
            raw.get("sizing_retry_delay_s", default.sizing_retry_delay_s),
            "lifecycle.sizing_retry_delay_s",
        )
        max_attempts = _int(
            raw.get("sizing_max_attempts", default.sizing_max_attempts),
            "lifecycle.sizing_max_attempts",
        )
        debounce = _float(
            raw.get("resize_debounce_s", default.resize_debounce_s),
            "lifecycle.resize_debounce_s",
        )
        if retry_delay < 0:
            raise ValueError("lifecycle.sizing_retry_delay_s must be >= 0")
        if max_attempts < 1:
            raise ValueError("lifecycle.sizing_max_attempts must be >= 1")
        if debounce <= 0:
            raise ValueError("lifecycle.resize_debounce_s must be > 0")
        return cls(
            sizing_retry_delay_s=retry_delay,
            sizing_max_attempts=max_attempts,
            resize_debounce_s=debounce,
        )


@dataclass(frozen=True, slots=True)
class BasemapConfig:
    key_columns: tuple[str, ...] = (
        "ADM0_A3",
        "ISO_A3",
        "ISO_A3_EH",
        "ADM0_A3_US",
        "SOV_A3",
        "GU_A3",
        "SU_A3",
        "BRK_A3",
        "ISO3",
        "A3",
        "id",
    )
    name_columns: tuple[str, ...] = ("NAME", "ADMIN", "NAME_LONG", "name", "admin")
    home_country: str | None = "Taiwan"
    visited_countries: tuple[str, ...] = DEFAULT_VISITED_COUNTRIES

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> BasemapConfig:
        default = cls()
        key_raw = raw.get("key_columns")
        name_raw = raw.get("name_columns")
        visited_raw = raw.get("visited_countries")
        home_raw = raw.get("home_country", default.home_country)
        return cls(
            key_columns=default.key_columns if key_raw is None else _str_list(key_raw, "basemap.key_columns"),
            name_columns=(
                default.name_columns if name_raw is None else _str_list(name_raw, "basemap.name_columns")
            ),
            home_country=None if home_raw is None else _str(home_raw, "basemap.home_country"),
            visited_countries=(
                default.visited_countries
                if visited_raw is None
                else _str_list(visited_raw, "basemap.visited_countries")
            ),
        )


@dataclass(frozen=True, slots=True)
class StyleConfig:
    background: str = "#111111"
    home_fill: str = "#ff9999"
    visited_fill: str = "#666666"
    other_fill: str = "#2b2b2b"
    country_edge_color: str = "#3a3a3a"
    country_edge_width: float = 0.4
    ring_color: str = "#7fb7ff"
    ring_width: float = 1.2
    boundary_ring_color: str = "#bbbbbb"
    boundary_ring_width: float = 1.6
    marker_color: str = "#ffd166"
    marker_radius_px: float = 3.5
    marker_hover_scale: float = 1.8
    label_color: str = "#ffffff"
    tooltip_text_color: str = "#111111"
    tooltip_face_color: str = "#f5f5f5"
    font_size: float = 9.0
    hit_tolerance_px: float = 4.0

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> StyleConfig:
        default = cls()
        values: dict[str, Any] = {}
        for name in (item.name for item in fields(cls)):
            current = getattr(default, name)
            if name not in raw:
                values[name] = current
            elif isinstance(current, str):
                values[name] = _str(raw[name], f"style.{name}")
            else:
                values[name] = _float(raw[name], f"style.{name}")
        out = cls(**values)
        if out.marker_radius_px <= 0 or out.marker_hover_scale <= 0:
            raise ValueError("style.marker_radius_px and style.marker_hover_scale must be > 0")
        if out.hit_tolerance_px < 0:
            raise ValueError("style.hit_tolerance_px must be >= 0")
        return out


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Everything the render engine and its lifecycle read at runtime."""

    view: ViewConfig = ViewConfig()
    lifecycle: LifecycleConfig = LifecycleConfig()
    basemap: BasemapConfig = BasemapConfig()
    style: StyleConfig = StyleConfig()

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> EngineConfig:
        return cls(
            view=ViewConfig.from_mapping(_mapping(raw.get("view"), "view")),
            lifecycle=LifecycleConfig.from_mapping(_mapping(raw.get("lifecycle"), "lifecycle")),
            basemap=BasemapConfig.from_mapping(_mapping(raw.get("basemap"), "basemap")),
            style=StyleConfig.from_mapping(_mapping(raw.get("style"), "style")),
        )


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path
    paths: PathsConfig
    engine: EngineConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path) -> AppConfig:
        root_dir = source_path.parent.resolve()
        return cls(
            source_path=source_path.resolve(),
            paths=PathsConfig.from_mapping(_mapping(raw.get("paths"), "paths"), root_dir),
            engine=EngineConfig.from_mapping(raw),
        )


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
