"""Validation layer for config and input datasets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .basemap import CLASS_HOME, CLASS_VISITED, classify_country
from .config import AppConfig
from .models import BoundaryFeature
from .sources import BoundaryRepository, load_markers


@dataclass(slots=True)
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


class Validator:
    """Checks that the configured boundary dataset and marker list load."""

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg

    def run(self) -> ValidationReport:
        report = ValidationReport()
        boundaries = self._validate_boundaries(report)
        if boundaries:
            self._validate_classification(report, boundaries)
        self._validate_markers(report)
        return report

    def _validate_boundaries(self, report: ValidationReport) -> list[BoundaryFeature]:
        path = self.cfg.paths.boundaries
        if path is None:
            report.add_error("paths.boundaries is not configured")
            return []
        if not path.exists():
            report.add_error(f"Missing boundary dataset: {path}")
            return []
        repo = BoundaryRepository(path, self.cfg.engine.basemap)
        try:
            features = repo.load()
        except Exception as exc:
            report.add_error(f"Failed loading boundary dataset '{path}': {exc}")
            return []
        if not features:
            report.add_error(f"Boundary dataset has no usable polygon features: {path}")
            return []
        report.add_info(
            f"Loaded {len(features)} boundary features from {path} "
            f"(key column={repo.key_column}, name column={repo.name_column})"
        )
        return features

    def _validate_classification(self, report: ValidationReport, boundaries: list[BoundaryFeature]) -> None:
        basemap = self.cfg.engine.basemap
        classes = [classify_country(feature.name, basemap) for feature in boundaries]
        if basemap.home_country is not None and CLASS_HOME not in classes:
            report.add_warning(f"Home country '{basemap.home_country}' matches no boundary name")
        names = [feature.name for feature in boundaries]
        for visited in basemap.visited_countries:
            if not any(visited == name or visited in name or name in visited for name in names):
                report.add_warning(f"Visited country '{visited}' matches no boundary name")
        report.add_info(f"Classified {classes.count(CLASS_VISITED)} boundaries as visited")

    def _validate_markers(self, report: ValidationReport) -> None:
        path = self.cfg.paths.markers
        if path is None:
            report.add_info("No marker list configured")
            return
        try:
            markers = load_markers(path)
        except (FileNotFoundError, ValueError) as exc:
            report.add_error(f"Failed parsing markers file '{path}': {exc}")
            return
        report.add_info(f"Loaded {len(markers)} markers from {path}")


def format_report_lines(report: ValidationReport) -> Iterable[str]:
    for info in report.infos:
        yield f"[INFO] {info}"
    for warning in report.warnings:
        yield f"[WARN] {warning}"
    for error in report.errors:
        yield f"[ERROR] {error}"
    if report.ok:
        yield "[OK] Validation completed with no errors."
