# -*- coding: utf-8 -*-
"""
This module provides reporting functions for mesh quality analysis.
"""
from __future__ import annotations

from typing import Any, Optional, Tuple, TYPE_CHECKING

import numpy as np

from ..common.mpi import pprint

if TYPE_CHECKING:
    from .quality import QualitySummary


def format_quality_summary(summary: "QualitySummary") -> str:
    """
    Formats a summary of the computed mesh quality metrics.
    """
    if not summary:
        return "Quality metrics not computed."

    report = []
    report.append(f"\n{'--- Mesh Quality Metrics ---':^80}")
    report.append(f"  Number of cells: {summary.num_cells}")
    report.append(_format_metric_table(summary))
    report.append(
        _format_histogram("Radius Ratio Histogram", summary.radius_ratio_histogram)
    )
    if summary.dihedral_angle_histogram is not None:
        report.append(
            _format_histogram(
                "Dihedral Angle Histogram (deg)",
                summary.dihedral_angle_histogram,
                scale=180.0 / np.pi,
            )
        )
    return "\n".join(report)


def print_quality_summary(summary: "QualitySummary", comm: Optional[Any] = None) -> None:
    """Prints the quality summary on the first process of ``comm`` only."""
    pprint(format_quality_summary(summary), comm=comm)


def _format_metric_table(summary: "QualitySummary") -> str:
    """Formats the table of quality metrics."""
    lines = []
    lines.append(f"  {'Metric':<25} {'Min':>15} {'Max':>15}")
    lines.append(f"  {'-'*24} {'-'*15} {'-'*15}")
    lines.append(_format_metric_row("Radius Ratio", summary.radius_ratio_min_max))
    if summary.dihedral_angle_min_max is not None:
        lines.append(
            _format_metric_row(
                "Dihedral Angle (deg)",
                summary.dihedral_angle_min_max,
                scale=180.0 / np.pi,
            )
        )
    return "\n".join(lines)


def _format_metric_row(
    name: str, min_max: Tuple[float, float], scale: float = 1.0
) -> str:
    """Formats a single row in the metric table."""
    min_val, max_val = min_max
    return f"  {name:<25} {min_val * scale:>15.4f} {max_val * scale:>15.4f}"


def _format_histogram(
    title: str, histogram: Tuple[np.ndarray, np.ndarray], scale: float = 1.0
) -> str:
    """Formats bin centres and counts, one bin per line."""
    bins, values = histogram
    lines = [f"\n{'--- ' + title + ' ---':^80}"]
    lines.append(f"  {'Bin centre':>15} {'Count':>15}")
    for centre, count in zip(bins, values):
        lines.append(f"  {centre * scale:>15.4f} {int(count):>15d}")
    return "\n".join(lines)
