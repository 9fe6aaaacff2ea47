#!/usr/bin/env python3
"""
validation/reporting.py - Measurement Results Reporting

Analysis stage of the integration pipeline. Reads one or more result
records and writes:
- summary.json: accuracy statistics and threshold checks
- summary.csv: one row per run
- report.html: human-readable report
- error_summary.png: relative error per run

Usage:
    horizon-analyzer --result results/run1/result.json --output results/run1/report

    from validation.reporting import ResultAnalyzer, ReportConfig

    analyzer = ResultAnalyzer(ReportConfig(output_dir="report"))
    report = analyzer.analyze(["result.json"])
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Dict, Any, Optional, Sequence, Union

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from jinja2 import Template

from horizon.core.errors import ResultFormatError
from horizon.core.results import load_result
from .metrics import (
    ValidationThresholds,
    accuracy_grade,
    check_thresholds,
    distance_error_statistics,
    records_to_rows,
)

logger = logging.getLogger(__name__)

HTML_TEMPLATE = Template("""<!DOCTYPE html>
<html>
<head>
    <title>Horizon Distance Validation Report</title>
    <style>
        body { font-family: Arial, sans-serif; margin: 40px; }
        .header { background-color: #f0f0f0; padding: 20px; border-radius: 5px; }
        .section { margin: 20px 0; padding: 15px; border-left: 4px solid #007acc; }
        table { border-collapse: collapse; }
        td, th { padding: 4px 10px; border-bottom: 1px solid #ddd; text-align: right; }
        .pass { color: green; } .fail { color: red; }
    </style>
</head>
<body>
    <div class="header">
        <h1>Horizon Distance Validation Report</h1>
        <p>Generated: {{ generation_time }}</p>
    </div>

    <div class="section">
        <h2>Summary</h2>
        <p>Overall Status: <span class="{{ 'pass' if overall_pass else 'fail' }}">{{ 'PASS' if overall_pass else 'FAIL' }}</span></p>
        <p>Accuracy Grade: {{ grade }}</p>
        <p>Runs: {{ stats.n_successful }} successful / {{ stats.n_runs }} total</p>
        {% if stats.n_successful %}
        <p>Mean error: {{ '%.2f' % (stats.error_m.mean / 1e3) }} km ({{ '%.4f' % stats.error_percent.mean }}%)</p>
        <p>Max error: {{ '%.2f' % (stats.error_m.max / 1e3) }} km ({{ '%.4f' % stats.error_percent.max }}%)</p>
        {% endif %}
    </div>

    <div class="section">
        <h2>Runs</h2>
        {{ runs_table }}
    </div>

    {% if stats.failure_messages %}
    <div class="section">
        <h2>Failures</h2>
        <ul>
        {% for message in stats.failure_messages %}<li>{{ message }}</li>{% endfor %}
        </ul>
    </div>
    {% endif %}

    {% if figure %}
    <div class="section">
        <h2>Relative Error</h2>
        <img src="{{ figure }}" alt="Relative error per run">
    </div>
    {% endif %}
</body>
</html>
""")


@dataclass
class ReportConfig:
    """Configuration for report generation."""
    output_dir: Union[str, Path] = "report"
    export_formats: List[str] = None  # json, csv, html, png
    max_error_percent: float = 5.0
    min_success_rate: float = 1.0

    def __post_init__(self):
        if self.export_formats is None:
            self.export_formats = ["json", "csv", "html", "png"]
        self.output_dir = Path(self.output_dir)


class ResultAnalyzer:
    """
    Accuracy report generator for measurement result files.

    Unreadable result files are logged and left out of the analysis; the
    analysis fails only when none of the files can be read.
    """

    def __init__(self, config: Optional[ReportConfig] = None):
        """
        Initialize result analyzer.

        Parameters
        ----------
        config : ReportConfig, optional
            Reporting configuration
        """
        self.config = config or ReportConfig()
        self.config.output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"ResultAnalyzer writing to {self.config.output_dir}")

    def load_records(self, result_paths: Sequence[Union[str, Path]]):
        """Load result files, skipping unreadable ones."""
        records, sources = [], []
        for path in result_paths:
            try:
                records.append(load_result(path))
                sources.append(str(path))
            except (ResultFormatError, OSError) as e:
                logger.error(f"Skipping result {path}: {e}")
        return records, sources

    def analyze(self, result_paths: Sequence[Union[str, Path]]) -> Dict[str, Any]:
        """
        Analyze result files and export the report.

        Parameters
        ----------
        result_paths : Sequence[str or Path]
            Result files written by the measurement stage

        Returns
        -------
        Dict[str, Any]
            Report with statistics, threshold checks and exported files

        Raises
        ------
        ResultFormatError
            If no result file could be read
        """
        records, sources = self.load_records(result_paths)
        if not records:
            raise ResultFormatError("No readable result files")

        stats = distance_error_statistics(records)
        thresholds = ValidationThresholds(
            max_error_percent=self.config.max_error_percent,
            min_success_rate=self.config.min_success_rate,
        )
        report = {
            'report_metadata': {
                'generation_time': datetime.now(timezone.utc).isoformat(),
                'sources': sources,
            },
            'statistics': stats,
            'threshold_analysis': check_thresholds(stats, thresholds),
            'grade': accuracy_grade(stats['error_percent']['mean']),
        }

        table = pd.DataFrame(records_to_rows(records, sources))
        report['exported_files'] = self._export(report, table)

        logger.info(
            f"Analysis: {stats['n_successful']}/{stats['n_runs']} successful, "
            f"grade {report['grade']}, "
            f"{'PASS' if report['threshold_analysis']['overall_pass'] else 'FAIL'}"
        )
        return report

    def _export(self, report: Dict[str, Any], table: pd.DataFrame) -> Dict[str, str]:
        exported = {}
        out = self.config.output_dir
        formats = self.config.export_formats

        figure_name = None
        if 'png' in formats:
            figure_path = out / "error_summary.png"
            self._plot_errors(table, figure_path)
            exported['png'] = str(figure_path)
            figure_name = figure_path.name

        if 'csv' in formats:
            csv_path = out / "summary.csv"
            table.to_csv(csv_path, index=False)
            exported['csv'] = str(csv_path)

        if 'html' in formats:
            html_path = out / "report.html"
            with open(html_path, 'w') as f:
                f.write(self._render_html(report, table, figure_name))
            exported['html'] = str(html_path)

        if 'json' in formats:
            json_path = out / "summary.json"
            with open(json_path, 'w') as f:
                json.dump(self._make_json_serializable(report), f, indent=2)
            exported['json'] = str(json_path)

        return exported

    def _plot_errors(self, table: pd.DataFrame, path: Path):
        fig, ax = plt.subplots(figsize=(8, 4))
        successful = table[table['success']]
        labels = [Path(source).parent.name or source for source in successful['source']]
        ax.bar(range(len(successful)), successful['error_percent'], color='skyblue')
        ax.axhline(self.config.max_error_percent, color='red', linestyle='--', label='Threshold')
        ax.set_xticks(range(len(successful)))
        ax.set_xticklabels(labels, rotation=45, ha='right')
        ax.set_ylabel('Distance error (%)')
        ax.set_title('Relative distance error per run')
        ax.legend()
        fig.tight_layout()
        fig.savefig(path, dpi=150)
        plt.close(fig)

    def _render_html(self, report: Dict[str, Any], table: pd.DataFrame, figure: Optional[str]) -> str:
        return HTML_TEMPLATE.render(
            generation_time=report['report_metadata']['generation_time'],
            overall_pass=report['threshold_analysis']['overall_pass'],
            grade=report['grade'],
            stats=report['statistics'],
            runs_table=table.to_html(index=False, na_rep='-', float_format=lambda v: f"{v:.6g}"),
            figure=figure,
        )

    def _make_json_serializable(self, obj: Any) -> Any:
        """Convert numpy types and NaN for JSON."""
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, (np.floating, float)):
            value = float(obj)
            return None if np.isnan(value) else value
        elif isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.bool_):
            return bool(obj)
        elif isinstance(obj, dict):
            return {key: self._make_json_serializable(value) for key, value in obj.items()}
        elif isinstance(obj, list):
            return [self._make_json_serializable(item) for item in obj]
        else:
            return obj


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="horizon-analyzer", description="Accuracy report for horizon measurement results"
    )
    parser.add_argument("--result", nargs="+", required=True, help="Result file(s) to analyze")
    parser.add_argument("--output", required=True, help="Report directory")
    parser.add_argument("--max-error-percent", type=float, default=5.0,
                        help="Pass threshold on the relative error (default: 5.0)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    analyzer = ResultAnalyzer(ReportConfig(output_dir=args.output, max_error_percent=args.max_error_percent))
    try:
        analyzer.analyze(args.result)
    except ResultFormatError as e:
        logger.error(f"Analysis failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
