"""
Main Layout Analyzer Interface
Coordinates summarization, two-capture comparison and multi-capture calibration.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

from layout_calibration.calibrator import CalibrationSettings, Calibrator
from layout_calibration.stability import StabilityAnalyzer, StabilityResult
from layout_comparator.similarity import SimilarityAggregator, SimilarityResult, similarity_report
from layout_comparator.tree_diff import TreeDiffResult, VisualTreeDiffer
from layout_utils.file_utils import load_capture, write_json
from .errors import LayoutAnalysisError
from .models import LayoutSummary, RawElement, Viewport
from .summarizer import LayoutSummarizer

logger = logging.getLogger(__name__)


class LayoutAnalyzer:
    def __init__(self,
                 summarizer: Optional[LayoutSummarizer] = None,
                 aggregator: Optional[SimilarityAggregator] = None,
                 differ: Optional[VisualTreeDiffer] = None,
                 stability_analyzer: Optional[StabilityAnalyzer] = None,
                 calibrator: Optional[Calibrator] = None):
        self.summarizer = summarizer or LayoutSummarizer()
        self.aggregator = aggregator or SimilarityAggregator()
        self.differ = differ or VisualTreeDiffer(aggregator=self.aggregator)
        self.stability_analyzer = stability_analyzer or StabilityAnalyzer(aggregator=self.aggregator)
        self.calibrator = calibrator or Calibrator()
        self.last_result: Optional[Union[TreeDiffResult, SimilarityResult, CalibrationSettings]] = None

    def summarize(self, root: Union[RawElement, Sequence[RawElement], None], viewport: Viewport) -> LayoutSummary:
        try:
            return self.summarizer.summarize(root, viewport)
        except LayoutAnalysisError as e:
            logger.error(f"Error summarizing layout: {e}", exc_info=True)
            raise

    def summarize_file(self, capture_path: Union[str, Path]) -> LayoutSummary:
        roots, viewport = load_capture(capture_path)
        return self.summarize(roots, viewport)

    def compare(self, summary_a: LayoutSummary, summary_b: LayoutSummary) -> SimilarityResult:
        """Similarity of two summaries."""
        self.last_result = self.aggregator.similarity(summary_a, summary_b)
        return self.last_result

    def diff(self, summary_a: LayoutSummary, summary_b: LayoutSummary) -> TreeDiffResult:
        """Similarity plus typed node changes and pattern tags."""
        similarity = self.aggregator.similarity(summary_a, summary_b)
        self.last_result = self.differ.diff(summary_a, summary_b, similarity)
        return self.last_result

    def analyze_stability(self, summaries: Sequence[LayoutSummary]) -> StabilityResult:
        try:
            return self.stability_analyzer.analyze(summaries)
        except LayoutAnalysisError as e:
            logger.error(f"Error analyzing stability: {e}", exc_info=True)
            raise

    def calibrate(self, summaries: Sequence[LayoutSummary], strictness: str = 'medium') -> CalibrationSettings:
        """Derive comparison tolerances from repeated captures of one page."""
        stability = self.analyze_stability(summaries)
        try:
            self.last_result = self.calibrator.calibrate(stability, strictness)
        except LayoutAnalysisError as e:
            logger.error(f"Error calibrating: {e}", exc_info=True)
            raise
        return self.last_result

    def generate_report(self, output_path: Optional[Union[str, Path]] = None) -> str:
        """Plain-text report of the last comparison."""
        if self.last_result is None:
            return "No analysis has been performed yet."

        if isinstance(self.last_result, TreeDiffResult):
            diff = self.last_result
            lines = [
                similarity_report(diff.similarity),
                "\nStructural Changes:",
                f"- Added: {len(diff.added)}",
                f"- Removed: {len(diff.removed)}",
                f"- Modified: {len(diff.modified)}",
                f"- Moved: {len(diff.moved)}",
                f"- Severity: {diff.severity}",
                f"- Patterns: {', '.join(diff.patterns) if diff.patterns else 'none'}",
            ]
            report_text = "\n".join(lines)
        elif isinstance(self.last_result, SimilarityResult):
            report_text = similarity_report(self.last_result)
        else:
            settings = self.last_result
            report_text = "\n".join([
                "Calibration Report",
                "==================\n",
                f"Pixel tolerance: {settings.pixel_tolerance}px",
                f"Percentage tolerance: {settings.percentage_tolerance:.2f}%",
                f"Text similarity threshold: {settings.text_similarity_threshold:.2f}",
                f"Confidence: {settings.confidence_level:.0%}",
                f"Ignored selectors: {', '.join(settings.ignore_selectors) or 'none'}",
                f"Ignored attributes: {', '.join(settings.ignore_attributes) or 'none'}",
            ])

        if output_path:
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(report_text)
        return report_text

    def export_results(self, output_path: Union[str, Path]) -> None:
        """Export the last result to JSON."""
        if self.last_result is None:
            raise ValueError("No analysis has been performed yet.")
        write_json(self.last_result, output_path)

    def get_similarity_scores(self) -> Dict[str, float]:
        if isinstance(self.last_result, TreeDiffResult):
            result = self.last_result.similarity
        elif isinstance(self.last_result, SimilarityResult):
            result = self.last_result
        else:
            raise ValueError("No comparison has been performed yet.")
        return {
            'overall': result.overall_similarity,
            'coordinate': result.coordinate_similarity,
            'accessibility': result.accessibility_similarity,
            'text': result.text_similarity,
            'text_length': result.text_length_similarity,
        }
