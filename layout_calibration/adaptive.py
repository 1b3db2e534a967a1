"""
Adaptive Stability Module
Decides when repeated captures have produced enough evidence to stop calibrating.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from layout_core.errors import InsufficientSamplesError
from layout_core.models import LayoutSummary
from .calibrator import CalibrationSettings, Calibrator
from .stability import StabilityAnalyzer, StabilityResult

logger = logging.getLogger(__name__)

TARGET_STABILITY = 95.0
EARLY_STOP_THRESHOLD = 98.0
MIN_ITERATIONS = 3
MAX_ITERATIONS = 10
EARLY_STOP_CONFIDENCE = 0.8
TARGET_CONFIDENCE = 0.6
LOW_STABILITY = 50.0


@dataclass
class StabilityProgress:
    iteration: int
    current_stability: float
    unstable_node_count: int
    total_node_count: int
    confidence: float
    should_continue: bool
    reason: str = ''

    def to_dict(self) -> Dict:
        return {
            'iteration': self.iteration,
            'current_stability': self.current_stability,
            'unstable_node_count': self.unstable_node_count,
            'total_node_count': self.total_node_count,
            'confidence': self.confidence,
            'should_continue': self.should_continue,
            'reason': self.reason,
        }


def evaluate_progress(iteration: int,
                      result: StabilityResult,
                      confidence: float,
                      target_stability: float = TARGET_STABILITY,
                      early_stop_threshold: float = EARLY_STOP_THRESHOLD,
                      min_iterations: int = MIN_ITERATIONS,
                      max_iterations: int = MAX_ITERATIONS) -> StabilityProgress:
    """Evaluate one round of an adaptive calibration loop; conditions are checked in order."""
    stability = result.overall_stability
    should_continue = True
    reason = ''

    if stability >= early_stop_threshold and confidence >= EARLY_STOP_CONFIDENCE:
        should_continue = False
        reason = f"Excellent stability ({stability:.1f}%) with high confidence ({confidence:.0%})"
    elif (stability >= target_stability and confidence >= TARGET_CONFIDENCE
          and iteration >= min_iterations + 2):
        should_continue = False
        reason = f"Target stability ({target_stability:.0f}%) reached with sufficient confidence"
    elif iteration >= max_iterations - 1:
        should_continue = False
        reason = "Maximum iterations reached"
    elif iteration >= min_iterations + 5 and stability < LOW_STABILITY:
        should_continue = False
        reason = "Stability is very low; the page likely has dynamic content"

    return StabilityProgress(
        iteration=iteration,
        current_stability=stability,
        unstable_node_count=len(result.unstable_nodes),
        total_node_count=len(result.node_variations),
        confidence=confidence,
        should_continue=should_continue,
        reason=reason,
    )


@dataclass
class AdaptiveCalibrationResult:
    result: StabilityResult
    settings: CalibrationSettings
    progress: List[StabilityProgress] = field(default_factory=list)


class AdaptiveCalibration:
    """Capture repeatedly until the stability evaluation says to stop.

    `capture` is supplied by the caller (typically a browser driver) and
    returns the summary of one fresh capture for the given iteration index.
    """

    def __init__(self,
                 capture: Callable[[int], LayoutSummary],
                 strictness: str = 'medium',
                 target_stability: float = TARGET_STABILITY,
                 early_stop_threshold: float = EARLY_STOP_THRESHOLD,
                 min_iterations: int = MIN_ITERATIONS,
                 max_iterations: int = MAX_ITERATIONS,
                 analyzer: Optional[StabilityAnalyzer] = None,
                 calibrator: Optional[Calibrator] = None):
        self.capture = capture
        self.strictness = strictness
        self.target_stability = target_stability
        self.early_stop_threshold = early_stop_threshold
        self.min_iterations = min_iterations
        self.max_iterations = max_iterations
        self.analyzer = analyzer or StabilityAnalyzer()
        self.calibrator = calibrator or Calibrator()

    def run(self) -> AdaptiveCalibrationResult:
        summaries: List[LayoutSummary] = []
        progress: List[StabilityProgress] = []
        result: Optional[StabilityResult] = None
        settings: Optional[CalibrationSettings] = None

        for iteration in range(1, self.max_iterations + 1):
            summaries.append(self.capture(iteration - 1))
            if iteration < self.min_iterations:
                logger.info(f"Collecting samples ({iteration}/{self.min_iterations})")
                continue

            result = self.analyzer.analyze(summaries)
            settings = self.calibrator.calibrate(result, self.strictness)
            step = evaluate_progress(
                iteration, result, settings.confidence_level,
                self.target_stability, self.early_stop_threshold,
                self.min_iterations, self.max_iterations,
            )
            progress.append(step)
            logger.info(f"Iteration {iteration}: stability {step.current_stability:.1f}%, "
                        f"{step.unstable_node_count}/{step.total_node_count} unstable")
            if not step.should_continue:
                logger.info(step.reason)
                break

        if result is None:
            raise InsufficientSamplesError(len(summaries), max(self.min_iterations, 2))
        return AdaptiveCalibrationResult(result=result, settings=settings, progress=progress)
