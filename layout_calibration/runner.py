"""
Calibration Runner Module
Calibrates many (test case, viewport) pairs in parallel, one worker per pair.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, Hashable, List, Mapping, Optional, Sequence

from layout_core.errors import LayoutAnalysisError
from layout_core.models import LayoutSummary
from .calibrator import CalibrationSettings, Calibrator
from .stability import StabilityAnalyzer, StabilityResult

logger = logging.getLogger(__name__)


@dataclass
class CalibrationOutcome:
    """Result for one key: settings on success, the error otherwise."""

    key: Hashable
    settings: Optional[CalibrationSettings] = None
    stability: Optional[StabilityResult] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict:
        return {
            'key': list(self.key) if isinstance(self.key, tuple) else self.key,
            'settings': self.settings.to_dict() if self.settings else None,
            'error': str(self.error) if self.error else None,
        }


class CalibrationRunner:
    def __init__(self, strictness: str = 'medium', max_workers: Optional[int] = None,
                 analyzer: Optional[StabilityAnalyzer] = None,
                 calibrator: Optional[Calibrator] = None):
        self.strictness = strictness
        self.max_workers = max_workers
        self.analyzer = analyzer or StabilityAnalyzer()
        self.calibrator = calibrator or Calibrator()

    def calibrate_one(self, key: Hashable, summaries: Sequence[LayoutSummary]) -> CalibrationOutcome:
        try:
            stability = self.analyzer.analyze(summaries)
            settings = self.calibrator.calibrate(stability, self.strictness)
        except LayoutAnalysisError as e:
            logger.error(f"Calibration failed for {key}: {e}")
            return CalibrationOutcome(key=key, error=e)
        except Exception as e:
            logger.error(f"Unexpected error calibrating {key}: {e}", exc_info=True)
            return CalibrationOutcome(key=key, error=e)
        return CalibrationOutcome(key=key, settings=settings, stability=stability)

    def calibrate_all(self, samples: Mapping[Hashable, Sequence[LayoutSummary]]) -> Dict[Hashable, CalibrationOutcome]:
        """Run every key independently; one key failing never aborts the others."""
        logger.info(f"Calibrating {len(samples)} sample set(s)")
        outcomes: Dict[Hashable, CalibrationOutcome] = {}
        if not samples:
            return outcomes

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self.calibrate_one, key, list(summaries)): key
                for key, summaries in samples.items()
            }
            for future in as_completed(futures):
                key = futures[future]
                try:
                    outcomes[key] = future.result()
                except Exception as e:
                    logger.error(f"Worker for {key} failed: {e}", exc_info=True)
                    outcomes[key] = CalibrationOutcome(key=key, error=e)

        failed: List[Hashable] = [key for key, outcome in outcomes.items() if not outcome.ok]
        logger.info(f"Calibration finished: {len(outcomes) - len(failed)} succeeded, {len(failed)} failed")
        return outcomes


def calibrate_all(samples: Mapping[Hashable, Sequence[LayoutSummary]],
                  strictness: str = 'medium',
                  max_workers: Optional[int] = None) -> Dict[Hashable, CalibrationOutcome]:
    return CalibrationRunner(strictness=strictness, max_workers=max_workers).calibrate_all(samples)
