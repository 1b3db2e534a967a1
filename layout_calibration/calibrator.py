"""
Calibrator Module
Turns a stability analysis into concrete comparison tolerances.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List

from layout_core.errors import InputError
from layout_utils.geometry import clamp
from .stability import StabilityResult

logger = logging.getLogger(__name__)

SETTINGS_VERSION = 1

STRICTNESS_MULTIPLIERS = {
    'low': 1.5,
    'medium': 1.0,
    'high': 0.7,
}

TOLERANCE_MODES = ('fine', 'banded')

PIXEL_DRIFT_FACTOR = 1.5
MIN_PERCENTAGE_TOLERANCE = 0.1
MAX_PERCENTAGE_TOLERANCE = 5.0
MIN_TEXT_SIMILARITY = 0.8
FULL_CONFIDENCE_ITERATIONS = 10

# (minimum overall stability, percentage tolerance), checked top to bottom
PERCENTAGE_BANDS = (
    (90, 5.0),
    (80, 10.0),
    (70, 20.0),
)
LOWEST_BAND_TOLERANCE = 30.0

IGNORE_SELECTOR_STABILITY = 0.5
VISIBILITY_IGNORE_COUNT = 5
CLASS_PATTERN_RATIO = 0.3
DYNAMIC_CLASS_SUBSTRINGS = ('animate', 'dynamic')


@dataclass
class CalibrationSettings:
    """Comparison configuration derived from one calibration run."""

    pixel_tolerance: int
    percentage_tolerance: float
    text_similarity_threshold: float
    confidence_level: float
    ignore_selectors: List[str] = field(default_factory=list)
    ignore_attributes: List[str] = field(default_factory=list)
    strictness: str = 'medium'
    tolerance_mode: str = 'fine'
    version: int = SETTINGS_VERSION
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.version,
            'pixel_tolerance': self.pixel_tolerance,
            'percentage_tolerance': self.percentage_tolerance,
            'text_similarity_threshold': self.text_similarity_threshold,
            'confidence_level': self.confidence_level,
            'ignore_selectors': list(self.ignore_selectors),
            'ignore_attributes': list(self.ignore_attributes),
            'strictness': self.strictness,
            'tolerance_mode': self.tolerance_mode,
            'metadata': dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CalibrationSettings':
        version = int(data.get('version', SETTINGS_VERSION))
        if version > SETTINGS_VERSION:
            raise InputError(f"Unsupported calibration settings version {version}")
        try:
            return cls(
                pixel_tolerance=int(data['pixel_tolerance']),
                percentage_tolerance=float(data['percentage_tolerance']),
                text_similarity_threshold=float(data['text_similarity_threshold']),
                confidence_level=float(data['confidence_level']),
                ignore_selectors=list(data.get('ignore_selectors', [])),
                ignore_attributes=list(data.get('ignore_attributes', [])),
                strictness=data.get('strictness', 'medium'),
                tolerance_mode=data.get('tolerance_mode', 'fine'),
                version=version,
                metadata=dict(data.get('metadata', {})),
            )
        except KeyError as e:
            raise InputError(f"Calibration settings missing field {e.args[0]!r}") from e


def strictness_multiplier(strictness: str) -> float:
    if strictness not in STRICTNESS_MULTIPLIERS:
        raise InputError(f"Unknown strictness {strictness!r}; expected one of "
                         f"{', '.join(STRICTNESS_MULTIPLIERS)}")
    return STRICTNESS_MULTIPLIERS[strictness]


def banded_percentage_tolerance(overall_stability: float) -> float:
    for minimum, tolerance in PERCENTAGE_BANDS:
        if overall_stability >= minimum:
            return tolerance
    return LOWEST_BAND_TOLERANCE


class Calibrator:
    def __init__(self, tolerance_mode: str = 'fine', boost_confidence: bool = False):
        if tolerance_mode not in TOLERANCE_MODES:
            raise InputError(f"Unknown tolerance mode {tolerance_mode!r}")
        self.tolerance_mode = tolerance_mode
        self.boost_confidence = boost_confidence

    def calibrate(self, result: StabilityResult, strictness: str = 'medium') -> CalibrationSettings:
        multiplier = strictness_multiplier(strictness)
        unstable = result.unstable_nodes
        logger.info(f"Calibrating from {result.iterations} iterations, "
                    f"{len(unstable)} unstable node(s), strictness={strictness}")

        settings = CalibrationSettings(
            pixel_tolerance=self.pixel_tolerance(result, multiplier),
            percentage_tolerance=self.percentage_tolerance(result, multiplier),
            text_similarity_threshold=max(
                MIN_TEXT_SIMILARITY, 1 - result.average_text_dissimilarity * multiplier),
            confidence_level=self.confidence_level(result.iterations),
            ignore_selectors=self.ignore_selectors(result),
            ignore_attributes=self.ignore_attributes(result),
            strictness=strictness,
            tolerance_mode=self.tolerance_mode,
            metadata={
                'iterations': result.iterations,
                'overall_stability': result.overall_stability,
                'node_stability': result.node_stability,
                'group_stability': result.group_stability,
                'similarity_stability': result.similarity_stability,
                'unstable_nodes': len(unstable),
                'total_nodes': len(result.node_variations),
            },
        )
        logger.info(f"Calibrated: pixel={settings.pixel_tolerance}px "
                    f"percentage={settings.percentage_tolerance:.2f}% "
                    f"confidence={settings.confidence_level:.2f}")
        return settings

    def pixel_tolerance(self, result: StabilityResult, multiplier: float) -> int:
        max_delta = max((v.max_position_delta for v in result.unstable_nodes), default=0.0)
        return max(0, math.ceil(max_delta * PIXEL_DRIFT_FACTOR * multiplier))

    def percentage_tolerance(self, result: StabilityResult, multiplier: float) -> float:
        if self.tolerance_mode == 'banded':
            return banded_percentage_tolerance(result.overall_stability)
        unstable_count = len(result.unstable_nodes)
        if unstable_count == 0:
            return 0.0
        ratio = unstable_count / len(result.node_variations)
        return clamp(ratio * 10, MIN_PERCENTAGE_TOLERANCE, MAX_PERCENTAGE_TOLERANCE) * multiplier

    def confidence_level(self, iterations: int) -> float:
        confidence = min(iterations / FULL_CONFIDENCE_ITERATIONS, 1.0)
        if self.boost_confidence:
            if iterations >= 5:
                confidence *= 1.1
            if iterations >= FULL_CONFIDENCE_ITERATIONS:
                confidence *= 1.1
        return min(confidence, 1.0)

    def ignore_selectors(self, result: StabilityResult) -> List[str]:
        selectors = []
        for variation in result.node_variations:
            if variation.stability_score < IGNORE_SELECTOR_STABILITY and variation.selector not in selectors:
                selectors.append(variation.selector)
        return selectors

    def ignore_attributes(self, result: StabilityResult) -> List[str]:
        unstable = result.unstable_nodes
        attributes = []
        if any('text' in v.variation_types for v in unstable):
            attributes.append('text')
        if sum(1 for v in unstable if 'visibility' in v.variation_types) > VISIBILITY_IGNORE_COUNT:
            attributes.append('visibility')
        if unstable:
            for substring in DYNAMIC_CLASS_SUBSTRINGS:
                sharing = sum(1 for v in unstable if substring in (v.class_name or ''))
                if sharing / len(unstable) >= CLASS_PATTERN_RATIO:
                    attributes.append(f"class*={substring}")
        return attributes


def calibrate(result: StabilityResult, strictness: str = 'medium') -> CalibrationSettings:
    return Calibrator().calibrate(result, strictness)
