"""
GPS Plausibility Classifier

Heuristics that look for mocked or spoofed locations. Signals are grouped
into families (device, accuracy, stability, timing) and each family adds at
most one reason. A verdict is suspicious only when at least two families
agree; a lone signal is dropped, since real browsers produce odd single
readings often enough (cached fixes, coarse Wi-Fi positions).
"""
from typing import List, Optional

import numpy as np
from loguru import logger

from ..identity import GPSCapability
from .location import LocationSource
from .models import DetectionVerdict, LocationReading, ThresholdProfile

EMULATOR_MARKERS = ("sdk", "emulator", "simulator")

REASON_EMULATOR = "emulator/simulator detected"
REASON_ZERO_ACCURACY = "impossible GPS accuracy (0 m)"
REASON_SUB_DECIMETER_ACCURACY = "impossibly high accuracy"
REASON_IDENTICAL_COORDINATES = "coordinates artificially identical"
REASON_ERROR = "error during GPS check"

IDENTICAL_DELTA_DEGREES = 1e-7
SUB_DECIMETER_METERS = 0.1
MIN_CORROBORATING_SIGNALS = 2


class GPSPlausibilityClassifier:
    """
    Classifies one check-in attempt from three sequential readings

    Args:
        location_source: where readings come from
        user_agent: device identity string reported by the client
        extended_signals: also score accuracy range, coordinate variance and
            timestamp gaps against the lesson's ThresholdProfile
    """

    def __init__(
        self,
        location_source: LocationSource,
        user_agent: Optional[str] = None,
        extended_signals: bool = False,
    ):
        self.location_source = location_source
        self.user_agent = user_agent or ""
        self.extended_signals = extended_signals

    async def classify(self, capability: GPSCapability, thresholds: ThresholdProfile) -> DetectionVerdict:
        if capability is GPSCapability.EXEMPT:
            return DetectionVerdict(is_suspicious=False, reasons=[])

        reasons: List[str] = []

        device_reason = self._check_device()
        if device_reason:
            reasons.append(device_reason)

        try:
            first = await self.location_source.acquire()

            accuracy_reason = self._check_accuracy(first, thresholds)
            if accuracy_reason:
                reasons.append(accuracy_reason)

            # One at a time: the elapsed time and jitter between fixes are signals
            second = await self.location_source.acquire()
            third = await self.location_source.acquire()

        except Exception as e:
            logger.warning(f"GPS plausibility check could not read location: {e}")
            reasons.append(REASON_ERROR)
            return DetectionVerdict(is_suspicious=False, reasons=reasons)

        stability_reason = self._check_stability([first, second, third], thresholds)
        if stability_reason:
            reasons.append(stability_reason)

        if self.extended_signals:
            timing_reason = self._check_timing([first, second, third], thresholds)
            if timing_reason:
                reasons.append(timing_reason)

        if len(reasons) < MIN_CORROBORATING_SIGNALS:
            if reasons:
                logger.debug(f"Uncorroborated GPS signal ignored: {reasons[0]}")
            return DetectionVerdict(is_suspicious=False, reasons=[])

        logger.info(f"Suspicious GPS: {', '.join(reasons)}")
        return DetectionVerdict(is_suspicious=True, reasons=reasons)

    def _check_device(self) -> Optional[str]:
        ua = self.user_agent.lower()
        if any(marker in ua for marker in EMULATOR_MARKERS):
            return REASON_EMULATOR
        return None

    def _check_accuracy(self, reading: LocationReading, thresholds: ThresholdProfile) -> Optional[str]:
        accuracy = reading.accuracy_meters

        if accuracy == 0:
            return REASON_ZERO_ACCURACY
        if accuracy < SUB_DECIMETER_METERS:
            return REASON_SUB_DECIMETER_ACCURACY

        if self.extended_signals:
            if accuracy < thresholds.accuracy_floor:
                return f"accuracy {accuracy:g} m below {thresholds.accuracy_floor:g} m floor"
            if accuracy > thresholds.accuracy_ceiling:
                return f"accuracy {accuracy:g} m above {thresholds.accuracy_ceiling:g} m ceiling"

        return None

    def _check_stability(self, readings: List[LocationReading], thresholds: ThresholdProfile) -> Optional[str]:
        _, second, third = readings
        lat_delta = abs(second.latitude - third.latitude)
        lon_delta = abs(second.longitude - third.longitude)

        if lat_delta < IDENTICAL_DELTA_DEGREES and lon_delta < IDENTICAL_DELTA_DEGREES:
            return REASON_IDENTICAL_COORDINATES

        if self.extended_signals:
            lat_variance = float(np.var([r.latitude for r in readings]))
            lon_variance = float(np.var([r.longitude for r in readings]))
            if lat_variance < thresholds.variance_floor and lon_variance < thresholds.variance_floor:
                return f"coordinate variance below {thresholds.variance_floor:g}"

        return None

    def _check_timing(self, readings: List[LocationReading], thresholds: ThresholdProfile) -> Optional[str]:
        gaps = np.diff([r.timestamp_ms for r in readings])
        smallest = int(np.abs(gaps).min())

        if smallest < thresholds.timestamp_gap_floor_ms:
            return f"readings only {smallest} ms apart (minimum {thresholds.timestamp_gap_floor_ms} ms)"

        return None
