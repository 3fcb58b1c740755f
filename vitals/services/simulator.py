"""
Simulated vital-signs stream for the foot-care monitor.

Produces a slowly drifting series of heart rate, foot pressure and device
telemetry (Bluetooth link, battery, anomaly count) without sensor hardware.

Key patterns:
- One shared SimulatorState per simulator instance (all callers see one stream)
- Injected random source and clock so every branch is reproducible in tests
- Step-then-persist: state advances even when the storage write fails
"""

import math
import random
import threading
import time
from collections.abc import Callable

from vitals.config import SimulatorConfig
from vitals.domain.models import (
    HealthMetricCreate,
    PersistenceError,
    PushResult,
    SimulatorState,
    UnsavedSample,
    VitalsSample,
)
from vitals.observability import get_logger
from vitals.services.storage import HealthMetricsStorage

logger = get_logger(__name__)

Clock = Callable[[], float]


def wall_clock_ms() -> float:
    return time.time() * 1000.0


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def round_one_decimal(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


class VitalSignsSimulator:
    """
    Evolves the simulated stream and hands out snapshots.

    Every call to peek() or push_sample() runs exactly one step:
    connectivity flicker, battery drain, battery recharge, gated heart-rate
    update, gated pressure update, anomaly increment, anomaly decrement.
    The step and the snapshot that follows run under one lock; the lock is
    released before any storage I/O.
    """

    def __init__(
        self,
        storage: HealthMetricsStorage | None = None,
        *,
        rng: random.Random | None = None,
        clock: Clock | None = None,
        config: SimulatorConfig | None = None,
    ) -> None:
        self.config = config or SimulatorConfig()
        self.storage = storage
        self._rng = rng or random.Random(self.config.seed)
        self._clock = clock or wall_clock_ms
        self._lock = threading.Lock()
        self._state = SimulatorState.initial(self._clock())
        self.logger = logger.bind(component="vital_signs_simulator")

    @property
    def state(self) -> SimulatorState:
        return self._state

    def reset(self) -> None:
        """Start the stream again from the seed values."""
        with self._lock:
            self._state = SimulatorState.initial(self._clock())
        self.logger.info("simulator_reset")

    def peek(self) -> VitalsSample:
        """Advance the stream if due and return the current snapshot."""
        with self._lock:
            now = self._clock()
            self._step(now)
            s = self._state
            return VitalsSample(
                heart_rate=round_half_up(s.heart_rate),
                foot_pressure=round_one_decimal(s.foot_pressure),
                bluetooth_connected=s.bluetooth_connected,
                battery_level=s.battery_level,
                anomalies_detected=s.anomalies_detected,
                timestamp=int(now),
            )

    async def push_sample(self, user_id: str | None = None) -> PushResult:
        """
        Advance the stream and persist the sample when a user is known.

        Without a user the sample is returned unsaved and storage is never
        touched. Storage failures propagate unchanged; the stream is not
        rolled back.
        """
        sample = self.peek()

        if not user_id:
            return PushResult(
                saved=False,
                record=UnsavedSample(
                    heart_rate=sample.heart_rate,
                    foot_pressure=sample.foot_pressure,
                    bluetooth_connected=sample.bluetooth_connected,
                    battery_level=sample.battery_level,
                    anomalies_detected=sample.anomalies_detected,
                    timestamp=sample.timestamp,
                ),
            )

        if self.storage is None:
            raise PersistenceError("no storage configured for persisting health metrics")

        payload = HealthMetricCreate(
            user_id=user_id,
            heart_rate=sample.heart_rate,
            foot_pressure=sample.foot_pressure,
            bluetooth_connected=sample.bluetooth_connected,
            battery_level=sample.battery_level,
            anomalies_detected=sample.anomalies_detected,
        )
        try:
            saved = await self.storage.create_health_metrics(payload)
        except Exception as e:
            self.logger.exception("health_metrics_persist_failed", user_id=user_id, error=str(e))
            raise

        self.logger.info("health_metrics_persisted", user_id=user_id, record_id=saved.id)
        return PushResult(saved=True, metrics=saved)

    # Random draws all go through rng.random() so a fixed source pins every branch

    def _chance(self, probability: float) -> bool:
        return self._rng.random() < probability

    def _uniform(self, low: float, high: float) -> float:
        return low + (high - low) * self._rng.random()

    def _randint(self, low: int, high: int) -> int:
        return min(high, low + math.floor(self._rng.random() * (high - low + 1)))

    def _step(self, now: float) -> None:
        self._flicker_connectivity()
        self._update_battery()
        self._advance_heart_rate(now)
        self._advance_foot_pressure(now)
        self._update_anomalies(round_half_up(self._state.heart_rate))

    def _flicker_connectivity(self) -> None:
        s, c = self._state, self.config
        if not self._chance(c.bluetooth_toggle_probability):
            return
        s.bluetooth_connected = not s.bluetooth_connected
        if not s.bluetooth_connected:
            s.battery_level = max(0, s.battery_level - self._randint(0, c.disconnect_drain_max))
        self.logger.info(
            "bluetooth_toggled",
            connected=s.bluetooth_connected,
            battery_level=s.battery_level,
        )

    def _update_battery(self) -> None:
        s, c = self._state, self.config
        # Drain then recharge; each reads the battery level as it stands
        if s.bluetooth_connected and self._chance(c.battery_drain_probability):
            s.battery_level = max(0, s.battery_level - 1)
        if s.battery_level < c.battery_recharge_threshold and self._chance(
            c.battery_recharge_probability
        ):
            gained = self._randint(c.battery_recharge_min, c.battery_recharge_max)
            s.battery_level = min(100, s.battery_level + gained)
            self.logger.info("battery_recharged", gained=gained, battery_level=s.battery_level)

    def _advance_heart_rate(self, now: float) -> None:
        s, c = self._state, self.config
        gate = self._uniform(c.heart_rate_gate_min_ms, c.heart_rate_gate_max_ms)
        if now - s.last_update_ms <= gate:
            return
        trend = c.heart_rate_trend_amplitude * math.sin(now / c.heart_rate_trend_divisor_ms)
        drift = self._randint(-c.heart_rate_drift_span, c.heart_rate_drift_span)
        s.heart_rate = clamp(s.heart_rate + drift + trend, c.heart_rate_min, c.heart_rate_max)
        s.last_update_ms = now
        self.logger.debug("heart_rate_advanced", heart_rate=s.heart_rate, drift=drift)

    def _advance_foot_pressure(self, now: float) -> None:
        s, c = self._state, self.config
        # Shares last_update_ms with the heart-rate gate
        gate = self._uniform(c.pressure_gate_min_ms, c.pressure_gate_max_ms)
        if now - s.last_update_ms <= gate:
            return
        trend = c.pressure_trend_amplitude * math.cos(now / c.pressure_trend_divisor_ms)
        drift = self._randint(-c.pressure_drift_span, c.pressure_drift_span)
        s.foot_pressure = clamp(
            round_one_decimal(s.foot_pressure + drift + trend),
            c.foot_pressure_min,
            c.foot_pressure_max,
        )
        s.last_update_ms = now
        self.logger.debug("foot_pressure_advanced", foot_pressure=s.foot_pressure, drift=drift)

    def _update_anomalies(self, bpm: int) -> None:
        s, c = self._state, self.config
        # Increment check first, then the independent decrement check
        outside_normal = bpm < c.normal_heart_rate_low or bpm > c.normal_heart_rate_high
        if outside_normal and self._chance(c.anomaly_increment_probability):
            s.anomalies_detected = min(c.max_anomalies, s.anomalies_detected + 1)
            self.logger.info("anomaly_detected", heart_rate=bpm, anomalies=s.anomalies_detected)
        if self._chance(c.anomaly_decrement_probability):
            s.anomalies_detected = max(0, s.anomalies_detected - 1)
