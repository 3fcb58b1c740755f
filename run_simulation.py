"""
Demo run of the simulated vital-signs stream.

This script:
1. Loads and validates configuration
2. Builds the configured storage backend
3. Drives the simulator on an accelerated clock
4. Persists samples for a demo user and reads the latest one back

Run with: uv run python run_simulation.py
"""

import asyncio

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from vitals.config import print_config_summary, validate_config
from vitals.observability import configure_logging
from vitals.services import VitalSignsSimulator, create_storage

console = Console()

DEMO_USER = "demo-user"
STEPS = 40
STEP_MS = 2500.0  # Simulated time between polls


class AcceleratedClock:
    """Clock that advances a fixed number of milliseconds per tick."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def tick(self, ms: float) -> None:
        self.now_ms += ms


async def run_demo() -> bool:
    """Poll the simulator, pushing every fourth sample for the demo user."""

    config = validate_config()
    configure_logging(config.logging)
    print_config_summary()

    console.print(Panel("🦶 Foot-care vitals simulation", style="bold blue"))

    storage = await create_storage(config.database)
    clock = AcceleratedClock()
    simulator = VitalSignsSimulator(storage, clock=clock, config=config.simulator)

    table = Table(title=f"{STEPS} polls, {STEP_MS / 1000:.1f}s apart")
    table.add_column("t (s)", style="cyan", justify="right")
    table.add_column("BPM", justify="right")
    table.add_column("Pressure", justify="right")
    table.add_column("BT")
    table.add_column("Battery", justify="right")
    table.add_column("Anomalies", justify="right")
    table.add_column("Saved")

    saved_count = 0
    try:
        for i in range(STEPS):
            clock.tick(STEP_MS)
            if i % 4 == 3:
                result = await simulator.push_sample(DEMO_USER)
                row = result.metrics
                saved_count += 1
            else:
                row = simulator.peek()

            bpm_style = "red" if not 60 <= row.heart_rate <= 100 else "white"
            table.add_row(
                f"{clock.now_ms / 1000:.1f}",
                f"[{bpm_style}]{row.heart_rate}[/{bpm_style}]",
                f"{row.foot_pressure:.1f}",
                "✅" if row.bluetooth_connected else "❌",
                f"{row.battery_level}%",
                str(row.anomalies_detected),
                "💾" if i % 4 == 3 else "",
            )

        console.print(table)

        latest = await storage.get_latest_health_metrics(DEMO_USER)
        unsaved = await simulator.push_sample()
    finally:
        close = getattr(storage, "close", None)
        if close is not None:
            await close()

    summary = Table(title="Summary")
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", style="white")
    summary.add_row("Samples persisted", str(saved_count))
    summary.add_row("Latest stored BPM", str(latest.heart_rate) if latest else "-")
    summary.add_row("Anonymous push saved", str(unsaved.saved))
    console.print(summary)

    return latest is not None


if __name__ == "__main__":
    try:
        if asyncio.run(run_demo()):
            console.print("🎉 Done", style="green")
        else:
            console.print("⚠️  Nothing was persisted", style="yellow")
    except KeyboardInterrupt:
        console.print("\n👋 Stopped by user", style="yellow")
