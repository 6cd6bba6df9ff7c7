"""
Complete system check exercising the whole companion pipeline.

This script checks:
1. Configuration loading and validation
2. Symptom triage against the knowledge base
3. Assistant intent routing
4. Record store persistence and export
5. Preference persistence and reload

Run with: uv run python run_system_check.py
"""

import asyncio
import json
import random
import tempfile

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from companion.config import (
    AdvisoryConfig,
    AppConfig,
    StorageConfig,
    print_config_summary,
    validate_config,
)
from companion.domain.models import FontSize, MetricType
from companion.services.companion_context import create_context
from companion.storage.kv import JsonFileKeyValueStore

console = Console()


def _check_config(data_dir: str) -> AppConfig:
    return AppConfig(
        environment="development",
        advisory=AdvisoryConfig(triage_delay_seconds=0.2),
        storage=StorageConfig(backend="file", data_dir=data_dir),
    )


async def check_configuration(data_dir: str) -> bool:
    """Check configuration loading."""

    console.print(Panel("🔧 Checking Configuration", style="blue"))

    try:
        validate_config()
        print_config_summary()
        return True
    except Exception as e:
        console.print(f"❌ Configuration check failed: {e}", style="red")
        return False


async def check_triage(data_dir: str) -> bool:
    """Check symptom triage across mild, moderate and severe selections."""

    console.print(Panel("🩺 Checking Symptom Triage", style="blue"))

    try:
        context = await create_context(_check_config(data_dir), setup_logging=False)

        table = Table(title="Triage Results")
        table.add_column("Symptoms", style="cyan")
        table.add_column("Severity", style="magenta")
        table.add_column("Recommendations", style="green")
        table.add_column("Causes", style="yellow")

        for selection in (["headache", "fatigue"], ["fever", "nausea"], ["chest_pain"]):
            record = await context.advisory.run_symptom_check(selection)
            result = record.triage
            if result is None:
                raise RuntimeError("symptom check did not store a triage result")
            table.add_row(
                ", ".join(selection),
                result.severity.value.upper(),
                "\n".join(result.recommendations),
                ", ".join(result.causes),
            )

        console.print(table)
        await context.aclose()
        return True

    except Exception as e:
        console.print(f"❌ Triage check failed: {e}", style="red")
        return False


async def check_assistant(data_dir: str) -> bool:
    """Check intent routing for each keyword group."""

    console.print(Panel("💬 Checking Assistant Routing", style="blue"))

    try:
        context = await create_context(
            _check_config(data_dir), rng=random.Random(7), setup_logging=False
        )

        table = Table(title="Intent Routing")
        table.add_column("Message", style="cyan")
        table.add_column("Intent", style="magenta")

        for message in (
            "my head hurts",
            "what is a healthy diet",
            "this is an emergency",
            "xyz123",
        ):
            reply = context.advisory.route(message)
            table.add_row(message, reply.intent.value)

        console.print(table)
        return True

    except Exception as e:
        console.print(f"❌ Assistant check failed: {e}", style="red")
        return False


async def check_records(data_dir: str) -> bool:
    """Check metrics, export and reload from disk."""

    console.print(Panel("💾 Checking Record Store", style="blue"))

    try:
        context = await create_context(_check_config(data_dir), setup_logging=False)
        context.records.clear_all()

        context.advisory.record_metric(MetricType.HEART_RATE, "72")
        context.advisory.record_metric(MetricType.TEMPERATURE, 36.8)
        context.records.record_checkup()
        await context.aclose()

        reloaded = await create_context(_check_config(data_dir), setup_logging=False)
        latest = reloaded.records.latest_metric(MetricType.HEART_RATE)
        if latest is None or latest.value != 72:
            raise RuntimeError("heart rate did not survive a reload")

        exported = reloaded.records.export_json()
        document = json.loads(exported)

        summary_table = Table(title="Export Summary")
        summary_table.add_column("Field", style="cyan")
        summary_table.add_column("Value", style="white")
        summary_table.add_row("Version", document["version"])
        summary_table.add_row("Metrics", str(len(document["healthMetrics"])))
        summary_table.add_row("Symptom Records", str(len(document["recentSymptoms"])))
        summary_table.add_row("Last Checkup", str(document["lastCheckup"]))
        summary_table.add_row(
            "Byte-identical re-serialization",
            str(json.dumps(document, indent=2, ensure_ascii=False) == exported),
        )
        console.print(summary_table)
        return True

    except Exception as e:
        console.print(f"❌ Record store check failed: {e}", style="red")
        return False


async def check_preferences(data_dir: str) -> bool:
    """Check that preference changes persist across a reload."""

    console.print(Panel("⚙️ Checking Preferences", style="blue"))

    try:
        context = await create_context(_check_config(data_dir), setup_logging=False)
        context.preferences.set_font_size(FontSize.LARGE)
        context.preferences.set_language("es")
        await context.aclose()

        backend = JsonFileKeyValueStore(data_dir)
        reloaded = await create_context(
            _check_config(data_dir), backend=backend, setup_logging=False
        )
        prefs = reloaded.preferences.preferences
        console.print(
            f"Font size: {prefs.font_size.value}, language: {prefs.language}, "
            f"voice: {prefs.voice_enabled}",
            style="green",
        )
        return prefs.font_size is FontSize.LARGE and prefs.language == "es"

    except Exception as e:
        console.print(f"❌ Preference check failed: {e}", style="red")
        return False


async def run_all_checks() -> None:
    """Run all system checks."""

    console.print(Panel("🧪 Care Companion - System Checks", style="bold blue"))

    results = []
    with tempfile.TemporaryDirectory() as data_dir:
        checks = [
            ("Configuration", check_configuration),
            ("Symptom Triage", check_triage),
            ("Assistant Routing", check_assistant),
            ("Record Store", check_records),
            ("Preferences", check_preferences),
        ]

        for check_name, check_func in checks:
            console.print(f"\n{'=' * 60}")
            try:
                results.append((check_name, await check_func(data_dir)))
            except KeyboardInterrupt:
                console.print("\n⏹️  Checks interrupted by user", style="yellow")
                break

    console.print(f"\n{'=' * 60}")
    console.print(Panel("📋 Check Results Summary", style="bold"))

    summary_table = Table()
    summary_table.add_column("Check", style="cyan")
    summary_table.add_column("Result", style="white")

    passed = 0
    for check_name, result in results:
        if result:
            summary_table.add_row(check_name, "✅ PASSED")
            passed += 1
        else:
            summary_table.add_row(check_name, "❌ FAILED")

    console.print(summary_table)
    console.print(f"\n🎯 Results: {passed}/{len(results)} checks passed")


if __name__ == "__main__":
    try:
        asyncio.run(run_all_checks())
    except KeyboardInterrupt:
        console.print("\n👋 Checks stopped by user", style="yellow")
