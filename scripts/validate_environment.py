#!/usr/bin/env python3
"""Validate local Timetabler environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from timetabler.repository.data_repository import DataRepository
from timetabler.services.timetable_service import TimetableGenerationService
from timetabler.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="timetabler-env-")

    # CHECK 1: Python version >= 3.11
    if sys.version_info >= (3, 11):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.11",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_specs = ["fastapi", "uvicorn", "pydantic", "httpx", "pytest"]
    import_errors: list[str] = []
    for module_name in package_specs:
        try:
            importlib.import_module(module_name)
        except ImportError as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "timetabler_validation.db",
            random_seed=7,
        )
        repository = DataRepository(validation_settings)

        # CHECK 3: Database initialization and demo catalog
        try:
            repository.initialize_database()
            seeded_rooms = repository.seed_demo_catalog()
            if seeded_rooms <= 0:
                raise RuntimeError("demo catalog did not seed any rooms")
            ok, line = _print_result("Database + demo catalog", True, f": {seeded_rooms} rooms")
        except Exception as exc:
            ok, line = _print_result("Database + demo catalog", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: End-to-end scheduling run
        try:
            service = TimetableGenerationService(
                repository=repository,
                settings=validation_settings,
            )
            result = service.generate_schedule(persist_outputs=True)
            if not result.scheduled:
                raise RuntimeError("no session could be scheduled from the demo catalog")
            ok, line = _print_result(
                "Scheduling run",
                True,
                f": scheduled={len(result.scheduled)} unscheduled={len(result.unscheduled)}",
            )
        except Exception as exc:
            ok, line = _print_result("Scheduling run", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Timetabler Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
