"""Read-only summary of past run reports."""

import json
from pathlib import Path
from typing import Optional


def find_reports(reports_dir: Path, task_id: Optional[str] = None) -> list[dict]:
    """Load run reports, most recent first. Unreadable files are skipped."""
    reports = []

    if not reports_dir.exists():
        return reports

    pattern = f"{task_id}_*.json" if task_id else "*.json"
    for f in reports_dir.glob(pattern):
        try:
            data = json.loads(f.read_text())
        except (json.JSONDecodeError, OSError):
            continue
        if not isinstance(data, dict):
            continue
        data["_report_file"] = str(f)
        reports.append(data)

    reports.sort(key=lambda r: r.get("start_time", ""), reverse=True)
    return reports


def format_duration(seconds: float) -> str:
    """Compact run duration: 250ms, 12.3s, 2m05s, 1h02m."""
    if seconds < 1:
        return f"{round(seconds * 1000)}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(round(seconds), 60)
    if minutes < 60:
        return f"{minutes}m{secs:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h{minutes:02d}m"


def print_summary(reports_dir: Path, task_id: Optional[str] = None) -> None:
    """Print the latest run and a short history."""
    reports = find_reports(reports_dir, task_id)

    print("=" * 60)
    print(f"RUN SUMMARY: {task_id or 'all tasks'}")
    print("=" * 60)
    print()

    if not reports:
        print("No run reports found.")
        print(f"  Searched: {reports_dir}")
        return

    latest = reports[0]
    print("LATEST RUN")
    print("-" * 40)
    print(f"  Task:        {latest.get('task_id')}")
    print(f"  Status:      {latest.get('status')}")
    print(f"  Attempts:    {latest.get('attempts')}/{latest.get('max_attempts')}")
    print(f"  Model:       {latest.get('model')}")
    print(f"  Duration:    {format_duration(latest.get('duration_seconds', 0))}")
    print(f"  Output:      {latest.get('output')}")
    print(f"  Time:        {latest.get('start_time', '')[:19]}")
    print()

    if latest.get("status") == "FAILED":
        detail = latest.get("error") or latest.get("stderr") or ""
        lines = detail.strip().split("\n")
        if lines and lines[0]:
            print("  Error:")
            for line in lines[:3]:
                print(f"    {line[:60]}")
            print()

    if len(reports) > 1:
        print("HISTORY")
        print("-" * 40)
        for r in reports[:5]:
            status_icon = "✓" if r.get("status") == "SUCCESS" else "✗"
            print(f"    {status_icon} {r.get('start_time', '')[:16]} - {r.get('task_id')} - {r.get('status')}")
        if len(reports) > 5:
            print(f"    ... and {len(reports) - 5} more")
        print()
