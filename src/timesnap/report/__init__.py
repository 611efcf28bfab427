"""
Reporting module for TimeSnap.

Output formats:
    - Console: Rich table of capsules, detail panel, doctor results
    - JSON: Structured output for programmatic consumption

Both formats hide the description and media of locked capsules.

Example:
    from timesnap.policy import UnlockPolicy
    from timesnap.report import generate_json_report, print_capsule_table

    policy = UnlockPolicy()
    print_capsule_table(repo.list(), policy)
    print(generate_json_report(repo.list(), policy))
"""

from timesnap.report.console import (
    format_remaining,
    format_unlock_date,
    print_capsule_detail,
    print_capsule_table,
    print_doctor_report,
)
from timesnap.report.json import build_capsule_dict, build_report_dict, generate_json_report

__all__ = [
    "build_capsule_dict",
    "build_report_dict",
    "format_remaining",
    "format_unlock_date",
    "generate_json_report",
    "print_capsule_detail",
    "print_capsule_table",
    "print_doctor_report",
]
