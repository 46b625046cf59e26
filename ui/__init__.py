"""UI layer -- Rich dashboard and output formatters."""

from .dashboard import (
    PhaseProgress,
    console,
    create_sparkline,
    print_final_results,
    print_header,
    print_history,
)
from .output import (
    create_result_json,
    format_csv_header,
    format_csv_row,
    format_share_text,
    format_text_result,
    save_json,
)

__all__ = [
    "PhaseProgress",
    "console",
    "create_result_json",
    "create_sparkline",
    "format_csv_header",
    "format_csv_row",
    "format_share_text",
    "format_text_result",
    "print_final_results",
    "print_header",
    "print_history",
    "save_json",
]
