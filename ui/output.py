"""
Output formatting -- JSON export, plain text, and CSV.
"""
from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional

from speedcore.models import MeasurementResult
from speedcore.rating import connection_type, rate_result


def create_result_json(
    result: MeasurementResult,
    share_url: Optional[str] = None,
) -> Dict[str, Any]:
    """Result fields plus derived ratings and connection type."""
    data: Dict[str, Any] = result.to_dict()
    data["ratings"] = {metric.value: rating.value for metric, rating in rate_result(result).items()}
    data["connection_type"] = connection_type(result.download)
    if share_url:
        data["share_url"] = share_url
    return data


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except (IOError, OSError) as exc:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise IOError(f"Failed to save JSON to {filepath}: {exc}") from exc


# ---------------------------------------------------------------------------
# Plain-text / CSV helpers
# ---------------------------------------------------------------------------

def format_text_result(result: MeasurementResult) -> str:
    sep = "=" * 50
    mid = "-" * 50
    note = "Estimated (synthetic) result" if result.synthetic else "Measured result"
    return (
        f"{sep}\n"
        f"Speed Check Results\n"
        f"{sep}\n"
        f"{note}\n"
        f"Connection: {connection_type(result.download)}\n"
        f"{mid}\n"
        f"Ping: {result.ping:.0f} ms (jitter: {result.jitter:.0f} ms)\n"
        f"Download: {result.download:.0f} Mbps\n"
        f"Upload: {result.upload:.0f} Mbps\n"
        f"{sep}"
    )


def format_share_text(result: MeasurementResult, link: str) -> str:
    """Generate a plain-text shareable result block."""
    lines = [
        "Speed Check Results",
        f"Download: {result.download:.0f} Mbps",
        f"Upload: {result.upload:.0f} Mbps",
        f"Ping: {result.ping:.0f} ms (jitter: {result.jitter:.0f} ms)",
    ]
    if result.synthetic:
        lines.append("(estimated)")
    lines.append(link)
    return "\n".join(lines)


def _csv_escape(value: str) -> str:
    if any(c in value for c in (",", '"', "\n", "\r")):
        return '"' + value.replace('"', '""') + '"'
    return value


def format_csv_header() -> str:
    return "timestamp,download_mbps,upload_mbps,ping_ms,jitter_ms,synthetic,connection"


def format_csv_row(result: MeasurementResult) -> str:
    return ",".join([
        result.timestamp.isoformat(),
        f"{result.download:.0f}",
        f"{result.upload:.0f}",
        f"{result.ping:.0f}",
        f"{result.jitter:.0f}",
        "1" if result.synthetic else "0",
        _csv_escape(connection_type(result.download)),
    ])
