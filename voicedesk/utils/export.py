"""CSV export of provider execution records."""

import csv
import io
from collections.abc import Iterable
from typing import Any

EXPORT_COLUMNS = (
    "execution_id",
    "to_number",
    "from_number",
    "provider",
    "direction",
    "duration",
    "status",
    "total_cost",
    "created_at",
)


def execution_row(execution: dict[str, Any]) -> list[Any]:
    """Flatten one upstream execution into EXPORT_COLUMNS order."""
    telephony = execution.get("telephony_data") or {}
    total_cost = execution.get("total_cost")
    return [
        execution.get("id") or execution.get("execution_id") or "",
        telephony.get("to_number") or "",
        telephony.get("from_number") or "",
        telephony.get("provider") or "",
        telephony.get("direction") or "",
        execution.get("conversation_time") or "",
        execution.get("status") or "",
        "" if total_cost is None else total_cost,
        execution.get("created_at") or "",
    ]


def executions_to_csv(executions: Iterable[dict[str, Any]]) -> str:
    """Header line, then one fully quoted line per execution."""
    buf = io.StringIO()
    buf.write(",".join(EXPORT_COLUMNS) + "\n")
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for execution in executions:
        writer.writerow(execution_row(execution))
    return buf.getvalue()
