"""
View-model for the worker console.

Mirrors the browser page: a table of workers with a status button per row and
a registration form whose result lands in a message area.
"""

import logging
import re
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, List, Optional

from console.client import MasterClient

logger = logging.getLogger(__name__)

STATUS_LABEL = "Status"
LOADING_LABEL = "Loading..."
CREATED_MESSAGE = "Worker hinzugefügt."
ERROR_PREFIX = "Fehler: "

_LEADING_INT = re.compile(r"[+-]?[0-9]+")


def parse_int(value: Any) -> Optional[int]:
    """Integer coercion with JavaScript parseInt(value, 10) rules.

    Leading whitespace and trailing garbage are ignored; no digits gives None.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        value = str(value).lower()
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        value = repr(value)
    match = _LEADING_INT.match(str(value).lstrip())
    if not match:
        return None
    return int(match.group())


@dataclass
class StatusButton:
    worker_id: Any
    label: str = STATUS_LABEL
    disabled: bool = False


@dataclass
class WorkerRow:
    id: Any
    name: str
    address: str
    cidr: str
    button: StatusButton

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "WorkerRow":
        return cls(
            id=record.get("id"),
            name=record.get("name", ""),
            address=f"{record.get('ip', '')}:{record.get('port', '')}",
            cidr=record.get("cidr", ""),
            button=StatusButton(worker_id=record.get("id")),
        )

    def cells(self) -> List[str]:
        return [str(self.id), str(self.name), self.address, str(self.cidr)]


class WorkerTable:
    """Rows in the order the master returned them."""

    HEADERS = ["ID", "Name", "Adresse", "CIDR"]

    def __init__(self):
        self.rows: List[WorkerRow] = []

    def __len__(self) -> int:
        return len(self.rows)

    def replace(self, records: List[Dict[str, Any]]) -> None:
        self.rows = [WorkerRow.from_record(r) for r in records]

    def render(self) -> str:
        table = [self.HEADERS] + [row.cells() for row in self.rows]
        widths = [max(len(line[i]) for line in table) for i in range(len(self.HEADERS))]
        return "\n".join(
            "  ".join(cell.ljust(width) for cell, width in zip(line, widths)).rstrip()
            for line in table
        )


@dataclass
class RegistrationForm:
    name: str = ""
    ip: str = ""
    port: str = ""
    cidr: str = ""
    api_key: str = ""

    def payload(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["port"] = parse_int(self.port)
        return data

    def reset(self) -> None:
        for f in fields(self):
            setattr(self, f.name, "")


class WorkerConsole:
    """Drives a WorkerTable and message area against the master API."""

    def __init__(self, client: MasterClient, alert: Callable[[str], None] = print):
        """Initialize console.

        Args:
            client: Master API client
            alert: Receives the status text of a worker
        """
        self.client = client
        self.alert = alert
        self.table = WorkerTable()
        self.message = ""

    async def refresh(self) -> WorkerTable:
        """Rebuild the table from the master's current worker list."""
        records = await self.client.list_workers()
        self.table.replace(records)
        logger.debug(f"Rendered {len(self.table)} workers")
        return self.table

    async def check_status(self, button: StatusButton) -> str:
        button.label = LOADING_LABEL
        button.disabled = True
        try:
            text = await self.client.worker_status(button.worker_id)
            self.alert(text)
            return text
        finally:
            button.label = STATUS_LABEL
            button.disabled = False

    async def submit(self, form: RegistrationForm) -> str:
        """Register a worker from the form contents.

        On 201 the form is cleared and the table refreshed once; otherwise the
        response body is shown as an error and the form is left as is.
        """
        response = await self.client.create_worker(form.payload())
        if response.status_code == 201:
            self.message = CREATED_MESSAGE
            form.reset()
            await self.refresh()
        else:
            self.message = ERROR_PREFIX + response.text
            logger.warning(f"Worker registration rejected: {response.status_code} {response.text.strip()}")
        return self.message
