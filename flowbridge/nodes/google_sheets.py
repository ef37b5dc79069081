"""Google Sheets v4 values API."""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List
from urllib.parse import quote

from flowbridge.http.errors import RequiredDataMissing
from flowbridge.http.invoker import ResilientInvoker, RetryMode
from flowbridge.http.query import URI_COMPONENT_SAFE
from flowbridge.http.request import RequestDescriptor, authorization_header
from flowbridge.nodes.base import NodeData, NodeExecutionData, Runnable, return_node_execution_data

SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets"
USER_ENTERED = {"valueInputOption": "USER_ENTERED"}


def _values_url(params: Dict[str, Any], value_range: str, suffix: str = "") -> str:
    spreadsheet_id = params.get("spreadsheetId")
    if not spreadsheet_id or not value_range:
        raise RequiredDataMissing("Required data missing")
    return f"{SHEETS_API_URL}/{spreadsheet_id}/values/{quote(str(value_range), safe=URI_COMPONENT_SAFE)}{suffix}"


def _rows(params: Dict[str, Any]) -> List[List[Any]]:
    rows = params.get("rowValues")
    if isinstance(rows, str):
        try:
            rows = json.loads(rows)
        except ValueError as exc:
            raise RequiredDataMissing("Row values must be a JSON array of rows") from exc
    if not isinstance(rows, list):
        raise RequiredDataMissing("Row values must be a JSON array of rows")
    return rows


def _create(params: Dict[str, Any]) -> RequestDescriptor:
    name = params.get("spreadsheetName")
    return RequestDescriptor("POST", SHEETS_API_URL, json={"properties": {"title": name}} if name else None)


def _add_rows(params: Dict[str, Any]) -> RequestDescriptor:
    return RequestDescriptor(
        "POST",
        _values_url(params, params.get("sheetName"), ":append"),
        params={**USER_ENTERED, "insertDataOption": "INSERT_ROWS"},
        json={"values": _rows(params)},
    )


def _get_all(params: Dict[str, Any]) -> RequestDescriptor:
    return RequestDescriptor("GET", _values_url(params, params.get("sheetName")))


def _get_range(params: Dict[str, Any]) -> RequestDescriptor:
    return RequestDescriptor("GET", _values_url(params, params.get("range")))


def _update_cell(params: Dict[str, Any]) -> RequestDescriptor:
    return RequestDescriptor(
        "PUT",
        _values_url(params, params.get("range")),
        params=dict(USER_ENTERED),
        json={"values": [[params.get("cellValue")]]},
    )


def _update_rows(params: Dict[str, Any]) -> RequestDescriptor:
    return RequestDescriptor(
        "PUT",
        _values_url(params, params.get("range")),
        params=dict(USER_ENTERED),
        json={"values": _rows(params)},
    )


def _clear_row(params: Dict[str, Any]) -> RequestDescriptor:
    row = params.get("clearRowNumber")
    value_range = f"{params.get('sheetName')}!{row}:{row}"
    return RequestDescriptor("POST", _values_url(params, value_range, ":clear"))


def _clear_col(params: Dict[str, Any]) -> RequestDescriptor:
    col = params.get("clearColNumber")
    value_range = f"{params.get('sheetName')}!{col}:{col}"
    return RequestDescriptor("POST", _values_url(params, value_range, ":clear"))


def _clear_range(params: Dict[str, Any]) -> RequestDescriptor:
    return RequestDescriptor("POST", _values_url(params, params.get("range"), ":clear"))


OPERATIONS: Dict[str, Callable[[Dict[str, Any]], RequestDescriptor]] = {
    "create": _create,
    "addRows": _add_rows,
    "getAll": _get_all,
    "getRange": _get_range,
    "updateCell": _update_cell,
    "updateRows": _update_rows,
    "clearRow": _clear_row,
    "clearCol": _clear_col,
    "clearRange": _clear_range,
}


class GoogleSheets(Runnable):
    """Read and write spreadsheet values with an OAuth2 credential.

    A 401 refreshes the access token once per attempt; the refreshed fields
    are returned with the output so the engine can store them.
    """

    name = "googleSheet"
    label = "GoogleSheet"
    description = "Execute GoogleSheet API integration"
    exhausted_message = "Error executing GoogleSheet node. Max retries limit was reached."

    async def run(self, node_data: NodeData) -> List[NodeExecutionData]:
        node_data.require("actions", "credentials")
        operation = (node_data.actions or {}).get("operation")
        build = OPERATIONS.get(operation)
        if build is None:
            raise ValueError(f"Unknown operation '{operation}'")

        credential = node_data.credentials or {}
        descriptor = build(node_data.input_parameters or {})
        descriptor = descriptor.with_header("Content-Type", "application/json")
        descriptor = descriptor.with_header("Authorization", authorization_header(credential))

        invoker = ResilientInvoker(
            self.client,
            retry_mode=RetryMode.OAUTH2_REFRESH,
            exhausted_message=self.exhausted_message,
        )
        result = await invoker.invoke(descriptor, credential)
        return return_node_execution_data(result.body, result.refreshed)
