"""Google Sheets and Drive backed ``Sheet``.

Reads use the Sheets v4 ``values`` API with ``FORMATTED_VALUE`` (what the
user sees) and ``FORMULA`` (formula text) renderings. Writes use
``USER_ENTERED`` so dates, amounts and formulas are parsed by the sheet.
Full-document backups use the Drive v3 ``files.copy`` call.

Token acquisition is handled elsewhere; this module only loads and, if
needed, refreshes an existing authorized-user token file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import google.auth.exceptions
import google.auth.transport.requests
import google.oauth2.credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..errors import ConfigError, ExternalServiceError
from .sheet import FETCH_EXTENT, Sheet, SheetRange

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.file",
]


def load_credentials(token_path: Path) -> google.oauth2.credentials.Credentials:
    """Load the stored OAuth token, refreshing it if it has expired.

    Args:
        token_path: Authorized-user JSON written by the auth flow.

    Returns:
        Valid credentials.

    Raises:
        ConfigError: If the token is missing, unreadable or cannot be
            refreshed.
    """
    if not token_path.exists():
        raise ConfigError(
            f"No OAuth token found at {token_path}",
            "Run the tiller auth flow to authorize access to your sheet.",
        )
    try:
        creds = google.oauth2.credentials.Credentials.from_authorized_user_file(
            str(token_path), SCOPES
        )
    except ValueError as exc:
        raise ConfigError(
            f"OAuth token file {token_path} is invalid: {exc}",
            "Re-run the tiller auth flow to write a fresh token.",
        ) from exc

    if creds.expired and creds.refresh_token:
        logger.debug("Stored credentials expired; refreshing.")
        try:
            creds.refresh(google.auth.transport.requests.Request())
        except google.auth.exceptions.RefreshError as exc:
            raise ConfigError(
                f"Could not refresh the OAuth token: {exc}",
                "Re-run the tiller auth flow to re-authorize access.",
            ) from exc
        token_path.write_text(creds.to_json(), encoding="utf-8")
    return creds


class GoogleSheet(Sheet):
    """``Sheet`` implementation backed by the Google APIs.

    Args:
        spreadsheet_id: Id of the Tiller spreadsheet.
        credentials: Authorized credentials (see ``load_credentials``).
        sheets_service: Prebuilt Sheets v4 service, mainly for tests.
        drive_service: Prebuilt Drive v3 service, mainly for tests.
    """

    def __init__(
        self,
        spreadsheet_id: str,
        credentials: Any = None,
        sheets_service: Any = None,
        drive_service: Any = None,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id
        self._sheets = sheets_service or build(
            "sheets", "v4", credentials=credentials, cache_discovery=False
        )
        self._drive = drive_service or build(
            "drive", "v3", credentials=credentials, cache_discovery=False
        )

    def _execute(self, action: str, request: Any) -> Any:
        try:
            return request.execute()
        except HttpError as exc:
            raise self._translate(action, exc) from exc
        except OSError as exc:
            raise ExternalServiceError(
                f"Network error while trying to {action}: {exc}"
            ) from exc

    def _translate(self, action: str, exc: HttpError) -> ExternalServiceError:
        status = exc.resp.status if exc.resp else None
        match status:
            case 404:
                return ExternalServiceError(
                    f'Spreadsheet "{self.spreadsheet_id}" not found (HTTP 404) '
                    f"while trying to {action}",
                    "Check TILLER_SHEET_URL points at your Tiller sheet.",
                    status=404,
                )
            case 403:
                return ExternalServiceError(
                    f"Access denied (HTTP 403) while trying to {action}",
                    "Share the sheet with your authorized Google account or "
                    "re-run the auth flow.",
                    status=403,
                )
            case 429:
                return ExternalServiceError(
                    f"Rate limited (HTTP 429) while trying to {action}",
                    "Wait a minute, then retry.",
                    status=429,
                )
            case _:
                return ExternalServiceError(
                    f"Google API error while trying to {action}: {exc}",
                    status=status,
                )

    def _get(self, tab: str, render: str) -> list[list[Any]]:
        request = (
            self._sheets.spreadsheets()
            .values()
            .get(
                spreadsheetId=self.spreadsheet_id,
                range=f"{tab}!{FETCH_EXTENT}",
                valueRenderOption=render,
                dateTimeRenderOption="FORMATTED_STRING",
            )
        )
        result = self._execute(f"read the {tab} tab", request)
        return result.get("values", [])

    def get_values(self, tab: str) -> list[list[Any]]:
        return self._get(tab, "FORMATTED_VALUE")

    def get_formulas(self, tab: str) -> list[list[Any]]:
        return self._get(tab, "FORMULA")

    def clear_ranges(self, ranges: list[str]) -> None:
        request = (
            self._sheets.spreadsheets()
            .values()
            .batchClear(
                spreadsheetId=self.spreadsheet_id, body={"ranges": ranges}
            )
        )
        self._execute("clear the sheet", request)

    def write_ranges(self, data: list[SheetRange]) -> None:
        body = {
            "valueInputOption": "USER_ENTERED",
            "data": [
                {"range": r.range, "majorDimension": "ROWS", "values": r.values}
                for r in data
            ],
        }
        request = (
            self._sheets.spreadsheets()
            .values()
            .batchUpdate(spreadsheetId=self.spreadsheet_id, body=body)
        )
        self._execute("write to the sheet", request)

    def copy_spreadsheet(self, name: str) -> str:
        request = self._drive.files().copy(
            fileId=self.spreadsheet_id, body={"name": name}
        )
        result = self._execute("copy the spreadsheet", request)
        logger.info("Copied spreadsheet to '%s' (%s)", name, result.get("id"))
        return result["id"]