"""
Upload Parser
=============

Decodes uploaded JSON, CSV and spreadsheet files into a list of records
(one dict per row). Field aliasing is left to the content normalizer.
"""

import csv
import io
import json
import zipfile
from enum import Enum
from typing import Any, Dict, List

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..utils.exceptions import ErrorCode, UploadValidationError


class UploadFormat(str, Enum):
    """Supported upload formats."""
    JSON = "json"
    CSV = "csv"
    EXCEL = "excel"

    @classmethod
    def from_filename(cls, filename: str) -> "UploadFormat":
        """Guess the format from a file extension."""
        suffix = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if suffix == "json":
            return cls.JSON
        if suffix == "csv":
            return cls.CSV
        if suffix in ("xlsx", "xlsm"):
            return cls.EXCEL
        raise UploadValidationError(
            f"Cannot infer upload format from {filename!r}",
            error_code=ErrorCode.UPLOAD_UNSUPPORTED_FORMAT,
        )


def parse_upload(data: bytes, upload_format) -> List[Dict[str, Any]]:
    """Decode an uploaded file into records.

    Args:
        data: Raw file contents
        upload_format: ``UploadFormat`` or its string value

    Returns:
        Non-empty list of records

    Raises:
        UploadValidationError: For unknown formats, undecodable content or
            an upload without any rows
    """
    try:
        upload_format = UploadFormat(upload_format)
    except ValueError as e:
        raise UploadValidationError(
            f"Unsupported upload format: {upload_format}",
            error_code=ErrorCode.UPLOAD_UNSUPPORTED_FORMAT,
        ) from e

    if upload_format == UploadFormat.JSON:
        records = _parse_json(data)
    elif upload_format == UploadFormat.CSV:
        records = _parse_csv(data)
    else:
        records = _parse_excel(data)

    if not records:
        raise UploadValidationError(
            "Upload contains no records",
            error_code=ErrorCode.UPLOAD_EMPTY,
        )
    return records


def _decode_text(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise UploadValidationError(
            f"Upload is not valid UTF-8: {e}",
            error_code=ErrorCode.UPLOAD_MALFORMED,
        ) from e


def _parse_json(data: bytes) -> List[Dict[str, Any]]:
    try:
        payload = json.loads(_decode_text(data))
    except json.JSONDecodeError as e:
        raise UploadValidationError(
            f"Invalid JSON: {e}",
            error_code=ErrorCode.UPLOAD_MALFORMED,
        ) from e

    if not isinstance(payload, list):
        raise UploadValidationError(
            "JSON upload must be an array of objects",
            error_code=ErrorCode.UPLOAD_MALFORMED,
        )

    for index, record in enumerate(payload):
        if not isinstance(record, dict):
            raise UploadValidationError(
                f"Row {index}: expected an object, got {type(record).__name__}",
                row_index=index,
                error_code=ErrorCode.UPLOAD_MALFORMED,
            )
    return payload


def _parse_csv(data: bytes) -> List[Dict[str, Any]]:
    reader = csv.DictReader(io.StringIO(_decode_text(data), newline=""))
    try:
        if not reader.fieldnames:
            return []
        records = []
        for row in reader:
            # Drop cells beyond the header row and skip blank lines
            record = {key.strip(): (value or "").strip() for key, value in row.items() if key}
            if any(record.values()):
                records.append(record)
        return records
    except csv.Error as e:
        raise UploadValidationError(
            f"Invalid CSV (line {reader.line_num}): {e}",
            row_index=reader.line_num,
            error_code=ErrorCode.UPLOAD_MALFORMED,
        ) from e


def _parse_excel(data: bytes) -> List[Dict[str, Any]]:
    """First worksheet, first row as headers."""
    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise UploadValidationError(
            f"Invalid spreadsheet: {e}",
            error_code=ErrorCode.UPLOAD_MALFORMED,
        ) from e

    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header_row = next(rows, None)
        if not header_row:
            return []

        headers = [str(cell).strip() if cell is not None else "" for cell in header_row]
        records = []
        for row in rows:
            record = {
                header: value
                for header, value in zip(headers, row)
                if header and value is not None and str(value).strip() != ""
            }
            if record:
                records.append(record)
        return records
    finally:
        workbook.close()
