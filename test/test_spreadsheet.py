"""
Unit tests for spreadsheet parsing and upload storage.
"""

import io
from pathlib import Path

import pandas as pd
import pytest
from starlette.datastructures import UploadFile

from contactbook.contacts.spreadsheet import (
    SpreadsheetReader,
    excel_engine,
    normalize_header,
    parse_boolean,
    split_values,
    stored_upload,
)
from contactbook.shared.exceptions import FileFormatError, ValidationError


@pytest.fixture
def reader() -> SpreadsheetReader:
    return SpreadsheetReader()


class TestHelpers:
    def test_normalize_header(self) -> None:
        assert normalize_header(" Full Name ") == "full_name"
        assert normalize_header("contact-name") == "contact_name"
        assert normalize_header("姓名") == "姓名"

    def test_split_values(self) -> None:
        assert split_values("a;b,c，d；e") == ["a", "b", "c", "d", "e"]
        assert split_values(" a ; ; b ") == ["a", "b"]
        assert split_values("") == []
        assert split_values(None) == []

    def test_excel_engine(self) -> None:
        assert excel_engine(Path("contacts.xlsx")) == "openpyxl"
        assert excel_engine(Path("CONTACTS.XLS")) == "xlrd"

    @pytest.mark.parametrize("value", ["是", "true", "TRUE", "1", "yes"])
    def test_parse_boolean_truthy(self, value: str) -> None:
        assert parse_boolean(value) is True

    @pytest.mark.parametrize("value", ["否", "false", "0", "", None, "maybe"])
    def test_parse_boolean_falsy(self, value: str | None) -> None:
        assert parse_boolean(value) is False


class TestSpreadsheetReader:
    """Tests for SpreadsheetReader.parse."""

    def test_parse_csv(self, reader: SpreadsheetReader, tmp_path: Path) -> None:
        path = tmp_path / "contacts.csv"
        path.write_text(
            "name,email,phone,notes,favorite\n"
            "Alice,alice@example.com,\"1, 2\",friend,yes\n"
            "Bob,,,,\n",
            encoding="utf-8",
        )

        contacts = reader.parse(path)

        assert [c.name for c in contacts] == ["Alice", "Bob"]
        alice = contacts[0]
        assert alice.notes == "friend"
        assert alice.bookmarked is True
        assert [(m.type, m.value) for m in alice.methods] == [
            ("email", "alice@example.com"),
            ("phone", "1"),
            ("phone", "2"),
        ]
        assert contacts[1].methods == []
        assert contacts[1].bookmarked is False

    def test_parse_xlsx_keeps_header_as_method_type(
        self,
        reader: SpreadsheetReader,
        tmp_path: Path,
    ) -> None:
        path = tmp_path / "contacts.xlsx"
        pd.DataFrame(
            [{"姓名": "张三", "邮箱地址": "a@example.com", "社交账号": "wx_1"}]
        ).to_excel(path, index=False, engine="openpyxl")

        contacts = reader.parse(path)

        assert len(contacts) == 1
        assert [(m.type, m.value) for m in contacts[0].methods] == [
            ("邮箱地址", "a@example.com"),
            ("社交账号", "wx_1"),
        ]

    def test_numeric_cells_are_read_as_text(self, reader: SpreadsheetReader, tmp_path: Path) -> None:
        path = tmp_path / "contacts.xlsx"
        pd.DataFrame([{"name": "Alice", "phone": "0123"}]).to_excel(
            path, index=False, engine="openpyxl"
        )

        contacts = reader.parse(path)

        assert contacts[0].methods[0].value == "0123"

    def test_blank_rows_are_skipped(self, reader: SpreadsheetReader, tmp_path: Path) -> None:
        path = tmp_path / "contacts.csv"
        path.write_text("name,notes\nAlice,a\n,\nBob,b\n", encoding="utf-8")

        contacts = reader.parse(path)

        assert [c.name for c in contacts] == ["Alice", "Bob"]

    def test_missing_name_column(self, reader: SpreadsheetReader, tmp_path: Path) -> None:
        path = tmp_path / "contacts.csv"
        path.write_text("phone,notes\n123,a\n", encoding="utf-8")

        with pytest.raises(FileFormatError):
            reader.parse(path)

    def test_empty_name_reports_row_number(self, reader: SpreadsheetReader, tmp_path: Path) -> None:
        path = tmp_path / "contacts.csv"
        path.write_text("name,notes\nAlice,a\n,b\n", encoding="utf-8")

        with pytest.raises(ValidationError) as exc_info:
            reader.parse(path)

        assert str(exc_info.value) == "Row 3: name is required"

    def test_header_only(self, reader: SpreadsheetReader, tmp_path: Path) -> None:
        path = tmp_path / "contacts.csv"
        path.write_text("name,notes\n", encoding="utf-8")

        with pytest.raises(FileFormatError):
            reader.parse(path)

    def test_unreadable_workbook(self, reader: SpreadsheetReader, tmp_path: Path) -> None:
        path = tmp_path / "contacts.xlsx"
        path.write_bytes(b"this is not a workbook")

        with pytest.raises(FileFormatError):
            reader.parse(path)

    def test_unreadable_legacy_workbook(self, reader: SpreadsheetReader, tmp_path: Path) -> None:
        path = tmp_path / "contacts.xls"
        path.write_bytes(b"this is not a workbook either")

        with pytest.raises(FileFormatError):
            reader.parse(path)

    def test_na_like_cell_texts_are_kept(self, reader: SpreadsheetReader, tmp_path: Path) -> None:
        path = tmp_path / "contacts.xlsx"
        pd.DataFrame(
            [
                {"姓名": "Alice", "备注": "N/A", "社交账号": "null"},
                {"姓名": "NA", "备注": "None", "社交账号": "nan"},
            ]
        ).to_excel(path, index=False, engine="openpyxl")

        contacts = reader.parse(path)

        assert [c.name for c in contacts] == ["Alice", "NA"]
        assert contacts[0].notes == "N/A"
        assert [(m.type, m.value) for m in contacts[0].methods] == [("社交账号", "null")]
        assert contacts[1].notes == "None"
        assert [m.value for m in contacts[1].methods] == ["nan"]

    def test_na_like_csv_texts_are_kept(self, reader: SpreadsheetReader, tmp_path: Path) -> None:
        path = tmp_path / "contacts.csv"
        path.write_text("name,notes\nNA,null\n", encoding="utf-8")

        contacts = reader.parse(path)

        assert contacts[0].name == "NA"
        assert contacts[0].notes == "null"

    def test_row_number_counts_blank_lines(self, reader: SpreadsheetReader, tmp_path: Path) -> None:
        path = tmp_path / "contacts.csv"
        path.write_text("name,notes\nAlice,a\n\n,b\n", encoding="utf-8")

        with pytest.raises(ValidationError) as exc_info:
            reader.parse(path)

        assert str(exc_info.value) == "Row 4: name is required"

    def test_blank_lines_are_skipped(self, reader: SpreadsheetReader, tmp_path: Path) -> None:
        path = tmp_path / "contacts.csv"
        path.write_text("name,notes\nAlice,a\n\nBob,b\n", encoding="utf-8")

        contacts = reader.parse(path)

        assert [c.name for c in contacts] == ["Alice", "Bob"]


class TestStoredUpload:
    """Tests for the temporary upload file."""

    @pytest.mark.asyncio
    async def test_file_removed_after_use(self, tmp_path: Path) -> None:
        upload = UploadFile(file=io.BytesIO(b"name\nAlice\n"), filename="contacts.csv")

        async with stored_upload(upload, tmp_path / "uploads") as path:
            assert path.suffix == ".csv"
            assert path.read_bytes() == b"name\nAlice\n"

        assert not path.exists()
        assert list((tmp_path / "uploads").iterdir()) == []

    @pytest.mark.asyncio
    async def test_file_removed_on_error(self, tmp_path: Path) -> None:
        upload = UploadFile(file=io.BytesIO(b"data"), filename="contacts.xlsx")

        with pytest.raises(RuntimeError):
            async with stored_upload(upload, tmp_path) as path:
                raise RuntimeError("processing failed")

        assert not path.exists()
