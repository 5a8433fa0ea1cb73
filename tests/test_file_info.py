#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""文件描述提取测试"""

import json

from docx import Document
from PyPDF2 import PdfWriter

from inboxsort.core.file_info import FileInfoService

from .conftest import write_file


def test_text_file_uses_first_non_empty_lines(tmp_path):
    path = write_file(tmp_path / "notes.txt", "第一行\n\n第二行\n第三行\n第四行\n")

    assert FileInfoService().get_file_description(str(path)) == "第一行 第二行 第三行"


def test_long_text_is_truncated(tmp_path):
    path = write_file(tmp_path / "long.md", "x" * 1000)

    description = FileInfoService().get_file_description(str(path))

    assert description.endswith("...")
    assert len(description) <= 203


def test_json_prefers_title_fields(tmp_path):
    path = write_file(tmp_path / "meta.json", json.dumps({"title": "年度预算", "rows": [1, 2]}, ensure_ascii=False))

    assert FileInfoService().get_file_description(str(path)) == "年度预算"


def test_truncated_json_uses_field_pattern(tmp_path):
    path = write_file(tmp_path / "broken.json", '{"name": "客户名单", "items": [1, 2')

    assert FileInfoService().get_file_description(str(path)) == "客户名单"


def test_unknown_extension_sampled_as_text(tmp_path):
    path = write_file(tmp_path / "README", "项目说明\n")

    service = FileInfoService()
    assert service.is_text_file(str(path))
    assert service.get_file_description(str(path)) == "项目说明"


def test_binary_file_has_no_description(tmp_path):
    path = write_file(tmp_path / "image.dat", b"\x89PNG\r\n\x1a\n" + bytes(range(256)))

    service = FileInfoService()
    assert not service.is_text_file(str(path))
    assert service.get_file_description(str(path)) == ""


def test_empty_and_missing_files(tmp_path):
    empty = write_file(tmp_path / "empty.txt", "")
    service = FileInfoService()

    assert service.get_file_description(str(empty)) == ""
    assert service.get_file_description(str(tmp_path / "missing.txt")) == ""


def test_docx_core_properties(tmp_path):
    document = Document()
    document.core_properties.title = "季度报告"
    document.core_properties.author = "财务部"
    path = tmp_path / "report.docx"
    document.save(str(path))

    assert FileInfoService().get_file_description(str(path)) == "季度报告 财务部"


def test_pdf_metadata(tmp_path):
    writer = PdfWriter()
    writer.add_blank_page(width=72, height=72)
    writer.add_metadata({"/Title": "Invoice 2025", "/Author": "ACME"})
    path = tmp_path / "invoice.pdf"
    with open(path, "wb") as f:
        writer.write(f)

    assert FileInfoService().get_file_description(str(path)) == "Invoice 2025 ACME"


def test_corrupt_document_does_not_raise(tmp_path):
    path = write_file(tmp_path / "fake.docx", "not a zip file")

    assert FileInfoService().get_file_description(str(path)) == ""
