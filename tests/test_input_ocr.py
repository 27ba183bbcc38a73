"""Tests for request validation, the OCR engine wrapper and shared utilities."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.input_handler.handler import InputHandler
from src.ocr_engine.engine import OCREngine, text_similarity
from src.ocr_engine.ocr_result import OCRResult
from src.utils.exceptions import (
    InputError,
    InputFileNotFoundError,
    MissingInputError,
    OCRServiceUnavailableError,
)
from src.utils.helpers import clamp, ensure_directory, mean, split_lines


class TestInputHandler:
    def test_text_only(self):
        document = InputHandler().build_document(text="Total: $5.00")
        assert document.has_text
        assert document.markup is None
        assert document.similarity_score == 1.0

    def test_blank_markup_dropped(self):
        document = InputHandler().build_document(text="Total: $5.00", markup="  \n ")
        assert document.markup is None

    def test_markup_only_becomes_plain_text(self, sample_markup):
        document = InputHandler().build_document(markup=sample_markup)
        assert document.plain_text == sample_markup

    def test_similarity_clamped(self):
        handler = InputHandler()
        assert handler.build_document(text="x", similarity_score=1.7).similarity_score == 1.0
        assert handler.build_document(text="x", similarity_score=-0.2).similarity_score == 0.0

    def test_missing_input(self):
        with pytest.raises(MissingInputError) as exc_info:
            InputHandler().build_document(text="   ", markup="")
        assert isinstance(exc_info.value, InputError)

    def test_from_request(self):
        document = InputHandler().from_request({
            "ocr_text": "Invoice #1",
            "markup_text": "# Invoice",
            "similarity_score": 0.8,
            "source": "req-1",
        })
        assert document.text == "Invoice #1"
        assert document.has_markup
        assert document.similarity_score == 0.8
        assert document.source == "req-1"

    def test_load_files(self, tmp_path, simple_text):
        text_file = tmp_path / "invoice.txt"
        text_file.write_text(simple_text, encoding="utf-8")

        document = InputHandler().load_files(text_file, similarity_score=0.9)

        assert document.text == simple_text
        assert document.source == str(text_file)

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(InputFileNotFoundError) as exc_info:
            InputHandler().load_files(tmp_path / "nope.txt")
        assert "nope.txt" in str(exc_info.value)


class TestOCREngine:
    def test_extract(self, fake_ocr_backend):
        backend = fake_ocr_backend(result=OCRResult(text="ACME", markup="# ACME", confidence=0.9))
        result = OCREngine(backend).extract("invoice.png")

        assert result.text == "ACME"
        assert result.markup == "# ACME"
        assert result.processing_time >= 0.0

    def test_no_backend(self):
        engine = OCREngine()
        assert engine.get_backend_info() == {"backend": "none", "configured": False}
        with pytest.raises(OCRServiceUnavailableError):
            engine.extract("invoice.png")

    def test_backend_error_wrapped(self, fake_ocr_backend):
        engine = OCREngine(fake_ocr_backend(error=TimeoutError("took too long")))
        with pytest.raises(OCRServiceUnavailableError) as exc_info:
            engine.extract("invoice.png")
        assert isinstance(exc_info.value.__cause__, TimeoutError)

    def test_empty_result(self, fake_ocr_backend):
        with pytest.raises(OCRServiceUnavailableError):
            OCREngine(fake_ocr_backend(result=OCRResult(text="  "))).extract("invoice.png")
        with pytest.raises(OCRServiceUnavailableError):
            OCREngine(fake_ocr_backend(result=None)).extract("invoice.png")

    def test_backend_info(self, fake_ocr_backend):
        info = OCREngine(fake_ocr_backend(result=OCRResult(text="x"))).get_backend_info()
        assert info == {"backend": "fake", "configured": True}

    def test_verify_text(self, fake_ocr_backend):
        backend = fake_ocr_backend(result=OCRResult(text="Invoice  TOTAL 10"))
        verification = OCREngine(backend).verify_text("invoice total 10", "invoice.png")

        assert verification.similarity_score == 1.0
        assert verification.ocr_result.text == "Invoice  TOTAL 10"

    def test_text_similarity(self):
        assert text_similarity("Hello  World", "hello world") == 1.0
        assert text_similarity("", "x") == 0.0
        assert 0.0 < text_similarity("total 10.00", "total 19.00") < 1.0


class TestHelpers:
    def test_clamp(self):
        assert clamp(1.2, (0.1, 0.99)) == 0.99
        assert clamp(-1, [0.0, 1.0]) == 0.0

    def test_mean(self):
        assert mean([]) == 0.0
        assert mean(x for x in (1.0, 2.0)) == 1.5

    def test_split_lines(self):
        assert split_lines(" a \n\n b") == ["a", "", "b"]
        assert split_lines("") == []

    def test_ensure_directory(self, tmp_path):
        target = ensure_directory(tmp_path / "a" / "b")
        assert target.is_dir()
