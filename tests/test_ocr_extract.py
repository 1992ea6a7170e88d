"""Tests for slidefuse.ocr — OCR output conversion and engine wiring."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from slidefuse.config import FusionConfig
from slidefuse.models import ElementType
from slidefuse.ocr import OcrUnavailableError
from slidefuse.ocr.extract import (
    extract_text_elements,
    infer_font_size,
    ocr_results_to_elements,
)


def _page(polys, texts, scores):
    return {"dt_polys": polys, "rec_texts": texts, "rec_scores": scores}


def _quad(x0, y0, x1, y1):
    return [[x0, y0], [x1, y0], [x1, y1], [x0, y1]]


class TestInferFontSize:
    @pytest.mark.parametrize(
        "height_px, expected",
        [(100, "title"), (81, "title"), (80, "large"), (60, "large"), (40, "medium"), (30, "small")],
    )
    def test_buckets(self, height_px, expected):
        assert infer_font_size(height_px, 1000) == expected


class TestOcrResultsToElements:
    def test_pixel_to_percent(self):
        results = [_page([_quad(100, 50, 500, 100)], ["Hello"], [0.93])]
        els = ocr_results_to_elements(results, 1000, 500)
        assert len(els) == 1
        el = els[0]
        assert el.type is ElementType.TEXT
        assert el.content == "Hello"
        assert el.box.left == pytest.approx(10)
        assert el.box.top == pytest.approx(10)
        assert el.box.width == pytest.approx(40)
        assert el.box.height == pytest.approx(10)
        assert el.confidence == pytest.approx(0.93)
        assert el.style.font_size == "title"

    def test_low_confidence_and_blank_dropped(self):
        results = [
            _page(
                [_quad(0, 0, 10, 10), _quad(20, 20, 30, 30), _quad(40, 40, 50, 50)],
                ["keep", "   ", "drop"],
                [0.9, 0.99, 0.4],
            )
        ]
        els = ocr_results_to_elements(results, 100, 100, min_conf=0.6)
        assert [el.content for el in els] == ["keep"]

    def test_score_equal_to_min_conf_dropped(self):
        results = [
            _page([_quad(0, 0, 10, 10), _quad(20, 20, 30, 30)], ["edge", "over"], [0.6, 0.61])
        ]
        els = ocr_results_to_elements(results, 100, 100, min_conf=0.6)
        assert [el.content for el in els] == ["over"]

    def test_text_stripped(self):
        els = ocr_results_to_elements([_page([_quad(0, 0, 10, 10)], ["  hi \n"], [0.9])], 100, 100)
        assert els[0].content == "hi"

    def test_ids_unique_and_prefixed(self):
        results = [_page([_quad(0, 0, 10, 10), _quad(20, 20, 30, 30)], ["a", "b"], [0.9, 0.9])]
        els = ocr_results_to_elements(results, 100, 100)
        assert len({el.id for el in els}) == 2
        assert all(el.id.startswith("ocr-") for el in els)

    def test_attribute_style_result(self):
        page = SimpleNamespace(
            dt_polys=[_quad(0, 0, 50, 10)], rec_texts=["obj"], rec_scores=[0.8]
        )
        els = ocr_results_to_elements([page], 100, 100)
        assert [el.content for el in els] == ["obj"]

    def test_incomplete_page_skipped(self):
        assert ocr_results_to_elements([{"dt_polys": []}], 100, 100) == []


class TestExtractTextElements:
    @patch("slidefuse.ocr._engine._get_ocr")
    def test_runs_engine_on_rgb_array(self, mock_get_ocr):
        engine = MagicMock()
        engine.predict.return_value = [
            {
                "dt_polys": [_quad(20, 10, 120, 30)],
                "rec_texts": ["Slide title"],
                "rec_scores": [0.97],
            }
        ]
        mock_get_ocr.return_value = engine

        img = Image.new("RGBA", (200, 100), (255, 255, 255, 255))
        els = extract_text_elements(img, FusionConfig(ocr_min_confidence=0.5))

        arr = engine.predict.call_args[0][0]
        assert arr.shape == (100, 200, 3)
        assert len(els) == 1
        assert els[0].box.left == pytest.approx(10)
        assert els[0].box.width == pytest.approx(50)

    @patch("slidefuse.ocr._engine._get_ocr")
    def test_min_confidence_from_config(self, mock_get_ocr):
        engine = MagicMock()
        engine.predict.return_value = [
            {"dt_polys": [_quad(0, 0, 10, 10)], "rec_texts": ["x"], "rec_scores": [0.7]}
        ]
        mock_get_ocr.return_value = engine

        img = Image.new("RGB", (100, 100))
        assert extract_text_elements(img, FusionConfig(ocr_min_confidence=0.8)) == []

    def test_missing_paddleocr(self):
        from slidefuse.ocr import _engine

        with patch.dict(_engine._ocr_cache, clear=True), patch.dict(
            "sys.modules", {"paddleocr": None}
        ):
            with pytest.raises(OcrUnavailableError):
                _engine._get_ocr(FusionConfig())
