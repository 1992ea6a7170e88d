"""Tests for slidefuse.normalize — reply cleanup, repair, element normalisation."""

import json
import math

import pytest

from slidefuse.models import BoundingBox, ElementType
from slidefuse.normalize import (
    ResponseParseError,
    clamp_confidence,
    clean_json_string,
    find_elements_array,
    normalize_element,
    parse_coord,
    parse_detector_json,
    parse_detector_response,
)

# ── Reply cleanup ──────────────────────────────────────────────────────


class TestCleanJsonString:
    def test_fenced(self):
        assert clean_json_string('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert clean_json_string('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_surrounding_prose(self):
        text = 'Here is the layout: {"a": {"b": 2}} Hope this helps!'
        assert clean_json_string(text) == '{"a": {"b": 2}}'

    def test_empty(self):
        assert clean_json_string("") == "{}"
        assert clean_json_string(None) == "{}"

    def test_no_object_left_alone(self):
        assert clean_json_string("[1, 2]") == "[1, 2]"


class TestParseDetectorJson:
    def test_valid(self):
        assert parse_detector_json('{"elements": []}') == {"elements": []}

    def test_truncated_array_repaired(self):
        text = '{"elements": [{"type": "TEXT"}, {"type": "VISUAL"},'
        data = parse_detector_json(text)
        assert [e["type"] for e in data["elements"]] == ["TEXT", "VISUAL"]

    def test_missing_final_brace_repaired(self):
        assert parse_detector_json('{"elements": []') == {"elements": []}

    def test_unrepairable(self):
        with pytest.raises(ResponseParseError, match="JSON parse error"):
            parse_detector_json('{"elements": [{"type": "TEX')

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_detector_json("not json at all")


class TestFindElementsArray:
    def test_list_as_is(self):
        assert find_elements_array([{"type": "TEXT"}]) == [{"type": "TEXT"}]

    @pytest.mark.parametrize("key", ["elements", "items", "layers"])
    def test_known_keys(self, key):
        assert find_elements_array({key: [1]}) == [1]

    def test_sniffed_list(self):
        obj = {"colors": ["#fff"], "detections": [{"box": [0, 0, 1, 1]}]}
        assert find_elements_array(obj) == [{"box": [0, 0, 1, 1]}]

    def test_nothing_found(self):
        assert find_elements_array({"colors": ["#fff"]}) == []
        assert find_elements_array(None) == []
        assert find_elements_array("text") == []


# ── Field coercion ─────────────────────────────────────────────────────


class TestParseCoord:
    def test_number(self):
        assert parse_coord(12) == 12.0
        assert parse_coord(3.5) == 3.5

    def test_percent_string(self):
        assert parse_coord(" 12.5% ") == 12.5

    def test_garbage_string_is_nan(self):
        assert math.isnan(parse_coord("abc"))

    def test_other_is_zero(self):
        assert parse_coord(None) == 0.0
        assert parse_coord(True) == 0.0


class TestClampConfidence:
    def test_in_range(self):
        assert clamp_confidence(0.7) == 0.7

    def test_clamped(self):
        assert clamp_confidence(1.4) == 1.0
        assert clamp_confidence(-0.2) == 0.0

    def test_missing(self):
        assert clamp_confidence(None) == 0.5
        assert clamp_confidence("high") == 0.5
        assert clamp_confidence(math.nan, default=0.3) == 0.3


# ── Element normalisation ──────────────────────────────────────────────


class TestNormalizeElement:
    def test_text_element(self):
        el = normalize_element(
            {
                "id": "a",
                "type": "TEXT",
                "content": "Hello",
                "box": {"top": 10, "left": 5, "width": 30, "height": 8},
                "style": {"fontSize": "large"},
                "confidence": 0.9,
            },
            0,
        )
        assert el.type is ElementType.TEXT
        assert el.content == "Hello"
        assert el.box == BoundingBox(10, 5, 30, 8)
        assert el.style.font_size == "large"
        assert el.style.color == "#000000"
        assert el.confidence == 0.9

    def test_type_matching_is_loose(self):
        assert normalize_element({"type": "heading_text"}, 0).type is ElementType.TEXT
        assert normalize_element({"type": "txt"}, 0).type is ElementType.TEXT
        assert normalize_element({"type": "IMAGE"}, 0).type is ElementType.VISUAL
        assert normalize_element({}, 0).type is ElementType.VISUAL

    def test_defaults(self):
        text = normalize_element({"type": "TEXT"}, 3)
        assert text.content == "Detected Text"
        assert text.id.startswith("el-")
        assert text.id.endswith("-3")
        assert text.confidence == 0.5
        visual = normalize_element({"type": "VISUAL"}, 0)
        assert visual.description == "Visual Element"

    def test_missing_box(self):
        assert normalize_element({"type": "TEXT"}, 0).box == BoundingBox(10, 10, 20, 20)

    def test_list_box(self):
        el = normalize_element({"type": "TEXT", "box": [10, 20, 30, 5]}, 0)
        assert el.box == BoundingBox(10, 20, 30, 5)

    def test_short_list_box(self):
        el = normalize_element({"type": "TEXT", "box": [10, 20]}, 0)
        assert el.box == BoundingBox(0, 0, 10, 10)

    def test_fractional_box_scaled(self):
        el = normalize_element(
            {"type": "TEXT", "box": {"top": 0.1, "left": 0.2, "width": 0.3, "height": 0.05}},
            0,
        )
        assert el.box.top == pytest.approx(10)
        assert el.box.left == pytest.approx(20)
        assert el.box.width == pytest.approx(30)
        assert el.box.height == pytest.approx(5)

    def test_percent_strings(self):
        el = normalize_element(
            {"type": "TEXT", "box": {"top": "10%", "left": "5%", "width": "50%", "height": "8%"}},
            0,
        )
        assert el.box == BoundingBox(10, 5, 50, 8)

    def test_visual_original_box(self):
        el = normalize_element(
            {"type": "VISUAL", "box": {"top": 1, "left": 2, "width": 30, "height": 40}}, 0
        )
        assert el.original_box == el.box
        assert el.original_box is not el.box

    def test_missing_confidence_override(self):
        el = normalize_element({"type": "TEXT"}, 0, missing_confidence=0.9)
        assert el.confidence == 0.9


class TestParseDetectorResponse:
    def test_full_reply(self, slide_response):
        elements, background = parse_detector_response(slide_response)
        assert background == "#102030"
        assert [el.id for el in elements] == ["g-title", "g-body", "g-icon"]
        assert elements[0].style.font_weight == "bold"

    def test_default_background(self):
        _, background = parse_detector_response('{"elements": []}')
        assert background == "#ffffff"

    def test_non_dict_entries_skipped(self):
        text = json.dumps({"elements": [{"type": "TEXT", "content": "x"}, "junk", 3]})
        elements, _ = parse_detector_response(text)
        assert len(elements) == 1

    def test_truncated_reply(self):
        text = '```json\n{"elements": [{"type": "TEXT", "content": "A"},'
        elements, _ = parse_detector_response(text)
        assert [el.content for el in elements] == ["A"]

    def test_empty_reply(self):
        assert parse_detector_response("") == ([], "#ffffff")
