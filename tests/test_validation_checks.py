"""Tests for layout, element and asset checks."""

from design_parity.models.checks import AssetSpec, ExpectedElement
from design_parity.models.comparison import Bounds
from design_parity.validation.assets import check_asset, validate_assets
from design_parity.validation.elements import element_in_snapshot, validate_elements
from design_parity.validation.layout import (
    calculate_overflow,
    compare_bounds,
    compare_element_dimensions,
    compare_element_position,
    get_relative_position,
    is_element_inside,
    validate_layout,
)

CONTAINER = Bounds(x=0, y=0, width=100, height=100)


class TestLayoutHelpers:
    """Tests for bounds arithmetic."""

    def test_overflow(self):
        """Test overflow is measured per side."""
        ov = calculate_overflow(CONTAINER, Bounds(x=-10, y=5, width=130, height=20))
        assert ov["overflow"] == {"left": 10, "right": 20, "top": 0, "bottom": 0}
        assert ov["has_overflow"] is True
        assert ov["max_overflow"] == 20
        assert ov["total_overflow"] == 30
        assert ov["directions"] == [("left", 10), ("right", 20)]

    def test_no_overflow(self):
        """Test a contained element has no overflow."""
        ov = calculate_overflow(CONTAINER, Bounds(x=10, y=10, width=20, height=20))
        assert ov["has_overflow"] is False
        assert ov["directions"] == []

    def test_compare_bounds(self):
        """Test deviations against a tolerance."""
        result = compare_bounds(Bounds(x=0, y=0, width=50, height=50), Bounds(x=1, y=0, width=53, height=50))
        assert result["diff"] == {"x": 1, "y": 0, "width": 3, "height": 0}
        assert result["max_deviation"] == 3
        assert result["within_tolerance"] is False

    def test_inside_with_margin(self):
        """Test containment honours the margin."""
        element = Bounds(x=-2, y=0, width=50, height=50)
        assert is_element_inside(CONTAINER, element) is False
        assert is_element_inside(CONTAINER, element, margin=2) is True

    def test_relative_position(self):
        """Test positions relative to a container."""
        rel = get_relative_position(Bounds(x=100, y=100, width=200, height=400), Bounds(x=150, y=200))
        assert rel == {"relative_x": 50, "relative_y": 100, "percent_x": 25.0, "percent_y": 25.0}

    def test_position_message(self):
        """Test drift beyond tolerance is described."""
        result = compare_element_position(Bounds(x=10, y=10), Bounds(x=20, y=4))
        assert result["within_tolerance"] is False
        assert result["message"] == "Element is 10px right and 6px up from expected position"

    def test_dimension_message(self):
        """Test size drift beyond the percentage tolerance is described."""
        result = compare_element_dimensions(Bounds(width=100, height=50), Bounds(width=103, height=50))
        assert result["within_tolerance"] is False
        assert result["message"] == "Element width larger by 3px (3.0%)"


class TestValidateLayout:
    """Tests for validate_layout."""

    def test_pass(self):
        """Test contained elements pass."""
        result = validate_layout(
            ["#card"], {"#container": CONTAINER, "#card": Bounds(x=10, y=10, width=20, height=20)},
            parent_selector="#container",
        )
        assert result.status == "PASS"
        assert result.summary == "All 1 elements within bounds"
        assert result.fix_suggestions == []

    def test_overflow_is_critical(self):
        """Test overflow beyond the tolerance fails the layout."""
        result = validate_layout(
            ["#card", "#ok"],
            {
                "#container": CONTAINER,
                "#card": Bounds(x=90, y=0, width=30, height=20),
                "#ok": Bounds(x=0, y=0, width=100, height=10),
            },
            parent_selector="#container",
        )
        assert result.status == "FAIL"
        assert len(result.issues) == 1
        issue = result.issues[0]
        assert (issue.severity, issue.issue, issue.overflow_px) == ("critical", "overflow", 20)
        assert issue.message == "Element overflows container (right: 20px)"
        assert result.checked == [{"selector": "#card", "status": "overflow"}, {"selector": "#ok", "status": "ok"}]
        assert result.fix_suggestions

    def test_overflow_within_tolerance(self):
        """Test overflow up to the tolerance is accepted."""
        result = validate_layout(
            ["#card"], {"#container": CONTAINER, "#card": Bounds(x=0, y=0, width=104, height=10)},
            parent_selector="#container", tolerance_px=5,
        )
        assert result.status == "PASS"

    def test_missing_elements_warn(self):
        """Test elements missing from the bounds map only warn."""
        result = validate_layout(["#gone"], {})
        assert result.status == "WARNING"
        assert result.issues[0].issue == "not_found"
        assert result.summary == "1 element(s) not found in DOM"

    def test_missing_parent_warns(self):
        """Test a missing parent is reported."""
        result = validate_layout(["#card"], {"#card": Bounds(width=10, height=10)}, parent_selector="#nope")
        assert result.status == "WARNING"
        assert result.issues[0].element == "#nope"

    def test_invalid_dimensions(self):
        """Test negative sizes are critical."""
        result = validate_layout(["#card"], {"#card": Bounds(width=-5, height=10)})
        assert result.status == "FAIL"
        assert result.issues[0].issue == "invalid_dimensions"

    def test_expected_bounds_drift(self):
        """Test drift from the design bounds is a moderate issue that fails the layout."""
        result = validate_layout(
            ["#hero"],
            {"#hero": Bounds(x=20, y=10, width=100, height=50)},
            expected_bounds={"#hero": Bounds(x=10, y=10, width=100, height=50)},
        )
        assert result.status == "FAIL"
        assert [(i.severity, i.issue) for i in result.issues] == [("moderate", "position")]
        assert result.checked[0]["status"] == "deviates"


class TestValidateElements:
    """Tests for element presence checks."""

    def test_text_snapshot(self):
        """Test a text snapshot is searched for the selector."""
        assert element_in_snapshot('<button id="buy">Buy</button> #buy', "#buy") is True
        assert element_in_snapshot("<div></div>", "#buy") is False
        assert element_in_snapshot(None, "#buy") is False

    def test_structured_snapshot(self):
        """Test structured snapshots match on selector, id and class."""
        snapshot = {"elements": [
            {"selector": "nav > a"},
            {"id": "hero"},
            {"className": "btn btn-primary"},
        ]}
        assert element_in_snapshot(snapshot, "nav > a")
        assert element_in_snapshot(snapshot, "#hero")
        assert element_in_snapshot(snapshot, ".btn-primary")
        assert not element_in_snapshot(snapshot, ".card")

    def test_required_missing_fails(self):
        """Test a missing required element fails the check."""
        result = validate_elements(
            [ExpectedElement(selector="#hero"), ExpectedElement(selector="#promo", required=False),
             ExpectedElement(selector="#cta")],
            {"elements": [{"id": "hero"}]},
        )
        assert result.status == "FAIL"
        assert (result.total, result.found, result.missing) == (3, 1, 1)
        assert result.elements[2].suggestion == "Element not found: #cta"
        assert result.fix_suggestions

    def test_optional_missing_passes(self):
        """Test a missing optional element does not fail the check."""
        result = validate_elements([ExpectedElement(selector="#promo", required=False)], "")
        assert result.status == "PASS"
        assert result.fix_suggestions == []


class TestValidateAssets:
    """Tests for asset loading checks."""

    def test_image_states(self):
        """Test image loaded, broken, placeholder and loading states."""
        spec = AssetSpec(selector="img.hero", type="image")
        assert check_asset(spec, {"complete": True, "naturalWidth": 800, "naturalHeight": 600}).status == "loaded"
        assert check_asset(spec, {"complete": True, "naturalWidth": 0, "naturalHeight": 0}).status == "broken"
        assert check_asset(spec, {"complete": True, "naturalWidth": 1, "naturalHeight": 1}).status == "placeholder"
        assert check_asset(spec, {"complete": False}).status == "loading"

    def test_background_and_icon(self):
        """Test background images and icons."""
        bg = AssetSpec(selector=".banner", type="background")
        icon = AssetSpec(selector=".icon", type="icon")
        assert check_asset(bg, {"backgroundImage": 'url("hero.png")'}).status == "loaded"
        assert check_asset(bg, {"backgroundImage": "none"}).status == "missing"
        assert check_asset(icon, {"tagName": "SVG", "innerHTML": '<path d="M0 0h24v24H0z"/>'}).status == "loaded"
        assert check_asset(icon, {"tagName": "svg", "innerHTML": ""}).status == "empty"
        assert check_asset(icon, {"tagName": "i", "content": '"\\f101"'}).status == "loaded"

    def test_not_found(self):
        """Test assets absent from the page are reported."""
        result = check_asset(AssetSpec(selector="img.logo"), None)
        assert result.status == "not_found"

    def test_validate_assets(self):
        """Test broken assets fail the check; placeholders do not."""
        result = validate_assets(
            [AssetSpec(selector="img.a"), AssetSpec(selector="img.b"), AssetSpec(selector="img.c")],
            {
                "img.a": {"naturalWidth": 10, "naturalHeight": 10},
                "img.b": {"naturalWidth": 1, "naturalHeight": 1},
            },
        )
        assert result.status == "FAIL"
        assert (result.total, result.loaded, result.broken) == (3, 1, 1)

        clean = validate_assets([AssetSpec(selector="img.b")], {"img.b": {"naturalWidth": 1, "naturalHeight": 1}})
        assert clean.status == "PASS"
