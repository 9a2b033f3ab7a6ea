"""
Unit tests for store intents and the filter store.
"""

import pytest

from filter_sync.models import FilterCriteria, PriceRange
from filter_sync.store import (
    ClearAllAttributes,
    ClearAttribute,
    FilterStore,
    ReplaceCategory,
    Reset,
    SetPage,
    SetPageSize,
    SetSort,
    ToggleAttribute,
    ToggleCategory,
    reduce,
)


@pytest.fixture
def store(hierarchy):
    return FilterStore(hierarchy=hierarchy)


class TestReduce:
    """Pure intent application."""

    def test_does_not_mutate_previous_value(self):
        before = FilterCriteria(page=3, attributes={"size": {"M"}})
        after = reduce(before, ToggleAttribute("size", "L"))
        assert before.attributes == {"size": {"M"}}
        assert before.page == 3
        assert after.attributes == {"size": {"M", "L"}}

    def test_unaffected_parts_are_reused(self):
        before = FilterCriteria(price=PriceRange(min=1), category_ids={"a"})
        after = reduce(before, SetSort("popular"))
        assert after.price is before.price
        assert after.category_ids is before.category_ids

    @pytest.mark.parametrize(
        "intent",
        [
            SetSort("priceAsc"),
            ToggleCategory("E"),
            ReplaceCategory("C"),
            ToggleAttribute("size", "M"),
            ClearAttribute("size"),
            ClearAllAttributes(),
            SetPageSize(50),
        ],
    )
    def test_filter_changes_return_to_first_page(self, intent):
        assert reduce(FilterCriteria(page=4), intent).page == 1

    def test_set_page_keeps_filters(self):
        before = FilterCriteria(sort="popular", page=1)
        after = reduce(before, SetPage(5))
        assert after.page == 5
        assert after.sort == "popular"

    def test_reset_restores_defaults(self):
        busy = FilterCriteria(sort="priceDesc", category_ids={"a"}, search="x", page=9)
        assert reduce(busy, Reset()) == FilterCriteria()

    def test_unknown_sort_rejected(self):
        with pytest.raises(ValueError):
            reduce(FilterCriteria(), SetSort("cheapest"))

    def test_non_positive_page_rejected(self):
        with pytest.raises(ValueError):
            reduce(FilterCriteria(), SetPage(0))

    def test_unknown_intent_rejected(self):
        with pytest.raises(ValueError):
            reduce(FilterCriteria(), object())


class TestCategoryIntents:
    def test_toggle_selects_closure_then_clears_it(self, store):
        assert store.toggle_category("A").category_ids == {"A", "B", "C", "D"}
        assert store.toggle_category("A").category_ids == frozenset()

    def test_toggle_child_off_leaves_ancestor(self, store):
        store.toggle_category("A")
        assert store.toggle_category("C").category_ids == {"A", "B"}

    def test_toggle_unknown_id_adds_just_that_id(self, store):
        assert store.toggle_category("Z").category_ids == {"Z"}

    def test_empty_id_clears_everything(self, store):
        store.toggle_category("A")
        store.toggle_category("E")
        assert store.toggle_category("").category_ids == frozenset()

    def test_replace_discards_previous_selection(self, store):
        store.toggle_category("E")
        assert store.replace_category("C").category_ids == {"C", "D"}

    def test_set_category_ids_wholesale(self, store):
        assert store.set_category_ids(["x", "y", "x"]).category_ids == {"x", "y"}


class TestAttributeIntents:
    def test_toggle_adds_then_prunes_empty_key(self, store):
        assert store.toggle_attribute("color", "red").attributes == {"color": {"red"}}
        assert store.toggle_attribute("color", "red").attributes == {}

    def test_clear_one_attribute(self, store):
        store.toggle_attribute("color", "red")
        store.toggle_attribute("size", "M")
        assert store.clear_attribute("color").attributes == {"size": {"M"}}

    def test_state_attributes_are_read_only(self, store):
        seen = []
        store.subscribe(seen.append)
        before = store.state
        with pytest.raises(TypeError):
            store.state.attributes["color"] = frozenset({"red"})
        assert store.state is before
        assert before.attributes == {}
        assert seen == []

    def test_reserved_key_rejected(self, store):
        with pytest.raises(ValueError):
            store.toggle_attribute("page", "x")
        assert store.state.attributes == {}

    def test_clear_all_attributes(self, store):
        store.toggle_attribute("color", "red")
        store.toggle_attribute("size", "M")
        assert store.clear_all_attributes().attributes == {}


class TestFilterStore:
    def test_listeners_see_every_change_in_order(self, store):
        seen = []
        store.subscribe(lambda c: seen.append((c.sort, c.page)))
        store.set_page(3)
        store.set_sort("priceAsc")
        store.set_page(2)
        assert seen == [("recent", 3), ("priceAsc", 1), ("priceAsc", 2)]

    def test_no_op_intent_does_not_notify(self, store):
        seen = []
        store.subscribe(seen.append)
        store.set_sort("recent")
        store.clear_all_attributes()
        assert seen == []

    def test_unsubscribe(self, store):
        seen = []
        unsubscribe = store.subscribe(seen.append)
        unsubscribe()
        store.set_page(2)
        assert seen == []

    def test_price_bounds_are_independent(self, store):
        store.set_price_min(10)
        store.set_price_max(90)
        assert store.set_price_min(None).price == PriceRange(min=None, max=90)

    def test_search_resets_page(self, store):
        store.set_page(4)
        state = store.set_search("boots")
        assert state.search == "boots"
        assert state.page == 1

    def test_initial_state(self, hierarchy):
        initial = FilterCriteria(sort="popular")
        assert FilterStore(initial, hierarchy).state is initial
