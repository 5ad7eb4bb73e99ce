"""Tests for the filter predicate engine and search filter parsing."""

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from bicifinder.filters import apply_filters, matches, unique_by_identifier
from bicifinder.models import Bicycle, SearchFilters

TREK = Bicycle(identifier="1", brand="Trek", model="Marlin", color="Rojo", city="Valencia")
ORBEA = Bicycle(identifier="2", brand="Orbea", model="Alma", color="Negro", city="Bilbao")
MADRID = Bicycle(identifier="3", brand="BH", model="Ultimate", color="Blanco", city="Madrid")
PLAIN = Bicycle(identifier="4", brand="Giant", model="TCR", color="Azul", province="Sevilla")

SYMBOLS = "!#$%&*+=?@^~|"

bicycles = st.builds(
    Bicycle,
    identifier=st.uuids().map(str),
    brand=st.text(alphabet="ab" + SYMBOLS, max_size=6),
    model=st.text(alphabet="cd" + SYMBOLS, max_size=6),
)


@pytest.mark.unit
class TestSearchFilters:
    def test_aliases(self):
        filters = SearchFilters.model_validate(
            {"marca": "Trek", "numeroSerie": "WTU", "numero_matricula": "M-1", "provincia": "Madrid", "searchTerm": "x"}
        )
        assert filters.brand == "Trek"
        assert filters.serial_number == "WTU"
        assert filters.registration_number == "M-1"
        assert filters.province == "Madrid"
        assert filters.search_term == "x"

    def test_blank_values_are_absent(self):
        filters = SearchFilters.model_validate({"marca": "   ", "color": "", "q": "  rojo "})
        assert filters.brand is None
        assert filters.color is None
        assert filters.search_term == "rojo"
        assert filters.field_filters() == {}
        assert not filters.is_empty()

    def test_unknown_parameters_are_ignored(self):
        assert SearchFilters.model_validate({"page": "3", "foo": "bar"}).is_empty()

    def test_overlong_value_is_rejected(self):
        with pytest.raises(ValidationError):
            SearchFilters(brand="x" * 201)


@pytest.mark.unit
class TestFilterPredicates:
    def test_brand_filter_is_case_insensitive_substring(self):
        assert apply_filters([TREK, ORBEA], SearchFilters(brand="trek")) == [TREK]
        assert apply_filters([TREK, ORBEA], SearchFilters(brand="RBE")) == [ORBEA]

    def test_search_term_matches_city(self):
        assert apply_filters([MADRID, TREK], SearchFilters(searchTerm="madrid")) == [MADRID]

    def test_search_term_matches_province_and_description(self):
        described = Bicycle(identifier="5", description="Cesta delantera de mimbre")
        assert apply_filters([PLAIN, described, TREK], SearchFilters(q="sevilla")) == [PLAIN]
        assert apply_filters([PLAIN, described, TREK], SearchFilters(q="MIMBRE")) == [described]

    def test_absent_field_fails_filter(self):
        assert not matches(TREK, SearchFilters(province="Valencia"))
        assert not matches(TREK, SearchFilters(serial_number="1"))

    def test_all_filters_must_match(self):
        assert matches(TREK, SearchFilters(brand="trek", color="roj", city="val"))
        assert not matches(TREK, SearchFilters(brand="trek", color="negro"))

    def test_empty_filters_keep_everything(self):
        records = [TREK, ORBEA, MADRID]
        assert apply_filters(records, SearchFilters()) == records

    def test_unique_by_identifier_keeps_first(self):
        copy = Bicycle(identifier="1", brand="Other")
        assert unique_by_identifier([TREK, ORBEA, copy]) == [TREK, ORBEA]


@pytest.mark.unit
class TestFilterProperties:
    @given(records=st.lists(bicycles, max_size=8), needle=st.text(alphabet=SYMBOLS, min_size=1, max_size=3))
    def test_symbol_filter_empty_iff_no_record_contains_it(self, records, needle):
        result = apply_filters(records, SearchFilters(brand=needle))
        assert (result == []) == (not any(needle in record.brand for record in records))

    @given(records=st.lists(bicycles, max_size=8), term=st.text(alphabet="abcd", min_size=1, max_size=2))
    def test_idempotent_and_order_preserving(self, records, term):
        filters = SearchFilters(searchTerm=term)
        first = apply_filters(records, filters)
        assert first == apply_filters(records, filters)
        assert first == [record for record in records if record in first]
        assert apply_filters(first, filters) == first
