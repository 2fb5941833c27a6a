# src/madspild/filtering/engine.py
"""
Product filter engine.

Users narrow a catalog by typing product words (English or Danish) or by picking
quick filters. Semantics:
- OR across terms: an offer matches if any active term matches it.
- A term matches if its lowercase form is a substring of the lowercased product
  description, English category or Danish category (missing fields never match).
- No diacritic folding: "brød" matches "BRØD" but not "brod". Quick filters add
  both language variants explicitly to cover both spellings.

An empty term set means "no filtering" (full catalog, full offer lists). That is
observably different from a filter that matches nothing.

`filter_catalog` and `matches_any_term` are pure. `FilterState` is the small
holder the orchestrating layer owns; each mutation re-derives the view from the
catalog passed in at call time, so it never works on a stale snapshot.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from madspild.domain.models import Catalog, FilterView, Offer, QuickFilter


def _searchable_fields(offer: Offer) -> tuple[str, str, str]:
    return (
        (offer.product_description or "").lower(),
        (offer.category_en or "").lower(),
        (offer.category_da or "").lower(),
    )


def matches_any_term(offer: Offer, terms: Iterable[str]) -> bool:
    """Return True if at least one term is a case-insensitive substring of the offer's text fields."""
    fields = _searchable_fields(offer)
    for term in terms:
        needle = term.lower()
        if not needle:
            continue
        if any(needle in field for field in fields):
            return True
    return False


def filter_catalog(catalog: Catalog, terms: Iterable[str]) -> FilterView:
    """Return the stores with matching offers, plus the matching offers per store id."""
    term_list = list(terms)

    if not term_list:
        return FilterView(
            terms=[],
            visible_stores=list(catalog),
            matched_offers_by_store={bundle.store.id: list(bundle.offers) for bundle in catalog},
            filtered=False,
        )

    visible = []
    matched: dict[str, list[Offer]] = {}
    for bundle in catalog:
        offers = [offer for offer in bundle.offers if matches_any_term(offer, term_list)]
        if not offers:
            continue
        visible.append(bundle)
        matched[bundle.store.id] = offers

    return FilterView(terms=term_list, visible_stores=visible, matched_offers_by_store=matched, filtered=True)


@dataclass(frozen=True)
class ActiveFilterSet:
    """Ordered, de-duplicated filter terms (oldest first).

    Membership is exact on the stored (trimmed) string, so "Bread" and "bread"
    are two entries even though they match the same offers.
    """

    terms: tuple[str, ...] = ()

    def __iter__(self) -> Iterator[str]:
        return iter(self.terms)

    def __len__(self) -> int:
        return len(self.terms)

    def __contains__(self, term: object) -> bool:
        return term in self.terms

    def add(self, term: str) -> ActiveFilterSet:
        cleaned = term.strip()
        if not cleaned or cleaned in self.terms:
            return self
        return ActiveFilterSet(terms=(*self.terms, cleaned))

    def remove(self, term: str) -> ActiveFilterSet:
        if term not in self.terms:
            return self
        return ActiveFilterSet(terms=tuple(t for t in self.terms if t != term))

    def clear(self) -> ActiveFilterSet:
        return ActiveFilterSet()


class FilterState:
    """Active filters and the view they produce, owned by the orchestrating layer."""

    def __init__(self) -> None:
        self._active = ActiveFilterSet()
        self._view = FilterView()

    @property
    def active(self) -> ActiveFilterSet:
        return self._active

    @property
    def view(self) -> FilterView:
        return self._view

    def _apply(self, active: ActiveFilterSet, catalog: Catalog) -> FilterView:
        self._active = active
        self._view = filter_catalog(catalog, active.terms)
        return self._view

    def reset(self, catalog: Catalog) -> FilterView:
        """Start over for a freshly loaded catalog."""
        return self._apply(ActiveFilterSet(), catalog)

    def add_term(self, term: str, catalog: Catalog) -> FilterView:
        return self._apply(self._active.add(term), catalog)

    def add_quick_filter(self, quick: QuickFilter, catalog: Catalog) -> FilterView:
        active = self._active.add(quick.en).add(quick.da)
        return self._apply(active, catalog)

    def remove_term(self, term: str, catalog: Catalog) -> FilterView:
        active = self._active.remove(term)
        if not active:
            return self.clear_all(catalog)
        return self._apply(active, catalog)

    def clear_all(self, catalog: Catalog) -> FilterView:
        return self._apply(self._active.clear(), catalog)
