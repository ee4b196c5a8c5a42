"""
Feature choice resolution: exported selections -> destination level choices.

A character's choices live in a flat "level choices" map keyed by the id of
the feature-definition node being answered. On import the exported
selections are matched against the destination's own feature trees and each
selection is re-resolved to a destination id.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from .config import FEATURE_TABLE_MARKER, TransferRules
from .host import FeatureDefinition
from .logutils import ActivityLog
from .records import LookupReference, SelectedFeature, SelectedFeatures
from .resolver import ReferenceResolver
from .utils import sanitized_strings_match

# Choice ids with this suffix hold the domains picked for a deity choice
DOMAINS_SUFFIX = "-domains"

# Category keys that are host bookkeeping rather than tags
IGNORED_CATEGORY_KEYS = frozenset({"_luaTable"})


def is_domain_choice(feature: SelectedFeature) -> bool:
    return (feature.choice_id or "").endswith(DOMAINS_SUFFIX)


def choice_type_matches(choice_type: str | None, type_name: str | None) -> bool:
    if not choice_type or not type_name:
        return False
    return choice_type.lower() == type_name.lower()


def categories_match(selected: Mapping[str, Any] | None, available: Mapping[str, Any] | None) -> bool:
    """Symmetric category check.

    No categories on the selected side is a wildcard. Otherwise both sides
    must agree on every key either of them carries.
    """
    if not selected:
        return True
    if not available:
        return False

    keys = (set(selected) | set(available)) - IGNORED_CATEGORY_KEYS
    return all(selected.get(key) == available.get(key) for key in keys)


def find_matching_feature(
    selected: SelectedFeature,
    forest: Iterable[FeatureDefinition],
) -> FeatureDefinition | None:
    """Depth-first search for the definition node a selected feature answers.

    With a choice id only an exact id match counts. Without one, the first
    node whose type equals the choice type (case-insensitive) and whose
    categories match wins. Each node's nested features are searched before
    its next sibling.
    """
    choice_id = selected.choice_id
    for node in forest:
        if choice_id:
            if node.guid == choice_id:
                return node
        elif choice_type_matches(selected.choice_type, node.type_name) and categories_match(
            selected.categories, node.categories
        ):
            return node

        if node.features:
            nested = find_matching_feature(selected, node.features)
            if nested is not None:
                return nested
    return None


class FeatureChoiceResolver:
    """Turns a SelectedFeatures container into destination level choices.

    Example:
        >>> choices = FeatureChoiceResolver(resolver, rules).resolve(selected, race.features)
        >>> choices
        {'5d0b...': ['a1f4...', '77c2...']}
    """

    def __init__(self, resolver: ReferenceResolver, rules: TransferRules, log: ActivityLog | None = None):
        self.resolver = resolver
        self.rules = rules
        self.log = log or resolver.log

    def resolve(
        self,
        selected: SelectedFeatures | None,
        available: Iterable[FeatureDefinition],
    ) -> dict[str, list[str]]:
        """Level choices for one feature forest.

        Features with no resolvable selection are left out entirely.
        """
        return self.resolve_forests(selected, [list(available)])

    def resolve_forests(
        self,
        selected: SelectedFeatures | None,
        forests: Iterable[Iterable[FeatureDefinition]],
        report_misses: bool = True,
    ) -> dict[str, list[str]]:
        """Level choices over several forests (e.g. one per class level).

        Each forest is matched independently and the results are merged in
        order, later entries replacing earlier ones with the same key.
        Domain choices are resolved once, outside any forest. Features
        that carry no selections are pruned from ``selected`` first.
        """
        level_choices: dict[str, list[str]] = {}
        if selected is None:
            return level_choices

        dropped = selected.prune_empty()
        if dropped:
            self.log.debug(f"Pruned {dropped} features without selections")

        forests = [list(forest) for forest in forests]
        features = selected.all_features()

        for feature in features:
            if is_domain_choice(feature):
                domains = self._resolve_domains(feature)
                if domains:
                    level_choices[feature.choice_id] = domains

        for forest in forests:
            for feature in features:
                if is_domain_choice(feature):
                    continue
                node = find_matching_feature(feature, forest)
                if node is None:
                    continue
                resolved = self.resolve_selections(feature, node)
                if resolved:
                    level_choices[node.guid] = resolved
                    self.log.debug(f"Added {len(resolved)} selections for feature {node.guid}")
                else:
                    self.log.warn(f"No selections resolved for feature [{node.name or node.guid}].")

        if report_misses:
            self.report_unmatched(selected, forests)

        return level_choices

    def report_unmatched(
        self,
        selected: SelectedFeatures | None,
        forests: Iterable[Iterable[FeatureDefinition]],
    ) -> list[SelectedFeature]:
        """Log and return the selected features that match in none of the forests."""
        if selected is None:
            return []

        forests = [list(forest) for forest in forests]
        missing = [
            feature for feature in selected.all_features()
            if not is_domain_choice(feature)
            and all(find_matching_feature(feature, forest) is None for forest in forests)
        ]
        for feature in missing:
            self.log.warn(
                f"No matching feature for [{feature.choice_id or feature.choice_type}]; choice dropped."
            )
        return missing

    def resolve_selections(self, selected: SelectedFeature, node: FeatureDefinition) -> list[str]:
        """Destination ids for each resolvable selection, in order."""
        resolved: list[str] = []
        for selection in selected.selections:
            if self._is_inline(node, selection):
                found = self._resolve_inline(node, selection)
            else:
                found = self._resolve_verified(node, selection)

            if found:
                resolved.append(found)
                self.log.impl(f"Adding [{selection.table_name}] entry [{selection.name}]")
            else:
                self.log.warn(
                    f"!!!! [{selection.table_name}]->[{selection.name}] not found in destination."
                )
        return resolved

    def _is_inline(self, node: FeatureDefinition, selection: LookupReference) -> bool:
        return (
            selection.table_name == FEATURE_TABLE_MARKER
            or self.rules.choice_table(node.type_name) == FEATURE_TABLE_MARKER
        )

    def _resolve_inline(self, node: FeatureDefinition, selection: LookupReference) -> str | None:
        target_id = selection.id
        if target_id:
            for option in node.options:
                if option.guid == target_id:
                    return option.guid

        if selection.name:
            for option in node.options:
                if sanitized_strings_match(option.name, selection.name):
                    return option.guid
        return None

    def _resolve_verified(self, node: FeatureDefinition, selection: LookupReference) -> str | None:
        table_name = selection.table_name or self.rules.choice_table(node.type_name)
        found = self.resolver.resolve(table_name, selection.name, selection.id)
        if not found:
            return None

        # An id that survived a catalog edit may now point at something else
        actual = self.resolver.record_name(table_name, found)
        if sanitized_strings_match(selection.name, actual):
            return found

        self.log.debug(f"Name mismatch for id {found}: expected '{selection.name}', got '{actual}'")
        return None

    def _resolve_domains(self, feature: SelectedFeature) -> list[str]:
        resolved: list[str] = []
        for selection in feature.selections:
            found = self.resolver.resolve_reference(selection)
            if found:
                resolved.append(found)
                self.log.impl(f"Adding domain [{selection.name}]")
            else:
                self.log.warn(f"!!!! Domain [{selection.name}] not found in destination.")
        return resolved
