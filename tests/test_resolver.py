"""Tests for representative name extraction and proxy-channel resolution."""
from salescomm.core.resolver import (
    build_mapping_index,
    extract_rep_name,
    resolve_linked_label,
    resolve_rep_name,
)
from salescomm.models.schemas import BetaMapping


PROXY_LABEL = "گروه (مشتری John Doe)"


class TestExtractRepName:
    def test_extracts_name_after_marker(self):
        assert extract_rep_name(PROXY_LABEL) == "John Doe"

    def test_colon_after_marker(self):
        assert extract_rep_name("گروه بتا (مشتری: علی رضایی)") == "علی رضایی"

    def test_inner_whitespace_trimmed(self):
        assert extract_rep_name("گروه بتا (  مشتری   Sara  )") == "Sara"

    def test_no_marker_returns_trimmed_label(self):
        assert extract_rep_name("  Rep1  ") == "Rep1"

    def test_parentheses_without_marker_pass_through(self):
        assert extract_rep_name("Team (North)") == "Team (North)"

    def test_empty_label(self):
        assert extract_rep_name("") == ""
        assert extract_rep_name(None) == ""


class TestResolveRepName:
    def test_non_proxy_label_unchanged(self):
        mappings = [BetaMapping(proxy_group_key="John Doe", assigned_rep_name="Real Rep")]
        assert resolve_rep_name("Rep1", False, mappings) == "Rep1"
        # Even a proxy-looking label is canonical outside the proxy channel
        assert resolve_rep_name(PROXY_LABEL, False, mappings) == PROXY_LABEL

    def test_unmapped_proxy_resolves_to_extracted_name(self):
        assert resolve_rep_name(PROXY_LABEL, True, []) == "John Doe"

    def test_mapped_proxy_resolves_to_assigned_rep(self):
        mappings = [BetaMapping(proxy_group_key="John Doe", assigned_rep_name="Real Rep")]
        assert resolve_rep_name(PROXY_LABEL, True, mappings) == "Real Rep"

    def test_raw_label_mapping_fallback(self):
        mappings = [BetaMapping(proxy_group_key=PROXY_LABEL, assigned_rep_name="Legacy Rep")]
        assert resolve_rep_name(PROXY_LABEL, True, mappings) == "Legacy Rep"

    def test_extracted_key_beats_raw_key(self):
        mappings = [
            BetaMapping(proxy_group_key=PROXY_LABEL, assigned_rep_name="Legacy Rep"),
            BetaMapping(proxy_group_key="John Doe", assigned_rep_name="Real Rep"),
        ]
        assert resolve_rep_name(PROXY_LABEL, True, mappings) == "Real Rep"

    def test_first_mapping_for_key_wins(self):
        mappings = [
            BetaMapping(proxy_group_key="John Doe", assigned_rep_name="First"),
            BetaMapping(proxy_group_key="John Doe", assigned_rep_name="Second"),
        ]
        assert resolve_rep_name(PROXY_LABEL, True, mappings) == "First"

    def test_repeated_calls_are_deterministic(self):
        mappings = [BetaMapping(proxy_group_key="John Doe", assigned_rep_name="Real Rep")]
        results = {resolve_rep_name(PROXY_LABEL, True, mappings) for _ in range(5)}
        assert results == {"Real Rep"}

    def test_accepts_prebuilt_index(self):
        index = build_mapping_index([BetaMapping(proxy_group_key="John Doe", assigned_rep_name="Real Rep")])
        assert resolve_rep_name(PROXY_LABEL, True, index) == "Real Rep"


class TestResolveLinkedLabel:
    def test_plain_label(self):
        assert resolve_linked_label("Rep1") == "Rep1"

    def test_proxy_label_with_dict_mapping(self):
        assert resolve_linked_label(PROXY_LABEL, {"John Doe": "Real Rep"}) == "Real Rep"
