"""
Representative name resolution.

Person-sales rows carry a subgroup label. For regular customers the label is
already the representative's name. For the proxy ("Beta") channel the label
looks like ``"گروه بتا (مشتری NAME)"``; NAME is extracted and then mapped to
a real representative through the administrator-maintained mapping table.
"""

import re
from typing import Dict, Iterable, Mapping, Optional, Union

from ..models.schemas import BetaMapping

# "(مشتری NAME)" or "(مشتری: NAME)"; مشتری is the marker word for "customer"
PROXY_LABEL_PATTERN = re.compile(r"\(\s*مشتری\s*:?\s*(.+?)\s*\)")

MappingSource = Union[Mapping[str, str], Iterable[BetaMapping]]


def extract_rep_name(raw_label: Optional[str]) -> str:
    """Return the name embedded in a proxy-channel label.

    Falls back to the trimmed label when the pattern does not match.
    """
    if not raw_label:
        return ""
    normalized = raw_label.strip()
    match = PROXY_LABEL_PATTERN.search(normalized)
    if match and match.group(1):
        return match.group(1).strip()
    return normalized


def build_mapping_index(mappings: Iterable[BetaMapping]) -> Dict[str, str]:
    """Index mappings by key; the first entry for a key wins."""
    index: Dict[str, str] = {}
    for mapping in mappings:
        index.setdefault(mapping.proxy_group_key, mapping.assigned_rep_name)
    return index


def _as_index(mappings: Optional[MappingSource]) -> Mapping[str, str]:
    if mappings is None:
        return {}
    if isinstance(mappings, Mapping):
        return mappings
    return build_mapping_index(mappings)


def resolve_linked_label(raw_label: str, mappings: Optional[MappingSource] = None) -> str:
    """Map a raw label through extraction, then extracted-key and raw-key lookups."""
    index = _as_index(mappings)
    extracted = extract_rep_name(raw_label)
    if extracted in index:
        return index[extracted]
    # Older mapping tables were keyed by the full label
    if raw_label in index:
        return index[raw_label]
    return extracted


def resolve_rep_name(
    raw_label: str,
    is_proxy_channel: bool,
    mappings: Optional[MappingSource] = None,
) -> str:
    """Resolve a subgroup label to the canonical representative name.

    Regular labels pass through unchanged. Proxy labels resolve to the mapped
    representative or, when unmapped, to the extracted name itself so that
    proxy customers still group under a readable pseudo-representative.
    """
    if not is_proxy_channel:
        return raw_label
    return resolve_linked_label(raw_label, mappings)
