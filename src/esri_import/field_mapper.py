"""Field mapper - rename service attributes to map tags.

The mapping table is edited by the user (through the field table in the
service UI) and read by the import driver. An empty table passes properties
through unchanged; a non-empty table keeps only the mapped keys.
"""

from __future__ import annotations

from typing import Any

DEFAULT_SOURCE_ID_FIELD = "OBJECTID"


class FieldMapper:
    """Mutable source-key -> tag-key mapping."""

    def __init__(self, mapping: dict[str, str] | None = None) -> None:
        self._mapping: dict[str, str] = {}
        if mapping:
            self.update(mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def __contains__(self, source_key: str) -> bool:
        return source_key in self._mapping

    def get(self, source_key: str) -> str | None:
        return self._mapping.get(source_key)

    def set(self, source_key: str, tag_key: str) -> None:
        """Map a source key to a tag key. A blank tag key removes the entry."""
        tag_key = (tag_key or "").strip()
        if not tag_key:
            self._mapping.pop(source_key, None)
            return
        self._mapping[source_key] = tag_key

    def update(self, mapping: dict[str, str]) -> None:
        for source_key, tag_key in mapping.items():
            self.set(source_key, tag_key)

    def remove(self, source_key: str) -> bool:
        return self._mapping.pop(source_key, None) is not None

    def reset(self) -> None:
        self._mapping.clear()

    def as_dict(self) -> dict[str, str]:
        return dict(self._mapping)

    def apply(
        self,
        properties: dict[str, Any] | None,
        source_id_key: str = DEFAULT_SOURCE_ID_FIELD,
    ) -> tuple[dict[str, Any], Any]:
        """Rewrite a property bag into a tag set.

        Args:
            properties: The feature's source properties (not modified).
            source_id_key: Property holding the service's object id.

        Returns:
            (tags, source_id). The identifier never appears in tags;
            source_id is None when the property is absent.
        """
        properties = properties or {}
        source_id = properties.get(source_id_key)

        if not self._mapping:
            tags = {k: v for k, v in properties.items() if k != source_id_key}
            return tags, source_id

        tags: dict[str, Any] = {}
        for source_key, tag_key in self._mapping.items():
            if source_key == source_id_key:
                continue
            value = properties.get(source_key)
            if value:
                tags[tag_key] = value
        return tags, source_id

    def field_rows(self, sample: dict[str, Any]) -> list[dict[str, Any]]:
        """Rows for the field-mapping table, one per key of a sample feature.

        The placeholder shows the current mapping if there is one, otherwise
        the sample value, so the user sees what each field holds.
        """
        rows = []
        for key, value in sample.items():
            mapped = self._mapping.get(key)
            rows.append({
                "key": key,
                "mapped_to": mapped,
                "placeholder": mapped if mapped else value,
            })
        return rows
