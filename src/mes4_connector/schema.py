"""ParameterSchema: ordered, validated parameter header with O(1) name lookup; XML/JSON loaders."""

import json
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Iterable, Iterator

from .errors import SchemaValidationError
from .types import ParameterDefinition

logger = logging.getLogger(__name__)

HEADER_NAMESPACE = "http://tempuri.org/dsHeader.xsd"


def _parse_entry(raw: dict[str, Any]) -> ParameterDefinition:
    """Build ParameterDefinition from a dict entry (id, name, kind, string_length, address)."""
    try:
        return ParameterDefinition(
            id=int(raw["id"]),
            name=str(raw.get("name") or "").strip(),
            kind=int(raw["kind"]),
            string_length=int(raw.get("string_length", 0)),
            address=int(raw.get("address", 0)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise SchemaValidationError(f"Malformed schema entry {raw!r}: {e}") from e


class ParameterSchema:
    """
    Ordered parameter definitions keyed by name.

    Validated on construction: ids must run 1..N without gaps, names must be
    present and unique. A schema that fails here never reaches a connector.
    """

    def __init__(
        self,
        entries: Iterable[ParameterDefinition | dict[str, Any]],
        source: str | None = None,
    ) -> None:
        self._source = source
        self._by_name: dict[str, ParameterDefinition] = {}

        expected_id = 1
        for entry in entries:
            defn = entry if isinstance(entry, ParameterDefinition) else _parse_entry(entry)
            if defn.id != expected_id:
                raise SchemaValidationError(
                    f"Schema is incorrectly formatted: missing ID {expected_id} (found {defn.id})",
                    parameter_id=expected_id,
                    source=source,
                )
            if not defn.name:
                raise SchemaValidationError(
                    f"Parameter name is missing for ID {defn.id}",
                    parameter_id=defn.id,
                    source=source,
                )
            if defn.name in self._by_name:
                raise SchemaValidationError(
                    f"Duplicate parameter name {defn.name!r} at ID {defn.id}",
                    parameter_id=defn.id,
                    source=source,
                )
            self._by_name[defn.name] = defn
            expected_id += 1

        logger.debug("ParameterSchema loaded from %s: %d entries", source or "entries", len(self._by_name))

    @classmethod
    def from_xml(cls, path: str | Path) -> "ParameterSchema":
        """
        Load a MES4 header dataset (dsHeader XML, one dtHeader element per parameter).

        Rows with non-numeric fields or an empty name are skipped, the same
        way the MES tooling ignores them; the resulting id gap is then
        reported by validation.
        """
        source = str(path)
        try:
            root = ET.parse(path).getroot()
        except ET.ParseError as e:
            raise SchemaValidationError(f"XML parsing error in {source}: {e}", source=source) from e
        except OSError as e:
            raise SchemaValidationError(f"IO error while reading {source}: {e}", source=source) from e

        ns = f"{{{HEADER_NAMESPACE}}}"
        entries: list[ParameterDefinition] = []
        for row in root.iter(f"{ns}dtHeader"):
            try:
                defn = ParameterDefinition(
                    id=int(row.findtext(f"{ns}ID", "")),
                    name=(row.findtext(f"{ns}ParameterName") or "").strip(),
                    kind=int(row.findtext(f"{ns}Type", "")),
                    string_length=int(row.findtext(f"{ns}StringLength", "")),
                    address=int(row.findtext(f"{ns}CoDeSysV3_Address", "")),
                )
            except ValueError:
                logger.debug("Skipping unparsable header row in %s", source)
                continue
            if not defn.name:
                logger.debug("Skipping header row without name in %s (ID %d)", source, defn.id)
                continue
            entries.append(defn)
        return cls(entries, source=source)

    @classmethod
    def from_json(cls, path: str | Path) -> "ParameterSchema":
        """Load a JSON list of entries, or an object with an "entries" list."""
        source = str(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise SchemaValidationError(f"JSON parsing error in {source}: {e}", source=source) from e
        except OSError as e:
            raise SchemaValidationError(f"IO error while reading {source}: {e}", source=source) from e

        if isinstance(data, dict) and "entries" in data:
            data = data["entries"]
        if not isinstance(data, list) or not all(isinstance(e, dict) for e in data):
            raise SchemaValidationError(f"Expected a list of entries in {source}", source=source)
        return cls(data, source=source)

    def lookup(self, name: str) -> ParameterDefinition:
        """Return the definition for name; raise KeyError if not in the schema."""
        return self._by_name[name]

    def get(self, name: str) -> ParameterDefinition | None:
        return self._by_name.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[ParameterDefinition]:
        return iter(self._by_name.values())

    def __len__(self) -> int:
        return len(self._by_name)

    @property
    def names(self) -> list[str]:
        return list(self._by_name)

    @property
    def source(self) -> str | None:
        return self._source


def load_schema(path: str | Path) -> ParameterSchema:
    """Load a schema file, choosing the format from its suffix (.xml or .json)."""
    suffix = Path(path).suffix.lower()
    if suffix == ".xml":
        return ParameterSchema.from_xml(path)
    if suffix == ".json":
        return ParameterSchema.from_json(path)
    raise SchemaValidationError(f"Unsupported schema file type: {suffix or path!r}", source=str(path))
