# src/preventive_tasks/reference.py

"""
Reference-data adapters.

The engine only needs existence checks and machine component lists; the owning
service (locations/departments/systems/machines/users CRUD) lives elsewhere.

- JsonReferenceData: catalog exported to a JSON file, e.g.
    {
      "locations": ["loc-1"],
      "departments": ["dep-1"],
      "systems": ["sys-1"],
      "machines": [{"id": "m-1", "components": ["pump", "motor"]}],
      "engineers": [{"id": "eng-1", "active": true}]
    }
  Entries may be plain ids or objects with "id" (and optional "active").
  Inactive entries are treated as missing.
- OpenReferenceData: accepts every id; used when no catalog is configured.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from .core.ports import REFERENCE_KINDS

logger = logging.getLogger(__name__)


def _plural(kind: str) -> str:
    return f"{kind}s"


class OpenReferenceData:
    """Permissive provider: every id resolves, no component catalogs are known."""

    def exists(self, kind: str, ref_id: str) -> bool:
        return bool(ref_id)

    def machine_components(self, machine_id: str) -> list[str] | None:
        return None


class InMemoryReferenceData:
    """Dict-backed provider; also the parsed form of a JSON catalog."""

    def __init__(
        self,
        ids: dict[str, Iterable[str]] | None = None,
        components: dict[str, Iterable[str]] | None = None,
    ) -> None:
        self._ids: dict[str, set[str]] = {k: set() for k in REFERENCE_KINDS}
        for kind, values in (ids or {}).items():
            self._ids.setdefault(kind, set()).update(str(v) for v in values)
        self._components = {str(k): [str(c) for c in v] for k, v in (components or {}).items()}

    def exists(self, kind: str, ref_id: str) -> bool:
        return bool(ref_id) and ref_id in self._ids.get(kind, set())

    def machine_components(self, machine_id: str) -> list[str] | None:
        comps = self._components.get(machine_id)
        return list(comps) if comps is not None else None


class JsonReferenceData(InMemoryReferenceData):
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        data = json.loads(self._path.read_text("utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Reference catalog {self._path} must be a JSON object")

        ids: dict[str, list[str]] = {}
        components: dict[str, list[str]] = {}
        for kind in REFERENCE_KINDS:
            entries = data.get(_plural(kind)) or []
            if not isinstance(entries, list):
                logger.warning("Reference catalog: %s is not a list; ignored", _plural(kind))
                continue
            for entry in entries:
                ref_id, active, comps = self._parse_entry(entry)
                if not ref_id or not active:
                    continue
                ids.setdefault(kind, []).append(ref_id)
                if kind == "machine" and comps is not None:
                    components[ref_id] = comps

        super().__init__(ids, components)
        logger.info(
            "Reference catalog loaded from %s (%s)",
            self._path,
            ", ".join(f"{k}={len(v)}" for k, v in ids.items()) or "empty",
        )

    @staticmethod
    def _parse_entry(entry: Any) -> tuple[str | None, bool, list[str] | None]:
        if isinstance(entry, (str, int)):
            return str(entry), True, None
        if not isinstance(entry, dict) or entry.get("id") in (None, ""):
            return None, False, None
        comps_raw = entry.get("components")
        comps = [str(c) for c in comps_raw] if isinstance(comps_raw, list) else None
        return str(entry["id"]), bool(entry.get("active", True)), comps


def load_reference_data(path: str | Path | None) -> InMemoryReferenceData | OpenReferenceData:
    """
    Catalog from `path` when it exists, else the permissive provider.

    A broken catalog file is an operator error and is raised, not silently ignored.
    """
    if path is None or str(path).strip() == "":
        return OpenReferenceData()
    p = Path(path)
    if not p.exists():
        logger.info("No reference catalog at %s; accepting all reference ids", p)
        return OpenReferenceData()
    return JsonReferenceData(p)
