"""Vaccine name parsing and the learned vaccine dictionary.

**Parsing contract:**

- A vaccine cell is split only on high-confidence delimiters: semicolon,
  pipe and newline.
- Without one of those, the whole trimmed cell is one vaccine name. Commas
  never split on their own, because real names carry descriptive commas
  ("Measles, Mumps, Rubella (combined)").

**Dictionary contract:**

- The dictionary is a set of lower-cased names, each longer than three
  characters once trimmed.
- It starts from ``DEFAULT_VACCINE_KEYWORDS`` when nothing is stored and
  only ever grows.
- Persistence goes through an injected store exposing ``load()`` and
  ``save(terms)``; training writes only when at least one term was added.
- The dictionary is learned but not consulted by ``parse_vaccine_field``.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Protocol

LOG = logging.getLogger(__name__)

VACCINE_DICTIONARY_KEY = "vaccineDictionary"
VACCINE_FIELD = "Vaccine"
MIN_TERM_LENGTH = 4

DEFAULT_VACCINE_KEYWORDS = frozenset(
    {
        "diphtheria",
        "tetanus",
        "pertussis",
        "hepatitis",
        "haemophilus",
        "polio",
        "pneumococcal",
        "rotavirus",
        "measles",
        "mumps",
        "rubella",
        "varicella",
        "influenza",
        "meningococcal",
        "human papillomavirus",
        "covid-19",
        "bacille calmette-guerin",
        "cholera",
        "typhoid",
        "rabies",
        "yellow fever",
        "japanese encephalitis",
    }
)

_HIGH_CONFIDENCE = re.compile(r"[;|\n]")


def parse_vaccine_field(raw: Any) -> List[str]:
    """Split a vaccine cell into distinct vaccine names.

    Parameters
    ----------
    raw : Any
        Raw value of the ``Vaccine`` column. Non-strings yield no names.

    Returns
    -------
    List[str]
        Trimmed, non-empty names in cell order.

    Examples
    --------
    >>> parse_vaccine_field("BCG; OPV")
    ['BCG', 'OPV']
    >>> parse_vaccine_field("Measles, Mumps, Rubella")
    ['Measles, Mumps, Rubella']
    """
    if not raw or not isinstance(raw, str):
        return []

    if _HIGH_CONFIDENCE.search(raw):
        pieces = _HIGH_CONFIDENCE.split(raw)
    else:
        pieces = [raw]

    return [piece.strip() for piece in pieces if piece.strip()]


def is_valid_term(term: Any) -> bool:
    """True if ``term`` may be stored in the vaccine dictionary."""
    return isinstance(term, str) and len(term.strip()) >= MIN_TERM_LENGTH


def _clean_terms(terms: Iterable[Any]) -> frozenset[str]:
    return frozenset(term.strip().lower() for term in terms if is_valid_term(term))


class DictionaryStore(Protocol):
    """Durable storage for the vaccine dictionary."""

    version: int

    def load(self) -> Optional[Iterable[str]]:
        """Return stored terms, or None if nothing is stored."""
        ...

    def save(self, terms: Iterable[str]) -> None:
        """Overwrite stored terms with ``terms``."""
        ...


class InMemoryDictionaryStore:
    """Dictionary store kept in process memory.

    Used by tests and by callers that do not want cross-session learning.
    """

    def __init__(self, terms: Optional[Iterable[str]] = None) -> None:
        self._terms: Optional[List[str]] = sorted(terms) if terms is not None else None
        self.version = 0

    def load(self) -> Optional[List[str]]:
        return list(self._terms) if self._terms is not None else None

    def save(self, terms: Iterable[str]) -> None:
        self._terms = sorted(terms)
        self.version += 1


class JsonFileDictionaryStore:
    """Dictionary store backed by a small JSON key-value file.

    The file holds a JSON object; the dictionary lives under
    ``VACCINE_DICTIONARY_KEY`` as an array of lower-cased strings. Other
    keys in the file are preserved on save.

    Parameters
    ----------
    path : Path
        Location of the JSON file. Parent directories are created on save.
    key : str, optional
        Key under which the array is stored.
    """

    def __init__(self, path: Path, key: str = VACCINE_DICTIONARY_KEY) -> None:
        self.path = Path(path)
        self.key = key
        self.version = 0

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            payload = json.load(f)
        if not isinstance(payload, dict):
            raise ValueError(f"Expected a JSON object in {self.path}")
        return payload

    def load(self) -> Optional[List[str]]:
        try:
            payload = self._read()
        except (json.JSONDecodeError, OSError, ValueError) as exc:
            LOG.warning("Could not load vaccine dictionary from %s: %s", self.path, exc)
            return None

        stored = payload.get(self.key)
        if stored is None:
            return None
        if not isinstance(stored, list):
            LOG.warning(
                "Ignoring vaccine dictionary in %s: expected a list under %r",
                self.path,
                self.key,
            )
            return None
        return [term for term in stored if isinstance(term, str)]

    def save(self, terms: Iterable[str]) -> None:
        try:
            payload = self._read()
        except (json.JSONDecodeError, OSError, ValueError):
            payload = {}
        payload[self.key] = sorted(terms)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        self.version += 1


def load_dictionary(store: Optional[DictionaryStore] = None) -> frozenset[str]:
    """Load the vaccine dictionary, falling back to the bootstrap keywords.

    Parameters
    ----------
    store : DictionaryStore, optional
        Durable store to read from. When None, or when the store holds no
        dictionary, ``DEFAULT_VACCINE_KEYWORDS`` is returned.

    Returns
    -------
    frozenset[str]
        Lower-cased terms satisfying the dictionary invariant.
    """
    if store is None:
        return DEFAULT_VACCINE_KEYWORDS

    stored = store.load()
    if stored is None:
        return DEFAULT_VACCINE_KEYWORDS

    terms = _clean_terms(stored)
    if not terms:
        return DEFAULT_VACCINE_KEYWORDS
    return terms


def train_dictionary(
    records: Iterable[Mapping[str, Any]],
    dictionary: Iterable[str],
    store: Optional[DictionaryStore] = None,
    field: str = VACCINE_FIELD,
) -> frozenset[str]:
    """Learn vaccine names from records and grow the dictionary.

    Parameters
    ----------
    records : Iterable[Mapping[str, Any]]
        Raw or enriched records.
    dictionary : Iterable[str]
        Current dictionary; never modified.
    store : DictionaryStore, optional
        Written to only if at least one new term was learned.
    field : str, optional
        Column holding the vaccine names (default: "Vaccine").

    Returns
    -------
    frozenset[str]
        The grown dictionary (a superset of ``dictionary``).
    """
    current = frozenset(dictionary)
    learned = set(current)

    for record in records:
        for name in parse_vaccine_field(record.get(field)):
            if is_valid_term(name):
                learned.add(name.strip().lower())

    grown = frozenset(learned)
    added = len(grown) - len(current)
    if added and store is not None:
        try:
            store.save(grown)
        except OSError as exc:
            LOG.error("Could not save vaccine dictionary: %s", exc)
        else:
            LOG.info(
                "Vaccine dictionary trained: %d new term(s), size %d", added, len(grown)
            )
    return grown
