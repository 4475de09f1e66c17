# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: friend reference resolution and validation.
Read-only; absence is expressed as empty results or False, never raised.
"""

from typing import Any, Dict, Iterable, List

from agenda.repositories import PersonaRepository


def _friend_ids(record: Dict[str, Any]) -> List[str]:
    friends = record.get("friends") if isinstance(record, dict) else None
    if not isinstance(friends, (list, tuple, set)):
        return []
    return [str(f) for f in friends if f is not None]


def to_friend_summary(record: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": record["id"],
        "name": record["name"],
        "email": record["email"],
        "phone": record["phone"],
    }


class RelationshipResolver:
    """Turns stored friend ids into summaries and checks id sets exist."""

    def __init__(self, repo: PersonaRepository):
        self._repo = repo

    def resolve_friends(self, record: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Expand ``record["friends"]`` into friend summaries.

        Ids that no longer match a stored persona are skipped, so a read
        racing a delete cascade still succeeds.
        """
        ids = list(dict.fromkeys(_friend_ids(record)))
        if not ids:
            return []
        found = {r["id"]: r for r in self._repo.find_by_ids(ids, with_friends=False)}
        return [to_friend_summary(found[i]) for i in ids if i in found]

    def validate_friend_ids(self, candidate_ids: Iterable[str]) -> bool:
        """True when every distinct id in ``candidate_ids`` exists."""
        ids = set(str(i) for i in candidate_ids)
        if not ids:
            return True
        resolved = {r["id"] for r in self._repo.find_by_ids(ids, with_friends=False)}
        return len(resolved) == len(ids)

    def to_view(self, record: Dict[str, Any]) -> Dict[str, Any]:
        view = to_friend_summary(record)
        view["friends"] = self.resolve_friends(record)
        return view
