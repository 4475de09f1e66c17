# type: ignore
"""
Tests for the relationship resolver, persona service and repository.
Resolver tests use a mocked repository; service and repository tests run
against the shared in-memory SQLite engine.
"""
import json
import logging
import uuid
from unittest.mock import MagicMock, patch

import pytest

import agenda.services.persona_service as persona_service_module
from agenda.core.logging import JSONFormatter, persona_context
from agenda.core.dependencies import get_persona_service, get_relationship_resolver
from agenda.services.errors import (
    ConflictError, InternalError, NotFoundError, ValidationError,
)
from agenda.services.persona_service import normalise_friend_ids
from agenda.services.relationship_resolver import RelationshipResolver


def _record(name, friends=None, **extra):
    rec = {
        "id": str(uuid.uuid4()),
        "name": name,
        "email": f"{name.lower()}@x.com",
        "phone": str(abs(hash(name)) % 10_000),
        "friends": friends if friends is not None else [],
    }
    rec.update(extra)
    return rec


# ══════════════════════════════════════════════════════════════════════════
# RELATIONSHIP RESOLVER
# ══════════════════════════════════════════════════════════════════════════
class TestRelationshipResolver:
    def setup_method(self):
        self.repo = MagicMock()
        self.resolver = RelationshipResolver(self.repo)

    def test_resolve_maps_to_summaries(self):
        ana = _record("Ana")
        self.repo.find_by_ids.return_value = [ana]
        bo = _record("Bo", friends=[ana["id"]])
        assert self.resolver.resolve_friends(bo) == [
            {"id": ana["id"], "name": "Ana", "email": ana["email"], "phone": ana["phone"]}
        ]

    def test_resolve_omits_dangling_ids(self):
        ana = _record("Ana")
        self.repo.find_by_ids.return_value = [ana]
        bo = _record("Bo", friends=[str(uuid.uuid4()), ana["id"]])
        assert [f["id"] for f in self.resolver.resolve_friends(bo)] == [ana["id"]]

    def test_resolve_deduplicates_and_queries_once(self):
        ana = _record("Ana")
        self.repo.find_by_ids.return_value = [ana]
        bo = _record("Bo", friends=[ana["id"], ana["id"]])
        assert len(self.resolver.resolve_friends(bo)) == 1
        self.repo.find_by_ids.assert_called_once_with([ana["id"]], with_friends=False)

    def test_resolve_follows_record_order(self):
        ana, cy = _record("Ana"), _record("Cy")
        self.repo.find_by_ids.return_value = [ana, cy]
        bo = _record("Bo", friends=[cy["id"], ana["id"]])
        assert [f["name"] for f in self.resolver.resolve_friends(bo)] == ["Cy", "Ana"]

    @pytest.mark.parametrize("friends", [None, "oops", 42, {"a": 1}])
    def test_resolve_malformed_friends_is_empty(self, friends):
        rec = _record("Bo")
        rec["friends"] = friends
        assert self.resolver.resolve_friends(rec) == []
        self.repo.find_by_ids.assert_not_called()

    def test_resolve_missing_friends_key(self):
        rec = _record("Bo")
        del rec["friends"]
        assert self.resolver.resolve_friends(rec) == []

    def test_validate_all_found(self):
        ana, bo = _record("Ana"), _record("Bo")
        self.repo.find_by_ids.return_value = [ana, bo]
        assert self.resolver.validate_friend_ids([ana["id"], bo["id"]]) is True

    def test_validate_some_missing(self):
        ana = _record("Ana")
        self.repo.find_by_ids.return_value = [ana]
        assert self.resolver.validate_friend_ids([ana["id"], str(uuid.uuid4())]) is False

    def test_validate_counts_distinct_ids(self):
        ana = _record("Ana")
        self.repo.find_by_ids.return_value = [ana]
        assert self.resolver.validate_friend_ids([ana["id"], ana["id"]]) is True

    def test_validate_empty_is_true_without_query(self):
        assert self.resolver.validate_friend_ids([]) is True
        self.repo.find_by_ids.assert_not_called()

    def test_to_view(self):
        ana = _record("Ana")
        self.repo.find_by_ids.return_value = [ana]
        bo = _record("Bo", friends=[ana["id"]])
        view = self.resolver.to_view(bo)
        assert view["id"] == bo["id"]
        assert view["friends"][0]["id"] == ana["id"]
        assert "friends" not in view["friends"][0]


# ══════════════════════════════════════════════════════════════════════════
# PERSONA SERVICE
# ══════════════════════════════════════════════════════════════════════════
class TestPersonaService:
    def setup_method(self):
        self.service = get_persona_service()

    def _create(self, name="Ana", email="a@x.com", phone="1", friends=None):
        return self.service.create_persona(name, email, phone, friends or [])

    def test_create_and_get(self):
        ana = self._create()
        assert self.service.get_persona("a@x.com") == ana

    def test_create_requires_fields(self):
        with pytest.raises(ValidationError) as exc:
            self.service.create_persona("", "a@x.com", " ", None)
        assert "name" in exc.value.message
        assert "phone" in exc.value.message
        assert "friends" in exc.value.message
        assert "email" not in exc.value.message

    def test_create_rejects_malformed_friend_id(self):
        with pytest.raises(ValidationError):
            self._create(friends=["nope"])

    def test_duplicate_email(self):
        self._create()
        with pytest.raises(ConflictError) as exc:
            self._create(phone="2")
        assert exc.value.field == "email"

    def test_duplicate_phone(self):
        self._create()
        with pytest.raises(ConflictError) as exc:
            self._create(email="b@x.com")
        assert exc.value.field == "phone"

    def test_missing_friend_creates_nothing(self):
        with pytest.raises(NotFoundError):
            self._create(friends=[str(uuid.uuid4())])
        assert self.service.list_personas() == []

    def test_friend_ids_accept_uppercase_uuid(self):
        ana = self._create()
        bo = self._create("Bo", "b@x.com", "2", friends=[ana["id"].upper()])
        assert bo["friends"][0]["id"] == ana["id"]

    def test_update_own_phone_ok_other_phone_conflicts(self):
        self._create()
        self._create("Bo", "b@x.com", "2")
        assert self.service.update_persona("Ana", "a@x.com", "1", [])["phone"] == "1"
        with pytest.raises(ConflictError):
            self.service.update_persona("Ana", "a@x.com", "2", [])

    def test_update_unknown(self):
        with pytest.raises(NotFoundError):
            self.service.update_persona("Ana", "a@x.com", "1", [])

    def test_update_refetch_failure(self, repo, monkeypatch):
        self._create()
        real_find_one = repo.find_one
        calls = {"n": 0}

        def flaky_find_one(**kwargs):
            calls["n"] += 1
            # existence check and phone check succeed, re-fetch comes back empty
            if calls["n"] >= 3:
                return None
            return real_find_one(**kwargs)

        monkeypatch.setattr(repo, "find_one", flaky_find_one)
        with pytest.raises(InternalError):
            self.service.update_persona("Ana", "a@x.com", "1", [])

    def test_delete_unknown(self):
        with pytest.raises(NotFoundError):
            self.service.delete_persona("nobody@x.com")

    def test_delete_cascades(self, repo):
        ana = self._create()
        bo = self._create("Bo", "b@x.com", "2", friends=[ana["id"]])
        self.service.delete_persona("a@x.com")
        assert repo.find_one(persona_id=bo["id"])["friends"] == []

    def test_list_filter(self):
        self._create()
        self._create("Bo", "b@x.com", "2")
        assert [p["name"] for p in self.service.list_personas("Bo")] == ["Bo"]
        assert len(self.service.list_personas()) == 2

    def test_relationships_are_directed(self):
        ana = self._create()
        self._create("Bo", "b@x.com", "2", friends=[ana["id"]])
        assert self.service.get_persona("a@x.com")["friends"] == []

    def test_normalise_friend_ids_keeps_first_occurrence(self):
        a, b = str(uuid.uuid4()), str(uuid.uuid4())
        assert normalise_friend_ids([b, a, b]) == [b, a]


# ══════════════════════════════════════════════════════════════════════════
# PERSONA REPOSITORY
# ══════════════════════════════════════════════════════════════════════════
class TestPersonaRepository:
    def test_insert_assigns_id_and_stores_friends(self, repo):
        ana_id = repo.insert("Ana", "a@x.com", "1", [])
        bo_id = repo.insert("Bo", "b@x.com", "2", [ana_id, ana_id])
        uuid.UUID(ana_id)
        assert repo.find_one(persona_id=bo_id)["friends"] == [ana_id]

    def test_find_one_requires_a_filter(self, repo):
        with pytest.raises(ValueError):
            repo.find_one()

    def test_find_one_exclude_email(self, repo):
        repo.insert("Ana", "a@x.com", "1", [])
        assert repo.find_one(phone="1", exclude_email="a@x.com") is None
        assert repo.find_one(phone="1", exclude_email="b@x.com")["email"] == "a@x.com"

    def test_find_by_ids_ignores_unknown(self, repo):
        ana_id = repo.insert("Ana", "a@x.com", "1", [])
        found = repo.find_by_ids([ana_id, str(uuid.uuid4())])
        assert [r["id"] for r in found] == [ana_id]
        assert repo.find_by_ids([]) == []

    def test_find_by_ids_summary_mode_skips_friend_links(self, repo):
        ana_id = repo.insert("Ana", "a@x.com", "1", [])
        bo_id = repo.insert("Bo", "b@x.com", "2", [ana_id])
        with patch.object(repo, "_with_friends") as with_friends:
            found = repo.find_by_ids([bo_id], with_friends=False)
        with_friends.assert_not_called()
        assert found == [{"id": bo_id, "name": "Bo", "email": "b@x.com", "phone": "2"}]
        assert repo.find_by_ids([bo_id])[0]["friends"] == [ana_id]

    def test_find_all_keeps_insertion_order_within_one_second(self, repo):
        ids = [repo.insert(f"P{i}", f"p{i}@x.com", str(i), []) for i in range(8)]
        assert [r["id"] for r in repo.find_all()] == ids
        assert [r["id"] for r in repo.find_by_ids(reversed(ids))] == ids

    def test_update_fields_unknown_email(self, repo):
        assert repo.update_fields("nobody@x.com", "X", "9", []) is False

    def test_remove_id_from_all_friend_lists(self, repo):
        ana_id = repo.insert("Ana", "a@x.com", "1", [])
        bo_id = repo.insert("Bo", "b@x.com", "2", [ana_id])
        cy_id = repo.insert("Cy", "c@x.com", "3", [bo_id, ana_id])
        assert repo.remove_id_from_all_friend_lists(ana_id) == 2
        assert repo.find_one(persona_id=bo_id)["friends"] == []
        assert repo.find_one(persona_id=cy_id)["friends"] == [bo_id]

    def test_delete_and_count(self, repo):
        ana_id = repo.insert("Ana", "a@x.com", "1", [])
        assert repo.count() == 1
        assert repo.delete(ana_id) is True
        assert repo.delete(ana_id) is False
        assert repo.count() == 0


def test_resolver_dependency_shares_repository(repo):
    ana_id = repo.insert("Ana", "a@x.com", "1", [])
    assert get_relationship_resolver().validate_friend_ids([ana_id]) is True


# ══════════════════════════════════════════════════════════════════════════
# STRUCTURED LOGGING
# ══════════════════════════════════════════════════════════════════════════
class TestStructuredLogging:
    def _format(self, **extra):
        record = logging.LogRecord("agenda", logging.INFO, __file__, 1,
                                   "Persona created", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return json.loads(JSONFormatter().format(record))

    def test_formatter_emits_persona_context(self):
        data = self._format(**persona_context(
            {"id": "p1", "email": "a@x.com"}, friend_count=2))
        assert data["message"] == "Persona created"
        assert data["persona_id"] == "p1"
        assert data["email"] == "a@x.com"
        assert data["friend_count"] == 2
        assert "friend_links_removed" not in data
        assert "request_id" not in data

    def test_persona_context_drops_empty_values(self):
        assert persona_context(None, email=None) == {}

    def test_delete_logs_links_removed(self, repo):
        service = get_persona_service()
        ana = service.create_persona("Ana", "a@x.com", "1", [])
        service.create_persona("Bo", "b@x.com", "2", [ana["id"]])
        with patch.object(persona_service_module.logger, "info") as info:
            service.delete_persona("a@x.com")
        info.assert_called_once_with("Persona deleted", extra={
            "persona_id": ana["id"], "email": "a@x.com", "friend_links_removed": 1,
        })
