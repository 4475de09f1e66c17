# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: persona create/read/update/delete with friend-graph integrity.
"""

import uuid
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from agenda.core.logging import get_logger, persona_context
from agenda.metrics import (
    CASCADE_FAILURES,
    FRIEND_LINKS_REMOVED,
    PERSONAS_CREATED,
    PERSONAS_DELETED,
    PERSONAS_TOTAL,
    PERSONAS_UPDATED,
    WRITE_REJECTIONS,
)
from agenda.repositories import PersonaRepository
from agenda.services.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from agenda.services.relationship_resolver import RelationshipResolver

logger = get_logger(__name__)

EMAIL_TAKEN = "El email ya está registrado."
PHONE_TAKEN = "El teléfono ya está registrado."
PERSONA_NOT_FOUND = "Persona no encontrada"
FRIENDS_NOT_FOUND = "Amigos no encontrados."


def _require(**fields) -> None:
    missing = [
        name for name, value in fields.items()
        if value is None or (isinstance(value, str) and not value.strip())
    ]
    if missing:
        raise ValidationError(f"Faltan datos requeridos: {', '.join(missing)}")


def normalise_friend_ids(friends: Iterable[Any]) -> List[str]:
    """Canonical UUID strings, duplicates dropped, first occurrence kept."""
    normalised: List[str] = []
    for raw in friends:
        try:
            normalised.append(str(uuid.UUID(str(raw))))
        except ValueError:
            raise ValidationError(f"ID de amigo inválido: {raw}")
    return list(dict.fromkeys(normalised))


class PersonaService:
    def __init__(self, repo: PersonaRepository, resolver: RelationshipResolver):
        self._repo = repo
        self._resolver = resolver

    def seed_gauges(self):
        PERSONAS_TOTAL.set(self._repo.count())
        logger.info("Prometheus gauges loaded from DB")

    # ── Read ───────────────────────────────────────────────────────────

    def list_personas(self, name: Optional[str] = None) -> List[Dict[str, Any]]:
        return [self._resolver.to_view(r) for r in self._repo.find_all(name)]

    def get_persona(self, email: str) -> Dict[str, Any]:
        _require(email=email)
        record = self._repo.find_one(email=email)
        if not record:
            raise NotFoundError(PERSONA_NOT_FOUND)
        return self._resolver.to_view(record)

    # ── Write ──────────────────────────────────────────────────────────

    def create_persona(self, name: str, email: str, phone: str,
                       friends: Optional[List[str]]) -> Dict[str, Any]:
        _require(name=name, email=email, phone=phone, friends=friends)
        friend_ids = normalise_friend_ids(friends)

        if self._repo.find_one(email=email):
            self._reject("duplicate_email")
            raise ConflictError(EMAIL_TAKEN, field="email")
        if self._repo.find_one(phone=phone):
            self._reject("duplicate_phone")
            raise ConflictError(PHONE_TAKEN, field="phone")
        if not self._resolver.validate_friend_ids(friend_ids):
            self._reject("friends_not_found")
            raise NotFoundError(FRIENDS_NOT_FOUND)

        try:
            persona_id = self._repo.insert(name, email, phone, friend_ids)
        except IntegrityError:
            # Lost a race against a concurrent create with the same email/phone
            logger.warning("Unique constraint rejected persona insert",
                           extra=persona_context(email=email))
            if self._repo.find_one(email=email):
                raise ConflictError(EMAIL_TAKEN, field="email")
            raise ConflictError(PHONE_TAKEN, field="phone")

        created = self._repo.find_one(persona_id=persona_id)
        if not created:
            logger.error("Persona inserted but could not be read back",
                         extra=persona_context(persona_id=persona_id, email=email))
            raise InternalError("Error al crear la persona")

        PERSONAS_CREATED.inc()
        PERSONAS_TOTAL.inc()
        logger.info("Persona created",
                    extra=persona_context(created, friend_count=len(friend_ids)))
        return self._resolver.to_view(created)

    def update_persona(self, name: str, email: str, phone: str,
                       friends: Optional[List[str]]) -> Dict[str, Any]:
        """Replace name, phone and friends of the persona identified by email."""
        _require(name=name, email=email, phone=phone, friends=friends)
        friend_ids = normalise_friend_ids(friends)

        if not self._repo.find_one(email=email):
            self._reject("not_found")
            raise NotFoundError(PERSONA_NOT_FOUND)
        if self._repo.find_one(phone=phone, exclude_email=email):
            self._reject("duplicate_phone")
            raise ConflictError(PHONE_TAKEN, field="phone")
        if not self._resolver.validate_friend_ids(friend_ids):
            self._reject("friends_not_found")
            raise NotFoundError(FRIENDS_NOT_FOUND)

        try:
            updated = self._repo.update_fields(email, name, phone, friend_ids)
        except IntegrityError:
            logger.warning("Unique constraint rejected persona update",
                           extra=persona_context(email=email))
            raise ConflictError(PHONE_TAKEN, field="phone")
        if not updated:
            # Deleted between the existence check and the update
            raise NotFoundError(PERSONA_NOT_FOUND)

        record = self._repo.find_one(email=email)
        if not record:
            logger.error("Persona updated but could not be read back",
                         extra=persona_context(email=email))
            raise InternalError("Error al actualizar la persona")

        PERSONAS_UPDATED.inc()
        logger.info("Persona updated",
                    extra=persona_context(record, friend_count=len(friend_ids)))
        return self._resolver.to_view(record)

    def delete_persona(self, email: str) -> None:
        """Remove the persona, then pull its id from every friend list.

        The cascade is best-effort: if it fails the deletion stands and the
        dangling references are skipped by the resolver on read.
        """
        _require(email=email)
        record = self._repo.find_one(email=email)
        if not record:
            self._reject("not_found")
            raise NotFoundError(PERSONA_NOT_FOUND)

        persona_id = record["id"]
        if self._repo.delete(persona_id):
            PERSONAS_DELETED.inc()
            PERSONAS_TOTAL.dec()

        try:
            removed = self._repo.remove_id_from_all_friend_lists(persona_id)
        except SQLAlchemyError:
            CASCADE_FAILURES.inc()
            logger.exception("Friend cascade failed for deleted persona",
                             extra=persona_context(record))
            return
        FRIEND_LINKS_REMOVED.inc(max(removed, 0))
        logger.info("Persona deleted",
                    extra=persona_context(record, friend_links_removed=removed))

    # ── Private ────────────────────────────────────────────────────────

    @staticmethod
    def _reject(reason: str):
        WRITE_REJECTIONS.labels(reason=reason).inc()
