# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
FastAPI dependency injection — wire repository, resolver and service.
"""

from agenda.core.database import engine
from agenda.repositories.persona_repository import PersonaRepository
from agenda.services.persona_service import PersonaService
from agenda.services.relationship_resolver import RelationshipResolver

# ── Singleton instances ──
_persona_repo = PersonaRepository(engine)
_resolver = RelationshipResolver(_persona_repo)
_persona_service = PersonaService(_persona_repo, _resolver)


# ── FastAPI dependency functions ──
def get_persona_repo() -> PersonaRepository:
    return _persona_repo


def get_relationship_resolver() -> RelationshipResolver:
    return _resolver


def get_persona_service() -> PersonaService:
    return _persona_service
