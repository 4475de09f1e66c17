# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Repository package — re-exports PersonaRepository."""
from agenda.repositories.persona_repository import PersonaRepository

__all__ = ["PersonaRepository"]
