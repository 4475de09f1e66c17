# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: persona directory endpoints.
Thin HTTP layer. Domain errors raised by PersonaService are turned into
responses by the handlers registered in ``agenda.main``.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from agenda.core.dependencies import get_persona_service
from agenda.schemas import (
    ErrorResponse, MessageResponse, PersonaCreate, PersonaDelete,
    PersonaMessage, PersonaOut, PersonaUpdate,
)
from agenda.services.errors import ValidationError
from agenda.services.persona_service import PersonaService

router = APIRouter(
    tags=["Personas"],
    responses={
        400: {"model": ErrorResponse, "description": "Validation error or duplicate data"},
        404: {"model": ErrorResponse, "description": "Persona or friends not found"},
    },
)


@router.get("/personas", response_model=List[PersonaOut])
def list_personas(
    nombre: Optional[str] = Query(default=None, description="Exact name filter"),
    service: PersonaService = Depends(get_persona_service),
):
    """List personas, optionally only those with exactly this name."""
    return service.list_personas(nombre or None)


@router.get("/persona", response_model=PersonaOut)
def get_persona(
    email: Optional[str] = Query(default=None),
    service: PersonaService = Depends(get_persona_service),
):
    if not email or not email.strip():
        raise ValidationError("Email es requerido")
    return service.get_persona(email.strip())


@router.post("/personas", status_code=201, response_model=PersonaMessage)
def create_persona(body: PersonaCreate,
                   service: PersonaService = Depends(get_persona_service)):
    persona = service.create_persona(
        name=body.name, email=body.email,
        phone=body.phone, friends=body.friends,
    )
    return PersonaMessage(message="Persona creada exitosamente", persona=persona)


@router.put("/persona", response_model=PersonaMessage)
def update_persona(body: PersonaUpdate,
                   service: PersonaService = Depends(get_persona_service)):
    persona = service.update_persona(
        name=body.name, email=body.email,
        phone=body.phone, friends=body.friends,
    )
    return PersonaMessage(message="Persona actualizada exitosamente", persona=persona)


@router.delete("/persona", response_model=MessageResponse)
def delete_persona(body: PersonaDelete,
                   service: PersonaService = Depends(get_persona_service)):
    service.delete_persona(body.email)
    return MessageResponse(message="Persona eliminada exitosamente")
