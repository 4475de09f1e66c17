# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Agenda Service
==============
Directory of personas (name, email, phone) and the friend references
between them. Friend ids are checked on every write, expanded into
summaries on every read, and pulled from all friend lists when a persona
is deleted.

Run:  uvicorn agenda.main:app --port 8000
"""
from contextlib import asynccontextmanager
from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from agenda.controllers.persona_controller import router as persona_router
from agenda.controllers.system_controller import router as system_router
from agenda.core.config import settings
from agenda.core.dependencies import get_persona_repo, get_persona_service
from agenda.core.logging import get_logger
from agenda.middleware import MetricsMiddleware, RequestIDMiddleware
from agenda.services.errors import AgendaError, InternalError

logger = get_logger("agenda-service")

MISSING_ERROR_TYPES = {"missing", "string_too_short"}
OBJECT_ERROR_TYPES = {"dict_type", "model_type", "model_attributes_type"}
TYPE_MESSAGES = {
    "list_type": "{field} debe ser una lista",
    "string_type": "{field} debe ser texto",
}


def _type_error_message(err: Dict[str, Any], loc: List[str]) -> str:
    err_type = err.get("type")
    if err_type == "json_invalid":
        return "JSON inválido"
    if err_type == "invalid_friend_id":
        return err["msg"]
    if err_type in OBJECT_ERROR_TYPES and not loc:
        return "El cuerpo debe ser un objeto JSON"
    field = loc[0] if loc else "cuerpo"
    if err_type in TYPE_MESSAGES:
        return TYPE_MESSAGES[err_type].format(field=field)
    return f"Dato inválido: {field}"


def validation_message(errors: List[Dict[str, Any]]) -> str:
    """Collapse pydantic errors into one client-facing sentence in Spanish."""
    missing: List[str] = []
    missing_body = False
    other: List[str] = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        if err.get("type") == "json_invalid":
            other.append("JSON inválido")
        elif err.get("type") in MISSING_ERROR_TYPES or ("input" in err and err["input"] is None):
            if loc:
                missing.append(loc[0])
            else:
                missing_body = True
        else:
            other.append(_type_error_message(err, loc))
    if missing:
        return f"Faltan datos requeridos: {', '.join(dict.fromkeys(missing))}"
    if missing_body:
        return "Faltan datos requeridos"
    return "; ".join(dict.fromkeys(other)) or "Petición inválida"


# ── Lifespan ──────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    repo = get_persona_repo()
    try:
        repo.create_schema()
        get_persona_service().seed_gauges()
    except SQLAlchemyError:
        logger.warning("Could not prepare schema, DB may not be ready yet")
    logger.info("%s v%s started", settings.SERVICE_NAME, settings.SERVICE_VERSION)
    yield
    repo.dispose()
    logger.info("Shutting down, connection pool disposed")


# ── FastAPI App ───────────────────────────────────────────────────────────
app = FastAPI(
    title="Agenda Service",
    description="Persona directory with referential integrity on the friend graph.",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestIDMiddleware)


# ── Exception handlers ────────────────────────────────────────────────────
@app.exception_handler(AgendaError)
async def agenda_error_handler(request: Request, exc: AgendaError):
    content = {"error": exc.message}
    if isinstance(exc, InternalError):
        content["request_id"] = getattr(request.state, "request_id", None)
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": validation_message(exc.errors())})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    req_id = getattr(request.state, "request_id", None)
    logger.exception("Unhandled exception", extra={"request_id": req_id})
    return JSONResponse(
        status_code=500,
        content={"error": "Error interno del servidor", "request_id": req_id},
    )


app.include_router(system_router)
app.include_router(persona_router)


# ── Entrypoint ────────────────────────────────────────────────────────────
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.SERVICE_PORT, log_level="info")
