import os
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Type
from fastapi import APIRouter, Body, FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from database import AttendanceCollection, Collection, InvalidInput, MemStorage, MutableCollection, NotFound
from schemas import DashboardMetrics

logger = logging.getLogger(__name__)

# (url prefix, storage attribute, label used in error messages)
RESOURCES = [
    ("students", "students", "Student"),
    ("teachers", "teachers", "Teacher"),
    ("courses", "courses", "Course"),
    ("batches", "batches", "Batch"),
    ("enrollments", "enrollments", "Enrollment"),
    ("exams", "exams", "Exam"),
    ("exam-results", "exam_results", "Exam result"),
    ("attendance", "attendance", "Attendance record"),
    ("fees", "fees", "Fee record"),
    ("messages", "messages", "Message"),
]


def _parse_filter(name: str, raw: str) -> Any:
    if name.endswith("_id"):
        return int(raw)
    return raw


def crud_router(prefix: str, collection: Collection, label: str) -> APIRouter:
    """REST routes for one collection: list, get, create, and update/delete where supported."""
    router = APIRouter(prefix=f"/api/{prefix}", tags=[prefix])
    schema: Type[BaseModel] = collection.schema

    @router.get("")
    def list_records(request: Request) -> List[Dict[str, Any]]:
        params = dict(request.query_params)
        try:
            if isinstance(collection, AttendanceCollection) and "date" in params:
                return collection.by_date(date.fromisoformat(params["date"]))
            flt = {k: _parse_filter(k, v) for k, v in params.items() if k in collection.lookups}
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid filter value")
        return collection.filter(**flt) if flt else collection.list()

    @router.get("/{record_id}")
    def get_record(record_id: int) -> Dict[str, Any]:
        record = collection.get(record_id)
        if record is None:
            raise HTTPException(status_code=404, detail=f"{label} not found")
        return record

    @router.post("", status_code=201)
    def create_record(payload: schema) -> Dict[str, Any]:  # type: ignore[valid-type]
        return collection.create(payload)

    if isinstance(collection, MutableCollection):
        @router.put("/{record_id}")
        def update_record(record_id: int, payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
            return collection.update(record_id, payload)

    @router.delete("/{record_id}", status_code=204)
    def delete_record(record_id: int) -> Response:
        collection.delete(record_id)
        return Response(status_code=204)

    return router


def create_app(storage: Optional[MemStorage] = None) -> FastAPI:
    storage = storage or MemStorage()
    app = FastAPI(title="Coaching Institute API")
    app.state.storage = storage

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidInput)
    def invalid_input(request: Request, exc: InvalidInput):
        return JSONResponse(status_code=400, content={"detail": str(exc), "errors": exc.errors})

    @app.exception_handler(RequestValidationError)
    def invalid_body(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": "Invalid request data", "errors": jsonable_encoder(exc.errors())})

    @app.exception_handler(NotFound)
    def not_found(request: Request, exc: NotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.get("/")
    def root():
        return {"message": "Coaching Institute API"}

    @app.get("/api/dashboard/metrics", response_model=DashboardMetrics)
    def dashboard_metrics():
        return storage.dashboard_metrics()

    for prefix, attr, label in RESOURCES:
        app.include_router(crud_router(prefix, getattr(storage, attr), label))

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    port = int(os.getenv("PORT", 8000))
    logger.info("Starting Coaching Institute API on port %s", port)
    uvicorn.run(app, host="0.0.0.0", port=port)
