from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from merchant_twin.api.routes_insights import router as insights_router
from merchant_twin.insight.pipeline.memory_store import InMemoryEventStore
from merchant_twin.logging_config import configure_logging

SERVICE_NAME = "insight-service"
DEFAULT_PORT = 3000

configure_logging()

app = FastAPI(title="merchant_twin insight service", version="0.1.0")

# Process-lifetime event log
app.state.store = InMemoryEventStore()

app.include_router(insights_router)


@app.exception_handler(HTTPException)
async def http_error(request: Request, exc: HTTPException) -> JSONResponse:
    # object details are the response body itself: {"error": ..., "missing": [...]}
    body = exc.detail if isinstance(exc.detail, dict) else {"detail": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


@app.get("/health")
def health():
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "eventsStored": app.state.store.count(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=DEFAULT_PORT)
