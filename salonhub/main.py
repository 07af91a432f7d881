from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from salonhub.api.v1.two_factor import router as two_factor_router
from salonhub.api.v1.users import router as users_router
from salonhub.core.config import settings
from salonhub.core.logging import new_request_id, request_id_var, setup_logging
from salonhub.services.errors import TwoFactorError

setup_logging(settings.LOG_LEVEL)

app = FastAPI(title=f"{settings.APP_NAME} API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    rid = new_request_id(request.headers.get("x-request-id"))
    token = request_id_var.set(rid)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["X-Request-ID"] = rid
    return response


@app.exception_handler(TwoFactorError)
async def two_factor_error_handler(request: Request, exc: TwoFactorError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


app.include_router(two_factor_router)
app.include_router(users_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
