import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from whatsapp_kit.config import ConfigurationError, settings
from whatsapp_kit.logging_config import get_logger, setup_logging
from whatsapp_kit.routers import agent, otp, payments, webhook

setup_logging(settings.log_level)
logger = get_logger("main")

app = FastAPI(
    title="WhatsApp Kit",
    description="OTP verification, LLM agent, payments and workflow automation over WhatsApp",
    version="0.1.0",
)

cors_env = os.environ.get("CORS_ALLOW_ORIGINS", "*")
cors_origins = [origin.strip() for origin in cors_env.split(",") if origin.strip()] or ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
app.include_router(otp.router)
app.include_router(agent.router)
app.include_router(payments.router)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Configuration error: {exc}", extra={"context": {"path": request.url.path}})
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.get("/health")
async def health():
    return {"status": "ok"}
