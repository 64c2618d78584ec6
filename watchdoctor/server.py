"""FastAPI host application and command line entry point."""

from __future__ import annotations

import argparse
import logging
import os
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from .config import WatchDoctorConfig, load_config
from .module import WatchDoctor, WatchDoctorMiddleware


logger = structlog.get_logger(__name__)


def configure_logging(log_level: str = "INFO") -> None:
    level = getattr(logging, str(log_level).upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_app(config: WatchDoctorConfig, **supervisor_kwargs: Any) -> FastAPI:
    doctor = WatchDoctor(config, **supervisor_kwargs)
    doctor.provision()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await doctor.validate()
        logger.info("Watch doctor started")
        try:
            yield
        finally:
            await doctor.shutdown()

    app = FastAPI(title="Watch Doctor", version="0.1.0", lifespan=lifespan)
    app.state.watchdoctor = doctor
    app.add_middleware(WatchDoctorMiddleware)

    @app.get("/")
    async def root():
        return {"status": "healthy", "service": "watchdoctor"}

    @app.get("/status")
    async def status():
        return doctor.supervisor.status()

    return app


def main() -> int:
    parser = argparse.ArgumentParser(description="Backend liveness watcher")
    parser.add_argument(
        "--config",
        default=os.getenv("WATCHDOCTOR_CONFIG", "config/watchdoctor.yaml"),
        help="Path to YAML config",
    )
    parser.add_argument("--host", default=os.getenv("WATCHDOCTOR_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("WATCHDOCTOR_PORT", "8080")))
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (INFO, WARNING, ...)",
    )
    args = parser.parse_args()

    configure_logging(args.log_level)
    config = load_config(args.config)
    uvicorn.run(create_app(config), host=args.host, port=args.port, log_level=str(args.log_level).lower())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
