"""
FastAPI server
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from channel_transcriber.processor.audio_resolver import AudioResolver
from channel_transcriber.processor.channel_lister import ChannelLister
from channel_transcriber.processor.pipeline import PipelineController
from channel_transcriber.processor.store import JsonFileStore
from channel_transcriber.processor.transcriber import (
    DEFAULT_LANGUAGE,
    DEFAULT_MODEL,
    DEFAULT_PROMPT,
    GeminiTranscriber,
)
from channel_transcriber.server.endpoints import router, set_controller
from channel_transcriber.utils import load_config, setup_logger

CONFIG_PATH = os.getenv("CHANNEL_TRANSCRIBER_CONFIG", "config/app.yaml")

# Load configuration
config = load_config(CONFIG_PATH)

# Configure logging
log_config = config.get("app", {}).get("logging", {})
setup_logger(
    log_dir=log_config.get("dir", "logs"),
    level=log_config.get("level", "INFO")
)


def build_controller(app_config: dict) -> PipelineController:
    """Wire all components from the `app` config section"""
    apify_config = app_config.get("apify", {})
    lister = ChannelLister(
        tiktok_actor_url=apify_config.get("tiktok_actor_url", ""),
        facebook_actor_url=apify_config.get("facebook_actor_url", ""),
        uid_lookup_url=apify_config.get("uid_lookup_url", ""),
        timeout=apify_config.get("timeout", 300)
    )

    audio_config = app_config.get("audio", {})
    resolver = AudioResolver(timeout=audio_config.get("timeout", 120))

    gemini_config = app_config.get("gemini", {})
    transcriber = GeminiTranscriber(
        model=gemini_config.get("model", DEFAULT_MODEL),
        language=gemini_config.get("language", DEFAULT_LANGUAGE),
        prompt=gemini_config.get("prompt", DEFAULT_PROMPT)
    )

    storage_config = app_config.get("storage", {})
    store = JsonFileStore(store_file=storage_config.get("file", "data/store.json"))

    pipeline_config = app_config.get("pipeline", {})
    controller = PipelineController(
        lister=lister,
        resolver=resolver,
        transcriber=transcriber,
        store=store,
        request_delay=pipeline_config.get("request_delay", 6.0)
    )

    # Seed credentials from the environment when none are stored yet
    credentials_config = app_config.get("credentials", {})
    apify_token = os.getenv(credentials_config.get("apify_token_env", "APIFY_TOKEN"), "")
    google_api_key = os.getenv(credentials_config.get("google_api_key_env", "GOOGLE_API_KEY"), "")
    controller.set_credentials(
        apify_token=apify_token if apify_token and not controller.apify_token else None,
        google_api_key=google_api_key if google_api_key and not controller.google_api_key else None
    )

    return controller


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan"""
    logger.info("Initializing pipeline controller...")

    controller = build_controller(config.get("app", {}))
    set_controller(controller)
    app.state.controller = controller

    logger.info("Pipeline controller ready")

    yield

    if controller.is_processing:
        controller.request_stop()
    logger.info("Shutting down...")


# Create the FastAPI app
server_config = config.get("app", {}).get("server", {})
app = FastAPI(
    title="channel-transcriber",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routes
app.include_router(router)


@app.get("/")
async def root():
    """Service info"""
    return {
        "service": "channel-transcriber",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }
