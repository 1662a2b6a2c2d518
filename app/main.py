import logging
import os

from fastapi import FastAPI

from app.config import ENV_PATH

# Load environment variables from .env file
print("\n" + "="*60)
print("🔧 LOADING ENVIRONMENT CONFIGURATION")
print("="*60)

print(f"Looking for .env file at: {ENV_PATH}")

if ENV_PATH.exists():
    print(f"✓ .env file found")
    from dotenv import load_dotenv
    load_dotenv(dotenv_path=ENV_PATH, override=True)
    print(f"✓ .env file loaded successfully")

    key = os.environ.get("ANTHROPIC_API_KEY")
    if key:
        print(f"✓ ANTHROPIC_API_KEY loaded: {key[:10]}...")
    else:
        print(f"⚠ ANTHROPIC_API_KEY not found in .env file, composition will run offline")
else:
    print(f"⚠ .env file not found at: {ENV_PATH}")
    print(f"  Create it with: ANTHROPIC_API_KEY=your_key_here")

print("="*60 + "\n")

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Routes read settings lazily, so they are imported after .env is loaded.
from app.api.v1.routes import router as api_v1_router  # noqa: E402


def create_app() -> FastAPI:
    """
    Application factory for the Marketing Draft API.

    Keeping this as a separate function makes it easier to extend
    configuration and testing later.
    """
    app = FastAPI(
        title="Marketing Draft API",
        version="0.1.0",
        description="Generates branded multi-page marketing PDFs for commercial real estate listings.",
    )

    # Infrastructure-level health check (non-versioned) primarily for ops.
    @app.get("/health", tags=["health"])
    async def root_health_check() -> dict:
        """Simple root health check endpoint."""
        return {"status": "ok"}

    # Public, versioned API routes.
    app.include_router(api_v1_router)

    return app


app = create_app()
