"""
Tab Organizer Backend Server Entry Point

Starts the FastAPI server for the tab organizer backend.

Usage:
    uv run python examples/start_server.py
"""

import sys
from pathlib import Path

# Add src to path so we can import tab_organizer
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tab_organizer.config import get_settings, setup_logging


def main():
    """Start the FastAPI server."""

    print("=" * 80)
    print("Tab Organizer Backend Server")
    print("=" * 80)
    print()

    # Verify configuration
    try:
        settings = get_settings()
        setup_logging(settings.log_level)
        print("✓ Configuration loaded")
        print(f"  - Inference provider: {settings.inference_provider}")
        print(f"  - Temperature / top-K: {settings.inference_temperature} / {settings.inference_top_k}")
        print(f"  - Store: {settings.store_path}")
        print()
    except Exception as e:
        print(f"✗ Configuration error: {e}")
        print()
        print("Please ensure you have a .env file with the API key of your provider:")
        print("  - OPENAI_API_KEY (INFERENCE_PROVIDER=openai)")
        print("  - GEMINI_API_KEY (INFERENCE_PROVIDER=gemini)")
        print()
        sys.exit(1)

    # Start server
    print("Starting FastAPI server...")
    print(f"Server will be available at: http://localhost:8000")
    print(f"API documentation: http://localhost:8000/docs")
    print()
    print("Press Ctrl+C to stop the server")
    print("=" * 80)
    print()

    import uvicorn
    from tab_organizer.server.app import app

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level=settings.log_level.lower(),
        reload=False,
    )


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\n\nServer stopped by user")
        sys.exit(0)
    except Exception as e:
        print(f"\n\n✗ Server error: {e}")
        sys.exit(1)
