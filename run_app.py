"""
Launch script for the forecasting API.
Run this file to start the uvicorn server.
"""

import os
import sys

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "src"))

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "return_forecast.app_api.main:create_app",
        factory=True,
        host=os.getenv("API_HOST", "localhost"),
        port=int(os.getenv("API_PORT", "8000")),
    )
