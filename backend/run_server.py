"""Run the API under uvicorn. HOST/PORT override the local defaults."""
import os

import uvicorn

from apotek.core.config import settings

if __name__ == "__main__":
    print("=" * 50)
    print(f"  Apotek Stock Ledger Backend ({settings.ENVIRONMENT})")
    print("=" * 50)
    uvicorn.run(
        "apotek.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_level=settings.LOG_LEVEL.lower(),
        reload=settings.DEBUG,
    )
