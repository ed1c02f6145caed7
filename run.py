#!/usr/bin/env python3
"""
Development server runner
"""

import os

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "assessment.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 8000)),
        reload=os.environ.get("ENVIRONMENT") == "development",
        log_level=os.environ.get("LOG_LEVEL", "info").lower(),
        access_log=False,
    )
