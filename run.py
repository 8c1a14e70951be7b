#!/usr/bin/env python3
"""
Run the Tourism Directory API server
"""
import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "apps.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
