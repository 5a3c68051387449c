#!/usr/bin/env python3
"""
FastAPI 백엔드 실행 스크립트
"""
import os
import sys
from pathlib import Path

# src 디렉토리 추가
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from maze_settlement.api.backend import app
from maze_settlement.settings import configure_logging
import uvicorn

if __name__ == "__main__":
    configure_logging()
    uvicorn.run(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
        log_level="info"
    )
