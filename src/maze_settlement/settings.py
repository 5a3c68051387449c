"""
환경 설정

경로와 외부 연동 정보는 환경변수를 우선하고, 없으면 프로젝트 루트 기준 기본값을 사용합니다.
"""

import logging
import os
from pathlib import Path
from typing import Optional


def _project_root() -> Path:
    return Path(
        os.environ.get("MAZE_SETTLEMENT_HOME", Path(__file__).parent.parent.parent)
    ).resolve()


BASE_PATH = _project_root()
DATA_DIR = BASE_PATH / "data"
ARCHIVE_DIR = Path(os.environ.get("MAZE_ARCHIVE_DIR", DATA_DIR / "archive"))
CONFIG_DIR = BASE_PATH / "config"
OUTPUT_DIR = Path(os.environ.get("MAZE_OUTPUT_DIR", BASE_PATH / "output"))

# Supabase 설정 (둘 다 있을 때만 DB 저장소 사용)
SUPABASE_URL: Optional[str] = os.environ.get("SUPABASE_URL")
SUPABASE_KEY: Optional[str] = os.environ.get("SUPABASE_KEY")
SUPABASE_TABLE = os.environ.get("SUPABASE_TABLE", "monthly_records")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def configure_logging(level: Optional[str] = None) -> None:
    """루트 로거 포맷/레벨 설정"""
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
