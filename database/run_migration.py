"""
Supabase 마이그레이션 실행 스크립트

Supabase Python 클라이언트는 직접 SQL 실행을 지원하지 않으므로
테이블 존재 여부만 확인하고, 실행할 SQL을 출력한다.
"""
import sys
from pathlib import Path
from typing import List

from loguru import logger

from database.supabase_client import get_supabase_client

MIGRATIONS_DIR = Path(__file__).parent / "migrations"
REQUIRED_TABLES = ["matches", "match_participations", "fee_overrides", "monthly_stats", "system_config"]


def missing_tables(client) -> List[str]:
    """존재하지 않는 정산 테이블 목록"""
    missing = []
    for table in REQUIRED_TABLES:
        try:
            client.table(table).select("*").limit(1).execute()
        except Exception as e:
            if "does not exist" in str(e) or "relation" in str(e).lower():
                missing.append(table)
            else:
                logger.warning(f"{table} 테이블 확인 중 오류: {e}")
    return missing


def run_migration(migration_name: str = "001_match_fees.sql") -> bool:
    """마이그레이션 SQL 출력"""
    migration_file = MIGRATIONS_DIR / migration_name
    if not migration_file.exists():
        logger.error(f"마이그레이션 파일을 찾을 수 없습니다: {migration_file}")
        return False

    sql_content = migration_file.read_text(encoding="utf-8")

    try:
        client = get_supabase_client()
    except ValueError as e:
        logger.error(str(e))
        return False

    missing = missing_tables(client)
    if not missing:
        logger.info("✅ 정산 테이블이 모두 존재합니다")
        return True

    logger.info(f"생성이 필요한 테이블: {', '.join(missing)}")
    logger.info("=" * 60)
    logger.info("Supabase Dashboard에서 아래 SQL을 실행해주세요:")
    logger.info("1. https://supabase.com/dashboard 접속")
    logger.info("2. 프로젝트 선택 → SQL Editor")
    logger.info("3. 아래 SQL 복사하여 실행")
    logger.info("=" * 60)
    print("\n" + sql_content + "\n")
    return True


if __name__ == "__main__":
    logger.remove()
    logger.add(sys.stdout, format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}")
    run_migration()
