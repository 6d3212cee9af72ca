"""
월별 집계 재계산 스케줄러
"""
import asyncio
from datetime import date, datetime
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from settlement.config import scheduler_config
from settlement.service import MatchRecalculationService


class SettlementScheduler:
    """정산 집계 스케줄러"""

    def __init__(
        self,
        service: MatchRecalculationService,
        today: Callable[[], date] = date.today,
    ):
        """
        Args:
            service: 정산 서비스
            today: 오늘 날짜 반환 함수 (집계 대상 월 결정)
        """
        self.scheduler = AsyncIOScheduler()
        self.service = service
        self.today = today
        self._is_running = False
        self._last_rebuild: Optional[datetime] = None
        self._last_error: Optional[str] = None

    def setup(self):
        """스케줄러 설정"""
        if not scheduler_config.aggregate_rebuild_enabled:
            logger.info("월별 집계 재계산 비활성화됨")
            return

        # 매일 새벽 이번 달 집계 재계산
        self.scheduler.add_job(
            self._run_monthly_rebuild,
            CronTrigger(hour=scheduler_config.aggregate_rebuild_hour, minute=0),
            id="daily_aggregate_rebuild",
            name="Daily Aggregate Rebuild",
            replace_existing=True
        )
        logger.info(f"매일 {scheduler_config.aggregate_rebuild_hour}시 월별 집계 재계산 스케줄 등록")

    async def _run_monthly_rebuild(self, year: Optional[int] = None, month: Optional[int] = None):
        """이번 달 (또는 지정한 달) 집계 재계산"""
        if self._is_running:
            logger.warning("이미 집계 재계산이 진행 중입니다")
            return None

        today = self.today()
        year = year or today.year
        month = month or today.month

        self._is_running = True
        logger.info(f"=== {year}-{month:02d} 집계 재계산 시작 ===")

        try:
            aggregate = await asyncio.to_thread(self.service.rebuild_monthly_aggregate, year, month)
            self._last_rebuild = datetime.now()
            self._last_error = None
            logger.info(f"집계 재계산 완료: {self._last_rebuild}")
            return aggregate
        except Exception as e:
            self._last_error = str(e)
            logger.error(f"집계 재계산 오류: {e}")
            return None
        finally:
            self._is_running = False

    def start(self):
        """스케줄러 시작"""
        self.setup()
        self.scheduler.start()
        logger.info("스케줄러 시작됨")

    def stop(self):
        """스케줄러 중지"""
        self.scheduler.shutdown()
        logger.info("스케줄러 중지됨")

    def get_status(self) -> dict:
        """스케줄러 상태 조회"""
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None
            })

        return {
            "is_running": self._is_running,
            "last_rebuild": self._last_rebuild.isoformat() if self._last_rebuild else None,
            "last_error": self._last_error,
            "jobs": jobs
        }

    async def run_now(self, year: Optional[int] = None, month: Optional[int] = None):
        """즉시 실행"""
        return await self._run_monthly_rebuild(year, month)
