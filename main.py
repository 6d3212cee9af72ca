"""
경기 정산 엔진 메인
"""
import asyncio
import json
import sys
from datetime import date
from loguru import logger

from settlement.errors import SettlementError


# 로깅 설정
logger.remove()
logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level="INFO"
)
logger.add(
    "logs/settlement_{time:YYYY-MM-DD}.log",
    rotation="1 day",
    retention="30 days",
    level="DEBUG"
)


def _print_json(data) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


async def main():
    """메인 함수"""
    import argparse

    parser = argparse.ArgumentParser(description="경기 정산 엔진")
    parser.add_argument(
        "--mode",
        choices=["recalculate", "breakdown", "stats", "serve", "scheduler"],
        default="recalculate",
        help="실행 모드"
    )
    parser.add_argument("--match-id", help="경기 ID (recalculate, breakdown)")
    parser.add_argument("--year", type=int, default=date.today().year)
    parser.add_argument("--month", type=int, default=date.today().month)
    parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()

    if args.mode == "serve":
        import uvicorn

        config = uvicorn.Config("app.server:app", host="0.0.0.0", port=args.port, log_level="info")
        await uvicorn.Server(config).serve()
        return

    from app.fees.dependencies import get_fee_service

    service = get_fee_service()

    try:
        if args.mode == "recalculate":
            # 경기 전체 재계산
            if not args.match_id:
                parser.error("--match-id가 필요합니다")
            summary = service.recalculate_all_fees(args.match_id)
            _print_json(summary.model_dump())

        elif args.mode == "breakdown":
            # 정산 현황
            if not args.match_id:
                parser.error("--match-id가 필요합니다")
            breakdown = service.get_fee_breakdown(args.match_id)
            print(f"\n=== 경기 {args.match_id} 정산 (계수 {breakdown.fee_coefficient:.2f}) ===")
            for player in breakdown.players:
                mark = " *" if player.has_override else ""
                print(f"  {player.player_name or player.player_id}: {player.final_fee:g}{mark}")
            print(f"  합계: {breakdown.total_final_fees:g} (계산값 {breakdown.total_calculated_fees:g})")

        elif args.mode == "stats":
            # 월별 집계
            aggregate = service.rebuild_monthly_aggregate(args.year, args.month)
            _print_json(aggregate.model_dump())

        elif args.mode == "scheduler":
            # 스케줄러 모드
            from scheduler.scheduler import SettlementScheduler

            scheduler = SettlementScheduler(service)
            scheduler.start()

            logger.info("스케줄러 모드로 실행 중... (Ctrl+C로 종료)")

            try:
                # 무한 대기
                while True:
                    await asyncio.sleep(60)
                    status = scheduler.get_status()
                    logger.debug(f"스케줄러 상태: {status}")
            except KeyboardInterrupt:
                scheduler.stop()
                logger.info("스케줄러 종료됨")

    except SettlementError as e:
        logger.error(f"{e.code}: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
