"""
정산 이벤트 발행/구독

재계산/수동 조정/경기 정보 변경 후 캐시 무효화 등 후속 처리를 위한 이벤트
엔진은 캐시를 모르며, 호출자가 구독하여 처리한다.
"""
import json
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from loguru import logger


class EventType(str, Enum):
    """이벤트 유형"""
    FEES_RECALCULATED = "fees.recalculated"
    RECALCULATION_FAILED = "fees.recalculation_failed"
    OVERRIDE_APPLIED = "override.applied"
    OVERRIDE_REMOVED = "override.removed"
    MATCH_INFO_UPDATED = "match.info_updated"
    AGGREGATE_REBUILT = "aggregate.rebuilt"


@dataclass
class SettlementEvent:
    """정산 이벤트"""
    event_type: EventType
    entity_type: str                    # "match", "override", "aggregate"
    entity_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    invalidate_tags: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)
    source: str = "settlement"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "data": self.data,
            "invalidate_tags": self.invalidate_tags,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


class EventPublisher:
    """이벤트 발행자"""

    def __init__(self, max_log_size: int = 1000):
        self.local_subscribers: Dict[EventType, List[Callable]] = defaultdict(list)
        self._event_log: List[SettlementEvent] = []
        self._max_log_size = max_log_size

    def publish(self, event: SettlementEvent) -> None:
        """이벤트 발행"""
        logger.info(f"📢 Event published: {event.event_type.value} - {event.entity_type}:{event.entity_id}")

        self._event_log.append(event)
        if len(self._event_log) > self._max_log_size:
            self._event_log = self._event_log[-self._max_log_size:]

        # 구독자 실패가 정산 결과를 되돌리지는 않는다
        for subscriber in list(self.local_subscribers.get(event.event_type, [])):
            try:
                subscriber(event)
            except Exception as e:
                logger.error(f"구독자 호출 실패: {e}")

    def subscribe(self, event_type: EventType, callback: Callable) -> None:
        """이벤트 구독"""
        self.local_subscribers[event_type].append(callback)
        logger.debug(f"✅ Subscribed to {event_type.value}")

    def unsubscribe(self, event_type: EventType, callback: Callable) -> None:
        """이벤트 구독 해제"""
        if callback in self.local_subscribers[event_type]:
            self.local_subscribers[event_type].remove(callback)
            logger.debug(f"❌ Unsubscribed from {event_type.value}")

    def get_recent_events(self, limit: int = 100) -> List[SettlementEvent]:
        """최근 이벤트 조회"""
        return self._event_log[-limit:]

    # 편의 메서드들
    def publish_fees_recalculated(self, match_id: str, data: Dict[str, Any], tags: List[str]) -> None:
        self.publish(SettlementEvent(
            event_type=EventType.FEES_RECALCULATED,
            entity_type="match",
            entity_id=match_id,
            data=data,
            invalidate_tags=tags,
        ))

    def publish_recalculation_failed(self, match_id: str, error: Dict[str, Any]) -> None:
        self.publish(SettlementEvent(
            event_type=EventType.RECALCULATION_FAILED,
            entity_type="match",
            entity_id=match_id,
            data=error,
        ))

    def publish_override_changed(
        self,
        match_id: str,
        player_id: str,
        applied: bool,
        tags: List[str],
    ) -> None:
        self.publish(SettlementEvent(
            event_type=EventType.OVERRIDE_APPLIED if applied else EventType.OVERRIDE_REMOVED,
            entity_type="override",
            entity_id=f"{match_id}:{player_id}",
            data={"match_id": match_id, "player_id": player_id},
            invalidate_tags=tags,
        ))
