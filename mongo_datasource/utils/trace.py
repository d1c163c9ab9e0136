"""批次请求追踪工具"""

import uuid
from datetime import datetime
from typing import Dict, List, Any
from pydantic import BaseModel


class StepLog(BaseModel):
    """单个查询的执行记录"""
    ref_id: str
    collection: str | None = None
    stage_count: int = 0
    result_kind: str | None = None
    error: str | None = None
    latency_ms: float = 0
    timestamp: datetime


class TraceContext:
    """追踪上下文（每批次一个）"""

    def __init__(self):
        self.trace_id: str = str(uuid.uuid4())
        self.steps: List[StepLog] = []
        self.start_time = datetime.now()

    def add_step(self, step: StepLog):
        """添加执行步骤"""
        self.steps.append(step)

    @property
    def error_count(self) -> int:
        return sum(1 for s in self.steps if s.error)

    def to_dict(self) -> Dict[str, Any]:
        """转为字典"""
        return {
            "trace_id": self.trace_id,
            "steps": [
                {
                    "ref_id": s.ref_id,
                    "collection": s.collection,
                    "stage_count": s.stage_count,
                    "latency_ms": s.latency_ms,
                    "error": s.error,
                    "timestamp": s.timestamp.isoformat()
                }
                for s in self.steps
            ],
            "total_steps": len(self.steps),
            "error_count": self.error_count,
            "duration_ms": (datetime.now() - self.start_time).total_seconds() * 1000
        }
