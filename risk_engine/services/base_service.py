"""Tüm motor servisleri için temel sınıf - karar kaydı ve saat enjeksiyonu."""

from __future__ import annotations

import json
import logging
import uuid
from abc import ABC
from datetime import datetime
from typing import Any, Callable, Optional

import boto3
from botocore.exceptions import ClientError

from risk_engine.config import EngineConfig
from risk_engine.models.audit import EngineDecision
from risk_engine.models.inventory import format_datetime, utcnow

logger = logging.getLogger(__name__)


class BaseService(ABC):
    """DynamoDB tabanlı karar kaydı tutan servis temel sınıfı."""

    def __init__(
        self,
        service_name: str,
        config: Optional[EngineConfig] = None,
        dynamodb_resource: Optional[Any] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.service_name = service_name
        self.config = config or EngineConfig.from_env()
        self.clock = clock or utcnow

        # AWS istemcisi - dependency injection destekli
        self.dynamodb = dynamodb_resource or boto3.resource(
            "dynamodb", region_name=self.config.region_name
        )
        self.decisions_table = self.dynamodb.Table(self.config.table_name("EngineDecisions"))

        self._decisions: list[EngineDecision] = []

        logger.info("Servis başlatıldı: %s", service_name)

    def now(self) -> datetime:
        return self.clock()

    def log_decision(
        self,
        decision_type: str,
        input_data: dict,
        output_data: dict,
        reasoning: str,
    ) -> EngineDecision:
        """Servis kararını loglar ve DynamoDB'ye kaydeder."""
        decision = EngineDecision(
            decision_id=str(uuid.uuid4()),
            service_name=self.service_name,
            decision_type=decision_type,
            input_data=input_data,
            output_data=output_data,
            reasoning=reasoning,
            timestamp=format_datetime(self.now()),
        )
        self._decisions.append(decision)

        try:
            self.decisions_table.put_item(
                Item={
                    "decision_id": decision.decision_id,
                    "service_name": decision.service_name,
                    "decision_type": decision.decision_type,
                    "input_data": json.dumps(input_data, default=str),
                    "output_data": json.dumps(output_data, default=str),
                    "reasoning": reasoning,
                    "timestamp": decision.timestamp,
                }
            )
        except ClientError as e:
            logger.warning("Karar loglama hatası: %s", e)

        return decision

    def get_decisions(self, decision_type: Optional[str] = None) -> list[EngineDecision]:
        """Bu servis örneğinin kaydettiği kararları döndürür."""
        if decision_type is None:
            return list(self._decisions)
        return [d for d in self._decisions if d.decision_type == decision_type]
