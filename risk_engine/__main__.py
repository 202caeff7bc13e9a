"""Bakım komut satırı.

Kullanım:
    python -m risk_engine create-tables [--region eu-west-1]
    python -m risk_engine delete-tables
    python -m risk_engine init-predictions --store store-1
    python -m risk_engine alerts --store store-1 --level critical --sort expiry
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

from risk_engine.config import EngineConfig, configure_logging
from risk_engine.data.dynamodb_setup import create_tables, delete_tables
from risk_engine.data.repository import DynamoDBRepository
from risk_engine.errors import RiskEngineError
from risk_engine.services.alert_engine import AlertEngine
from risk_engine.services.notification_gate import NotificationGate
from risk_engine.services.prediction_store import PredictionStore

logger = logging.getLogger("risk_engine")


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _cmd_create_tables(args: argparse.Namespace, config: EngineConfig) -> None:
    _print_json({"created": create_tables(config)})


def _cmd_delete_tables(args: argparse.Namespace, config: EngineConfig) -> None:
    _print_json({"deleted": delete_tables(config)})


def _cmd_init_predictions(args: argparse.Namespace, config: EngineConfig) -> None:
    repository = DynamoDBRepository(config)
    store = PredictionStore(
        repository,
        notification_gate=NotificationGate(repository, config=config),
        config=config,
    )
    _print_json(store.initialize_all_predictions(args.store))


def _cmd_alerts(args: argparse.Namespace, config: EngineConfig) -> None:
    engine = AlertEngine(DynamoDBRepository(config), config=config)
    _print_json(
        engine.get_alerts(args.store, level=args.level, category=args.category, sort_by=args.sort)
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="risk_engine", description="Envanter risk motoru")
    parser.add_argument("--region", help="AWS bölgesi (varsayılan: AWS_DEFAULT_REGION)")
    parser.add_argument("-v", "--verbose", action="store_true", help="DEBUG log seviyesi")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("create-tables", help="DynamoDB tablolarını oluştur")
    p.set_defaults(func=_cmd_create_tables)

    p = sub.add_parser("delete-tables", help="DynamoDB tablolarını sil")
    p.set_defaults(func=_cmd_delete_tables)

    p = sub.add_parser("init-predictions", help="Mağazadaki tüm ürünler için tahmin oluştur")
    p.add_argument("--store", required=True)
    p.set_defaults(func=_cmd_init_predictions)

    p = sub.add_parser("alerts", help="Son kullanma ve yavaş satan ürün uyarıları")
    p.add_argument("--store", required=True)
    p.add_argument("--level", default=None)
    p.add_argument("--category", default=None)
    p.add_argument("--sort", default="urgency", choices=["urgency", "expiry", "quantity"])
    p.set_defaults(func=_cmd_alerts)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    config = EngineConfig.from_env()
    if args.region:
        config.region_name = args.region

    try:
        args.func(args, config)
    except RiskEngineError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
