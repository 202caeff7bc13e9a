"""DynamoDB tablo oluşturma ve silme.

7 tablo: Products, Sales, Predictions, AlertSettings, Categories,
Notifications, EngineDecisions

Kullanım:
    python -m risk_engine.data.dynamodb_setup              # Tabloları kur
    python -m risk_engine.data.dynamodb_setup --delete     # Tabloları sil
    python -m risk_engine.data.dynamodb_setup --region eu-west-1
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from risk_engine.config import EngineConfig, configure_logging

logger = logging.getLogger(__name__)

BOTO_CONFIG = Config(retries={"max_attempts": 3})


def _store_index(range_key: Optional[str] = None) -> dict:
    key_schema = [{"AttributeName": "store_id", "KeyType": "HASH"}]
    if range_key:
        key_schema.append({"AttributeName": range_key, "KeyType": "RANGE"})
    return {
        "IndexName": "StoreIndex",
        "KeySchema": key_schema,
        "Projection": {"ProjectionType": "ALL"},
    }


TABLE_DEFINITIONS = [
    {
        "TableName": "Products",
        "KeySchema": [
            {"AttributeName": "product_id", "KeyType": "HASH"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "product_id", "AttributeType": "S"},
            {"AttributeName": "store_id", "AttributeType": "S"},
        ],
        "GlobalSecondaryIndexes": [_store_index()],
        "BillingMode": "PAY_PER_REQUEST",
    },
    {
        "TableName": "Sales",
        "KeySchema": [
            {"AttributeName": "product_id", "KeyType": "HASH"},
            {"AttributeName": "sale_date", "KeyType": "RANGE"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "product_id", "AttributeType": "S"},
            {"AttributeName": "sale_date", "AttributeType": "S"},
        ],
        "BillingMode": "PAY_PER_REQUEST",
    },
    {
        "TableName": "Predictions",
        "KeySchema": [
            {"AttributeName": "product_id", "KeyType": "HASH"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "product_id", "AttributeType": "S"},
            {"AttributeName": "store_id", "AttributeType": "S"},
        ],
        "GlobalSecondaryIndexes": [_store_index()],
        "BillingMode": "PAY_PER_REQUEST",
    },
    {
        "TableName": "AlertSettings",
        "KeySchema": [
            {"AttributeName": "store_id", "KeyType": "HASH"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "store_id", "AttributeType": "S"},
        ],
        "BillingMode": "PAY_PER_REQUEST",
    },
    {
        "TableName": "Categories",
        "KeySchema": [
            {"AttributeName": "store_id", "KeyType": "HASH"},
            {"AttributeName": "name", "KeyType": "RANGE"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "store_id", "AttributeType": "S"},
            {"AttributeName": "name", "AttributeType": "S"},
        ],
        "BillingMode": "PAY_PER_REQUEST",
    },
    {
        "TableName": "Notifications",
        "KeySchema": [
            {"AttributeName": "notification_id", "KeyType": "HASH"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "notification_id", "AttributeType": "S"},
            {"AttributeName": "product_id", "AttributeType": "S"},
            {"AttributeName": "store_id", "AttributeType": "S"},
            {"AttributeName": "created_at", "AttributeType": "S"},
        ],
        "GlobalSecondaryIndexes": [
            {
                "IndexName": "ProductIndex",
                "KeySchema": [
                    {"AttributeName": "product_id", "KeyType": "HASH"},
                    {"AttributeName": "created_at", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
            _store_index("created_at"),
        ],
        "BillingMode": "PAY_PER_REQUEST",
    },
    {
        "TableName": "EngineDecisions",
        "KeySchema": [
            {"AttributeName": "decision_id", "KeyType": "HASH"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "decision_id", "AttributeType": "S"},
        ],
        "BillingMode": "PAY_PER_REQUEST",
    },
]

# Bildirimler 7 gün sonra otomatik silinir
TTL_ATTRIBUTES = {"Notifications": "expires_at"}


def create_tables(config: Optional[EngineConfig] = None, client: Optional[Any] = None) -> list[str]:
    """Eksik DynamoDB tablolarını oluşturur, oluşturulan tablo adlarını döndürür."""
    config = config or EngineConfig.from_env()
    dynamodb = client or boto3.client("dynamodb", region_name=config.region_name, config=BOTO_CONFIG)
    created = []

    for table_def in TABLE_DEFINITIONS:
        base_name = table_def["TableName"]
        table_name = config.table_name(base_name)
        try:
            dynamodb.describe_table(TableName=table_name)
            logger.info("%s zaten mevcut, atlanıyor", table_name)
        except ClientError as e:
            if e.response["Error"]["Code"] != "ResourceNotFoundException":
                raise
            logger.info("%s oluşturuluyor...", table_name)
            dynamodb.create_table(**{**table_def, "TableName": table_name})
            # Tablonun aktif olmasını bekle
            waiter = dynamodb.get_waiter("table_exists")
            waiter.wait(TableName=table_name)
            ttl_attr = TTL_ATTRIBUTES.get(base_name)
            if ttl_attr:
                dynamodb.update_time_to_live(
                    TableName=table_name,
                    TimeToLiveSpecification={"Enabled": True, "AttributeName": ttl_attr},
                )
            created.append(table_name)
            logger.info("%s oluşturuldu", table_name)

    return created


def delete_tables(config: Optional[EngineConfig] = None, client: Optional[Any] = None) -> list[str]:
    """Tüm motor tablolarını siler."""
    config = config or EngineConfig.from_env()
    dynamodb = client or boto3.client("dynamodb", region_name=config.region_name, config=BOTO_CONFIG)
    deleted = []

    for table_def in TABLE_DEFINITIONS:
        table_name = config.table_name(table_def["TableName"])
        try:
            dynamodb.delete_table(TableName=table_name)
            deleted.append(table_name)
            logger.info("%s silindi", table_name)
        except ClientError as e:
            if e.response["Error"]["Code"] == "ResourceNotFoundException":
                logger.info("%s bulunamadı, atlanıyor", table_name)
            else:
                raise

    return deleted


def main() -> None:
    configure_logging()
    config = EngineConfig.from_env()
    delete_mode = False

    # Argümanları parse et
    args = sys.argv[1:]
    for i, arg in enumerate(args):
        if arg == "--delete":
            delete_mode = True
        elif arg == "--region" and i + 1 < len(args):
            config.region_name = args[i + 1]

    if delete_mode:
        delete_tables(config)
    else:
        create_tables(config)


if __name__ == "__main__":
    main()
