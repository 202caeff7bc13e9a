from risk_engine.data.repository import DynamoDBRepository, InventoryRepository

__all__ = ["DynamoDBRepository", "InventoryRepository"]
