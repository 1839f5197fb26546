"""Thin DynamoDB access layer shared by the order, inventory and invoice stores.

Conditional writes report a failed condition as a falsy return value rather
than an exception; every other ClientError propagates to the caller.
"""

from typing import TYPE_CHECKING, Any

import boto3
from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from storefront.utils.logging import get_logger

if TYPE_CHECKING:
    from storefront.config import Settings

logger = get_logger(__name__)

_serializer = TypeSerializer()


def _failed_code(error: ClientError, code: str) -> bool:
    return bool(error.response.get("Error", {}).get("Code") == code)


class DynamoDBService:
    """Table access with per-environment table names.

    Tables are addressed by their short name (``orders``, ``inventory``...);
    the settings' ``table_prefix`` is prepended on every call.
    """

    def __init__(self, settings: "Settings") -> None:
        """Initialize DynamoDB service.

        Args:
            settings: Process settings (table prefix and region)
        """
        self.name_prefix = settings.table_prefix
        self._dynamodb = boto3.resource("dynamodb", region_name=settings.aws_region)
        self._client = boto3.client("dynamodb", region_name=settings.aws_region)

    def table_name(self, table: str) -> str:
        return f"{self.name_prefix}-{table}"

    def _table(self, table: str) -> Any:
        return self._dynamodb.Table(self.table_name(table))

    @staticmethod
    def serialize(values: dict[str, Any]) -> dict[str, Any]:
        """Convert plain values to low-level attribute values for transactions."""
        return {name: _serializer.serialize(value) for name, value in values.items()}

    # Single-item operations

    def get_item(
        self,
        table: str,
        key: dict[str, Any],
        consistent_read: bool = False,
    ) -> dict[str, Any] | None:
        """Read one item, or None when the key is absent.

        Stock and order-flag checks pass ``consistent_read=True`` so they see
        the result of a transaction that just committed.
        """
        response = self._table(table).get_item(Key=key, ConsistentRead=consistent_read)
        item: dict[str, Any] | None = response.get("Item")
        return item

    def put_item(
        self,
        table: str,
        item: dict[str, Any],
        condition_expression: str | None = None,
    ) -> bool:
        """Write an item.

        Returns:
            False if ``condition_expression`` did not hold, True otherwise.
        """
        params: dict[str, Any] = {"Item": item}
        if condition_expression:
            params["ConditionExpression"] = condition_expression

        try:
            self._table(table).put_item(**params)
        except ClientError as e:
            if _failed_code(e, "ConditionalCheckFailedException"):
                return False
            raise
        return True

    def update_item(
        self,
        table: str,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_values: dict[str, Any],
        expression_attribute_names: dict[str, str] | None = None,
        condition_expression: str | None = None,
    ) -> dict[str, Any] | None:
        """Apply an update expression and return the item as stored afterwards.

        Returns:
            The full updated item, or None if ``condition_expression`` did
            not hold.
        """
        params: dict[str, Any] = {
            "Key": key,
            "UpdateExpression": update_expression,
            "ExpressionAttributeValues": expression_attribute_values,
            "ReturnValues": "ALL_NEW",
        }
        if expression_attribute_names:
            params["ExpressionAttributeNames"] = expression_attribute_names
        if condition_expression:
            params["ConditionExpression"] = condition_expression

        try:
            response = self._table(table).update_item(**params)
        except ClientError as e:
            if _failed_code(e, "ConditionalCheckFailedException"):
                return None
            raise
        attrs: dict[str, Any] | None = response.get("Attributes")
        return attrs

    # Multi-item operations

    def transact_write(self, items: list[dict[str, Any]]) -> bool:
        """Commit TransactWriteItems all-or-nothing.

        Items use low-level attribute values (see ``serialize``).

        Returns:
            True if committed, False if DynamoDB cancelled the transaction
            because a condition failed or a concurrent transaction touched
            the same items.
        """
        try:
            self._client.transact_write_items(TransactItems=items)  # type: ignore[arg-type]
        except ClientError as e:
            if not _failed_code(e, "TransactionCanceledException"):
                raise
            reasons = [
                reason.get("Code", "None")
                for reason in e.response.get("CancellationReasons", [])
            ]
            logger.debug("Transaction cancelled: %s", ", ".join(reasons) or "no reasons")
            return False
        return True

    def query_by_gsi(
        self,
        table: str,
        index_name: str,
        partition_key_name: str,
        partition_key_value: str,
    ) -> list[dict[str, Any]]:
        """Return every item whose GSI partition key equals the given value.

        Follows ``LastEvaluatedKey`` so callers always get the full result.
        """
        params: dict[str, Any] = {
            "IndexName": index_name,
            "KeyConditionExpression": Key(partition_key_name).eq(partition_key_value),
        }
        items: list[dict[str, Any]] = []
        while True:
            response = self._table(table).query(**params)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            params["ExclusiveStartKey"] = last_key
