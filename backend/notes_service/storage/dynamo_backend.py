import logging
from decimal import Decimal
from typing import Any, Optional

import boto3
from boto3.dynamodb.conditions import Key as KeyCondition
from boto3.dynamodb.types import TypeDeserializer
from botocore.exceptions import BotoCoreError, ClientError

from notes_service.errors import StorageUnavailable
from notes_service.storage.kv_backend import (
    PARTITION_ATTR,
    SORT_ATTR,
    ConditionalCheckFailed,
    Item,
    Key,
    QueryPage,
)

logger = logging.getLogger("notes.storage.dynamodb")

_deserializer = TypeDeserializer()


def _plain(value: Any) -> Any:
    # the resource layer hands numbers back as Decimal
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def _is_condition_failure(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


class DynamoBackend:
    """DynamoDB table with a string ``pk`` hash key and a string ``sk`` range key."""

    def __init__(self, table):
        self.table = table

    @classmethod
    def from_settings(cls, table_name: str, region_name: Optional[str] = None, endpoint_url: Optional[str] = None):
        resource = boto3.resource("dynamodb", region_name=region_name, endpoint_url=endpoint_url)
        return cls(resource.Table(table_name))

    def _old_item(self, error: ClientError, key: Key) -> Optional[Item]:
        raw = error.response.get("Item")
        if raw:
            return _plain({name: _deserializer.deserialize(v) for name, v in raw.items()})
        # endpoints that ignore ReturnValuesOnConditionCheckFailure
        return self.get_item(key)

    def put_item(self, item: Item, if_not_exists: bool = False) -> None:
        params: dict[str, Any] = {"Item": item}
        if if_not_exists:
            params.update(
                ConditionExpression="attribute_not_exists(#pk)",
                ExpressionAttributeNames={"#pk": PARTITION_ATTR},
                ReturnValuesOnConditionCheckFailure="ALL_OLD",
            )
        try:
            self.table.put_item(**params)
        except ClientError as e:
            if if_not_exists and _is_condition_failure(e):
                key = Key.of(item)
                raise ConditionalCheckFailed(key, current=self._old_item(e, key))
            logger.error("put_item failed: %s", e.response.get("Error", {}).get("Code"))
            raise StorageUnavailable() from e
        except BotoCoreError as e:
            raise StorageUnavailable() from e

    def get_item(self, key: Key) -> Optional[Item]:
        try:
            result = self.table.get_item(Key=key.to_dict(), ConsistentRead=True)
        except (ClientError, BotoCoreError) as e:
            raise StorageUnavailable() from e
        item = result.get("Item")
        return _plain(item) if item is not None else None

    def query(
        self,
        partition: str,
        limit: int,
        exclusive_start_key: Optional[dict[str, str]] = None,
    ) -> QueryPage:
        # one extra row tells a full last page apart from a page with more behind it
        params: dict[str, Any] = {
            "KeyConditionExpression": KeyCondition(PARTITION_ATTR).eq(partition),
            "Limit": limit + 1,
        }
        if exclusive_start_key is not None:
            params["ExclusiveStartKey"] = {
                PARTITION_ATTR: partition,
                SORT_ATTR: exclusive_start_key[SORT_ATTR],
            }
        try:
            result = self.table.query(**params)
        except (ClientError, BotoCoreError) as e:
            raise StorageUnavailable() from e

        items = [_plain(i) for i in result.get("Items", [])]
        if len(items) > limit:
            items = items[:limit]
            last = Key.of(items[-1]).to_dict()
        else:
            # DynamoDB may stop early on its 1 MB page cap
            last = result.get("LastEvaluatedKey")
        return QueryPage(items=items, last_evaluated_key=last)

    def update_item(
        self,
        key: Key,
        set_fields: dict[str, Any],
        expected: Optional[dict[str, Any]] = None,
        increment: Optional[dict[str, int]] = None,
    ) -> Item:
        # attribute names only ever travel as #placeholders
        names = {"#pk": PARTITION_ATTR}
        values: dict[str, Any] = {}
        assignments = []
        for i, (name, value) in enumerate(set_fields.items()):
            names[f"#s{i}"] = name
            values[f":s{i}"] = value
            assignments.append(f"#s{i} = :s{i}")
        for i, (name, delta) in enumerate((increment or {}).items()):
            names[f"#i{i}"] = name
            values[f":i{i}"] = delta
            values[":zero"] = 0
            assignments.append(f"#i{i} = if_not_exists(#i{i}, :zero) + :i{i}")
        if not assignments:
            raise ValueError("update_item needs at least one attribute to change")

        conditions = ["attribute_exists(#pk)"]
        for i, (name, value) in enumerate((expected or {}).items()):
            names[f"#e{i}"] = name
            values[f":e{i}"] = value
            conditions.append(f"#e{i} = :e{i}")

        try:
            result = self.table.update_item(
                Key=key.to_dict(),
                UpdateExpression="SET " + ", ".join(assignments),
                ConditionExpression=" AND ".join(conditions),
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
                ReturnValuesOnConditionCheckFailure="ALL_OLD",
            )
        except ClientError as e:
            if _is_condition_failure(e):
                raise ConditionalCheckFailed(key, current=self._old_item(e, key))
            logger.error("update_item failed: %s", e.response.get("Error", {}).get("Code"))
            raise StorageUnavailable() from e
        except BotoCoreError as e:
            raise StorageUnavailable() from e
        return _plain(result["Attributes"])

    def delete_item(self, key: Key) -> None:
        try:
            self.table.delete_item(Key=key.to_dict())
        except (ClientError, BotoCoreError) as e:
            raise StorageUnavailable() from e
