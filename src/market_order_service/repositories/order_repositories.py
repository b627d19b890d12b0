"""DynamoDB repository classes for tickets, orders, items and events.

Reads that find nothing return None (or an empty list). Unexpected store
failures are logged with the full ClientError and re-raised as InternalError
so callers never see store internals. Conditional-check failures are part of
normal operation: a failed code claim raises CodeCollisionError and a failed
status guard returns None.
"""

import logging
from datetime import datetime
from typing import Any

from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from market_order_service.errors import CodeCollisionError, InternalError
from market_order_service.models.order_models import (
    CodeKind,
    Order,
    OrderEvent,
    OrderItem,
    OrderStatus,
    Ticket,
    to_iso,
)

logger = logging.getLogger(__name__)

# DynamoDB caps a TransactWriteItems call at 100 actions.
MAX_TRANSACTION_ACTIONS = 100

_serializer = TypeSerializer()


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _serialize(item: dict[str, Any]) -> dict[str, Any]:
    return {key: _serializer.serialize(value) for key, value in item.items()}


def _query_all(table: Table, **kwargs: Any) -> list[dict[str, Any]]:
    """Run a query and follow LastEvaluatedKey until the result is exhausted."""
    items: list[dict[str, Any]] = []
    while True:
        response = table.query(**kwargs)
        items.extend(response.get("Items", []))
        last_key = response.get("LastEvaluatedKey")
        if not last_key:
            return items
        kwargs["ExclusiveStartKey"] = last_key


class CodeRepository:
    """Registry of allocated ticket and order codes.

    Each row maps a code to the entity it was allocated for. The conditional
    put of a row is what makes codes unique; it is always written in the same
    transaction as the entity itself.
    """

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the codes table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def claim_action(self, code: str, kind: CodeKind, entity_id: str) -> dict[str, Any]:
        """Build the transactional put that claims a code.

        Args:
            code: Code being allocated
            kind: Namespace of the code
            entity_id: Ticket or order id the code points at

        Returns:
            dict: A TransactWriteItems action
        """
        return {
            "Put": {
                "TableName": self.table_name,
                "Item": _serialize({"code": code, "kind": kind.value, "entity_id": entity_id}),
                "ConditionExpression": "attribute_not_exists(code)",
            }
        }

    def resolve(self, code: str, kind: CodeKind) -> str | None:
        """Return the entity id a code was allocated for.

        Args:
            code: Code to look up
            kind: Expected namespace; codes of another kind resolve to None

        Returns:
            Entity id if the code exists in that namespace, None otherwise
        """
        try:
            response = self.table.get_item(Key={"code": code})
        except ClientError as e:
            logger.error(f"Failed to resolve code {code}: {e}")
            raise InternalError("Failed to look up code.") from e

        item = response.get("Item")
        if not item or item.get("kind") != kind.value:
            return None

        return str(item["entity_id"])


def _transact(
    dynamodb: DynamoDBServiceResource, actions: list[dict[str, Any]], code: str, what: str
) -> None:
    """Run a TransactWriteItems call whose first action is a code claim."""
    try:
        dynamodb.meta.client.transact_write_items(TransactItems=actions)
    except ClientError as e:
        if _error_code(e) == "TransactionCanceledException":
            reasons = e.response.get("CancellationReasons", [])
            if reasons and reasons[0].get("Code") == "ConditionalCheckFailed":
                raise CodeCollisionError(code) from e
        logger.error(f"Failed to write {what}: {e}")
        raise InternalError(f"Failed to create {what}.") from e


class TicketRepository:
    """Repository for ticket CRUD operations.

    Manages ticket records in DynamoDB with id as partition key.
    """

    def __init__(
        self,
        dynamodb_resource: DynamoDBServiceResource,
        table_name: str,
        code_repository: CodeRepository,
    ) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the tickets table
            code_repository: Registry used to claim and resolve ticket codes
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)
        self.codes = code_repository

    def create_ticket(self, ticket: Ticket) -> Ticket:
        """Persist a new ticket together with its code claim.

        Args:
            ticket: Ticket to create

        Returns:
            Ticket: The stored ticket

        Raises:
            CodeCollisionError: If the ticket code is already allocated
            InternalError: On any other store failure
        """
        actions = [
            self.codes.claim_action(ticket.ticket_code, CodeKind.TICKET, ticket.id),
            {
                "Put": {
                    "TableName": self.table_name,
                    "Item": _serialize(ticket.to_dynamodb_item()),
                    "ConditionExpression": "attribute_not_exists(id)",
                }
            },
        ]
        _transact(self.dynamodb, actions, ticket.ticket_code, "ticket")
        return ticket

    def get_ticket(self, ticket_id: str) -> Ticket | None:
        """Retrieve a ticket by id.

        Args:
            ticket_id: Ticket identifier

        Returns:
            Ticket if found, None otherwise
        """
        try:
            response = self.table.get_item(Key={"id": ticket_id})
        except ClientError as e:
            logger.error(f"Failed to get ticket {ticket_id}: {e}")
            raise InternalError("Failed to load ticket.") from e

        if "Item" not in response:
            return None

        return Ticket.from_dynamodb_item(response["Item"])

    def get_ticket_by_code(self, ticket_code: str) -> Ticket | None:
        """Retrieve a ticket by its human-readable code.

        Args:
            ticket_code: Ticket code, e.g. WL-4821

        Returns:
            Ticket if found, None otherwise
        """
        ticket_id = self.codes.resolve(ticket_code, CodeKind.TICKET)
        if ticket_id is None:
            return None
        return self.get_ticket(ticket_id)


class OrderRepository:
    """Repository for orders and the records they own.

    Orders live in their own table; line items and audit events are kept in
    child tables keyed by order id.
    """

    BUSINESS_DATE_INDEX = "business_date-created_at-index"
    VENDOR_INDEX = "vendor_id-created_at-index"
    TICKET_INDEX = "ticket_id-created_at-index"
    ITEMS_BUSINESS_DATE_INDEX = "business_date-index"

    def __init__(
        self,
        dynamodb_resource: DynamoDBServiceResource,
        orders_table_name: str,
        items_table_name: str,
        events_table_name: str,
        code_repository: CodeRepository,
    ) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            orders_table_name: Name of the orders table
            items_table_name: Name of the order items table
            events_table_name: Name of the order events table
            code_repository: Registry used to claim and resolve order codes
        """
        self.dynamodb = dynamodb_resource
        self.orders_table_name = orders_table_name
        self.items_table_name = items_table_name
        self.events_table_name = events_table_name
        self.orders_table: Table = dynamodb_resource.Table(orders_table_name)
        self.items_table: Table = dynamodb_resource.Table(items_table_name)
        self.events_table: Table = dynamodb_resource.Table(events_table_name)
        self.codes = code_repository

    def create_order(self, order: Order, items: list[OrderItem], event: OrderEvent) -> Order:
        """Atomically persist an order, its line items and its first event.

        The code claim, the order row, every item row and the event row are
        written in one transaction: either all of them exist afterwards or
        none do.

        Args:
            order: Order to create
            items: Line item snapshots of the order
            event: Initial audit event

        Returns:
            Order: The stored order

        Raises:
            CodeCollisionError: If the order code is already allocated
            InternalError: On any other store failure
        """
        actions: list[dict[str, Any]] = [
            self.codes.claim_action(order.order_code, CodeKind.ORDER, order.id),
            {
                "Put": {
                    "TableName": self.orders_table_name,
                    "Item": _serialize(order.to_dynamodb_item()),
                    "ConditionExpression": "attribute_not_exists(id)",
                }
            },
        ]
        actions.extend(
            {"Put": {"TableName": self.items_table_name, "Item": _serialize(item.to_dynamodb_item())}}
            for item in items
        )
        actions.append(
            {"Put": {"TableName": self.events_table_name, "Item": _serialize(event.to_dynamodb_item())}}
        )

        _transact(self.dynamodb, actions, order.order_code, "order")
        return order

    def get_order(self, order_id: str) -> Order | None:
        """Retrieve an order by id.

        Args:
            order_id: Order identifier

        Returns:
            Order if found, None otherwise
        """
        try:
            response = self.orders_table.get_item(Key={"id": order_id})
        except ClientError as e:
            logger.error(f"Failed to get order {order_id}: {e}")
            raise InternalError("Failed to load order.") from e

        if "Item" not in response:
            return None

        return Order.from_dynamodb_item(response["Item"])

    def get_order_by_code(self, order_code: str) -> Order | None:
        """Retrieve an order by its human-readable code.

        Args:
            order_code: Order code, e.g. MS-1234

        Returns:
            Order if found, None otherwise
        """
        order_id = self.codes.resolve(order_code, CodeKind.ORDER)
        if order_id is None:
            return None
        return self.get_order(order_id)

    def list_items(self, order_id: str) -> list[OrderItem]:
        """List the line items of an order in line order.

        Args:
            order_id: Order identifier

        Returns:
            list: OrderItem objects (empty list if none found)
        """
        try:
            rows = _query_all(
                self.items_table,
                KeyConditionExpression="order_id = :oid",
                ExpressionAttributeValues={":oid": order_id},
            )
        except ClientError as e:
            logger.error(f"Failed to list items for order {order_id}: {e}")
            raise InternalError("Failed to load order items.") from e

        return [OrderItem.from_dynamodb_item(row) for row in rows]

    def list_items_for_day(self, business_date: str) -> list[OrderItem]:
        """List every line item of orders created on a calendar day.

        Args:
            business_date: Day in YYYY-MM-DD form

        Returns:
            list: OrderItem objects (empty list if none found)
        """
        try:
            rows = _query_all(
                self.items_table,
                IndexName=self.ITEMS_BUSINESS_DATE_INDEX,
                KeyConditionExpression="business_date = :d",
                ExpressionAttributeValues={":d": business_date},
            )
        except ClientError as e:
            logger.error(f"Failed to list items for {business_date}: {e}")
            raise InternalError("Failed to load order items.") from e

        return [OrderItem.from_dynamodb_item(row) for row in rows]

    def list_orders_for_day(self, business_date: str, newest_first: bool = True) -> list[Order]:
        """List orders created on a calendar day ordered by creation time.

        Args:
            business_date: Day in YYYY-MM-DD form
            newest_first: Sort direction

        Returns:
            list: Order objects (empty list if none found)
        """
        try:
            rows = _query_all(
                self.orders_table,
                IndexName=self.BUSINESS_DATE_INDEX,
                KeyConditionExpression="business_date = :d",
                ExpressionAttributeValues={":d": business_date},
                ScanIndexForward=not newest_first,
            )
        except ClientError as e:
            logger.error(f"Failed to list orders for {business_date}: {e}")
            raise InternalError("Failed to load orders.") from e

        return [Order.from_dynamodb_item(row) for row in rows]

    def list_orders_for_vendor(self, vendor_id: str, statuses: list[OrderStatus]) -> list[Order]:
        """List a vendor's orders in the given states, oldest first.

        Args:
            vendor_id: Vendor identifier
            statuses: States to include

        Returns:
            list: Order objects (empty list if none found)
        """
        placeholders = {f":s{i}": status.value for i, status in enumerate(statuses)}
        values: dict[str, Any] = {":vid": vendor_id, **placeholders}

        try:
            rows = _query_all(
                self.orders_table,
                IndexName=self.VENDOR_INDEX,
                KeyConditionExpression="vendor_id = :vid",
                FilterExpression=f"#status IN ({', '.join(placeholders)})",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues=values,
                ScanIndexForward=True,
            )
        except ClientError as e:
            logger.error(f"Failed to list orders for vendor {vendor_id}: {e}")
            raise InternalError("Failed to load vendor orders.") from e

        return [Order.from_dynamodb_item(row) for row in rows]

    def list_orders_for_ticket(self, ticket_id: str) -> list[Order]:
        """List the vendor orders placed under a ticket, oldest first.

        Args:
            ticket_id: Ticket identifier

        Returns:
            list: Order objects (empty list if none found)
        """
        try:
            rows = _query_all(
                self.orders_table,
                IndexName=self.TICKET_INDEX,
                KeyConditionExpression="ticket_id = :tid",
                ExpressionAttributeValues={":tid": ticket_id},
                ScanIndexForward=True,
            )
        except ClientError as e:
            logger.error(f"Failed to list orders for ticket {ticket_id}: {e}")
            raise InternalError("Failed to load ticket orders.") from e

        return [Order.from_dynamodb_item(row) for row in rows]

    def transition_status(
        self,
        order_id: str,
        from_status: OrderStatus,
        to_status: OrderStatus,
        timestamp_field: str,
        at: datetime,
    ) -> Order | None:
        """Move an order between states with a single conditional write.

        The write only applies while the stored status still equals
        from_status. The timestamp field is set only if it is not already
        present.

        Args:
            order_id: Order identifier
            from_status: Status the order must currently have
            to_status: New status
            timestamp_field: Attribute recording first entry into to_status
            at: Transition time

        Returns:
            The updated Order, or None if the guard on from_status failed
        """
        try:
            response = self.orders_table.update_item(
                Key={"id": order_id},
                UpdateExpression="SET #status = :to, #ts = if_not_exists(#ts, :at)",
                ConditionExpression="#status = :from",
                ExpressionAttributeNames={"#status": "status", "#ts": timestamp_field},
                ExpressionAttributeValues={
                    ":to": to_status.value,
                    ":from": from_status.value,
                    ":at": to_iso(at),
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                return None
            logger.error(f"Failed to update status of order {order_id}: {e}")
            raise InternalError("Failed to update order status.") from e

        return Order.from_dynamodb_item(response["Attributes"])

    def append_event(self, event: OrderEvent) -> bool:
        """Append an audit event.

        Args:
            event: OrderEvent to save

        Returns:
            bool: True if save succeeded, False otherwise
        """
        try:
            self.events_table.put_item(Item=event.to_dynamodb_item())
            return True

        except ClientError as e:
            logger.error(f"Failed to append event for order {event.order_id}: {e}")
            return False

    def list_events(self, order_id: str) -> list[OrderEvent]:
        """List the audit trail of an order, oldest first.

        Args:
            order_id: Order identifier

        Returns:
            list: OrderEvent objects (empty list if none found)
        """
        try:
            rows = _query_all(
                self.events_table,
                KeyConditionExpression="order_id = :oid",
                ExpressionAttributeValues={":oid": order_id},
                ScanIndexForward=True,
            )
        except ClientError as e:
            logger.error(f"Failed to list events for order {order_id}: {e}")
            raise InternalError("Failed to load order events.") from e

        return [OrderEvent.from_dynamodb_item(row) for row in rows]
