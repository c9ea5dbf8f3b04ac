"""
Workflow rules for the order lifecycle.

Manages allowed state transitions and the role that may perform each one.
"""

from users.models import UserRole

from ..exceptions import AuthorizationException, InvalidTransitionException
from ..models import Order, OrderStatus


class OrderWorkflow:
    """Workflow rules for Order state transitions."""

    # current status -> {target status: role allowed to perform the edge}
    ALLOWED_TRANSITIONS = {
        OrderStatus.PENDING: {
            OrderStatus.APPROVED: UserRole.WAREHOUSE,
            OrderStatus.REJECTED: UserRole.WAREHOUSE,
        },
        OrderStatus.APPROVED: {
            OrderStatus.PREPARING: UserRole.WAREHOUSE,
        },
        OrderStatus.PREPARING: {
            OrderStatus.READY: UserRole.WAREHOUSE,
        },
        OrderStatus.READY: {
            OrderStatus.DELIVERED: UserRole.DRIVER,
        },
        OrderStatus.DELIVERED: {},  # Final state
        OrderStatus.REJECTED: {},   # Final state
    }

    @classmethod
    def validate_transition(cls, order: Order, new_status: str) -> None:
        """
        Validate if a status transition is allowed.

        Args:
            order: Order instance
            new_status: New status to transition to

        Raises:
            InvalidTransitionException: If transition is not allowed
        """
        allowed_transitions = cls.ALLOWED_TRANSITIONS.get(order.status, {})

        if new_status not in allowed_transitions:
            raise InvalidTransitionException(
                current_status=order.status,
                attempted_status=new_status,
                entity_type="Order"
            )

    @classmethod
    def required_role(cls, current_status: str, new_status: str) -> str:
        return cls.ALLOWED_TRANSITIONS.get(current_status, {}).get(new_status)

    @classmethod
    def validate_actor(cls, order: Order, new_status: str, actor) -> None:
        """
        Check the actor may perform the edge. Call after validate_transition.

        Warehouse edges additionally require the actor to supervise the
        order's warehouse when the order is already routed to one.

        Raises:
            AuthorizationException: If the actor's role cannot perform the edge
        """
        required_role = cls.required_role(order.status, new_status)

        if actor.role != required_role:
            raise AuthorizationException(
                f"Role {actor.role} cannot move order {order.order_number} "
                f"from {order.status} to {new_status}",
                role=actor.role,
                required_role=required_role
            )

        if required_role == UserRole.WAREHOUSE and order.warehouse_id is not None:
            if not actor.supervises_warehouse(order.warehouse_id):
                raise AuthorizationException(
                    f"User {actor.username} does not supervise the warehouse of order {order.order_number}",
                    role=actor.role,
                    required_role=required_role
                )

    @classmethod
    def can_transition_to(cls, order: Order, new_status: str) -> bool:
        """
        Check if transition is allowed without raising exception.

        Args:
            order: Order instance
            new_status: New status to transition to

        Returns:
            True if transition is allowed
        """
        try:
            cls.validate_transition(order, new_status)
            return True
        except InvalidTransitionException:
            return False

    @classmethod
    def reachable_statuses(cls, start: str = OrderStatus.PENDING) -> set:
        """All statuses reachable from ``start`` by following allowed edges."""
        seen = {start}
        frontier = [start]
        while frontier:
            current = frontier.pop()
            for target in cls.ALLOWED_TRANSITIONS.get(current, {}):
                if target not in seen:
                    seen.add(target)
                    frontier.append(target)
        return seen


def validate_order_workflow(order: Order, new_status: str, actor=None) -> None:
    """
    Validate order workflow transition, and the actor when one is given.

    Raises:
        InvalidTransitionException: If transition is not allowed
        AuthorizationException: If the actor cannot perform it
    """
    OrderWorkflow.validate_transition(order, new_status)
    if actor is not None:
        OrderWorkflow.validate_actor(order, new_status, actor)
