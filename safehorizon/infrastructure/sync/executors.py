"""
Executor registry for offline operations.

Each operation type maps to an async executor that replays the operation
against the remote API. Payloads are validated against the type's pydantic
schema (when one is known) before the executor sees them.
"""

from typing import Dict, List, Optional, Type

import structlog
from pydantic import BaseModel, ValidationError

from safehorizon.core.domain.entities import OfflineOperation
from safehorizon.core.domain.payloads import PAYLOAD_SCHEMAS
from safehorizon.shared.exceptions import ExecutorNotRegisteredError, PayloadValidationError
from safehorizon.shared.types import Executor, OperationKind, Payload, operation_type_value

logger = structlog.get_logger(__name__)


class ExecutorRegistry:
    """Dispatch table from operation type to executor."""

    def __init__(self, schemas: Optional[Dict[str, Type[BaseModel]]] = None):
        self._executors: Dict[str, Executor] = {}
        self._schemas: Dict[str, Type[BaseModel]] = dict(PAYLOAD_SCHEMAS if schemas is None else schemas)

    def register(
        self,
        operation_type: OperationKind,
        executor: Executor,
        payload_model: Optional[Type[BaseModel]] = None
    ) -> None:
        """
        Register the executor for an operation type.

        Args:
            operation_type: Built-in ``OperationType`` or a custom type name
            executor: ``async (payload) -> bool``, must be idempotent
            payload_model: Schema replacing the built-in one for this type
        """
        key = operation_type_value(operation_type)
        self._executors[key] = executor
        if payload_model is not None:
            self._schemas[key] = payload_model
        logger.debug("Executor registered", operation_type=key)

    def unregister(self, operation_type: OperationKind) -> bool:
        return self._executors.pop(operation_type_value(operation_type), None) is not None

    def is_registered(self, operation_type: OperationKind) -> bool:
        return operation_type_value(operation_type) in self._executors

    @property
    def registered_types(self) -> List[str]:
        return sorted(self._executors)

    def validate(self, operation_type: OperationKind, payload: Payload) -> Payload:
        """
        Validate a payload against its type's schema.

        Types without a schema pass through unchanged.

        Raises:
            PayloadValidationError: If the payload does not match the schema
        """
        key = operation_type_value(operation_type)
        model = self._schemas.get(key)
        if model is None:
            return dict(payload)

        try:
            return model.model_validate(payload).model_dump(mode="json")
        except ValidationError as e:
            raise PayloadValidationError(key, errors=e.errors(include_url=False))

    async def dispatch(self, operation: OfflineOperation) -> bool:
        """
        Replay an operation through its executor.

        Returns:
            The executor's verdict

        Raises:
            ExecutorNotRegisteredError: If no executor handles the type
            PayloadValidationError: If the payload is invalid
        """
        executor = self._executors.get(operation.type_name)
        if executor is None:
            raise ExecutorNotRegisteredError(operation.type_name)

        payload = self.validate(operation.type_name, operation.payload)
        return bool(await executor(payload))
