"""
Pizza Factory Service Abstract Base Class

Defines the interface for the external fulfillment service that bakes
the pizzas of a persisted order and returns a signed receipt.

Design Pattern: Strategy Pattern
    - MockFactoryService for development and tests
    - RealFactoryService for staging and production
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from pizza_service.schemas import DinerOrder, User


@dataclass
class FactoryResult:
    """
    Standardized result of a factory call.

    Attributes:
        success: Whether the factory accepted the order
        jwt: Signed receipt returned by the factory
        report_url: URL where slow or failed pizzas can be reported
        response: Raw JSON body returned by the factory
        error_message: Description of the failure, if any
        response_time_ms: Time taken by the factory call
    """
    success: bool
    jwt: Optional[str] = None
    report_url: Optional[str] = None
    response: Optional[dict] = None
    error_message: Optional[str] = None
    response_time_ms: float = 0.0


class BaseFactoryService(ABC):
    """
    Abstract base class for pizza factory clients.

    Example:
        >>> factory = create_factory_service(settings)
        >>> result = await factory.create_order(diner, order)
        >>> if result.success:
        ...     print(result.jwt)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the factory provider.

        Returns:
            str: Provider name (e.g., "mock", "factory")
        """
        pass

    @abstractmethod
    async def create_order(self, diner: User, order: DinerOrder) -> FactoryResult:
        """
        Ask the factory to fulfill an order.

        Failures are reported through the result, never raised.

        Args:
            diner: The authenticated user who placed the order
            order: The persisted order

        Returns:
            FactoryResult: Receipt or failure details
        """
        pass
