"""
Slot contention policy interface.
Decides what a direct reservation does when the slot's row already exists.
"""

from abc import ABC, abstractmethod

from turnolibre.core.exceptions import ConflictError
from turnolibre.models.booking import Booking


class SlotContentionPolicy(ABC):
    """
    Interface for slot contention policies.

    Implementations:
    - OverwritePolicy: last write wins, the new party replaces the old one
    - RejectPolicy: an occupied slot refuses the new reservation
    """

    name: str = ""

    @abstractmethod
    def on_existing(self, booking: Booking) -> None:
        """
        Called before an existing booking row is rewritten.

        Args:
            booking: The row currently holding the slot

        Raises:
            ConflictError: if the reservation must not proceed
        """
        pass


class OverwritePolicy(SlotContentionPolicy):
    """
    Last write wins. A cancelled (vacant) row is reclaimed and an occupied
    row is overwritten. Two callers racing for the same slot can both be
    told they succeeded; the later write is the one that persists.
    """

    name = "overwrite"

    def on_existing(self, booking: Booking) -> None:
        pass


class RejectPolicy(SlotContentionPolicy):
    """Vacant rows can be reclaimed, occupied ones cannot."""

    name = "reject"

    def on_existing(self, booking: Booking) -> None:
        if booking.is_occupied:
            raise ConflictError("This slot is already booked")
