"""Abstract base for the submission transport the session dispatches to."""

from abc import ABC, abstractmethod


class TransportError(Exception):
    """Raised when the transport cannot deliver a request."""

    def __init__(self, thread_id: str, message: str) -> None:
        self.thread_id = thread_id
        super().__init__(f"[{thread_id}] {message}")


class SubmissionTransport(ABC):
    """Sends submissions and participant triggers on behalf of a session."""

    @abstractmethod
    async def submit_message(self, text: str, expected_participant_ids: list[str]) -> None:
        """Submit a user message for a new round.

        Args:
            text: The message text.
            expected_participant_ids: Model ids of the enabled roster, in order.

        Raises:
            TransportError: If the submission could not be sent.
        """
        ...

    @abstractmethod
    async def trigger_participant(self, round_number: int, participant_index: int) -> None:
        """Request one participant's streaming response for a round.

        Raises:
            TransportError: If the request could not be sent.
        """
        ...
