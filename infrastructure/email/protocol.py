"""EmailSender protocol — OTP services depend on this, not the concrete implementation."""

from typing import Any, Mapping, Protocol


class EmailSender(Protocol):
    async def send(
        self,
        email: str,
        subject: str,
        template_name: str,
        template_data: Mapping[str, Any],
    ) -> None:
        """Render *template_name* with *template_data* and deliver it to *email*.

        Raises:
            DeliveryError: the message was rejected or could not be built.
            DeliveryUnavailableError: the provider is temporarily unreachable.
        """
        ...
