from typing import Protocol


class NotificationSender(Protocol):
    def send(self, to_email: str, subject: str, html_body: str) -> None:
        ...
