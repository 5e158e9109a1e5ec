"""Outgoing notifications for password reset links."""

import logging

logger = logging.getLogger("vidjot")


class LogMailer:
    """Writes reset links to the server log instead of sending e-mail.

    Any object with the same ``send_reset_link`` signature can replace it.
    """

    def send_reset_link(self, email: str, link: str) -> None:
        logger.info("PASSWORD RESET for %s: %s", email, link)


_mailer: LogMailer | None = None


def get_mailer() -> LogMailer:
    global _mailer
    if _mailer is None:
        _mailer = LogMailer()
    return _mailer
