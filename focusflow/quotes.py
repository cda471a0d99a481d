"""
Motivational quote fetching.
Best effort only: every failure falls back to a static quote.
"""

import json
import logging
from typing import Optional

from PySide6.QtCore import QObject, QUrl, Signal, Slot
from PySide6.QtNetwork import QNetworkAccessManager, QNetworkReply, QNetworkRequest

from .models import FALLBACK_QUOTE, Quote

logger = logging.getLogger(__name__)

QUOTE_URL = "https://zenquotes.io/api/random"


def parse_quote_payload(payload: bytes) -> Optional[Quote]:
    """Parse a `[{"q": ..., "a": ...}]` response body."""
    try:
        data = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None

    if not isinstance(data, list) or not data or not isinstance(data[0], dict):
        return None

    text = data[0].get("q")
    author = data[0].get("a")
    if not text or not author:
        return None
    return Quote(text=str(text), author=str(author))


class QuoteFetcher(QObject):
    """
    Fetches a quote asynchronously through Qt networking.

    Signals:
        quote_ready: Emitted with a Quote, the fallback one if fetching failed
    """

    quote_ready = Signal(Quote)

    TIMEOUT_MS = 5000

    def __init__(self, url: str = QUOTE_URL, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.url = url
        self._manager = QNetworkAccessManager(self)
        self._manager.finished.connect(self._on_finished)

    def fetch(self):
        """Start a request; returns immediately."""
        request = QNetworkRequest(QUrl(self.url))
        request.setTransferTimeout(self.TIMEOUT_MS)
        self._manager.get(request)

    @Slot(QNetworkReply)
    def _on_finished(self, reply: QNetworkReply):
        quote = None
        try:
            if reply.error() == QNetworkReply.NetworkError.NoError:
                quote = parse_quote_payload(bytes(reply.readAll().data()))
            else:
                logger.warning("Failed to fetch quote: %s", reply.errorString())
        finally:
            reply.deleteLater()

        self.quote_ready.emit(quote or FALLBACK_QUOTE)
