"""Customers screen."""

from __future__ import annotations

from datasync.kernel.facade import EntityView
from datasync.kernel.types import NotificationSink, RemoteStore
from dashboard.kinds import CUSTOMERS


class CustomersView(EntityView):
    def __init__(self, store: RemoteStore, sink: NotificationSink | None = None) -> None:
        super().__init__(CUSTOMERS, store, sink)
