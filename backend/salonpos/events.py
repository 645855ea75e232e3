# Overview: Domain events dispatched synchronously by the operation that causes them.

"""
Queue reactions to ticket changes are explicit signals:

- ticket_closed(store_id, ticket_id, performer_ids)
- ticket_item_assigned(store_id, ticket_id, employee_id, item_id)

Receivers run inside the sender's DB transaction, so a transition and its
side effects commit together. Receivers must not commit.
"""

from blinker import Namespace

_signals = Namespace()

ticket_closed = _signals.signal("ticket-closed")
ticket_item_assigned = _signals.signal("ticket-item-assigned")
