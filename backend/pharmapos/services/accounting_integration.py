# Overview: Extension point through which purchase order transitions reach accounting.

from __future__ import annotations

from flask import current_app


EXTENSION_KEY = "accounting_integration"


class AccountingIntegration:
    """
    Contract for the accounting collaborator.

    The default implementation records nothing: completion returns no
    transaction group and unlocking is a no-op. Deployments replace it via
    set_accounting_integration().
    """

    def on_purchase_order_completed(self, order, user_id: str) -> str | None:
        """Create entries for a completed order; return their transaction group id."""
        return None

    def on_purchase_order_unlocked(self, order) -> None:
        """Reverse entries previously created for order."""
        return None


def set_accounting_integration(app, integration: AccountingIntegration) -> None:
    app.extensions[EXTENSION_KEY] = integration


def get_accounting_integration() -> AccountingIntegration:
    integration = current_app.extensions.get(EXTENSION_KEY)
    if integration is None:
        integration = AccountingIntegration()
        current_app.extensions[EXTENSION_KEY] = integration
    return integration
