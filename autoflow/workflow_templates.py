"""Predefined workflow graphs tenants can instantiate."""

from __future__ import annotations

from typing import Any, Dict

WORKFLOW_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "welcome_new_customer": {
        "name": "Welcome New Customer",
        "description": "Send welcome email and create onboarding task",
        "steps": [
            {
                "id": "start",
                "kind": "trigger",
                "name": "Customer created",
                "config": {"event": "customer.created"},
                "next_steps": ["welcome_email"],
            },
            {
                "id": "welcome_email",
                "kind": "action",
                "name": "Send welcome email",
                "config": {
                    "type": "send_email",
                    "to": "{{email}}",
                    "subject": "Welcome!",
                    "body": "Welcome {{name}}!",
                },
                "next_steps": ["onboarding_task"],
            },
            {
                "id": "onboarding_task",
                "kind": "action",
                "name": "Create onboarding task",
                "config": {
                    "type": "create_task",
                    "title": "Onboard {{name}}",
                    "description": "Follow up with new customer",
                },
                "next_steps": [],
            },
        ],
    },
    "low_inventory_alert": {
        "name": "Low Inventory Alert",
        "description": "Alert when inventory is low",
        "steps": [
            {
                "id": "start",
                "kind": "trigger",
                "name": "Inventory updated",
                "config": {"event": "inventory.updated"},
                "next_steps": ["check_quantity"],
            },
            {
                "id": "check_quantity",
                "kind": "condition",
                "name": "Quantity below threshold",
                "config": {"field": "quantity", "operator": "less_than", "value": 10},
                "next_steps": ["alert"],
            },
            {
                "id": "alert",
                "kind": "action",
                "name": "Email inventory admin",
                "config": {
                    "type": "send_email",
                    "to": "{{admin_email}}",
                    "subject": "Low Inventory Alert",
                    "body": "{{product_name}} is low: {{quantity}} remaining",
                },
                "next_steps": [],
            },
        ],
    },
}
