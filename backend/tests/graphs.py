"""Workflow definition builders for the common graph shapes."""


def linear_definition() -> dict:
    """start -> notify -> end"""
    return {
        "steps": [
            {"id": "start", "type": "start", "label": "Submitted"},
            {"id": "notify", "type": "notification", "label": "Notify PM",
             "assignee": "pm@example.com", "action": "email"},
            {"id": "end", "type": "end", "label": "Done"},
        ],
        "connections": [
            {"source": "start", "target": "notify"},
            {"source": "notify", "target": "end"},
        ],
    }


def approval_definition() -> dict:
    """start -> approval -> (rejected: notify-rejected) / end"""
    return {
        "steps": [
            {"id": "start", "type": "start", "label": "Submitted"},
            {"id": "approve", "type": "approval", "label": "Manager sign-off",
             "assignee": "manager@example.com", "description": "Check the expense."},
            {"id": "notify-rejected", "type": "notification", "label": "Tell requester",
             "assignee": "requester@example.com"},
            {"id": "end", "type": "end", "label": "Done"},
        ],
        "connections": [
            {"source": "start", "target": "approve"},
            {"source": "approve", "target": "notify-rejected", "condition_field": "decision",
             "condition_operator": "equals", "condition_value": "rejected"},
            {"source": "approve", "target": "end"},
            {"source": "notify-rejected", "target": "end"},
        ],
    }


def expense_definition() -> dict:
    """start -> condition(amount > 1000) -> approval -> end, else -> notify -> end"""
    return {
        "steps": [
            {"id": "start", "type": "start", "label": "Expense submitted"},
            {"id": "check", "type": "condition", "label": "Large amount?"},
            {"id": "approve", "type": "approval", "label": "Finance approval",
             "assignee": "finance@example.com"},
            {"id": "notify", "type": "notification", "label": "Auto-approved",
             "assignee": "requester@example.com", "action": "in_app"},
            {"id": "end", "type": "end", "label": "Done"},
        ],
        "connections": [
            {"source": "start", "target": "check"},
            {"source": "check", "target": "approve", "condition_field": "amount",
             "condition_operator": "greater_than", "condition_value": "1000"},
            {"source": "check", "target": "notify"},
            {"source": "approve", "target": "end"},
            {"source": "notify", "target": "end"},
        ],
    }


