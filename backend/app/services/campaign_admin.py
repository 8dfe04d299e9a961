from datetime import datetime
from typing import List
from app.models.campaign import Campaign, CampaignRule, CampaignAction
from app.schemas.campaign import CampaignActionSpec
from app.services.campaign_rules import RuleSpec
from app.services.campaigns import effective_status


def build_campaign_response(campaign: Campaign, now: datetime) -> dict:
    """Campaign with nested rules/actions and derived status"""
    return {
        "id": campaign.id,
        "name": campaign.name,
        "description": campaign.description,
        "status": campaign.status,
        "effective_status": effective_status(campaign, now),
        "priority": campaign.priority,
        "start_at": campaign.start_at,
        "end_at": campaign.end_at,
        "apply_type": campaign.apply_type,
        "stackable": campaign.stackable,
        "created_at": campaign.created_at,
        "rules": [
            {
                "id": rule.id,
                "rule_type": rule.rule_type,
                "operator": rule.operator,
                "value": rule.value or {},
            }
            for rule in sorted(campaign.rules, key=lambda r: r.id)
        ],
        "actions": [
            {
                "id": action.id,
                "discount_type": action.discount_type,
                "discount_value": action.discount_value,
                "max_discount": action.max_discount,
                "applies_to": action.applies_to,
            }
            for action in sorted(campaign.actions, key=lambda a: a.id)
        ],
    }


def rule_rows(rules: List[RuleSpec]) -> List[CampaignRule]:
    return [
        CampaignRule(
            rule_type=rule.rule_type,
            operator=rule.operator.value,
            value=rule.value.model_dump(mode="json"),
        )
        for rule in rules
    ]


def action_rows(actions: List[CampaignActionSpec]) -> List[CampaignAction]:
    return [CampaignAction(**action.model_dump()) for action in actions]


def replace_rules(campaign: Campaign, rules: List[RuleSpec]) -> None:
    """Old rows are removed by the delete-orphan cascade"""
    campaign.rules = rule_rows(rules)


def replace_actions(campaign: Campaign, actions: List[CampaignActionSpec]) -> None:
    campaign.actions = action_rows(actions)
