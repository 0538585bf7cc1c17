"""
Alert rule administration.

GET    /security-monitor/rules            — list stored rules
PUT    /security-monitor/rules/{rule_id}  — create or replace a rule
PATCH  /security-monitor/rules/{rule_id}  — enable / disable a rule
DELETE /security-monitor/rules/{rule_id}  — delete a rule

Stored rules replace the built-in catalog as soon as one is enabled.
"""

from fastapi import APIRouter, Depends, HTTPException, Response

from secmonitor.api.deps import get_rule_store
from secmonitor.monitor.errors import InvalidInvocationError
from secmonitor.monitor.schemas import AlertRule, RuleToggleRequest
from secmonitor.monitor.store import SqlRuleStore

router = APIRouter(prefix="/security-monitor/rules", tags=["rules"])


@router.get("", response_model=list[AlertRule])
async def list_rules(store: SqlRuleStore = Depends(get_rule_store)):
    return await store.list_rules()


@router.put("/{rule_id}", response_model=AlertRule)
async def save_rule(
    rule_id: str,
    body: AlertRule,
    store: SqlRuleStore = Depends(get_rule_store),
):
    if body.id != rule_id:
        raise InvalidInvocationError(f"Rule id '{body.id}' does not match path '{rule_id}'")
    return await store.save_rule(body)


@router.patch("/{rule_id}", response_model=AlertRule)
async def toggle_rule(
    rule_id: str,
    body: RuleToggleRequest,
    store: SqlRuleStore = Depends(get_rule_store),
):
    rule = await store.set_enabled(rule_id, body.enabled)
    if rule is None:
        raise HTTPException(status_code=404, detail=f"Rule '{rule_id}' not found")
    return rule


@router.delete("/{rule_id}", status_code=204)
async def delete_rule(rule_id: str, store: SqlRuleStore = Depends(get_rule_store)):
    if not await store.delete_rule(rule_id):
        raise HTTPException(status_code=404, detail=f"Rule '{rule_id}' not found")
    return Response(status_code=204)
