"""Call, execution and batch endpoints under /api/bolna."""

import logging
from typing import Annotated

from fastapi import APIRouter, File, Form, Response, UploadFile

from voicedesk.auth.middleware import TenantUserDep
from voicedesk.errors import NotFound, ValidationError
from voicedesk.provider.deps import ProviderDep
from voicedesk.schemas.provider import MakeCallRequest, ScheduleBatchRequest
from voicedesk.utils.timestamps import normalize_scheduled_at

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/calls")
async def make_call(body: MakeCallRequest, ctx: TenantUserDep, provider: ProviderDep):
    """Start an outbound call for one of the tenant's agents."""
    return await provider.make_call(ctx.sub_account_id, body.model_dump(exclude_none=True))


@router.post("/call/{execution_id}/stop")
@router.post("/calls/{execution_id}/stop")
async def stop_call(execution_id: str, ctx: TenantUserDep, provider: ProviderDep):
    return await provider.stop_call(ctx.sub_account_id, execution_id)


@router.get("/executions")
async def list_executions(ctx: TenantUserDep, provider: ProviderDep):
    """Executions can only be listed per agent upstream; always empty."""
    return await provider.list_executions(ctx.sub_account_id)


@router.get("/executions/{execution_id}")
async def get_execution(
    execution_id: str,
    ctx: TenantUserDep,
    provider: ProviderDep,
    agent_id: str | None = None,
):
    if not agent_id:
        raise ValidationError("Missing agent_id query parameter")
    execution = await provider.get_execution(agent_id, execution_id, ctx.sub_account_id)
    if not execution:
        raise NotFound("Execution not found")
    return execution


@router.get("/executions/{execution_id}/log")
async def execution_log(execution_id: str, ctx: TenantUserDep, provider: ProviderDep):
    return await provider.get_execution_logs(execution_id, ctx.sub_account_id) or {"data": []}


@router.post("/batches")
async def create_batch(
    ctx: TenantUserDep,
    provider: ProviderDep,
    agent_id: Annotated[str, Form()],
    file: Annotated[UploadFile, File()],
    from_phone_number: Annotated[str | None, Form()] = None,
    retry_config: Annotated[str | None, Form()] = None,
    webhook_url: Annotated[str | None, Form()] = None,
):
    """Upload a CSV of recipients as a new batch for an agent."""
    content = await file.read()
    if not content:
        raise ValidationError("Missing CSV file")
    return await provider.create_batch(
        ctx.sub_account_id,
        agent_id,
        content,
        file.filename or "batch.csv",
        from_phone_number=from_phone_number,
        retry_config=retry_config,
        webhook_url=webhook_url,
    )


@router.get("/batches/{batch_id}/executions")
async def batch_executions(batch_id: str, ctx: TenantUserDep, provider: ProviderDep):
    return await provider.fetch_batch_executions(batch_id, ctx.sub_account_id) or []


@router.post("/batches/{batch_id}/schedule")
async def schedule_batch(
    batch_id: str, body: ScheduleBatchRequest, ctx: TenantUserDep, provider: ProviderDep
):
    scheduled_at = normalize_scheduled_at(body.scheduled_at)
    logger.info("Scheduling batch %s at %s", batch_id, scheduled_at)
    result = await provider.schedule_batch(
        ctx.sub_account_id, batch_id, scheduled_at, body.bypass_call_guardrails
    )
    return result or {"message": "scheduled"}


@router.post("/batches/{batch_id}/stop")
async def stop_batch(batch_id: str, ctx: TenantUserDep, provider: ProviderDep):
    return await provider.stop_batch(ctx.sub_account_id, batch_id) or {"message": "stopped"}


@router.get("/batches/{batch_id}/download")
async def download_batch(batch_id: str, ctx: TenantUserDep, provider: ProviderDep):
    content = await provider.download_batch(ctx.sub_account_id, batch_id)
    if not content:
        raise NotFound("Batch file not available")
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="batch-{batch_id}.csv"'},
    )


@router.delete("/batches/{batch_id}")
async def delete_batch(batch_id: str, ctx: TenantUserDep, provider: ProviderDep):
    return await provider.delete_batch(ctx.sub_account_id, batch_id) or {"message": "deleted"}
