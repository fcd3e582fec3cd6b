"""Async client for the Bolna voice-agent REST API.

One instance is shared by the whole process. The shared API key is loaded
explicitly through ``configure()`` and dropped with ``invalidate()``; the
underlying ``httpx.AsyncClient`` is built lazily on first use and rebuilt
whenever the key changes. Every tenant-scoped call carries the tenant's
sub-account id in the ``X-Sub-Account-Id`` header.
"""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any

import httpx

from voicedesk.config import settings
from voicedesk.errors import ProviderError, ProviderNotConfigured, ValidationError
from voicedesk.provider.fallbacks import default_models, default_voices

logger = logging.getLogger(__name__)

SUB_ACCOUNT_HEADER = "X-Sub-Account-Id"

MODEL_ENDPOINTS = (
    "/user/model/all",
    "/v2/model/all",
    "/v1/model/all",
    "/model/all",
    "/v2/models",
    "/models",
    "/user/models",
)


@dataclass
class ExecutionFilters:
    """Query parameters accepted by ``/v2/agent/{id}/executions``."""

    page_number: int | None = None
    page_size: int | None = None
    status: str | None = None
    call_type: str | None = None
    provider: str | None = None
    answered_by_voice_mail: bool | None = None
    batch_id: str | None = None
    from_: str | None = None
    to: str | None = None

    def to_params(self) -> dict[str, str]:
        params = {}
        for name, value in asdict(self).items():
            if value is None or value == "":
                continue
            key = "from" if name == "from_" else name
            params[key] = str(value).lower() if isinstance(value, bool) else str(value)
        return params


def _error_message(response: httpx.Response) -> tuple[str, Any]:
    try:
        body = response.json()
    except ValueError:
        body = response.text
    message: Any = body
    if isinstance(body, dict) and body.get("message") is not None:
        message = body["message"]
    if not message:
        message = f"Provider API error {response.status_code}"
    if not isinstance(message, str):
        message = json.dumps(message)
    return message, body


def as_list(payload: Any) -> list:
    """Unwrap list responses that arrive either bare or under data/voices."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("data", "voices", "agents"):
            if isinstance(payload.get(key), list):
                return payload[key]
    return []


class BolnaClient:
    """Typed wrapper over the provider's agent, call, batch and catalog endpoints."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.bolna_api_url
        self.timeout = timeout or settings.provider_timeout_seconds
        self._api_key = api_key
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    # -- credential lifecycle -------------------------------------------------

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def configure(self, api_key: str) -> None:
        """Install the shared key; rebuilds the HTTP client if the key changed."""
        if api_key == self._api_key:
            return
        await self._close_http()
        self._api_key = api_key
        logger.info("Provider client configured with a new API key")

    async def invalidate(self) -> None:
        """Forget the cached key and HTTP client."""
        await self._close_http()
        self._api_key = None

    async def aclose(self) -> None:
        await self._close_http()

    async def _close_http(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def _client(self) -> httpx.AsyncClient:
        if not self._api_key:
            raise ProviderNotConfigured()
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._http

    async def _request(
        self,
        method: str,
        path: str,
        *,
        sub_account_id: str | None = None,
        params: dict | None = None,
        json_body: Any = None,
        data: dict | None = None,
        files: dict | None = None,
        raw: bool = False,
    ) -> Any:
        client = self._client()
        headers = {SUB_ACCOUNT_HEADER: sub_account_id} if sub_account_id else None
        try:
            response = await client.request(
                method,
                path,
                headers=headers,
                params=params,
                json=json_body,
                data=data,
                files=files,
            )
        except httpx.TimeoutException as e:
            raise ProviderError(504, "Provider request timed out") from e
        except httpx.HTTPError as e:
            raise ProviderError(502, f"Provider unreachable: {e}") from e

        if response.is_error:
            message, body = _error_message(response)
            logger.error("Provider %s %s failed: %s %s", method, path, response.status_code, message)
            if response.status_code == 401:
                # stale key; the next request reloads it from the store
                await self.invalidate()
            raise ProviderError(response.status_code, message, body)
        if raw:
            return response.content
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    # -- sub-accounts -----------------------------------------------------------

    async def create_sub_account(self, name: str, email: str, **opts: Any) -> dict:
        payload = {
            "name": name,
            "allow_concurrent_calls": 10,
            "multi_tenant": False,
            "db_host": None,
            "db_name": None,
            "db_port": None,
            "db_user": None,
            "db_password": None,
            "email": email,
        }
        payload.update(opts)
        return await self._request("POST", "/sub-accounts/create", json_body=payload)

    async def get_account_info(self, sub_account_id: str) -> dict:
        body = await self._request("GET", "/user/me", sub_account_id=sub_account_id)
        return body if isinstance(body, dict) else {}

    # -- agents -----------------------------------------------------------------

    @staticmethod
    def _validate_agent_payload(payload: dict) -> None:
        config = payload.get("agent_config")
        if not config or not payload.get("agent_prompts"):
            raise ValidationError("Missing required fields: agent_config and agent_prompts")
        if not config.get("agent_name"):
            raise ValidationError("Missing required field: agent_config.agent_name")
        tasks = config.get("tasks")
        if not isinstance(tasks, list) or not tasks:
            raise ValidationError(
                "Missing required field: agent_config.tasks (must be non-empty array)"
            )

    async def _align_synthesizers(self, sub_account_id: str, synthesizers: list[dict]) -> None:
        """Force each synthesizer's provider to match the catalog entry for its voice_id."""
        wanted = [
            s for s in synthesizers
            if isinstance(s, dict) and (s.get("provider_config") or {}).get("voice_id")
        ]
        if not wanted:
            return
        voices = as_list(await self.get_voices(sub_account_id))
        by_id = {v.get("voice_id") or v.get("id"): v for v in voices if isinstance(v, dict)}
        for synth in wanted:
            voice_id = synth["provider_config"]["voice_id"]
            voice = by_id.get(voice_id)
            if voice and voice.get("provider") and synth.get("provider") != voice["provider"]:
                logger.info(
                    "Correcting synthesizer provider %r -> %r for voice %r",
                    synth.get("provider"), voice["provider"], voice_id,
                )
                synth["provider"] = voice["provider"]

    @staticmethod
    def _task_synthesizers(agent_config: dict) -> list[dict]:
        return [
            (task.get("tools_config") or {}).get("synthesizer")
            for task in agent_config.get("tasks") or []
            if isinstance(task, dict) and (task.get("tools_config") or {}).get("synthesizer")
        ]

    async def create_agent(self, sub_account_id: str, payload: dict) -> dict:
        self._validate_agent_payload(payload)
        await self._align_synthesizers(
            sub_account_id, self._task_synthesizers(payload["agent_config"])
        )
        return await self._request(
            "POST", "/v2/agent", sub_account_id=sub_account_id, json_body=payload
        )

    async def update_agent(self, sub_account_id: str, agent_id: str, payload: dict) -> dict:
        await self._align_synthesizers(
            sub_account_id, self._task_synthesizers(payload.get("agent_config") or {})
        )
        return await self._request(
            "PUT", f"/v2/agent/{agent_id}", sub_account_id=sub_account_id, json_body=payload
        )

    async def patch_agent(self, sub_account_id: str, agent_id: str, payload: dict) -> dict:
        synth = (payload.get("agent_config") or {}).get("synthesizer")
        if synth:
            await self._align_synthesizers(sub_account_id, [synth])
        return await self._request(
            "PATCH", f"/v2/agent/{agent_id}", sub_account_id=sub_account_id, json_body=payload
        )

    async def get_agent(self, sub_account_id: str, agent_id: str) -> dict:
        return await self._request("GET", f"/v2/agent/{agent_id}", sub_account_id=sub_account_id)

    async def list_agents(self, sub_account_id: str | None = None) -> list:
        return await self._request("GET", "/v2/agent/all", sub_account_id=sub_account_id) or []

    async def delete_agent(self, sub_account_id: str, agent_id: str) -> Any:
        return await self._request(
            "DELETE", f"/v2/agent/{agent_id}", sub_account_id=sub_account_id
        )

    async def stop_agent(self, agent_id: str, sub_account_id: str | None = None) -> Any:
        """Stop every queued call of an agent."""
        return await self._request(
            "POST", f"/v2/agent/{agent_id}/stop", sub_account_id=sub_account_id, json_body={}
        )

    # -- catalogs ---------------------------------------------------------------

    async def _probe_models(self, sub_account_id: str | None) -> Any | None:
        for endpoint in MODEL_ENDPOINTS:
            try:
                return await self._request("GET", endpoint, sub_account_id=sub_account_id)
            except ProviderError as e:
                if e.status_code != 404:
                    raise
                logger.warning("%s returned 404, trying next endpoint", endpoint)
        return None

    async def get_models(self, sub_account_id: str | None = None) -> dict:
        """LLM and ASR catalog; falls back to the built-in list when unavailable."""
        models = await self._probe_models(sub_account_id)
        if models is None and sub_account_id:
            models = await self._probe_models(None)
        if models is None:
            logger.warning("Models not available from provider; using built-in catalog")
            return default_models()
        return models

    async def get_voices(self, sub_account_id: str | None = None) -> Any:
        try:
            return await self._request("GET", "/me/voices", sub_account_id=sub_account_id)
        except ProviderError as e:
            if e.status_code != 404:
                raise
            logger.warning("/me/voices returned 404; using built-in voices")
            return default_voices()

    async def add_custom_model(
        self, sub_account_id: str | None, custom_model_name: str, custom_model_url: str
    ) -> Any:
        return await self._request(
            "POST",
            "/user/model/custom",
            sub_account_id=sub_account_id,
            json_body={"custom_model_name": custom_model_name, "custom_model_url": custom_model_url},
        )

    # -- inbound ----------------------------------------------------------------

    async def setup_inbound_agent(
        self,
        sub_account_id: str | None,
        agent_id: str,
        phone_number_id: str,
        ivr_config: dict | None = None,
    ) -> Any:
        payload: dict = {"agent_id": agent_id, "phone_number_id": phone_number_id}
        if ivr_config is not None:
            payload["ivr_config"] = ivr_config
        return await self._request(
            "POST", "/inbound/setup", sub_account_id=sub_account_id, json_body=payload
        )

    async def unlink_inbound_agent(self, sub_account_id: str | None, phone_number_id: str) -> Any:
        return await self._request(
            "POST",
            "/inbound/unlink",
            sub_account_id=sub_account_id,
            json_body={"phone_number_id": phone_number_id},
        )

    # -- knowledgebases -----------------------------------------------------------

    async def get_knowledgebases(self, sub_account_id: str | None = None) -> Any:
        try:
            return await self._request("GET", "/knowledgebase/all", sub_account_id=sub_account_id)
        except ProviderError as e:
            if e.status_code != 404:
                raise
            logger.warning("/knowledgebase/all returned 404; returning empty list")
            return []

    async def create_knowledgebase(
        self,
        sub_account_id: str | None,
        *,
        url: str | None = None,
        file: bytes | None = None,
        filename: str | None = None,
        knowledgebase_name: str | None = None,
        chunk_size: int | None = None,
        similarity_top_k: int | None = None,
        overlapping: int | None = None,
    ) -> Any:
        """Ingest a knowledgebase from a URL (JSON body) or an uploaded file (multipart)."""
        url = (url or "").strip()
        if not url and not file:
            raise ValidationError("Must provide either 'file' or 'url' parameter")

        options = {
            "knowledgebase_name": knowledgebase_name,
            "chunk_size": chunk_size,
            "similarity_top_k": similarity_top_k,
            "overlapping": overlapping,
        }
        options = {k: v for k, v in options.items() if v}
        if url:
            return await self._request(
                "POST",
                "/knowledgebase",
                sub_account_id=sub_account_id,
                json_body={"url": url, **options},
            )
        return await self._request(
            "POST",
            "/knowledgebase",
            sub_account_id=sub_account_id,
            data={k: str(v) for k, v in options.items()},
            files={"file": (filename or "upload.pdf", file)},
        )

    async def delete_knowledgebase(self, sub_account_id: str | None, rag_id: str) -> Any:
        return await self._request(
            "DELETE", f"/knowledgebase/{rag_id}", sub_account_id=sub_account_id
        )

    # -- calls and executions -----------------------------------------------------

    async def make_call(self, sub_account_id: str, payload: dict) -> Any:
        if not payload.get("agent_id") or not payload.get("recipient_phone_number"):
            raise ValidationError("Missing required fields: agent_id and recipient_phone_number")
        return await self._request("POST", "/call", sub_account_id=sub_account_id, json_body=payload)

    async def stop_call(self, sub_account_id: str, execution_id: str) -> Any:
        return await self._request(
            "POST", f"/call/{execution_id}/stop", sub_account_id=sub_account_id, json_body={}
        )

    async def fetch_executions(
        self,
        agent_id: str,
        sub_account_id: str | None = None,
        filters: ExecutionFilters | None = None,
    ) -> Any:
        """One page of an agent's executions."""
        params = (filters or ExecutionFilters()).to_params()
        return await self._request(
            "GET",
            f"/v2/agent/{agent_id}/executions",
            sub_account_id=sub_account_id,
            params=params or None,
        )

    async def get_execution(
        self, agent_id: str, execution_id: str, sub_account_id: str | None = None
    ) -> Any:
        return await self._request(
            "GET", f"/agent/{agent_id}/execution/{execution_id}", sub_account_id=sub_account_id
        )

    async def get_execution_logs(self, execution_id: str, sub_account_id: str | None = None) -> Any:
        return await self._request(
            "GET", f"/executions/{execution_id}/log", sub_account_id=sub_account_id
        )

    async def list_executions(self, sub_account_id: str | None = None) -> dict:
        # The provider only exposes per-agent execution listings
        return {"data": [], "message": "Please select a specific agent to view executions"}

    # -- batches --------------------------------------------------------------------

    async def create_batch(
        self,
        sub_account_id: str,
        agent_id: str,
        file: bytes,
        filename: str,
        from_phone_number: str | None = None,
        retry_config: str | None = None,
        webhook_url: str | None = None,
    ) -> Any:
        data = {"agent_id": agent_id}
        if from_phone_number:
            data["from_phone_number"] = from_phone_number
        if retry_config:
            data["retry_config"] = retry_config
        if webhook_url:
            data["webhook_url"] = webhook_url
        return await self._request(
            "POST",
            "/batches",
            sub_account_id=sub_account_id,
            data=data,
            files={"file": (filename, file, "text/csv")},
        )

    async def list_agent_batches(self, agent_id: str, sub_account_id: str | None = None) -> Any:
        return await self._request("GET", f"/batches/{agent_id}/all", sub_account_id=sub_account_id)

    async def fetch_batch_executions(self, batch_id: str, sub_account_id: str | None = None) -> Any:
        return await self._request(
            "GET", f"/batches/{batch_id}/executions", sub_account_id=sub_account_id
        )

    async def schedule_batch(
        self,
        sub_account_id: str,
        batch_id: str,
        scheduled_at: str,
        bypass_call_guardrails: bool = False,
    ) -> Any:
        fields = {"scheduled_at": scheduled_at}
        if bypass_call_guardrails:
            fields["bypass_call_guardrails"] = "true"
        # multipart form fields, no file part
        return await self._request(
            "POST",
            f"/batches/{batch_id}/schedule",
            sub_account_id=sub_account_id,
            files={name: (None, value) for name, value in fields.items()},
        )

    async def stop_batch(self, sub_account_id: str, batch_id: str) -> Any:
        return await self._request(
            "POST", f"/batches/{batch_id}/stop", sub_account_id=sub_account_id, json_body={}
        )

    async def download_batch(self, sub_account_id: str, batch_id: str) -> bytes:
        return await self._request(
            "GET", f"/batches/{batch_id}/download", sub_account_id=sub_account_id, raw=True
        )

    async def delete_batch(self, sub_account_id: str, batch_id: str) -> Any:
        return await self._request("DELETE", f"/batches/{batch_id}", sub_account_id=sub_account_id)

    # -- phone numbers ----------------------------------------------------------------

    async def list_phone_numbers(self, sub_account_id: str | None = None) -> list:
        return await self._request(
            "GET", "/phone-numbers/all", sub_account_id=sub_account_id
        ) or []

    async def search_phone_numbers(
        self, sub_account_id: str | None, country: str, pattern: str | None = None
    ) -> Any:
        params = {"country": country}
        if pattern:
            params["pattern"] = pattern
        return await self._request(
            "GET", "/phone-numbers/search", sub_account_id=sub_account_id, params=params
        )

    async def buy_phone_number(
        self, sub_account_id: str | None, country: str, phone_number: str
    ) -> Any:
        return await self._request(
            "POST",
            "/phone-numbers/buy",
            sub_account_id=sub_account_id,
            json_body={"country": country, "phone_number": phone_number},
        )
