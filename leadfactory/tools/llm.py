# leadfactory/tools/llm.py
from __future__ import annotations
import asyncio, json, re, time, logging
from typing import Any, Dict, Optional
import aiohttp
import requests
from leadfactory.config import get_settings

log = logging.getLogger("llm")

# Strip Ollama <think> blocks just in case
_THINK_BLOCK = re.compile(r"<\s*think\s*>.*?<\s*/\s*think\s*>", re.I | re.S)
_FENCE = re.compile(r"```(?:json)?", re.I)

class LLMNotReady(RuntimeError): ...

class AgentOutputError(ValueError):
    """A stage agent returned something that cannot be merged into a workspace."""

def _clean(t: str) -> str:
    return _THINK_BLOCK.sub("", t or "").strip()

def parse_json_object(text: str) -> Dict[str, Any]:
    """Parse the outermost {...} of a model reply, ignoring code fences and chatter."""
    clean = _FENCE.sub("", _clean(text))
    first, last = clean.find("{"), clean.rfind("}")
    if first == -1 or last <= first:
        raise AgentOutputError("No JSON object in model output")
    try:
        data = json.loads(clean[first:last + 1])
    except json.JSONDecodeError as e:
        raise AgentOutputError(f"Invalid JSON in model output: {e.msg}") from e
    if not isinstance(data, dict):
        raise AgentOutputError("Model output is not a JSON object")
    return data

def check_llm_ready() -> bool:
    s = get_settings()
    try:
        t0 = time.time()
        r = requests.post(f"{s.ollama_base}/api/generate", json={
            "model": s.ollama_model, "prompt": "ping", "think": s.ollama_think,
            "options": {"temperature": 0.0}, "stream": False,
        }, timeout=s.llm_timeout_seconds)
        r.raise_for_status()
        ok = bool((r.json().get("response") or "").strip())
        log.info("LLM ready=%s latency=%.2fs", ok, time.time() - t0)
        return ok
    except (requests.RequestException, ValueError) as e:
        log.warning("LLM not ready: %s", e)
        return False

async def ollama_generate(prompt: str, system: str = "", temperature: float = 0.3,
                          json_mode: bool = True, session: Optional[aiohttp.ClientSession] = None) -> str:
    s = get_settings()
    payload = {
        "model": s.ollama_model,
        "prompt": prompt,
        "system": system,
        "options": {"temperature": temperature},
        "stream": False,
        "think": s.ollama_think,
    }
    if json_mode:
        payload["format"] = "json"

    own_session = session is None
    session = session or aiohttp.ClientSession()
    t0 = time.time()
    try:
        async with session.post(
            f"{s.ollama_base}/api/generate",
            json=payload,
            timeout=aiohttp.ClientTimeout(total=s.llm_timeout_seconds),
        ) as response:
            response.raise_for_status()
            data = await response.json()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        log.error("ollama_generate failed: %s", e)
        raise LLMNotReady(f"Ollama text model not ready: {e}") from e
    finally:
        if own_session:
            await session.close()

    resp = _clean(data.get("response") or "")
    if not resp:
        raise LLMNotReady("Empty response from LLM.")
    log.info("LLM generate chars=%d latency=%.2fs", len(resp), time.time() - t0)
    return resp

async def generate_json(prompt: str, system: str = "", temperature: float = 0.3) -> Dict[str, Any]:
    return parse_json_object(await ollama_generate(prompt, system=system, temperature=temperature))
