"""
CloudScape Agent API (FastAPI)

Endpoints:
- POST /v1/agent/think
- POST /v1/agent/reset
- GET  /v1/agent/history
- GET  /v1/tools
- GET  /v1/tools/{tool_id}
- GET  /v1/status

Maps session outcomes to HTTP statuses:
- 200 OK: a decision was reached (EXECUTE, EXECUTE_WITH_PARTIAL_FALLBACK, RETRY_OR_ESCALATE)
- 422 Unprocessable Entity: invalid body, or no suitable tool for the request
- 500 Internal Server Error: pipeline crash
"""

from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .conductor.conductor import NO_SUITABLE_TOOLS
from .main import AgentAPI

app = FastAPI(title="CloudScape Agent API", version="0.1.0")
api = AgentAPI()


class ThinkRequest(BaseModel):
    query: str = Field(..., min_length=1)


def classify_status(trace: Dict[str, Any]) -> int:
    if trace.get("internal_error"):
        return 500
    if trace.get("final_decision"):
        return 200
    if NO_SUITABLE_TOOLS in (trace.get("errors") or []):
        return 422
    return 500


@app.post("/v1/agent/think")
async def think(body: ThinkRequest):
    trace = await api.handler.process_request_async(body.query)
    return JSONResponse(status_code=classify_status(trace), content=trace)


@app.post("/v1/agent/reset")
def reset():
    api.reset()
    return {"reset": True}


@app.get("/v1/agent/history")
def history():
    return {"sessions": api.history()}


@app.get("/v1/tools")
def list_tools(category: Optional[str] = None, platform: Optional[str] = None):
    registry = api.handler.registry
    if category:
        tools = registry.get_tools_by_category(category)
    else:
        tools = registry.all_tools()
    if platform:
        tools = [t for t in tools if t.supports_platform(platform)]
    return {"tools": [t.id for t in tools]}


@app.get("/v1/tools/{tool_id}")
def get_tool(tool_id: str):
    tool = api.handler.registry.get_tool(tool_id)
    if tool is None:
        raise HTTPException(status_code=404, detail=f"Unknown tool {tool_id}")
    return tool.to_dict()


@app.get("/v1/status")
def status():
    return api.status()


if __name__ == "__main__":
    uvicorn.run("cloudscape_agent.api:app", host="0.0.0.0", port=8000, reload=False)
