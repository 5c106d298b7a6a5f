import os
import secrets
import time
import logging
from typing import Optional
from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Mock SonarQube / ServiceNow")

PROJECTS = [
    {"key": "project1", "name": "Project One"},
    {"key": "project2", "name": "Project Two"},
    {"key": "project3", "name": "Project Three"},
]

CLIENT_ID = os.getenv("MOCK_CLIENT_ID", "mock-client")
CLIENT_SECRET = os.getenv("MOCK_CLIENT_SECRET", "mock-secret")
TOKEN_TTL_SECONDS = int(os.getenv("MOCK_TOKEN_TTL", "1800"))

# ============================================================
# Failure injection
# - Project keys starting with "flaky-" fail the first search with 503.
# - Project keys starting with "broken-" always fail incident creation.
# ============================================================
search_attempts: dict = {}
issued_tokens: dict = {}
incidents: list = []


# ============================================================
# SonarQube
# ============================================================

@app.get("/api/server/version", response_class=PlainTextResponse)
async def server_version():
    return "10.4.1.88267"


@app.get("/api/projects/search")
async def search_projects(projects: str = Query(...), authorization: Optional[str] = Header(None)):
    if not authorization or not authorization.startswith("Basic "):
        raise HTTPException(status_code=401, detail="Unauthorized")

    keys = [k for k in projects.split(",") if k]
    for key in keys:
        if key.startswith("flaky-"):
            attempts = search_attempts.get(key, 0) + 1
            search_attempts[key] = attempts
            if attempts < 2:
                logger.info(f"Search FAILED for {key} (Attempt: {attempts})")
                raise HTTPException(status_code=503, detail="Service Unavailable")

    components = [p for p in PROJECTS if p["key"] in keys]
    components += [
        {"key": k, "name": k.replace("-", " ").title()}
        for k in keys if k.startswith(("flaky-", "broken-"))
    ]
    return {
        "paging": {"pageIndex": 1, "pageSize": 100, "total": len(components)},
        "components": components,
    }


# ============================================================
# ServiceNow
# ============================================================

@app.post("/oauth_token.do")
async def oauth_token(
    grant_type: str = Query(...),
    client_id: str = Query(...),
    client_secret: str = Query(...),
):
    if grant_type != "client_credentials" or client_id != CLIENT_ID or client_secret != CLIENT_SECRET:
        return JSONResponse(status_code=401, content={"error": "access_denied"})

    token = secrets.token_hex(16)
    issued_tokens[token] = time.time() + TOKEN_TTL_SECONDS
    return {"access_token": token, "token_type": "Bearer", "expires_in": TOKEN_TTL_SECONDS}


@app.post("/api/now/table/incident")
async def create_incident(request: Request, authorization: Optional[str] = Header(None)):
    token = (authorization or "").removeprefix("Bearer ")
    if issued_tokens.get(token, 0) < time.time():
        return JSONResponse(status_code=401, content={"error": {"message": "User Not Authenticated"}})

    body = await request.json()
    if "broken-" in body.get("description", ""):
        raise HTTPException(status_code=500, detail="Insert failed")

    sys_id = secrets.token_hex(16)
    number = f"INC{len(incidents) + 1:07d}"
    incident = {**body, "number": number, "sys_id": sys_id}
    incidents.append(incident)
    logger.info(f"Incident {number} created: {body.get('short_description')}")
    return {"result": incident}


@app.get("/health")
async def health():
    """Mock API health check."""
    return {"status": "ok", "service": "mock-external-api"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=9000)
