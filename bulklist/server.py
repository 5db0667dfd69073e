import argparse
import logging
import os

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.responses import Response

from bulklist.client import ListClient
from bulklist.errors import ConfigurationError
from bulklist.models import (
    ParseRequest,
    ParseResponse,
    RunRequest,
    RunStatusResponse,
)
from bulklist.orchestrator import BatchOrchestrator, resolve_list_id
from bulklist.parser import TEMPLATE_FILENAME, TEMPLATE_TEXT, parse
from bulklist.runs import RunTracker
from bulklist.transport import GRAPHQL_ENDPOINT, RequestsTransport

app = FastAPI()

tracker = None       # Global RunTracker, set up by main()


@app.on_event("shutdown")
def shutdown_event():
    if tracker is not None:
        tracker.cancel_all()


@app.get("/template")
def get_template():
    return Response(
        content=TEMPLATE_TEXT,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{TEMPLATE_FILENAME}"'},
    )


@app.post("/parse", response_model=ParseResponse)
def parse_text(req: ParseRequest):
    items = parse(req.text)
    return ParseResponse(count=len(items), items=items)


@app.post("/runs", response_model=RunStatusResponse)
def start_run(req: RunRequest):
    if tracker is None:
        raise HTTPException(status_code=503, detail="Run tracker is not initialized")

    items = parse(req.text)
    if not items:
        raise HTTPException(status_code=400, detail="No valid items found. Check your input format.")

    list_id = resolve_list_id(req.list_id) or resolve_list_id(req.location)
    try:
        run = tracker.start(items, list_id, req.delay)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return tracker.get(run.run_id)


@app.get("/runs/{run_id}", response_model=RunStatusResponse)
def get_run(run_id: str):
    status = tracker.get(run_id) if tracker is not None else None
    if status is None:
        raise HTTPException(status_code=404, detail=f"Unknown run {run_id}")
    return status


@app.post("/runs/{run_id}/cancel", response_model=RunStatusResponse)
def cancel_run(run_id: str):
    if tracker is None or not tracker.cancel(run_id):
        raise HTTPException(status_code=404, detail=f"Unknown run {run_id}")
    return tracker.get(run_id)


@app.delete("/runs/{run_id}", status_code=204)
def forget_run(run_id: str):
    status = tracker.get(run_id) if tracker is not None else None
    if status is None:
        raise HTTPException(status_code=404, detail=f"Unknown run {run_id}")
    if not tracker.forget(run_id):
        raise HTTPException(status_code=409, detail=f"Run {run_id} is still running")
    return Response(status_code=204)


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    parser = argparse.ArgumentParser(description="Bulk list upload service")
    parser.add_argument("--endpoint", type=str, default=GRAPHQL_ENDPOINT, help="GraphQL endpoint")
    parser.add_argument("--session-id", type=str, default=os.environ.get("BULKLIST_SESSION_ID"),
                        help="session-id cookie (default: $BULKLIST_SESSION_ID)")
    parser.add_argument("--consent-info", type=str, default=os.environ.get("BULKLIST_CONSENT_INFO"),
                        help="ci cookie (default: $BULKLIST_CONSENT_INFO)")
    parser.add_argument("--language", type=str, default="en-US", help="User language header")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Host")
    parser.add_argument("--port", type=int, default=8000, help="Port")
    args = parser.parse_args()

    transport = RequestsTransport.from_credentials(
        session_id=args.session_id,
        consent_info=args.consent_info,
        language=args.language,
        endpoint=args.endpoint,
    )
    client = ListClient(transport)

    global tracker
    tracker = RunTracker(lambda cancel_event: BatchOrchestrator(client, sleep=cancel_event.wait))
    logging.info("Service starting on %s:%d, endpoint=%s", args.host, args.port, args.endpoint)

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level="warning",
        access_log=False,
    )
    transport.close()


if __name__ == "__main__":
    main()
