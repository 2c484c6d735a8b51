from __future__ import annotations

import html
import json
import logging
from typing import Any, Optional

# Ensure engine logging is visible when running under uvicorn
logging.getLogger("formtrack").setLevel(logging.INFO)

from fastapi import FastAPI, HTTPException
from fastapi import WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from formtrack.config import EngineConfig
from formtrack.engine import FormEngine
from formtrack.exercises import EXERCISES, ExerciseId, FormResult, UnknownExerciseError, get_exercise
from formtrack.landmarks import frame_from_payload

logger = logging.getLogger("formtrack.web")

app = FastAPI(title="FormTrack")

ENGINE_CONFIG = EngineConfig.from_env()


class LandmarkIn(BaseModel):
    x: float
    y: float
    visibility: float = 1.0


class ValidateRequest(BaseModel):
    exercise: str
    timestamp: float = 0.0
    landmarks: list[Optional[LandmarkIn]]


def _page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>{html.escape(title)}</title>
    <style>
      body {{ font-family: -apple-system, BlinkMacSystemFont, sans-serif; background: #f0fff0; color: #2e8b57; margin: 0; padding: 24px; }}
      .card {{ background: #e8f5e8; border: 2px solid #90ee90; border-radius: 10px; padding: 16px; margin: 0 auto 16px; max-width: 800px; }}
      h1 {{ text-align: center; }}
      code {{ background: #fff; padding: 2px 4px; border-radius: 4px; }}
    </style>
  </head>
  <body>
    {body}
  </body>
</html>"""


def _render_homepage() -> HTMLResponse:
    cards = []
    for definition in EXERCISES.values():
        items = "".join(f"<li>{html.escape(i)}</li>" for i in definition.instructions)
        cards.append(
            f"""<div class="card">
      <h3>{html.escape(definition.name)} <code>{definition.id.value}</code></h3>
      <p>{html.escape(definition.description)}</p>
      <ul>{items}</ul>
    </div>"""
        )
    body = f"""<h1>FormTrack</h1>
    <div class="card">
      <p>Stream pose landmarks to <code>/ws/session</code> for live form feedback, rep and set counting,
      or POST one frame to <code>/validate</code>.</p>
    </div>
    {"".join(cards)}"""
    return HTMLResponse(_page("FormTrack", body))


@app.get("/", response_class=HTMLResponse)
def index() -> HTMLResponse:
    return _render_homepage()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/exercises")
def exercises() -> list[dict[str, Any]]:
    return [d.to_dict() for d in EXERCISES.values()]


@app.post("/validate")
def validate(req: ValidateRequest) -> dict[str, Any]:
    """Stateless form check of one frame; invalid frames give a neutral result."""
    try:
        definition = get_exercise(req.exercise)
    except UnknownExerciseError as e:
        raise HTTPException(status_code=404, detail=str(e))
    frame = frame_from_payload(req.model_dump())
    if frame is None:
        return FormResult.neutral().to_dict()
    return definition.validate(frame, ENGINE_CONFIG.visibility_threshold).to_dict()


def _state_message(engine: FormEngine, msg_type: str = "state") -> str:
    data = engine.snapshot().to_dict()
    data["type"] = msg_type
    return json.dumps(data)


def _error_message(detail: str) -> str:
    return json.dumps({"type": "error", "detail": detail})


@app.websocket("/ws/session")
async def session_socket(websocket: WebSocket) -> None:
    """
    One engine per connection. Client messages (JSON):
      {"type": "select", "exercise": id} | {"type": "start"} | {"type": "stop"}
      {"type": "reset"} | {"type": "tick", "seconds": 1} | {"type": "report"}
      {"type": "frame", "timestamp": s, "landmarks": [{"x", "y", "visibility"}, ...]}
    """
    await websocket.accept()
    exercise = websocket.query_params.get("exercise", ExerciseId.BICEP_CURLS.value)
    try:
        engine = FormEngine(exercise, config=ENGINE_CONFIG)
    except UnknownExerciseError as e:
        await websocket.send_text(_error_message(str(e)))
        await websocket.close(code=1008)
        return
    logger.info("session started: %s", engine.exercise.id.value)
    frames = 0
    try:
        while True:
            msg = await websocket.receive_text()
            try:
                payload = json.loads(msg)
            except json.JSONDecodeError:
                await websocket.send_text(_error_message("invalid JSON"))
                continue
            if not isinstance(payload, dict):
                await websocket.send_text(_error_message("expected a JSON object"))
                continue
            msg_type = payload.get("type", "frame")

            if msg_type == "frame":
                frame = frame_from_payload(payload)
                result = engine.process(frame)
                frames += 1
                data = result.to_dict()
                data["type"] = "result"
                await websocket.send_text(json.dumps(data))
                continue

            if msg_type == "select":
                try:
                    engine.select_exercise(payload.get("exercise"))
                except UnknownExerciseError as e:
                    await websocket.send_text(_error_message(str(e)))
                    continue
            elif msg_type == "start":
                engine.start()
            elif msg_type == "stop":
                engine.stop()
            elif msg_type == "reset":
                engine.reset()
            elif msg_type == "tick":
                seconds = payload.get("seconds", 1)
                if not isinstance(seconds, int) or seconds < 0:
                    await websocket.send_text(_error_message("tick seconds must be a non-negative integer"))
                    continue
                engine.tick(seconds)
            elif msg_type == "report":
                data = engine.snapshot().to_dict(include_log=True)
                data["type"] = "report"
                await websocket.send_text(json.dumps(data))
                continue
            else:
                await websocket.send_text(_error_message(f"unknown message type {msg_type!r}"))
                continue
            await websocket.send_text(_state_message(engine))
    except WebSocketDisconnect:
        stats = engine.analytics.stats
        logger.info(
            "session closed: %s (frames=%s reps=%s correct=%s)",
            engine.exercise.id.value, frames, stats.total_reps, stats.correct_reps,
        )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("web_app:app", host="0.0.0.0", port=8000, reload=True)
