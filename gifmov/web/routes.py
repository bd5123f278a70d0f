"""HTTP job API for GifMov.

A job owns one directory under the app's work dir. The directory goes away
once the movie has been downloaded or the conversion has failed.
"""

import json
import logging
import queue
import shutil
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path

from flask import Blueprint, Response, current_app, jsonify, request, send_file

from gifmov.engine import EngineResult, process
from gifmov.errors import ConversionError
from gifmov.manifest import Manifest

logger = logging.getLogger(__name__)

bp = Blueprint("web", __name__)

GIF_SIGNATURES = (b"GIF87a", b"GIF89a")


@dataclass
class ConversionJob:
    job_id: str
    dir: Path
    filename: str
    status: str = "uploaded"
    error: str | None = None
    result: dict | None = None
    events: queue.Queue | None = field(default=None, repr=False)

    @property
    def input_path(self) -> Path:
        return self.dir / "input.gif"

    @property
    def output_path(self) -> Path | None:
        return Path(self.result["output_path"]) if self.result else None

    def succeed(self, result: EngineResult) -> None:
        self.result = {
            "output_path": str(result.output_path),
            "width": result.width,
            "height": result.height,
            "frames_encoded": result.frames_encoded,
            "frames_skipped": result.frames_skipped,
            "duration": result.duration,
        }
        self.status = "done"

    def fail(self, reason: str) -> None:
        self.status = "error"
        self.error = reason
        self.result = None
        self.discard_files()

    def discard_files(self) -> None:
        shutil.rmtree(self.dir, ignore_errors=True)

    def describe(self) -> dict:
        resp = {"status": self.status, "filename": self.filename}
        if self.status == "done":
            resp["result"] = self.result
        elif self.status == "error":
            resp["error"] = self.error
        return resp


_jobs: dict[str, ConversionJob] = {}


def _not_found():
    return jsonify({"error": "Job not found"}), 404


def _retire(job_id: str) -> None:
    job = _jobs.pop(job_id, None)
    if job is not None:
        job.discard_files()
        logger.debug("Retired job %s", job_id)


@bp.route("/api/upload", methods=["POST"])
def upload():
    if "file" not in request.files:
        return jsonify({"error": "No file provided"}), 400

    f = request.files["file"]
    if not f.filename:
        return jsonify({"error": "Empty filename"}), 400

    head = f.stream.read(6)
    f.stream.seek(0)
    if head not in GIF_SIGNATURES:
        return jsonify({"error": "Not a GIF file"}), 400

    job_id = uuid.uuid4().hex[:12]
    job = ConversionJob(
        job_id=job_id,
        dir=Path(current_app.config["WORK_DIR"]) / job_id,
        filename=f.filename,
    )
    job.dir.mkdir(parents=True, exist_ok=True)
    f.save(job.input_path)
    _jobs[job_id] = job

    return jsonify({"job_id": job_id, "filename": f.filename})


@bp.route("/api/jobs/<job_id>/convert", methods=["POST"])
def start_convert(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return _not_found()
    if job.status == "error":
        return jsonify({"error": "Job failed; upload the GIF again"}), 409
    if job.status == "processing":
        return jsonify({"error": "Job is already processing"}), 409

    config = request.get_json(silent=True) or {}
    try:
        manifest = Manifest(
            input=job.input_path,
            # A fresh output file per run; converters never reuse a location.
            output=job.dir / f"output_{uuid.uuid4().hex[:8]}.mov",
            max_dimension=float(config.get("max_dimension", 1024.0)),
            timing_policy=config.get("timing_policy", "index_times_duration"),
            codec=config.get("codec", "auto"),
        )
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    previous = job.output_path
    events: queue.Queue = queue.Queue()
    job.events = events
    job.status = "processing"
    job.error = None
    job.result = None
    if previous is not None:
        previous.unlink(missing_ok=True)

    def on_progress(stage: str, frac: float):
        events.put({"stage": stage, "progress": round(frac, 3)})

    def run():
        try:
            job.succeed(process(manifest, on_progress=on_progress))
        except ConversionError as e:
            job.fail(e.reason)
        except Exception as e:
            logger.exception("Conversion job %s failed", job_id)
            job.fail(str(e))
        finally:
            events.put(None)

    threading.Thread(target=run, daemon=True).start()
    return jsonify({"status": "started"})


def _sse(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


@bp.route("/api/jobs/<job_id>/progress")
def progress_stream(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return _not_found()
    if job.events is None:
        return jsonify({"error": "No conversion in progress"}), 409

    events = job.events

    def generate():
        while True:
            try:
                msg = events.get(timeout=120)
            except queue.Empty:
                yield _sse({"error": "timeout"})
                return
            if msg is not None:
                yield _sse(msg)
                continue
            if job.status == "error":
                yield _sse({"error": job.error})
            else:
                yield _sse({"stage": "complete", "progress": 1.0, "result": job.result})
            return

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/jobs/<job_id>/result")
def download_result(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return _not_found()
    if job.status != "done":
        return jsonify({"error": "Job not complete"}), 409

    response = send_file(job.output_path, mimetype="video/quicktime", as_attachment=False)
    # Passthrough responses never run their close callbacks.
    response.direct_passthrough = False
    response.call_on_close(lambda: _retire(job_id))
    return response


@bp.route("/api/jobs/<job_id>/status")
def job_status(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return _not_found()
    return jsonify(job.describe())
