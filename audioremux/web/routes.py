"""Web API routes for AudioRemux."""

import asyncio
import json
import queue
import threading
import uuid
from pathlib import Path

from flask import (
    Blueprint,
    Response,
    current_app,
    jsonify,
    request,
    send_file,
)

from audioremux import engine
from audioremux.errors import OperationCancelledError
from audioremux.manifest import Manifest, export_settings_from_dict

bp = Blueprint("web", __name__)

BUSY_STATUSES = ("analyzing", "exporting")

# In-memory job store: job_id -> job dict
_jobs: dict[str, dict] = {}


def _get_job(job_id: str) -> dict | None:
    return _jobs.get(job_id)


def _not_found():
    return jsonify({"error": "Job not found"}), 404


def _start_job(job: dict, status: str, coro_factory, on_done) -> None:
    """Run ``coro_factory(on_progress)`` on a fresh event loop in a background thread."""
    progress_queue: queue.Queue = queue.Queue()
    job["progress_queue"] = progress_queue
    job["status"] = status
    job["error"] = None

    def on_progress(stage: str, frac: float) -> None:
        progress_queue.put({"stage": stage, "progress": round(frac, 3)})

    async def main():
        job["loop"] = asyncio.get_running_loop()
        job["task"] = asyncio.current_task()
        return await coro_factory(on_progress)

    def run():
        try:
            on_done(asyncio.run(main()))
        except asyncio.CancelledError:
            job["status"] = "cancelled"
            job["error"] = str(OperationCancelledError())
        except Exception as e:
            job["status"] = "error"
            job["error"] = str(e)
        finally:
            job["task"] = None
            job["loop"] = None
            progress_queue.put(None)  # sentinel

    threading.Thread(target=run, daemon=True).start()


@bp.route("/api/upload", methods=["POST"])
def upload():
    missing = [name for name in ("video", "audio") if name not in request.files]
    if missing:
        return jsonify({"error": f"Missing file(s): {', '.join(missing)}"}), 400

    video, audio = request.files["video"], request.files["audio"]
    if not video.filename or not audio.filename:
        return jsonify({"error": "Empty filename"}), 400

    job_id = uuid.uuid4().hex[:12]
    job_dir = Path(current_app.config["WORK_DIR"]) / job_id
    job_dir.mkdir(parents=True, exist_ok=True)

    video_path = job_dir / f"video{Path(video.filename).suffix or '.mp4'}"
    audio_path = job_dir / f"audio{Path(audio.filename).suffix or '.wav'}"
    video.save(video_path)
    audio.save(audio_path)

    _jobs[job_id] = {
        "dir": job_dir,
        "video_path": video_path,
        "audio_path": audio_path,
        "video_filename": video.filename,
        "audio_filename": audio.filename,
        "session": engine.SyncSession(),
        "analysis": None,
        "status": "uploaded",
    }

    return jsonify({
        "job_id": job_id,
        "video_filename": video.filename,
        "audio_filename": audio.filename,
    })


@bp.route("/api/jobs/<job_id>/analyze", methods=["POST"])
def start_analysis(job_id: str):
    job = _get_job(job_id)
    if job is None:
        return _not_found()
    if job["status"] in BUSY_STATUSES:
        return jsonify({"error": f"Job is already {job['status']}"}), 409

    def coro_factory(on_progress):
        return engine.analyze(
            job["video_path"],
            job["audio_path"],
            on_progress=on_progress,
            session=job["session"],
        )

    def on_done(outcome):
        if outcome.error is not None:
            job["status"] = "error"
            job["error"] = str(outcome.error)
            return
        job["analysis"] = outcome.result.to_dict()
        job["status"] = "analyzed"

    _start_job(job, "analyzing", coro_factory, on_done)
    return jsonify({"status": "started"})


@bp.route("/api/jobs/<job_id>/export", methods=["POST"])
def start_export(job_id: str):
    job = _get_job(job_id)
    if job is None:
        return _not_found()
    if job["status"] in BUSY_STATUSES:
        return jsonify({"error": f"Job is already {job['status']}"}), 409

    config = request.get_json(silent=True) or {}
    try:
        settings = export_settings_from_dict(config)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    if config.get("use_detected_offset"):
        if job.get("analysis") is None:
            return jsonify({"error": "No analysis result to take the offset from"}), 409
        settings = settings.with_offset(job["analysis"]["offset_seconds"])

    if not settings.is_valid_combination:
        return jsonify({
            "error": (
                f"{settings.output_container.display_name} container does not support "
                f"the {settings.audio_codec.display_name} codec"
            ),
            "supported_codecs": [c.value for c in settings.output_container.supported_codecs],
        }), 400

    settings.output_directory = job["dir"]
    manifest = Manifest(
        video=job["video_path"],
        audio=job["audio_path"],
        export=settings,
    )

    def on_done(result):
        if result.error is not None:
            job["status"] = "error"
            job["error"] = str(result.error)
            return
        job["result"] = {
            "output_path": str(result.output_path),
            "offset_seconds": result.offset_seconds,
        }
        job["status"] = "done"

    _start_job(
        job,
        "exporting",
        lambda on_progress: engine.run(manifest, on_progress=on_progress),
        on_done,
    )
    return jsonify({"status": "started"})


@bp.route("/api/jobs/<job_id>/cancel", methods=["POST"])
def cancel(job_id: str):
    job = _get_job(job_id)
    if job is None:
        return _not_found()

    loop, task = job.get("loop"), job.get("task")
    if loop is None or task is None:
        return jsonify({"error": "Nothing to cancel"}), 409

    loop.call_soon_threadsafe(task.cancel)
    return jsonify({"status": "cancelling"})


@bp.route("/api/jobs/<job_id>/progress")
def progress_stream(job_id: str):
    job = _get_job(job_id)
    if job is None:
        return _not_found()

    q = job.get("progress_queue")
    if q is None:
        return jsonify({"error": "No processing in progress"}), 409

    def generate():
        while True:
            try:
                msg = q.get(timeout=120)
            except queue.Empty:
                yield "data: {\"error\": \"timeout\"}\n\n"
                break
            if msg is None:
                if job["status"] in ("error", "cancelled"):
                    data = json.dumps({"error": job["error"], "status": job["status"]})
                else:
                    data = json.dumps({
                        "stage": "complete",
                        "progress": 1.0,
                        "status": job["status"],
                        "analysis": job.get("analysis"),
                        "result": job.get("result"),
                    })
                yield f"data: {data}\n\n"
                break
            yield f"data: {json.dumps(msg)}\n\n"

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/jobs/<job_id>/waveform")
def waveform(job_id: str):
    job = _get_job(job_id)
    if job is None:
        return _not_found()

    which = request.args.get("track", "reference")
    if which not in ("reference", "target"):
        return jsonify({"error": "track must be 'reference' or 'target'"}), 400

    model = getattr(job["session"], which)
    if model is None:
        return jsonify({"error": "Waveforms not generated yet"}), 409

    points = request.args.get("points", 1000, type=int)
    samples = model.downsampled(points)
    return jsonify({
        "track": which,
        "sample_rate": model.sample_rate,
        "duration": model.duration,
        "samples": [round(float(s), 4) for s in samples],
    })


@bp.route("/api/jobs/<job_id>/result")
def download_result(job_id: str):
    job = _get_job(job_id)
    if job is None:
        return _not_found()

    if job["status"] != "done":
        return jsonify({"error": "Job not complete"}), 409

    output_path = Path(job["result"]["output_path"])
    return send_file(output_path, as_attachment=True)


@bp.route("/api/jobs/<job_id>/status")
def job_status(job_id: str):
    job = _get_job(job_id)
    if job is None:
        return _not_found()

    resp = {
        "status": job["status"],
        "video_filename": job.get("video_filename"),
        "audio_filename": job.get("audio_filename"),
    }
    if job.get("analysis") is not None:
        resp["analysis"] = job["analysis"]
    if job["status"] == "done":
        resp["result"] = job.get("result")
    if job["status"] in ("error", "cancelled"):
        resp["error"] = job.get("error")
    return jsonify(resp)
