import json
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


class TraceLogger:
    def __init__(self, log_dir: str = "logs"):
        """Open a JSON-lines trace file for this process."""
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.log_file = self.log_dir / f"trace_{timestamp}.json"

        # Request ids are per thread; Flask serves each request on its own thread.
        self._local = threading.local()
        self._write_lock = threading.Lock()
        self.session_id = timestamp

        self._write_entry({
            "event": "session_start",
            "session_id": self.session_id,
            "timestamp": datetime.now().isoformat()
        })

    @property
    def current_request_id(self) -> Optional[str]:
        return getattr(self._local, "request_id", None)

    def start_request(self, kind: str, payload: Any = None) -> str:
        """Start tracing one handler invocation on the calling thread."""
        request_id = f"{datetime.now().strftime('%H%M%S')}_{uuid.uuid4().hex[:8]}"
        self._local.request_id = request_id
        self._write_entry({
            "event": "request_start",
            "request_id": request_id,
            "kind": kind,
            "content": payload,
            "timestamp": datetime.now().isoformat()
        })
        return request_id

    def log_step(self, step_type: str, content: Any, metadata: Dict[str, Any] = None):
        """Log a step inside the current request (oracle reply, store write, ...)."""
        entry = {
            "event": "step",
            "request_id": self.current_request_id,
            "step_type": step_type,
            "content": content,
            "timestamp": datetime.now().isoformat()
        }
        if metadata:
            entry["metadata"] = metadata
        self._write_entry(entry)

    def log_error(self, where: str, error: Exception):
        self.log_step("error", {"where": where, "type": type(error).__name__, "detail": str(error)})

    def end_request(self, result: Any):
        """Close the current request."""
        self._write_entry({
            "event": "request_end",
            "request_id": self.current_request_id,
            "content": result,
            "timestamp": datetime.now().isoformat()
        })
        self._local.request_id = None

    def _write_entry(self, entry: Dict[str, Any]):
        """Append a JSON entry to the log file."""
        line = json.dumps(entry, default=str) + "\n"
        with self._write_lock:
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(line)
