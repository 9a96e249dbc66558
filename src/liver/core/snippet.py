"""
Reload snippet injected at the end of served HTML documents.
"""

from typing import Optional

from liver.core.config import DEFAULT_WS_PORT

RELOAD_MESSAGE = "Reload"

# Browsers accept a trailing <script> after </html>, so the snippet is appended as-is.
RELOAD_SCRIPT_TEMPLATE = """<script>
(function () {
  const socket = new WebSocket("ws://127.0.0.1:%(port)d");

  socket.addEventListener("error", function (event) {
    console.error("liver: live reload connection failed", event);
  });

  socket.addEventListener("open", function () {
    console.debug("liver: live reload enabled");
  });

  socket.addEventListener("message", function (event) {
    if (event.data === "%(message)s") {
      console.debug("liver: reloading");
      location.reload();
    }
  });
})();
</script>"""


def build_reload_snippet(ws_port: Optional[int] = None) -> bytes:
    """Return the reload script for a push channel listening on ``ws_port``."""
    if ws_port is None:
        ws_port = DEFAULT_WS_PORT
    script = RELOAD_SCRIPT_TEMPLATE % {"port": ws_port, "message": RELOAD_MESSAGE}
    return script.encode("utf-8")
