"""Browser clipboard access for notebook widgets.

Python cannot reach the browser clipboard directly, so ``ClipboardDriver`` is
a hidden anywidget that receives a custom message and calls
``navigator.clipboard.writeText`` in the frontend. Without a connected
frontend the message goes nowhere; :attr:`ClipboardDriver.last_copied`
still records what was requested.
"""

from __future__ import annotations

import logging
from typing import Optional

import anywidget
import traitlets

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class ClipboardDriver(anywidget.AnyWidget):
    """
    Hidden frontend helper that writes text to the clipboard.

    Traitlets (synced to frontend)
    ------------------------------
    debug_js:
        If True, the frontend logs copy attempts and failures to the console.

    Public methods
    --------------
    copy(text):
        Send a custom message asking the frontend to copy ``text``.

    Notes
    -----
    Browsers only grant clipboard writes from a secure context and usually
    only shortly after a user gesture. A button click that triggers
    :meth:`copy` qualifies; telemetry-driven copies may be refused.
    """

    debug_js = traitlets.Bool(False).tag(sync=True)

    _esm = r"""
    export default {
      render({ model, el }) {
        // The driver node should not affect layout.
        el.style.display = "none";

        const log = (...args) => {
          if (model.get("debug_js")) console.log("[ClipboardDriver]", ...args);
        };

        const onMsg = (msg) => {
          if (!msg || msg.type !== "copy") return;
          const text = String(msg.text ?? "");
          if (!navigator.clipboard || !navigator.clipboard.writeText) {
            log("clipboard API unavailable");
            return;
          }
          navigator.clipboard.writeText(text).then(
            () => log("copied", text),
            (err) => log("copy refused", err)
          );
        };
        model.on("msg:custom", onMsg);

        return () => {
          try { model.off("msg:custom", onMsg); } catch (e) {}
        };
      }
    };
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._last_copied: Optional[str] = None

    @property
    def last_copied(self) -> Optional[str]:
        """Text passed to the most recent :meth:`copy` call."""
        return self._last_copied

    def copy(self, text: str) -> None:
        """Ask the frontend to put ``text`` on the clipboard."""
        self._last_copied = str(text)
        logger.debug("Requesting clipboard copy of %r", self._last_copied)
        self.send({"type": "copy", "text": self._last_copied})
