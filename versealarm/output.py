"""Terminal sound output for ringing alarms."""

import asyncio
import contextlib
import logging
import sys
from collections.abc import Sequence
from typing import TextIO

logger = logging.getLogger(__name__)

BEEP_INTERVAL = 0.75


class TerminalAlarmOutput:
    """Rings the terminal bell while an alarm is ringing.

    A terminal has no vibration motor and needs no keep-warm audio session,
    so those requests are only logged.
    """

    def __init__(self, stream: TextIO | None = None, interval: float = BEEP_INTERVAL):
        self.stream = stream or sys.stdout
        self.interval = interval
        self._beep_task: asyncio.Task | None = None
        self.keep_warm_active = False

    def start_continuous_sound(self, sound_id: str) -> None:
        self.stop_sound()
        logger.info(f"Playing alarm sound: {sound_id}")
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, alarm sound not started")
            return
        self._beep_task = loop.create_task(self._beep_loop(), name="alarm-beep")

    def stop_sound(self) -> None:
        if self._beep_task and not self._beep_task.done():
            self._beep_task.cancel()
        self._beep_task = None

    def start_keep_warm_session(self) -> None:
        self.keep_warm_active = True
        logger.info("Keep-warm audio session started")

    def stop_keep_warm_session(self) -> None:
        self.keep_warm_active = False
        logger.info("Keep-warm audio session stopped")

    def vibrate(self, pattern: Sequence[int], repeat: bool = False) -> None:
        logger.debug(f"Vibrate {list(pattern)} (repeat={repeat})")

    def cancel_vibration(self) -> None:
        logger.debug("Vibration cancelled")

    async def _beep_loop(self) -> None:
        with contextlib.suppress(asyncio.CancelledError):
            while True:
                self.stream.write("\a")
                self.stream.flush()
                await asyncio.sleep(self.interval)
