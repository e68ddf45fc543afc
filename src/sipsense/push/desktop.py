"""Desktop push channel — notify-send toasts on Linux desktops."""

import asyncio
import logging
import shutil

from sipsense.notifications.models import PushPriority
from sipsense.push.base import LocalScheduledChannel, PushError, PushTimeoutError

logger = logging.getLogger(__name__)

_URGENCY = {
    PushPriority.DEFAULT: "normal",
    PushPriority.HIGH: "critical",
    PushPriority.MAX: "critical",
}


class DesktopPushChannel(LocalScheduledChannel):
    """Shows notifications through the `notify-send` binary."""

    name = "desktop"

    def __init__(self, timeout: float = 10.0, binary: str = "notify-send") -> None:
        super().__init__()
        self._timeout = timeout
        self._binary = shutil.which(binary)

    @property
    def available(self) -> bool:
        return self._binary is not None

    async def send(
        self,
        title: str,
        body: str,
        priority: PushPriority = PushPriority.DEFAULT,
        payload: dict | None = None,
    ) -> None:
        """Show a desktop toast.

        Raises:
            PushError: If notify-send is missing or exits non-zero.
            PushTimeoutError: If notify-send does not return in time.
        """
        if self._binary is None:
            raise PushError(self.name, "notify-send not found on PATH")

        try:
            proc = await asyncio.create_subprocess_exec(
                self._binary,
                "--app-name=SipSense",
                f"--urgency={_URGENCY.get(priority, 'normal')}",
                title,
                body,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise PushTimeoutError(self.name, self._timeout) from e
        except OSError as e:
            raise PushError(self.name, f"Could not run notify-send: {e}") from e

        if proc.returncode != 0:
            raise PushError(
                self.name,
                f"notify-send exited {proc.returncode}: {stderr.decode(errors='replace').strip()}",
            )
        logger.debug("Desktop toast shown: %s", title)
