"""
Controller-side viewer: prints incoming commands and shows the preview.

Both streams reconnect from this side simply by restarting the script; the
command server accepts the new connection straight away.  Press 'q' in the
preview window to quit.
"""
from __future__ import annotations

import argparse
import logging
import sys
import threading

import cv2

from arm_tracking.client import CommandClient, VideoClient

logger = logging.getLogger("arm_tracking.viewer")


def _print_commands(client: CommandClient, stop: threading.Event) -> None:
    try:
        for cmd in client:
            if stop.is_set():
                break
            z = "" if cmd.z is None else f" Z:{cmd.z:+d}"
            logger.info("X:%d Y:%d%s", cmd.x, cmd.y, z)
    except OSError as exc:
        if not stop.is_set():
            logger.warning("Command stream closed: %s", exc)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Command / video stream viewer")
    parser.add_argument("host", help="Address of the tracking device")
    parser.add_argument("--command-port", type=int, default=6000)
    parser.add_argument("--video-port", type=int, default=6001)
    parser.add_argument("--no-video", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s.%(msecs)03d [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stop = threading.Event()
    try:
        commands = CommandClient(args.host, args.command_port, timeout=None)
    except OSError as exc:
        logger.error("Could not connect to command port: %s", exc)
        return 1
    reader = threading.Thread(target=_print_commands, args=(commands, stop), daemon=True)
    reader.start()

    try:
        if args.no_video:
            reader.join()
            return 0
        with VideoClient(args.host, args.video_port, timeout=None) as video:
            while True:
                img = video.read_frame()
                if img is None:
                    logger.info("Video stream ended")
                    break
                cv2.imshow("Robot Camera", img)
                if (cv2.waitKey(1) & 0xFF) == ord("q"):
                    break
    except KeyboardInterrupt:
        pass
    except OSError as exc:
        logger.error("Video stream error: %s", exc)
        return 1
    finally:
        stop.set()
        commands.close()
        cv2.destroyAllWindows()
    return 0


if __name__ == "__main__":
    sys.exit(main())
