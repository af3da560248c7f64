"""Glue logic that wires camera → detector → control law → TCP servers."""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from arm_tracking.camera import Camera
from arm_tracking.command_server import CommandServer
from arm_tracking.common import Detection, Frame, TrackingReport
from arm_tracking.config import ControlConfig
from arm_tracking.control import compute_command
from arm_tracking.detector import Detector
from arm_tracking.errors import TransportError
from arm_tracking.geometry import normalize
from arm_tracking.live_tuning import ControlTuner
from arm_tracking.video_server import VideoServer

logger = logging.getLogger(__name__)

ReportCallback = Callable[[TrackingReport], None]


class TrackingProcessor:
    """
    The composition root.

    ``process()`` is the per-frame step and is safe to drive from any frame
    source; ``run()`` adds the camera loop around it.  Both servers are
    optional and are only ever handed work fire-and-forget.

    With ``detector=None`` the processor only streams: frames still reach
    the video server but nothing is detected and no command is sent.
    """

    def __init__(
        self,
        detector: Optional[Detector],
        control_cfg: ControlConfig,
        command_server: Optional[CommandServer] = None,
        video_server: Optional[VideoServer] = None,
        camera: Optional[Camera] = None,
        tuner: Optional[ControlTuner] = None,
        on_report: Optional[ReportCallback] = None,
    ):
        self.detector = detector
        self.control_cfg = control_cfg
        self.command_server = command_server
        self.video_server = video_server
        self.camera = camera
        self.tuner = tuner
        self.on_report = on_report

        self.last_report: Optional[TrackingReport] = None
        self.detector_errors = 0
        self.total_frames = 0

        # Runtime metrics
        self.frame_count = 0
        self.proc_time_sum = 0.0
        self.fps_timer_start = time.time()
        self.disp_fps = 0.0
        self.disp_proc_ms_avg = 0.0

    # ---------------------------------------------------------------------
    #                          Per-frame step
    # ---------------------------------------------------------------------
    def _detect(self, frame: Frame) -> Optional[Detection]:
        try:
            return self.detector.detect(frame.image)
        except Exception as exc:  # noqa: BLE001 - any backend failure means "no target"
            self.detector_errors += 1
            logger.warning("[Processor] Detector failed on frame %d: %s", frame.seq, exc)
            return None

    @property
    def stream_only(self) -> bool:
        return self.detector is None

    def process(self, frame: Frame) -> Optional[TrackingReport]:
        """Handle one frame. Returns None in stream-only mode."""
        # Video path first; it only queues work.
        if self.video_server is not None:
            self.video_server.send_frame(frame)

        if self.stream_only:
            self.total_frames += 1
            return None

        detection = self._detect(frame)
        rect = normalize(
            detection.rect if detection else None,
            frame.width,
            frame.height,
            frame.rotation,
            frame.mirrored,
        )

        cfg = self.control_cfg
        frame_w, frame_h = frame.upright_size
        if cfg.depth_enabled:
            result = compute_command(
                rect, frame_w, frame_h, cfg.deadzone_px, cfg.area_min_pct, cfg.area_max_pct
            )
        else:
            result = compute_command(rect, frame_w, frame_h, cfg.deadzone_px)

        if self.command_server is not None:
            self.command_server.send(result.command)

        report = TrackingReport(
            seq=frame.seq,
            frame_size=(frame_w, frame_h),
            rect=rect,
            label=detection.label if detection else None,
            confidence=detection.confidence if detection else None,
            result=result,
        )
        self._log_transition(report)
        self.last_report = report
        self.total_frames += 1
        if self.on_report is not None:
            self.on_report(report)
        return report

    def _log_transition(self, report: TrackingReport) -> None:
        prev = self.last_report
        had_target = prev is not None and prev.rect is not None
        if report.rect is not None and not had_target:
            logger.info("[Processor] Target acquired (%s)", report.label or "unlabelled")
        elif report.rect is None and had_target:
            logger.info("[Processor] Target lost – %s", report.status)
        elif prev is not None and report.locked != prev.locked:
            logger.debug("[Processor] %s", report.status)

    # ---------------------------------------------------------------------
    #                         Setup / teardown
    # ---------------------------------------------------------------------
    def setup(self) -> bool:
        """Open camera and bring up the servers. TransportError propagates."""
        if self.camera is None or not self.camera.open():
            return False
        if self.command_server is not None:
            self.command_server.start()
        if self.video_server is not None:
            self.video_server.start()
        width, height, fps, fourcc = self.camera.get_properties()
        logger.info(
            "[Processor] Camera delivering %dx%d @ %.1f FPS (%s)", width, height, fps, fourcc
        )
        if self.stream_only:
            logger.info("[Processor] No detector – streaming video only.")
        logger.info("[Processor] Setup complete – Ctrl-C to quit.")
        return True

    def cleanup(self) -> None:
        logger.info("[Processor] Cleaning up...")
        if self.camera is not None:
            self.camera.release()
        if self.command_server is not None:
            self.command_server.stop()
        if self.video_server is not None:
            self.video_server.stop()
        if self.detector is not None:
            try:
                self.detector.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning("[Processor] Detector close failed: %s", exc)
        logger.info(
            "[Processor] Exited. Total frames: %d, detector errors: %d",
            self.total_frames,
            self.detector_errors,
        )

    # ---------------------------------------------------------------------
    #                             Main loop
    # ---------------------------------------------------------------------
    def _update_stats(self, now: float, proc_ms: float) -> None:
        self.proc_time_sum += proc_ms
        self.frame_count += 1
        if now - self.fps_timer_start >= 1.0:
            self.disp_fps = self.frame_count / (now - self.fps_timer_start)
            self.disp_proc_ms_avg = self.proc_time_sum / self.frame_count
            logger.debug(
                "[Processor] FPS:%.1f Proc:%.1fms",
                self.disp_fps,
                self.disp_proc_ms_avg,
            )
            self.frame_count = 0
            self.proc_time_sum = 0.0
            self.fps_timer_start = now

    def _step(self) -> bool:
        """Returns False if the caller should exit the main loop."""
        if self.tuner is not None and self.tuner.maybe_reload():
            if self.tuner.mirrored is not None:
                self.camera.mirrored = self.tuner.mirrored

        frame = self.camera.read()
        if frame is None:
            if self.camera.reopen_exhausted:
                logger.error("[Processor] Camera lost and could not be reopened")
                return False
            time.sleep(0.05)
            return True

        tic = time.time()
        self.process(frame)
        self._update_stats(time.time(), (time.time() - tic) * 1000.0)
        return True

    def run(self, max_frames: Optional[int] = None) -> None:
        try:
            ready = self.setup()
        except TransportError:
            self.cleanup()
            raise
        if not ready:
            self.cleanup()
            return
        try:
            while max_frames is None or self.total_frames < max_frames:
                if not self._step():
                    break
        except KeyboardInterrupt:
            logger.info("[Processor] Stopped by user.")
        finally:
            self.cleanup()
