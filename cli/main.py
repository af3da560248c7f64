"""
Entry-point for the tracking system.

Runs camera → detector → control law and serves two TCP streams:

* command port (default 6000): one ``"x,y"`` / ``"x,y,z"`` line per frame
* video port   (default 6001): ``[uint32 BE length][JPEG]`` preview frames

Live-tuning
-----------
While the program is running you can edit ``runtime_params.json`` and the new
dead-zone / area band / mirror values take effect on the very next frame.
See ``arm_tracking/live_tuning.py`` for the recognised keys.
"""
from __future__ import annotations

import argparse
import logging
import sys

from arm_tracking.camera import Camera
from arm_tracking.command_server import CommandServer
from arm_tracking.config import CameraConfig, ControlConfig, DetectorConfig, ServerConfig
from arm_tracking.detector import create_detector
from arm_tracking.errors import TrackingError
from arm_tracking.live_tuning import ControlTuner
from arm_tracking.processor import TrackingProcessor
from arm_tracking.video_server import VideoServer

logger = logging.getLogger("arm_tracking")


def _setup_logging(verbose: bool) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s.%(msecs)03d [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Vision-to-motion tracking server")
    parser.add_argument(
        "--detector",
        choices=("color", "face", "object", "none"),
        default="color",
        help="Target detector; 'none' streams video only",
    )
    parser.add_argument("--model", default=None, help="Object detector .tflite model")
    parser.add_argument("--device", type=int, default=0, help="Camera index (default: 0)")
    parser.add_argument("--width", type=int, default=320)
    parser.add_argument("--height", type=int, default=240)
    parser.add_argument("--rotation", type=int, choices=(0, 90, 180, 270), default=0)
    parser.add_argument("--mirror", action="store_true", help="Mirror X (front camera)")
    parser.add_argument("--deadzone", type=float, default=60.0, help="Dead-zone box size, px")
    parser.add_argument("--depth", action="store_true", help="Enable area-based forward/back")
    parser.add_argument("--area-min", type=float, default=6.0)
    parser.add_argument("--area-max", type=float, default=10.0)
    parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    parser.add_argument("--command-port", type=int, default=6000)
    parser.add_argument("--video-port", type=int, default=6001)
    parser.add_argument("--no-command", action="store_true", help="Do not serve commands")
    parser.add_argument("--no-video", action="store_true")
    parser.add_argument("--jpeg-quality", type=int, default=50)
    parser.add_argument("--upright-video", action="store_true")
    parser.add_argument("--tuning-file", default="runtime_params.json")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    _setup_logging(args.verbose)

    # -------------------- Config blobs --------------------
    cam_cfg = CameraConfig(
        device_index=args.device,
        width=args.width,
        height=args.height,
        rotation=args.rotation,
        mirrored=args.mirror,
    )
    det_cfg = DetectorConfig(kind=args.detector)
    stream_only = det_cfg.kind == "none"
    if args.model:
        det_cfg.object_model_path = args.model
    ctl_cfg = ControlConfig(
        deadzone_px=args.deadzone,
        depth_enabled=args.depth,
        area_min_pct=args.area_min,
        area_max_pct=args.area_max,
    )
    srv_cfg = ServerConfig(
        host=args.host,
        command_port=args.command_port,
        video_port=args.video_port,
        command_enabled=not (args.no_command or stream_only),
        video_enabled=not args.no_video,
        jpeg_quality=args.jpeg_quality,
        rotate_upright=args.upright_video,
    )

    # ------------------------ Banner ----------------------
    logger.info("=" * 60)
    logger.info(
        "Camera: idx=%d, %dx%d, rotation=%d, mirrored=%s",
        cam_cfg.device_index, cam_cfg.width, cam_cfg.height, cam_cfg.rotation, cam_cfg.mirrored,
    )
    logger.info("Detector: %s", det_cfg.kind)
    logger.info(
        "Control: deadzone=%.0fpx, depth=%s (%.1f%%‒%.1f%%)",
        ctl_cfg.deadzone_px, ctl_cfg.depth_enabled, ctl_cfg.area_min_pct, ctl_cfg.area_max_pct,
    )
    logger.info(
        "Servers: commands=%s, video=%s",
        f"{srv_cfg.host}:{srv_cfg.command_port}" if srv_cfg.command_enabled else "DISABLED",
        f"{srv_cfg.host}:{srv_cfg.video_port}" if srv_cfg.video_enabled else "DISABLED",
    )
    logger.info("=" * 60)

    # ------------------------ Run -------------------------
    if stream_only and not srv_cfg.video_enabled:
        logger.error("Nothing to do: no detector and video disabled")
        return 2

    detector = None
    if not stream_only:
        try:
            detector = create_detector(det_cfg)
        except TrackingError as exc:
            logger.error("Detector init failed: %s", exc)
            return 1

    command_server = None
    if srv_cfg.command_enabled:
        command_server = CommandServer(
            srv_cfg.host, srv_cfg.command_port, write_timeout_s=srv_cfg.write_timeout_s
        )
    video_server = None
    if srv_cfg.video_enabled:
        video_server = VideoServer(
            srv_cfg.host,
            srv_cfg.video_port,
            jpeg_quality=srv_cfg.jpeg_quality,
            write_timeout_s=srv_cfg.write_timeout_s,
            rotate_upright=srv_cfg.rotate_upright,
        )

    processor = TrackingProcessor(
        detector,
        ctl_cfg,
        command_server=command_server,
        video_server=video_server,
        camera=Camera(cam_cfg),
        tuner=ControlTuner(ctl_cfg, args.tuning_file),
    )
    try:
        processor.run()
    except TrackingError as exc:
        logger.error("Startup failed: %s", exc)
        return 1
    logger.info("Main program finished.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
