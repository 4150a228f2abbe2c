import argparse
import asyncio
import logging
import os
import sys

from sonosctl.api import build_session
from sonosctl.application.daemon import DaemonRunner
from sonosctl.application.service import ControlService
from sonosctl.domain.state import TrackInfo
from sonosctl.infrastructure.config import DaemonConfig, RuntimeTarget, load_config

LOG = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        force=True,
    )


def _format_track(track: TrackInfo | None) -> str:
    if track is None:
        return "No track."
    title = track.title or track.track_uri or "<unknown>"
    parts = [title]
    if track.artist:
        parts.append(f"by {track.artist}")
    if track.album:
        parts.append(f"on {track.album}")
    return " ".join(parts)


def _config_from_args(args) -> DaemonConfig:
    cfg = load_config(getattr(args, "config", None))
    target = cfg.target
    return DaemonConfig(
        target=RuntimeTarget(
            ip=args.ip if args.ip is not None else target.ip,
            device_id=args.device_id if args.device_id is not None else target.device_id,
            discover_timeout=(
                args.discover_timeout
                if args.discover_timeout is not None
                else target.discover_timeout
            ),
            describe_timeout=target.describe_timeout,
            ssdp_fallback=target.ssdp_fallback,
        ),
        control_timeout_s=cfg.control_timeout_s,
        poll_interval_s=cfg.poll_interval_s,
        volume_step=args.step if getattr(args, "step", None) is not None else cfg.volume_step,
        log_level=cfg.log_level,
        dedupe_window_s=cfg.dedupe_window_s,
    )


async def _status_lines(service: ControlService) -> list[str]:
    device = service.device
    return [
        f"device: {device.name} ({device.uuid}) @ {device.address}" if device else "device: none",
        f"state: {await service.get_play_state()}",
        f"volume: {await service.get_volume()}",
        f"muted: {await service.get_mute()}",
        f"shuffle: {await service.get_shuffle()}",
        f"track: {_format_track(await service.get_current_track())}",
    ]


async def _run_command(cfg: DaemonConfig, args) -> int:
    service = ControlService(build_session(cfg))
    LOG.debug("running command=%s ip=%s device_id=%s", args.cmd, cfg.target.ip, cfg.target.device_id)

    if args.cmd == "list":
        devices = await service.discover()
        if not devices:
            print("No device detected.")
            return 0
        for i, d in enumerate(devices):
            print(f"[{i}] {d.name} -> {d.ip} ({d.uuid})")
        return 0

    if not await service.initialize(cfg.target.ip, cfg.target.device_id):
        print(
            "Error: no Sonos device reachable. Check network / Wi-Fi isolation or pass --ip.",
            file=sys.stderr,
        )
        return 2

    if args.cmd == "status":
        for line in await _status_lines(service):
            print(line)
        return 0
    if args.cmd == "getvol":
        print(await service.get_volume())
        return 0
    if args.cmd == "track":
        print(_format_track(await service.get_current_track()))
        return 0
    if args.cmd in {"volup", "voldown"}:
        delta = cfg.volume_step if args.cmd == "volup" else -cfg.volume_step
        volume = await service.step_volume(delta)
        if volume is None:
            print(f"Error: {args.cmd} failed", file=sys.stderr)
            return 2
        print(volume)
        return 0

    actions = {
        "play-pause": service.toggle_play_pause,
        "next": service.next_track,
        "prev": service.previous_track,
        "mute": service.toggle_mute,
        "shuffle": service.toggle_shuffle,
    }
    if args.cmd == "setvol":
        ok = await service.set_volume(args.value)
    else:
        ok = await actions[args.cmd]()
    if not ok:
        print(f"Error: {args.cmd} failed", file=sys.stderr)
        return 2
    print("OK")
    return 0


def main() -> None:
    p = argparse.ArgumentParser(
        prog="sonosctl", description="Sonos speaker control (discover + commands + daemon)"
    )
    p.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Override log level (e.g. DEBUG, INFO, WARNING).",
    )
    p.add_argument("--discover-timeout", type=float, default=None)
    p.add_argument("--ip", type=str, default=None, help="Manual IP (bypass discovery)")
    p.add_argument("--device-id", type=str, default=None, help="Device UUID (RINCON_...)")
    p.add_argument("--step", type=int, default=None, help="Volume step for volup/voldown")

    sub = p.add_subparsers(dest="cmd", required=True)
    sub.add_parser("list")
    sub.add_parser("status")
    sub.add_parser("play-pause")
    sub.add_parser("next")
    sub.add_parser("prev")
    sub.add_parser("getvol")
    sub.add_parser("volup")
    sub.add_parser("voldown")
    sub.add_parser("mute")
    sub.add_parser("shuffle")
    sub.add_parser("track")
    set_parser = sub.add_parser("setvol")
    set_parser.add_argument("value", type=int)

    daemon = sub.add_parser("daemon")
    daemon.add_argument("--config", type=str, default=None)

    args = p.parse_args()
    requested_log_level = args.log_level or os.getenv("SONOSCTL_LOG_LEVEL")
    if requested_log_level is not None:
        _configure_logging(requested_log_level)

    try:
        cfg = _config_from_args(args)
    except ValueError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        raise SystemExit(2)

    if args.cmd == "daemon":
        if requested_log_level is None:
            _configure_logging(cfg.log_level)
        try:
            runner = DaemonRunner(
                cfg=cfg,
                session=build_session(cfg),
                address=cfg.target.ip,
                device_id=cfg.target.device_id,
            )
            runner.run_forever()
            return
        except KeyboardInterrupt:
            return
        except Exception as exc:
            print(f"Daemon error: {exc}", file=sys.stderr)
            raise SystemExit(2)

    code = asyncio.run(_run_command(cfg, args))
    if code:
        raise SystemExit(code)
